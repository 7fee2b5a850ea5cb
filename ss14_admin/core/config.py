import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# ==========================================
# Path Configuration
# ==========================================

CORE_DIR = Path(__file__).resolve().parent
APP_DIR = CORE_DIR.parent
ROOT_DIR = APP_DIR.parent

ENV_FILE = Path(os.getenv("SS14_ADMIN_ENV_FILE", str(ROOT_DIR / ".env"))).expanduser()

# Every getenv below reads the .env values, so this runs first.
load_dotenv(dotenv_path=ENV_FILE)

DATA_DIR = Path(os.getenv("SS14_ADMIN_DATA_DIR", str(ROOT_DIR / "data"))).expanduser()
LOGS_DIR = Path(os.getenv("SS14_ADMIN_LOGS_DIR", str(ROOT_DIR / "logs"))).expanduser()
PII_VIEWERS_FILE = DATA_DIR / "pii_viewers.yml"

# ==========================================
# Access Configuration
# ==========================================

_staff_emails = os.getenv("STAFF_EMAILS", "staff@example.com")
STAFF_EMAILS = frozenset(
    email.strip().lower() for email in _staff_emails.split(",") if email.strip()
)


def load_pii_viewers() -> frozenset[str]:
    """Load accounts holding the PII role from the YAML config file."""
    if PII_VIEWERS_FILE.exists():
        try:
            with open(PII_VIEWERS_FILE, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                viewers = data.get("pii_viewers", []) if data else []
                return frozenset(str(v).strip().lower() for v in viewers if str(v).strip())
        except (yaml.YAMLError, OSError):
            pass
    return frozenset()


PII_VIEWERS = load_pii_viewers()

# ==========================================
# Filter Keys
# ==========================================

FILTER_KEY_IDLE_MINUTES = int(os.getenv("FILTER_KEY_IDLE_MINUTES", "30"))
FILTER_KEY_SWEEP_INTERVAL_SECONDS = int(os.getenv("FILTER_KEY_SWEEP_INTERVAL_SECONDS", "300"))

# ==========================================
# App Configuration
# ==========================================

APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "127.0.0.1")
