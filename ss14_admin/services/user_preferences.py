"""
User Preferences Service

Stores per-user display preferences in a dedicated JSON file.
"censor_pii" lets staff who may see PII still ask for it to be redacted,
e.g. while screen sharing.
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Tuple

from ss14_admin.core import config

logger = logging.getLogger(__name__)

PREFERENCES_FILE = config.DATA_DIR / "user_preferences.json"
_file_lock = threading.Lock()

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "theme": "system",
    "censor_pii": True,
    "page_size": 50,
}

_THEME_VALUES = frozenset({"dark", "light", "system"})
_PAGE_SIZE_MIN = 10
_PAGE_SIZE_MAX = 200


class PreferenceValidationError(Exception):
    """Raised when preference payload validation fails."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Invalid preference payload")
        self.errors = errors


def _base_payload() -> dict:
    return {
        "version": 1,
        "defaults": dict(DEFAULT_PREFERENCES),
        "users": {},
    }


def _load_payload() -> dict:
    if not PREFERENCES_FILE.exists():
        return _base_payload()
    try:
        with open(PREFERENCES_FILE, "r", encoding="utf-8") as fp:
            loaded = json.load(fp)
    except (json.JSONDecodeError, IOError) as exc:
        logger.error("Failed to load user preferences: %s", exc)
        return _base_payload()

    if not isinstance(loaded, dict):
        return _base_payload()
    loaded.setdefault("version", 1)
    if not isinstance(loaded.get("defaults"), dict):
        loaded["defaults"] = dict(DEFAULT_PREFERENCES)
    if not isinstance(loaded.get("users"), dict):
        loaded["users"] = {}
    return loaded


def _save_payload(payload: dict) -> bool:
    try:
        PREFERENCES_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(PREFERENCES_FILE, "w", encoding="utf-8") as fp:
            json.dump(payload, fp, indent=2, ensure_ascii=False)
        return True
    except IOError as exc:
        logger.error("Failed to save user preferences: %s", exc)
        return False


def _validate_partial_preferences(raw: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    clean: Dict[str, Any] = {}
    errors: Dict[str, str] = {}

    for key, value in raw.items():
        if key not in DEFAULT_PREFERENCES:
            errors[key] = "Unknown preference key"
            continue

        if key == "theme":
            if not isinstance(value, str) or value not in _THEME_VALUES:
                errors[key] = f"Must be one of: {', '.join(sorted(_THEME_VALUES))}"
            else:
                clean[key] = value
            continue

        if key == "censor_pii":
            if not isinstance(value, bool):
                errors[key] = "Must be boolean"
            else:
                clean[key] = value
            continue

        if key == "page_size":
            if (
                isinstance(value, bool)
                or not isinstance(value, int)
                or value < _PAGE_SIZE_MIN
                or value > _PAGE_SIZE_MAX
            ):
                errors[key] = f"Must be integer between {_PAGE_SIZE_MIN} and {_PAGE_SIZE_MAX}"
            else:
                clean[key] = value
            continue

    return clean, errors


def _extract_defaults(payload: dict) -> Dict[str, Any]:
    clean_defaults, _ = _validate_partial_preferences(payload.get("defaults", {}))
    merged = dict(DEFAULT_PREFERENCES)
    merged.update(clean_defaults)
    return merged


def _stored_user_values(payload: dict, user_id: str) -> Dict[str, Any]:
    row = payload["users"].get(user_id, {})
    if not isinstance(row, dict):
        return {}
    values = {key: row[key] for key in DEFAULT_PREFERENCES if key in row}
    clean, _ = _validate_partial_preferences(values)
    return clean


def _normalize_user_id(user_id: str) -> str:
    return (user_id or "").strip().lower()


def get_defaults() -> Dict[str, Any]:
    with _file_lock:
        payload = _load_payload()
        return _extract_defaults(payload)


def get_preferences(user_id: str) -> Dict[str, Any]:
    normalized = _normalize_user_id(user_id)
    with _file_lock:
        payload = _load_payload()
        merged = _extract_defaults(payload)
        merged.update(_stored_user_values(payload, normalized))
        return merged


def set_preferences(user_id: str, patch: Dict[str, Any], updated_by: str = "self") -> Dict[str, Any]:
    if not isinstance(patch, dict):
        raise PreferenceValidationError({"preferences": "Payload must be an object"})

    clean_patch, errors = _validate_partial_preferences(patch)
    if errors:
        raise PreferenceValidationError(errors)

    normalized = _normalize_user_id(user_id)
    with _file_lock:
        payload = _load_payload()

        current = _extract_defaults(payload)
        current.update(_stored_user_values(payload, normalized))
        current.update(clean_patch)

        payload["users"][normalized] = {
            **{key: current[key] for key in DEFAULT_PREFERENCES},
            "updated_at": datetime.now().isoformat(),
            "updated_by": updated_by or "self",
        }

        if not _save_payload(payload):
            raise IOError("Failed to persist preferences")

        return {key: current[key] for key in DEFAULT_PREFERENCES}
