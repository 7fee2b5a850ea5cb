from __future__ import annotations

import json
import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Any

from ss14_admin.core import config

AUDIT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
AUDIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
AUDIT_ROTATE_MAX_BYTES = 1024 * 1024
AUDIT_ROTATE_RETENTION = 5


def get_audit_logger(name: str, filename: str) -> logging.Logger:
    """File-backed audit logger, configured once per name."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        config.LOGS_DIR.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(
            config.LOGS_DIR / filename,
            maxBytes=AUDIT_ROTATE_MAX_BYTES,
            backupCount=AUDIT_ROTATE_RETENTION,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt=AUDIT_DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def audit_event(
    *,
    logger: logging.Logger,
    actor: str,
    action: str,
    target: str = "",
    result: str = "",
    level: int = logging.INFO,
    extra: dict[str, Any] | None = None,
) -> None:
    """Write one JSON line per security-relevant event. Never pass PII in extra."""
    payload: dict[str, Any] = {
        "ts": int(time.time()),
        "actor": actor,
        "action": action,
        "target": target,
        "result": result,
    }
    if extra:
        payload.update(extra)
    logger.log(level, json.dumps(payload, ensure_ascii=False))
