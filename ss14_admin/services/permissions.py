# ss14_admin/services/permissions.py
"""
RBAC Permission Service

Staff accounts get a role preset plus per-account grants and revokes:

    effective = (role permissions | grants) - revokes

An account with no stored row has no permissions at all. "pii:view" is the
permission that lifts PII redaction for a staff member.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from ss14_admin.core import config
from ss14_admin.services.audit_log import audit_event, get_audit_logger

logger = logging.getLogger(__name__)

rbac_logger = get_audit_logger("rbac_audit", "rbac_audit.log")

# ============================================
# Permissions and roles
# ============================================

_PERMISSION_TABLE = (
    # permission, module, description
    ("players:view", "players", "Search players"),
    ("connections:view", "connections", "View connection logs"),
    ("bans:view", "bans", "View server bans"),
    ("bans:manage", "bans", "Create and lift bans"),
    ("role_bans:view", "role_bans", "View role bans"),
    ("role_bans:manage", "role_bans", "Create and lift role bans"),
    ("characters:view", "characters", "View player characters"),
    ("logs:view", "logs", "View admin logs"),
    ("whitelist:view", "whitelist", "View whitelist"),
    ("whitelist:manage", "whitelist", "Add and remove whitelist entries"),
    ("notes:view", "notes", "View moderation notes"),
    ("notes:manage", "notes", "Add, edit and delete moderation notes"),
    ("permissions:view", "permissions", "View admin flags and ranks"),
    ("pii:view", "pii", "See unredacted IPs, hardware IDs and other PII"),
)

PERMISSION_METADATA: Dict[str, dict] = {
    perm: {"module": module, "description": description}
    for perm, module, description in _PERMISSION_TABLE
}

ALL_PERMISSIONS = frozenset(PERMISSION_METADATA)

_READ_ONLY = frozenset(perm for perm in ALL_PERMISSIONS if perm.endswith(":view")) - {
    "logs:view", "permissions:view", "pii:view",
}
_MODERATION = frozenset([
    "bans:manage", "role_bans:manage", "whitelist:manage", "notes:manage", "logs:view",
])

ROLE_PRESETS: Dict[str, dict] = {
    "viewer": {
        "description": "Trial staff, read-only with PII redacted",
        "permissions": _READ_ONLY,
    },
    "moderator": {
        "description": "Game admin: bans, role bans, whitelist and notes",
        "permissions": _READ_ONLY | _MODERATION,
    },
    "senior_moderator": {
        "description": "Moderator plus unredacted PII and admin flags",
        "permissions": _READ_ONLY | _MODERATION | {"permissions:view", "pii:view"},
    },
}

# ============================================
# Storage
# ============================================

RBAC_SETTINGS_FILE = config.DATA_DIR / "rbac_settings.json"
_file_lock = threading.Lock()


@dataclass
class UserRBAC:
    """Stored RBAC row for one staff account."""
    email: str
    role: Optional[str] = None
    grants: List[str] = field(default_factory=list)
    revokes: List[str] = field(default_factory=list)
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_row(cls, email: str, row: dict) -> "UserRBAC":
        return cls(
            email=row.get("email", email),
            role=row.get("role"),
            grants=list(row.get("grants", [])),
            revokes=list(row.get("revokes", [])),
            updated_at=row.get("updated_at"),
            updated_by=row.get("updated_by"),
        )


def _read_users() -> Dict[str, dict]:
    """Stored rows keyed by lower-cased e-mail; an unreadable file counts as empty."""
    try:
        with open(RBAC_SETTINGS_FILE, "r", encoding="utf-8") as f:
            return json.load(f).get("users", {})
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Could not read %s: %s", RBAC_SETTINGS_FILE, e)
        return {}


def _write_users(users: Dict[str, dict]) -> bool:
    try:
        RBAC_SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(RBAC_SETTINGS_FILE, "w", encoding="utf-8") as f:
            json.dump({"version": 1, "users": users}, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error("Could not write %s: %s", RBAC_SETTINGS_FILE, e)
        return False
    return True


def _stored_user(email: str) -> Optional[dict]:
    with _file_lock:
        return _read_users().get((email or "").lower())


def _update_user(
    email: str,
    admin_email: str,
    action: str,
    change: Callable[[dict], dict],
) -> Optional[UserRBAC]:
    """
    Apply change() to the account's row (created on first write) and persist.

    change() mutates the row in place and returns the audit details for the
    event. Returns the saved row, or None when the file could not be written.
    """
    key = email.lower()
    with _file_lock:
        users = _read_users()
        row = users.setdefault(key, {"email": key, "role": None, "grants": [], "revokes": []})
        details = change(row)
        row["updated_at"] = datetime.now().isoformat()
        row["updated_by"] = admin_email
        if not _write_users(users):
            return None

    audit_event(logger=rbac_logger, actor=admin_email, action=action, target=key, result="ok", extra=details)
    return UserRBAC.from_row(key, row)


# ============================================
# Queries
# ============================================

def get_effective_permissions(email: str) -> Set[str]:
    """(role permissions | grants) - revokes; empty for unknown accounts."""
    row = _stored_user(email)
    if not row:
        return set()

    role = ROLE_PRESETS.get(row.get("role") or "")
    granted = set(role["permissions"]) if role else set()
    granted.update(p for p in row.get("grants", []) if p in ALL_PERMISSIONS)
    return granted - set(row.get("revokes", []))


def has_permission(email: str, permission: str) -> bool:
    return permission in get_effective_permissions(email)


def get_user_rbac(email: str) -> UserRBAC:
    row = _stored_user(email)
    if row is None:
        return UserRBAC(email=email.lower())
    return UserRBAC.from_row(email.lower(), row)


def get_all_users() -> List[UserRBAC]:
    with _file_lock:
        users = _read_users()
    return [UserRBAC.from_row(email, row) for email, row in users.items()]


def get_user_visible_modules(email: str) -> List[str]:
    """Modules the account holds at least one permission in, for tab filtering."""
    return sorted({
        PERMISSION_METADATA[perm]["module"]
        for perm in get_effective_permissions(email)
        if perm in PERMISSION_METADATA
    })


# ============================================
# Changes
# ============================================

def set_user_role(email: str, role: Optional[str], admin_email: str) -> Optional[UserRBAC]:
    """Assign a role preset, or None to clear it. Unknown roles are rejected."""
    if role is not None and role not in ROLE_PRESETS:
        return None

    def change(row: dict) -> dict:
        old_role, row["role"] = row.get("role"), role
        return {"old_role": old_role, "new_role": role}

    return _update_user(email, admin_email, "role_change", change)


def grant_permission(email: str, permission: str, admin_email: str) -> Optional[UserRBAC]:
    """Add a grant. A grant cancels an earlier revoke of the same permission."""
    if permission not in ALL_PERMISSIONS:
        return None

    def change(row: dict) -> dict:
        _move(permission, into=row.setdefault("grants", []), out_of=row.setdefault("revokes", []))
        return {"permission": permission}

    return _update_user(email, admin_email, "grant", change)


def revoke_permission(email: str, permission: str, admin_email: str) -> Optional[UserRBAC]:
    """Add a revoke, which wins over the role preset and cancels a grant."""
    if permission not in ALL_PERMISSIONS:
        return None

    def change(row: dict) -> dict:
        _move(permission, into=row.setdefault("revokes", []), out_of=row.setdefault("grants", []))
        return {"permission": permission}

    return _update_user(email, admin_email, "revoke", change)


def _move(permission: str, into: List[str], out_of: List[str]) -> None:
    if permission not in into:
        into.append(permission)
    if permission in out_of:
        out_of.remove(permission)


def reset_user(email: str, admin_email: str) -> bool:
    """Drop the account's row entirely. False if there was nothing to drop."""
    key = email.lower()
    with _file_lock:
        users = _read_users()
        removed = users.pop(key, None)
        if removed is None or not _write_users(users):
            return False

    audit_event(
        logger=rbac_logger, actor=admin_email, action="reset", target=key, result="ok",
        extra={"old_role": removed.get("role")},
    )
    return True
