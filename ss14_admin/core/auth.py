"""Authentication and authorization utilities."""

import os
from typing import Optional

from fastapi import HTTPException, Request

from ss14_admin.core import config
from ss14_admin.core.config import STAFF_EMAILS
from ss14_admin.services import permissions as permissions_service

_admin_emails = os.getenv("ADMIN_EMAILS", "admin@example.com")
ADMIN_EMAILS = frozenset(
    email.strip().lower() for email in _admin_emails.split(",") if email.strip()
)

PII_PERMISSION = "pii:view"


def get_current_user(request: Request) -> Optional[dict]:
    """Extract user info from session."""
    return request.session.get("user_info")


def get_owner_id(user_info: Optional[dict]) -> str:
    """Stable identity used to own server-side state such as filter keys."""
    if not user_info:
        return ""
    return (user_info.get("email") or "").strip().lower()


def is_admin(user_info: Optional[dict]) -> bool:
    """Check if user has admin privileges."""
    if not user_info:
        return False
    return user_info.get("email", "").lower() in ADMIN_EMAILS


def is_staff(user_info: Optional[dict]) -> bool:
    """Check if user is a staff member."""
    if not user_info:
        return False
    return user_info.get("email", "").lower() in STAFF_EMAILS


def is_admin_or_staff(user_info: Optional[dict]) -> bool:
    """Check if user is admin OR staff."""
    return is_admin(user_info) or is_staff(user_info)


def can_view_pii(user_info: Optional[dict]) -> bool:
    """Check if user may see unredacted PII (PII role or pii:view permission)."""
    if not user_info:
        return False
    email = get_owner_id(user_info)
    if email in config.PII_VIEWERS:
        return True
    if is_admin(user_info):
        return True
    return permissions_service.has_permission(email, PII_PERMISSION)


async def require_auth(request: Request) -> dict:
    """Require authenticated user."""
    user_info = get_current_user(request)
    if not user_info:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_info


async def require_admin(request: Request) -> dict:
    """Require admin user."""
    user_info = await require_auth(request)
    if not is_admin(user_info):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_info


async def require_staff(request: Request) -> dict:
    """Require staff or admin user."""
    user_info = await require_auth(request)
    if not is_admin_or_staff(user_info):
        raise HTTPException(status_code=403, detail="Staff access required")
    return user_info


def check_permission(user_info: dict, permission: str) -> None:
    """Raise 403 unless the (already authenticated staff) user holds a permission."""
    if is_admin(user_info):
        return
    email = get_owner_id(user_info)
    if not permissions_service.has_permission(email, permission):
        raise HTTPException(status_code=403, detail=f"Permission denied: {permission}")


def require_permission(permission: str):
    """FastAPI dependency factory for RBAC permissions."""

    async def dependency(request: Request) -> dict:
        user_info = await require_staff(request)
        check_permission(user_info, permission)
        return user_info

    return dependency
