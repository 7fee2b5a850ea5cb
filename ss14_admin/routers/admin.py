# ss14_admin/routers/admin.py
"""
Admin Panel API Routes

Per-user display settings, the PII redaction endpoint used by grid pages,
and staff RBAC management (admins only).
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ss14_admin.core.auth import (
    can_view_pii,
    get_owner_id,
    is_admin,
    require_admin,
    require_staff,
)
from ss14_admin.services import permissions as permissions_service
from ss14_admin.services import user_preferences as prefs_service
from ss14_admin.services.pii_display import IP_FIELD, display_value, should_censor_pii
from ss14_admin.services.pii_redactor import PiiKind

router = APIRouter(prefix="/admin/api", tags=["Admin"])

MAX_REDACT_ITEMS = 500
_VALID_FIELD_KINDS = frozenset(k.value for k in PiiKind) | {IP_FIELD}


async def _read_json(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


# =============================================================================
# Preferences
# =============================================================================

@router.get("/preferences")
async def get_my_preferences(user_info: dict = Depends(require_staff)):
    """Get the caller's display preferences."""
    return JSONResponse({
        "status": "ok",
        "preferences": prefs_service.get_preferences(get_owner_id(user_info)),
        "defaults": prefs_service.get_defaults(),
    })


@router.put("/preferences")
async def update_my_preferences(request: Request, user_info: dict = Depends(require_staff)):
    """Patch the caller's display preferences."""
    body = await _read_json(request)
    owner_id = get_owner_id(user_info)

    try:
        preferences = prefs_service.set_preferences(owner_id, body, updated_by=owner_id)
    except prefs_service.PreferenceValidationError as exc:
        return JSONResponse(
            {"status": "error", "error": "Invalid preferences", "errors": exc.errors},
            status_code=400,
        )

    return JSONResponse({"status": "ok", "preferences": preferences})


@router.get("/my-settings")
async def get_my_settings(user_info: dict = Depends(require_staff)):
    """Get the caller's role, permissions and PII visibility."""
    email = get_owner_id(user_info)
    preferences = prefs_service.get_preferences(email)

    if is_admin(user_info):
        user_permissions = sorted(permissions_service.ALL_PERMISSIONS)
        visible_modules = sorted(set(
            m["module"] for m in permissions_service.PERMISSION_METADATA.values()
        ))
        role = "admin"
    else:
        user_permissions = sorted(permissions_service.get_effective_permissions(email))
        visible_modules = permissions_service.get_user_visible_modules(email)
        role = permissions_service.get_user_rbac(email).role

    return JSONResponse({
        "status": "ok",
        "role": role,
        "permissions": user_permissions,
        "visible_modules": visible_modules,
        "can_view_pii": can_view_pii(user_info),
        "censor_pii": should_censor_pii(user_info, preferences),
    })


# =============================================================================
# Redaction
# =============================================================================

@router.post("/redact")
async def redact_values(request: Request, user_info: dict = Depends(require_staff)):
    """
    Return values as the caller may see them.

    Body: {"items": [{"value": "203.0.113.42", "kind": "ipv4"}, ...]}
    Kinds: ipv4, ipv6, ip (either family), hwid, email, phone, address, username, generic.
    """
    body = await _read_json(request)
    items = body.get("items") if isinstance(body, dict) else None
    if not isinstance(items, list):
        return JSONResponse({"status": "error", "error": "items must be a list"}, status_code=400)
    if len(items) > MAX_REDACT_ITEMS:
        return JSONResponse(
            {"status": "error", "error": f"At most {MAX_REDACT_ITEMS} items per request"},
            status_code=400,
        )

    errors = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors[str(index)] = "Item must be an object"
        elif item.get("value") is not None and not isinstance(item.get("value"), str):
            errors[str(index)] = "value must be a string"
        elif not isinstance(item.get("kind"), str) or item["kind"] not in _VALID_FIELD_KINDS:
            errors[str(index)] = f"kind must be one of: {', '.join(sorted(_VALID_FIELD_KINDS))}"
    if errors:
        return JSONResponse(
            {"status": "error", "error": "Invalid items", "errors": errors},
            status_code=400,
        )

    censor = should_censor_pii(user_info)
    values = [display_value(item.get("value"), item["kind"], censor) for item in items]

    return JSONResponse({"status": "ok", "censored": censor, "values": values})


# =============================================================================
# RBAC (admin only)
# =============================================================================

def _rbac_user_payload(email: str) -> dict:
    user = permissions_service.get_user_rbac(email)
    return {
        "email": user.email,
        "role": user.role,
        "grants": user.grants,
        "revokes": user.revokes,
        "effective_permissions": sorted(permissions_service.get_effective_permissions(user.email)),
        "visible_modules": permissions_service.get_user_visible_modules(user.email),
        "updated_at": user.updated_at,
        "updated_by": user.updated_by,
    }


@router.get("/rbac/roles")
async def get_rbac_roles(user_info: dict = Depends(require_admin)):
    """List all role presets with descriptions and permissions."""
    roles = {}
    for role_name, role_data in permissions_service.ROLE_PRESETS.items():
        roles[role_name] = {
            "description": role_data["description"],
            "permissions": sorted(role_data["permissions"]),
        }
    return JSONResponse({"status": "ok", "roles": roles})


@router.get("/rbac/permissions")
async def get_rbac_permissions(user_info: dict = Depends(require_admin)):
    """Get all permissions with metadata (description, module)."""
    return JSONResponse({
        "status": "ok",
        "permissions": {
            perm: permissions_service.PERMISSION_METADATA[perm]
            for perm in sorted(permissions_service.ALL_PERMISSIONS)
        },
    })


@router.get("/rbac/users")
async def get_rbac_users(user_info: dict = Depends(require_admin)):
    """Get all staff members with RBAC settings."""
    users = [_rbac_user_payload(u.email) for u in permissions_service.get_all_users()]
    return JSONResponse({"status": "ok", "users": users})


@router.put("/rbac/users/{email}/role")
async def set_rbac_user_role(email: str, request: Request, user_info: dict = Depends(require_admin)):
    """Assign (or with null, remove) a role."""
    body = await _read_json(request) or {}
    role = body.get("role") if isinstance(body, dict) else None

    result = permissions_service.set_user_role(email, role, get_owner_id(user_info))
    if result is None:
        return JSONResponse({"success": False, "error": "Invalid role or failed to update"}, status_code=400)

    return JSONResponse({
        "success": True,
        "message": f"Role {'assigned' if role else 'removed'} for {result.email}",
        "user": _rbac_user_payload(result.email),
    })


@router.post("/rbac/users/{email}/grant")
async def grant_rbac_permission(email: str, request: Request, user_info: dict = Depends(require_admin)):
    """Grant an extra permission to a staff member."""
    body = await _read_json(request) or {}
    permission = body.get("permission", "") if isinstance(body, dict) else ""

    result = permissions_service.grant_permission(email, permission, get_owner_id(user_info))
    if result is None:
        return JSONResponse({"success": False, "error": "Invalid permission or failed to update"}, status_code=400)

    return JSONResponse({
        "success": True,
        "message": f"Granted {permission} to {result.email}",
        "user": _rbac_user_payload(result.email),
    })


@router.post("/rbac/users/{email}/revoke")
async def revoke_rbac_permission(email: str, request: Request, user_info: dict = Depends(require_admin)):
    """Revoke a permission from a staff member (overrides role)."""
    body = await _read_json(request) or {}
    permission = body.get("permission", "") if isinstance(body, dict) else ""

    result = permissions_service.revoke_permission(email, permission, get_owner_id(user_info))
    if result is None:
        return JSONResponse({"success": False, "error": "Invalid permission or failed to update"}, status_code=400)

    return JSONResponse({
        "success": True,
        "message": f"Revoked {permission} from {result.email}",
        "user": _rbac_user_payload(result.email),
    })


@router.delete("/rbac/users/{email}")
async def reset_rbac_user(email: str, user_info: dict = Depends(require_admin)):
    """Remove all RBAC settings for a staff member."""
    if permissions_service.reset_user(email, get_owner_id(user_info)):
        return JSONResponse({"success": True, "message": f"Reset RBAC for {email.lower()}"})
    return JSONResponse({"success": False, "error": "User has no RBAC settings"}, status_code=404)
