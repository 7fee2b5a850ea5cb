# ss14_admin/routers/filters.py
"""
Filter Key Routes

Lets a page hand "filter by this IP / HWID / username" state to another
page through an opaque key (?fk=...) instead of the raw value.
The owner of every key is the session identity, never request input.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ss14_admin.core.auth import check_permission, get_owner_id, require_staff
from ss14_admin.services import filter_keys
from ss14_admin.services.filter_criteria import (
    FilterCriteria,
    FilterCriteriaValidationError,
    FilterType,
)

router = APIRouter(prefix="/admin/api/filters", tags=["Filters"])

FILTER_KEY_QUERY_PARAM = "fk"


def _not_found() -> JSONResponse:
    # Unknown, expired and foreign keys must be indistinguishable
    return JSONResponse({"status": "error", "error": "Filter not found"}, status_code=404)


def build_filter_url(target_view: str, filter_key: str) -> str:
    return f"/admin/{target_view}?{FILTER_KEY_QUERY_PARAM}={filter_key}"


def _requested_view(body) -> Optional[FilterType]:
    if not isinstance(body, dict):
        return None
    try:
        return FilterType(body.get("target_view"))
    except (TypeError, ValueError):
        return None


@router.post("")
async def create_filter(request: Request, user_info: dict = Depends(require_staff)):
    """Store filter criteria server-side and return a key for the target page."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(
            {"status": "error", "error": "Invalid JSON body"},
            status_code=400,
        )

    # A caller without access to the target view is refused before any
    # other field is looked at.
    target_view = _requested_view(body)
    if target_view is not None:
        check_permission(user_info, f"{target_view.value}:view")

    try:
        criteria = FilterCriteria.from_payload(get_owner_id(user_info), body)
    except FilterCriteriaValidationError as exc:
        return JSONResponse(
            {"status": "error", "error": "Invalid filter", "errors": exc.errors},
            status_code=400,
        )

    filter_key = filter_keys.get_filter_key_service().create_filter_key(criteria)
    return JSONResponse({
        "status": "ok",
        "filter_key": filter_key,
        "target_view": criteria.target_view.value,
        "url": build_filter_url(criteria.target_view.value, filter_key),
    })


@router.get("/{filter_key}")
async def get_filter(filter_key: str, user_info: dict = Depends(require_staff)):
    """Resolve one of the caller's own filter keys."""
    criteria = filter_keys.get_filter_key_service().get_filter_criteria(
        filter_key, get_owner_id(user_info)
    )
    if criteria is None:
        return _not_found()

    return JSONResponse({
        "status": "ok",
        "filter_key": filter_key,
        "criteria": criteria.to_dict(),
    })


@router.post("/{filter_key}/extend")
async def extend_filter(filter_key: str, user_info: dict = Depends(require_staff)):
    """Keep a filter key alive for another idle window."""
    extended = filter_keys.get_filter_key_service().extend_filter_key(
        filter_key, get_owner_id(user_info)
    )
    if not extended:
        return _not_found()
    return JSONResponse({"status": "ok", "filter_key": filter_key})


@router.delete("/{filter_key}")
async def delete_filter(filter_key: str, user_info: dict = Depends(require_staff)):
    """Drop a filter key. Idempotent."""
    filter_keys.get_filter_key_service().remove_filter_key(filter_key)
    return JSONResponse({"status": "ok"})
