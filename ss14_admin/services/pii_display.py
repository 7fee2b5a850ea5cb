# ss14_admin/services/pii_display.py
"""
PII display gating for grid pages.

Viewers without the PII permission always see redacted values. Viewers
with it see raw values unless their "censor_pii" preference is on.
"""

from typing import Any, Dict, Mapping, Optional, Union

from ss14_admin.core.auth import can_view_pii, get_owner_id
from ss14_admin.services import user_preferences as prefs_service
from ss14_admin.services.pii_redactor import PiiKind, redact, redact_ip

# Field kind for IP columns whose address family is not known up front
IP_FIELD = "ip"


def should_censor_pii(user_info: Optional[dict], preferences: Optional[Mapping[str, Any]] = None) -> bool:
    """Decide whether this viewer gets redacted output."""
    if not can_view_pii(user_info):
        return True
    if preferences is None:
        preferences = prefs_service.get_preferences(get_owner_id(user_info))
    return bool(preferences.get("censor_pii", True))


def display_value(value: Optional[str], kind: Union[PiiKind, str], censor: bool) -> Optional[str]:
    """Value as this viewer should see it."""
    if value is None or not censor or not value.strip():
        return value
    if kind == IP_FIELD:
        return redact_ip(value)
    return redact(value, kind)


def censor_record(
    record: Mapping[str, Any],
    field_kinds: Mapping[str, Union[PiiKind, str]],
    censor: bool,
) -> Dict[str, Any]:
    """
    Copy a row, passing the named PII fields through display_value.

    Non-string values in PII fields are left as they are; fields not in
    field_kinds are copied unchanged.
    """
    result = dict(record)
    if not censor:
        return result
    for name, kind in field_kinds.items():
        value = result.get(name)
        if isinstance(value, str):
            result[name] = display_value(value, kind, censor)
    return result
