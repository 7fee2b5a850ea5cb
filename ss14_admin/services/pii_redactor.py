# ss14_admin/services/pii_redactor.py
"""
PII Redactor

Deterministic, one-way masking of personally identifiable information
(IP addresses, hardware IDs, e-mail, phone numbers, addresses, usernames)
for display in the dashboard.

Every strategy degrades to a masked placeholder on malformed input and never
raises, so a caller can never end up rendering the raw value on an error path.
Whether a value should be redacted at all is decided by the caller
(see pii_display.should_censor_pii); redact() always redacts.
"""

import ipaddress
import re
from enum import Enum
from typing import Callable, Dict, Union


class PiiKind(str, Enum):
    """Semantic kind of a PII value; selects the redaction strategy."""
    IPV4_ADDRESS = "ipv4"
    IPV6_ADDRESS = "ipv6"
    HARDWARE_ID = "hwid"
    EMAIL = "email"
    PHONE_NUMBER = "phone"
    PHYSICAL_ADDRESS = "address"
    USERNAME = "username"
    GENERIC = "generic"


ADDRESS_SENTINEL = "***"
EMAIL_MASK = "***"
PHONE_TEMPLATE = "(***) ***-{last4}"

_HWID_MIN_PARTIAL_LENGTH = 13
_HWID_HEAD = 8
_HWID_TAIL = 4

_EMAIL_PATTERN = re.compile(r"^([^@\s]+)@([^@\s]+)$")
_DIGIT_PATTERN = re.compile(r"[0-9]")
_ZIP_PATTERN = re.compile(r"^[0-9]{5}(?:-[0-9]{4})?$")


def full_redaction(value: str) -> str:
    """Replace every character with '*', keeping the length."""
    return "*" * len(value)


def redact_ipv4(value: str) -> str:
    """'203.0.113.42' -> '203.*.*.*'"""
    try:
        address = ipaddress.IPv4Address(value.strip())
    except ValueError:
        return full_redaction(value)

    first_octet = str(address).split(".")[0]
    return f"{first_octet}.*.*.*"


def redact_ipv6(value: str) -> str:
    """'2001:db8::8a2e:370:7334' -> '2001:*:*:*:*:*:*:*'

    The first hextet comes from the parsed address, so compressed and
    expanded spellings of the same address redact identically.
    """
    try:
        address = ipaddress.IPv6Address(value.strip())
    except ValueError:
        return full_redaction(value)

    packed = address.packed
    return f"{packed[0]:02x}{packed[1]:02x}" + ":*" * 7


def redact_hardware_id(value: str) -> str:
    """'a1b2c3d4e5f6g7h8' -> 'a1b2c3d4...g7h8'"""
    cleaned = value.replace("-", "").replace(" ", "")
    if len(cleaned) < _HWID_MIN_PARTIAL_LENGTH:
        return full_redaction(value)
    return f"{cleaned[:_HWID_HEAD]}...{cleaned[-_HWID_TAIL:]}"


def redact_email(value: str) -> str:
    """'john.doe@example.com' -> 'j***@example.com'"""
    match = _EMAIL_PATTERN.match(value.strip())
    if not match:
        return full_redaction(value)
    local, domain = match.groups()
    return f"{local[0]}{EMAIL_MASK}@{domain}"


def redact_phone_number(value: str) -> str:
    """Keep only the last four digits: '+1 (555) 010-4477' -> '(***) ***-4477'"""
    digits = _DIGIT_PATTERN.findall(value)
    if len(digits) < 4:
        return full_redaction(value)
    return PHONE_TEMPLATE.format(last4="".join(digits[-4:]))


def redact_physical_address(value: str) -> str:
    """Reduce a comma separated address to 'city, state', or '***'.

    Best-effort heuristic aimed at US style addresses:
    '1 Main St, Springfield, IL, 62701' -> 'Springfield, IL'
    '1 Main St, Springfield, IL' -> 'Springfield, IL'
    """
    segments = [segment.strip() for segment in value.split(",")]
    segments = [segment for segment in segments if segment]
    if len(segments) < 2:
        return ADDRESS_SENTINEL

    last = segments[-1]
    if _ZIP_PATTERN.match(last) and len(segments) >= 3:
        return f"{segments[-3]}, {segments[-2]}"

    city = segments[-2]
    if len(last) in (2, 5) or 3 <= len(city) <= 29:
        return f"{city}, {last}"

    return ADDRESS_SENTINEL


def redact_username(value: str) -> str:
    """'john_doe' -> 'j******e'"""
    if len(value) <= 2:
        return full_redaction(value)
    return value[0] + "*" * (len(value) - 2) + value[-1]


_STRATEGIES: Dict[PiiKind, Callable[[str], str]] = {
    PiiKind.IPV4_ADDRESS: redact_ipv4,
    PiiKind.IPV6_ADDRESS: redact_ipv6,
    PiiKind.HARDWARE_ID: redact_hardware_id,
    PiiKind.EMAIL: redact_email,
    PiiKind.PHONE_NUMBER: redact_phone_number,
    PiiKind.PHYSICAL_ADDRESS: redact_physical_address,
    PiiKind.USERNAME: redact_username,
    PiiKind.GENERIC: full_redaction,
}


def redact(value: str, kind: Union[PiiKind, str]) -> str:
    """
    Redact a PII value according to its kind.

    Args:
        value: Raw value as stored
        kind: PiiKind (or its string value)

    Returns:
        Masked representation; "" for blank input. Unknown kinds get full redaction.
    """
    if value is None or not value.strip():
        return ""

    try:
        strategy = _STRATEGIES[PiiKind(kind)]
    except ValueError:
        strategy = full_redaction

    return strategy(value)


def redact_ip(value: str) -> str:
    """Redact an IP address of either family, picked from the parsed address."""
    if value is None or not value.strip():
        return ""
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return full_redaction(value)

    if address.version == 4:
        return redact_ipv4(value)
    return redact_ipv6(value)


def redact_hwid(value: str) -> str:
    return redact(value, PiiKind.HARDWARE_ID)
