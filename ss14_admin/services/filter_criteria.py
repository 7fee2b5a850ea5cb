# ss14_admin/services/filter_criteria.py
"""
Filter Criteria

Immutable description of a "filter by this field" navigation: which page it
targets and the search state to pre-apply there. The search term may hold
PII (an IP, a hardware ID, a username), so a criteria value is only ever
kept server-side and referenced through a filter key.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

MAX_SEARCH_LENGTH = 256
MAX_ADDITIONAL_FILTERS = 32


class FilterType(str, Enum):
    """Page a filter applies to."""
    CONNECTIONS = "connections"
    PLAYERS = "players"
    BANS = "bans"
    ROLE_BANS = "role_bans"
    CHARACTERS = "characters"
    LOGS = "logs"
    WHITELIST = "whitelist"


class FilterCriteriaValidationError(Exception):
    """Raised when a filter payload fails validation."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("Invalid filter payload")
        self.errors = errors


@dataclass(frozen=True)
class ConnectionTypeFilters:
    """Which connection results the connections page shows."""
    show_accepted: bool = True
    show_banned: bool = True
    show_whitelist: bool = True
    show_full: bool = True
    show_panic: bool = True
    show_baby_jail: bool = True
    show_ip_checks: bool = True

    def accepted_deny_reasons(self) -> list[Optional[str]]:
        """Deny reasons to include in a connection log query; None is an accepted connection."""
        reasons: list[Optional[str]] = []
        if self.show_accepted:
            reasons.append(None)
        if self.show_banned:
            reasons.append("ban")
        if self.show_whitelist:
            reasons.append("whitelist")
        if self.show_full:
            reasons.append("full")
        if self.show_panic:
            reasons.append("panic")
        if self.show_baby_jail:
            reasons.append("baby_jail")
        if self.show_ip_checks:
            reasons.append("ip_checks")
        return reasons


_CONNECTION_FLAGS = tuple(f.name for f in fields(ConnectionTypeFilters))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FilterCriteria:
    owner_id: str
    target_view: FilterType
    search: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    server_id: Optional[int] = None
    player_id: Optional[uuid.UUID] = None
    connection_types: Optional[ConnectionTypeFilters] = None
    additional_filters: Optional[Mapping[str, Any]] = field(default=None, hash=False)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.owner_id:
            raise ValueError("owner_id is required")
        if not isinstance(self.target_view, FilterType):
            object.__setattr__(self, "target_view", FilterType(self.target_view))
        if self.additional_filters is not None:
            object.__setattr__(
                self, "additional_filters", _freeze(self.additional_filters)
            )

    @classmethod
    def from_payload(cls, owner_id: str, payload: Any) -> "FilterCriteria":
        """
        Build criteria from a JSON request body.

        The owner always comes from the authenticated caller; an "owner_id"
        key in the payload is ignored.

        Raises:
            FilterCriteriaValidationError: with a field -> message map
        """
        if not isinstance(payload, dict):
            raise FilterCriteriaValidationError({"filter": "Payload must be an object"})

        errors: dict[str, str] = {}
        values: dict[str, Any] = {}

        raw_view = payload.get("target_view")
        try:
            values["target_view"] = FilterType(raw_view)
        except ValueError:
            errors["target_view"] = f"Must be one of: {', '.join(t.value for t in FilterType)}"

        search = payload.get("search")
        if search is not None:
            if not isinstance(search, str):
                errors["search"] = "Must be a string"
            elif len(search) > MAX_SEARCH_LENGTH:
                errors["search"] = f"Must be at most {MAX_SEARCH_LENGTH} characters"
            elif search.strip():
                values["search"] = search.strip()

        for key in ("date_from", "date_to"):
            raw = payload.get(key)
            if raw is None:
                continue
            parsed = _parse_datetime(raw)
            if parsed is None:
                errors[key] = "Must be an ISO 8601 timestamp"
            else:
                values[key] = parsed

        if "date_from" in values and "date_to" in values and values["date_from"] > values["date_to"]:
            errors["date_to"] = "Must not be earlier than date_from"

        server_id = payload.get("server_id")
        if server_id is not None:
            if isinstance(server_id, bool) or not isinstance(server_id, int) or server_id < 0:
                errors["server_id"] = "Must be a non-negative integer"
            else:
                values["server_id"] = server_id

        player_id = payload.get("player_id")
        if player_id is not None:
            try:
                values["player_id"] = uuid.UUID(str(player_id))
            except ValueError:
                errors["player_id"] = "Must be a UUID"

        connection_types = payload.get("connection_types")
        if connection_types is not None:
            parsed_types, type_error = _parse_connection_types(connection_types)
            if type_error:
                errors["connection_types"] = type_error
            else:
                values["connection_types"] = parsed_types

        additional = payload.get("additional_filters")
        if additional is not None:
            if not isinstance(additional, dict) or not all(isinstance(k, str) for k in additional):
                errors["additional_filters"] = "Must be an object with string keys"
            elif len(additional) > MAX_ADDITIONAL_FILTERS:
                errors["additional_filters"] = f"At most {MAX_ADDITIONAL_FILTERS} entries"
            else:
                values["additional_filters"] = additional

        if errors:
            raise FilterCriteriaValidationError(errors)

        return cls(owner_id=owner_id, **values)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form for returning a filter to its owner. Contains PII; never log it."""
        return {
            "target_view": self.target_view.value,
            "search": self.search,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "server_id": self.server_id,
            "player_id": str(self.player_id) if self.player_id else None,
            "connection_types": (
                {name: getattr(self.connection_types, name) for name in _CONNECTION_FLAGS}
                if self.connection_types else None
            ),
            "additional_filters": _thaw(self.additional_filters) if self.additional_filters is not None else None,
            "created_at": self.created_at.isoformat(),
        }


def _parse_datetime(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_connection_types(raw: Any) -> tuple[Optional[ConnectionTypeFilters], str]:
    if not isinstance(raw, dict):
        return None, "Must be an object"
    unknown = sorted(set(raw) - set(_CONNECTION_FLAGS))
    if unknown:
        return None, f"Unknown flags: {', '.join(unknown)}"
    if not all(isinstance(v, bool) for v in raw.values()):
        return None, "Flags must be boolean"
    return ConnectionTypeFilters(**raw), ""


def _freeze(value: Any) -> Any:
    """Read-only copy all the way down: mappings become proxies, sequences tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (tuple, frozenset)):
        return [_thaw(v) for v in value]
    return value
