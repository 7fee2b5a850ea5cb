import uuid
from datetime import datetime, timezone

import pytest

from ss14_admin.services.filter_criteria import (
    ConnectionTypeFilters,
    FilterCriteria,
    FilterCriteriaValidationError,
    FilterType,
)


def test_criteria_is_immutable():
    criteria = FilterCriteria(owner_id="u1", target_view=FilterType.CONNECTIONS, search="203.0.113.42")
    with pytest.raises(AttributeError):
        criteria.search = "other"


def test_additional_filters_are_read_only():
    source = {"round": 12}
    criteria = FilterCriteria(owner_id="u1", target_view="bans", additional_filters=source)

    source["round"] = 13
    assert criteria.additional_filters["round"] == 12
    with pytest.raises(TypeError):
        criteria.additional_filters["round"] = 14


def test_target_view_is_coerced_and_created_at_is_utc():
    criteria = FilterCriteria(owner_id="u1", target_view="role_bans")
    assert criteria.target_view is FilterType.ROLE_BANS
    assert criteria.created_at.tzinfo is not None


def test_owner_is_required():
    with pytest.raises(ValueError):
        FilterCriteria(owner_id="", target_view=FilterType.PLAYERS)


def test_from_payload_parses_all_fields():
    player_id = uuid.uuid4()
    criteria = FilterCriteria.from_payload("u1", {
        "owner_id": "attacker",
        "target_view": "connections",
        "search": "  203.0.113.42 ",
        "date_from": "2024-01-01T00:00:00Z",
        "date_to": "2024-02-01T00:00:00",
        "server_id": 3,
        "player_id": str(player_id),
        "connection_types": {"show_accepted": False, "show_banned": True},
        "additional_filters": {"round": 12},
    })

    assert criteria.owner_id == "u1"
    assert criteria.target_view is FilterType.CONNECTIONS
    assert criteria.search == "203.0.113.42"
    assert criteria.date_from == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert criteria.date_to == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert criteria.server_id == 3
    assert criteria.player_id == player_id
    assert criteria.connection_types == ConnectionTypeFilters(show_accepted=False)
    assert dict(criteria.additional_filters) == {"round": 12}


def test_from_payload_collects_field_errors():
    with pytest.raises(FilterCriteriaValidationError) as exc_info:
        FilterCriteria.from_payload("u1", {
            "target_view": "nope",
            "search": 5,
            "date_from": "yesterday",
            "server_id": -1,
            "player_id": "not-a-uuid",
            "connection_types": {"show_everything": True},
            "additional_filters": ["x"],
        })

    assert set(exc_info.value.errors) == {
        "target_view", "search", "date_from", "server_id",
        "player_id", "connection_types", "additional_filters",
    }


def test_from_payload_rejects_reversed_date_range():
    with pytest.raises(FilterCriteriaValidationError) as exc_info:
        FilterCriteria.from_payload("u1", {
            "target_view": "logs",
            "date_from": "2024-02-01T00:00:00Z",
            "date_to": "2024-01-01T00:00:00Z",
        })
    assert "date_to" in exc_info.value.errors


def test_from_payload_requires_object():
    with pytest.raises(FilterCriteriaValidationError):
        FilterCriteria.from_payload("u1", ["connections"])


def test_blank_search_is_dropped():
    criteria = FilterCriteria.from_payload("u1", {"target_view": "players", "search": "   "})
    assert criteria.search is None


def test_to_dict_round_trips_public_fields():
    criteria = FilterCriteria.from_payload("u1", {
        "target_view": "connections",
        "search": "a1b2c3d4e5f6g7h8",
        "connection_types": {"show_panic": False},
    })
    data = criteria.to_dict()

    assert data["target_view"] == "connections"
    assert data["search"] == "a1b2c3d4e5f6g7h8"
    assert data["connection_types"]["show_panic"] is False
    assert data["connection_types"]["show_accepted"] is True
    assert "owner_id" not in data


def test_accepted_deny_reasons_follow_flags():
    assert ConnectionTypeFilters().accepted_deny_reasons() == [
        None, "ban", "whitelist", "full", "panic", "baby_jail", "ip_checks",
    ]
    only_banned = ConnectionTypeFilters(
        show_accepted=False, show_whitelist=False, show_full=False,
        show_panic=False, show_baby_jail=False, show_ip_checks=False,
    )
    assert only_banned.accepted_deny_reasons() == ["ban"]


def test_nested_additional_filters_are_copied_and_frozen():
    payload = {"target_view": "bans", "additional_filters": {"tags": ["a"], "range": {"min": 1}}}
    criteria = FilterCriteria.from_payload("u1", payload)

    payload["additional_filters"]["tags"].append("leak")
    payload["additional_filters"]["range"]["min"] = 99

    assert criteria.additional_filters["tags"] == ("a",)
    assert criteria.additional_filters["range"]["min"] == 1
    with pytest.raises(AttributeError):
        criteria.additional_filters["tags"].append("b")
    with pytest.raises(TypeError):
        criteria.additional_filters["range"]["min"] = 2
    assert criteria.to_dict()["additional_filters"] == {"tags": ["a"], "range": {"min": 1}}


def test_criteria_with_additional_filters_is_hashable():
    criteria = FilterCriteria(owner_id="u1", target_view="logs", additional_filters={"round": [1, 2]})
    assert hash(criteria) == hash(criteria)
    assert criteria in {criteria}
