import json
import logging

from ss14_admin.services import permissions as permissions_service


def _isolate(monkeypatch, tmp_path):
    monkeypatch.setattr(permissions_service, "RBAC_SETTINGS_FILE", tmp_path / "rbac_settings.json")


def test_no_role_means_no_permissions(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    assert permissions_service.get_effective_permissions("new@example.com") == set()


def test_effective_permissions_combine_role_grants_and_revokes(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    email = "Mod@Example.com"

    permissions_service.set_user_role(email, "viewer", "admin@example.com")
    permissions_service.grant_permission(email, "pii:view", "admin@example.com")
    permissions_service.revoke_permission(email, "whitelist:view", "admin@example.com")

    perms = permissions_service.get_effective_permissions("mod@example.com")
    assert "pii:view" in perms
    assert "whitelist:view" not in perms
    assert "connections:view" in perms


def test_grant_cancels_revoke(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    permissions_service.revoke_permission("a@example.com", "pii:view", "admin@example.com")
    user = permissions_service.grant_permission("a@example.com", "pii:view", "admin@example.com")
    assert user.grants == ["pii:view"]
    assert user.revokes == []


def test_unknown_role_and_permission_are_rejected(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    assert permissions_service.set_user_role("a@example.com", "owner", "admin@example.com") is None
    assert permissions_service.grant_permission("a@example.com", "root", "admin@example.com") is None


def test_visible_modules(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    permissions_service.set_user_role("a@example.com", "viewer", "admin@example.com")
    assert permissions_service.get_user_visible_modules("a@example.com") == [
        "bans", "characters", "connections", "notes", "players", "role_bans", "whitelist",
    ]


def test_reset_user(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    permissions_service.set_user_role("a@example.com", "moderator", "admin@example.com")
    assert permissions_service.reset_user("a@example.com", "admin@example.com") is True
    assert permissions_service.reset_user("a@example.com", "admin@example.com") is False
    assert permissions_service.get_user_rbac("a@example.com").role is None


def test_changes_are_persisted_and_audited(monkeypatch, tmp_path, caplog):
    _isolate(monkeypatch, tmp_path)
    with caplog.at_level(logging.INFO, logger="rbac_audit"):
        user = permissions_service.set_user_role("Lead@Example.com", "senior_moderator", "admin@example.com")

    assert user.email == "lead@example.com"
    assert user.updated_by == "admin@example.com"

    stored = json.loads((tmp_path / "rbac_settings.json").read_text(encoding="utf-8"))
    assert stored["users"]["lead@example.com"]["role"] == "senior_moderator"

    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "rbac_audit"]
    assert events[-1]["action"] == "role_change"
    assert events[-1]["target"] == "lead@example.com"
    assert events[-1]["new_role"] == "senior_moderator"
    assert "pii:view" in permissions_service.get_effective_permissions("lead@example.com")


def test_unreadable_settings_file_means_no_permissions(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    (tmp_path / "rbac_settings.json").write_text("{not json", encoding="utf-8")
    assert permissions_service.get_effective_permissions("a@example.com") == set()
    assert permissions_service.get_all_users() == []
