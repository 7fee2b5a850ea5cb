from ss14_admin.core import config
from ss14_admin.core.auth import ADMIN_EMAILS
from ss14_admin.services import permissions as permissions_service
from ss14_admin.services import user_preferences as prefs_service
from ss14_admin.services.pii_display import censor_record, display_value, should_censor_pii
from ss14_admin.services.pii_redactor import PiiKind

ADMIN = {"email": next(iter(ADMIN_EMAILS)), "name": "Admin"}


def _isolate(monkeypatch, tmp_path):
    monkeypatch.setattr(prefs_service, "PREFERENCES_FILE", tmp_path / "user_preferences.json")
    monkeypatch.setattr(permissions_service, "RBAC_SETTINGS_FILE", tmp_path / "rbac_settings.json")
    monkeypatch.setattr(config, "PII_VIEWERS", frozenset())


def test_anonymous_viewer_is_censored(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    assert should_censor_pii(None) is True
    assert should_censor_pii({}, {"censor_pii": False}) is True


def test_pii_viewer_follows_preference(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    assert should_censor_pii(ADMIN) is True
    assert should_censor_pii(ADMIN, {"censor_pii": False}) is False

    prefs_service.set_preferences(ADMIN["email"], {"censor_pii": False})
    assert should_censor_pii(ADMIN) is False


def test_viewer_without_permission_ignores_preference(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    viewer = {"email": "trial@example.com"}
    assert should_censor_pii(viewer, {"censor_pii": False}) is True


def test_display_value_passthrough_when_not_censoring():
    assert display_value("203.0.113.42", PiiKind.IPV4_ADDRESS, censor=False) == "203.0.113.42"
    assert display_value(None, PiiKind.IPV4_ADDRESS, censor=True) is None
    assert display_value("203.0.113.42", "ip", censor=True) == "203.*.*.*"


def test_display_value_leaves_blank_values_untouched():
    assert display_value("", PiiKind.EMAIL, censor=True) == ""
    assert display_value("   ", PiiKind.GENERIC, censor=True) == "   "
    assert display_value("   ", "ip", censor=True) == "   "


def test_censor_record_only_touches_named_fields():
    row = {
        "id": 7,
        "username": "john_doe",
        "address": "203.0.113.42",
        "hwid": "a1b2c3d4e5f6g7h8",
        "server": "main",
    }
    kinds = {"username": PiiKind.USERNAME, "address": "ip", "hwid": PiiKind.HARDWARE_ID}

    censored = censor_record(row, kinds, censor=True)

    assert censored == {
        "id": 7,
        "username": "j******e",
        "address": "203.*.*.*",
        "hwid": "a1b2c3d4...g7h8",
        "server": "main",
    }
    assert row["username"] == "john_doe"
    assert censor_record(row, kinds, censor=False) == row
