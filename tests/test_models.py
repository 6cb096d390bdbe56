"""Tests for the data models."""

from datetime import datetime, timezone
from uuid import UUID

import pytest

from sitewrap.data.models import (
    BehaviorConfig,
    ModelError,
    PermissionKind,
    PermissionState,
    PermissionStore,
    PerOriginPermissions,
    WebAppDefinition,
    format_timestamp,
    parse_timestamp,
)
from sitewrap.utils.validators import InvalidUrlError
from sitewrap.utils.xdg import build_icon_id


class TestWebAppDefinition:
    """Tests for WebAppDefinition."""

    def test_new_from_bare_host(self) -> None:
        webapp = WebAppDefinition.new("", "example.com")

        assert isinstance(webapp.id, UUID)
        assert webapp.id.version == 4
        assert webapp.name == "example.com"
        assert webapp.start_url == "https://example.com/"
        assert webapp.primary_origin == "https://example.com"
        assert webapp.icon_id == build_icon_id(str(webapp.id))
        assert webapp.last_launched_at is None
        assert webapp.behavior == BehaviorConfig(open_external_links=True, show_navigation=False)

    def test_new_keeps_given_name(self) -> None:
        assert WebAppDefinition.new("  Mail ", "mail.example.com").name == "Mail"

    def test_new_rejects_invalid_url(self) -> None:
        with pytest.raises(InvalidUrlError):
            WebAppDefinition.new("x", "   ")

    def test_ids_are_unique(self) -> None:
        first = WebAppDefinition.new("", "a.test")
        second = WebAppDefinition.new("", "a.test")
        assert first.id != second.id

    def test_set_start_url_recomputes_origin(self) -> None:
        webapp = WebAppDefinition.new("", "a.test")

        assert webapp.set_start_url("b.test/inbox") is True
        assert webapp.start_url == "https://b.test/inbox"
        assert webapp.primary_origin == "https://b.test"

    def test_set_start_url_unchanged(self) -> None:
        webapp = WebAppDefinition.new("", "a.test")
        assert webapp.set_start_url("https://a.test/") is False

    def test_round_trip(self) -> None:
        webapp = WebAppDefinition.new("Docs", "docs.example.com/start")
        webapp.mark_launched(datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        webapp.behavior.show_navigation = True

        restored = WebAppDefinition.from_dict(webapp.to_dict())

        assert restored == webapp

    def test_never_launched_is_omitted(self) -> None:
        data = WebAppDefinition.new("", "a.test").to_dict()
        assert "last_launched_at" not in data

    def test_from_dict_recomputes_derived_fields(self) -> None:
        webapp = WebAppDefinition.new("", "a.test")
        data = webapp.to_dict()
        data["primary_origin"] = "https://tampered.test"
        data["icon_id"] = "bogus"

        restored = WebAppDefinition.from_dict(data)

        assert restored.primary_origin == "https://a.test"
        assert restored.icon_id == webapp.icon_id

    def test_from_dict_missing_field(self) -> None:
        data = WebAppDefinition.new("", "a.test").to_dict()
        del data["start_url"]
        with pytest.raises(ModelError, match="start_url"):
            WebAppDefinition.from_dict(data)

    def test_from_dict_bad_id(self) -> None:
        data = WebAppDefinition.new("", "a.test").to_dict()
        data["id"] = "not-a-uuid"
        with pytest.raises(ModelError):
            WebAppDefinition.from_dict(data)

    def test_from_dict_opaque_start_url(self) -> None:
        data = WebAppDefinition.new("", "a.test").to_dict()
        data["start_url"] = "mailto:x@a.test"
        with pytest.raises(ModelError):
            WebAppDefinition.from_dict(data)

    def test_last_launched_label(self) -> None:
        webapp = WebAppDefinition.new("", "a.test")
        assert webapp.last_launched_label == "Never"

        webapp.mark_launched(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        assert webapp.last_launched_label == "2024-01-02T03:04:05Z"


class TestTimestamps:
    """Tests for RFC 3339 helpers."""

    def test_format_uses_z(self) -> None:
        value = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-01-02T03:04:05Z"

    def test_parse_offset(self) -> None:
        parsed = parse_timestamp("2024-01-02T05:04:05+02:00")
        assert parsed == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_parse_invalid(self) -> None:
        with pytest.raises(ModelError):
            parse_timestamp("yesterday")


class TestPermissions:
    """Tests for the permission models."""

    def test_defaults_are_ask(self) -> None:
        entry = PerOriginPermissions()
        assert all(entry.get(kind) is PermissionState.ASK for kind in PermissionKind)

    def test_missing_keys_default_to_ask(self) -> None:
        entry = PerOriginPermissions.from_dict({"camera": "block"})
        assert entry.camera is PermissionState.BLOCK
        assert entry.microphone is PermissionState.ASK

    def test_invalid_state(self) -> None:
        with pytest.raises(ModelError):
            PerOriginPermissions.from_dict({"camera": "sometimes"})

    def test_get_or_default_inserts(self) -> None:
        store = PermissionStore()
        entry = store.get_or_default("https://a.test")
        entry.set(PermissionKind.LOCATION, PermissionState.ALLOW)

        assert store.get_or_default("https://a.test").location is PermissionState.ALLOW
        assert store.sorted_origins() == ["https://a.test"]

    def test_store_round_trip(self) -> None:
        store = PermissionStore()
        store.get_or_default("https://b.test").set(PermissionKind.CAMERA, PermissionState.BLOCK)
        store.get_or_default("https://a.test")

        assert PermissionStore.from_dict(store.to_dict()) == store
        assert list(store.to_dict()) == ["https://a.test", "https://b.test"]

    def test_labels(self) -> None:
        assert PermissionState.ALLOW.label == "Allow"
        assert PermissionKind.NOTIFICATIONS.label == "Notifications"


class TestBehaviorConfig:
    """Tests for BehaviorConfig."""

    def test_missing_table_uses_defaults(self) -> None:
        assert BehaviorConfig.from_dict(None) == BehaviorConfig()

    def test_non_boolean_flag(self) -> None:
        with pytest.raises(ModelError):
            BehaviorConfig.from_dict({"show_navigation": "yes"})
