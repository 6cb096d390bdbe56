"""Tests for the portal adapter that do not need a running portal."""

from unittest.mock import MagicMock

import pytest

gi = pytest.importorskip("gi")
from gi.repository import GLib  # noqa: E402

from sitewrap.core.launcher import LauncherDescriptor, PortalError, PortalUnavailableError  # noqa: E402
from sitewrap.core.portal import PortalAdapter, _read_icon_bytes  # noqa: E402


def _no_bus():
    raise GLib.Error("no session bus")


def _versioned_connection(version: int = 4) -> MagicMock:
    connection = MagicMock()
    connection.call_sync.return_value = GLib.Variant("(v)", (GLib.Variant("u", version),))
    return connection


class TestProbes:
    """Tests for portal availability probes."""

    def test_no_bus_means_unsupported(self) -> None:
        portal = PortalAdapter(bus_factory=_no_bus)

        assert portal.is_supported() is False
        assert portal.is_open_uri_supported() is False
        assert portal.is_file_chooser_supported() is False
        assert portal.warn_if_stubbed() is False

    def test_missing_interface(self) -> None:
        connection = MagicMock()
        connection.call_sync.side_effect = GLib.Error("No such interface")
        portal = PortalAdapter(bus_factory=lambda: connection)

        assert portal.is_notification_supported() is False

    def test_answering_portal(self) -> None:
        portal = PortalAdapter(bus_factory=_versioned_connection)

        assert portal.is_supported() is True
        assert portal.warn_if_stubbed() is True

    def test_connection_is_cached_until_close(self) -> None:
        factory = MagicMock(side_effect=_versioned_connection)
        portal = PortalAdapter(bus_factory=factory)

        portal.is_open_uri_supported()
        portal.is_file_chooser_supported()
        assert factory.call_count == 1

        portal.close()
        portal.is_open_uri_supported()
        assert factory.call_count == 2


class TestCalls:
    """Tests for calls that fail before reaching the bus."""

    def test_open_uri_rejects_relative_uri(self) -> None:
        factory = MagicMock(side_effect=_no_bus)
        portal = PortalAdapter(bus_factory=factory)

        with pytest.raises(PortalError):
            portal.open_uri("example.com")
        factory.assert_not_called()

    def test_open_uri_without_portal(self) -> None:
        portal = PortalAdapter(bus_factory=_no_bus)
        with pytest.raises(PortalUnavailableError):
            portal.open_uri("https://example.com")

    def test_install_launcher_without_portal(self) -> None:
        portal = PortalAdapter(bus_factory=_no_bus)
        descriptor = LauncherDescriptor("a.desktop", "A", "sitewrap --shell x", "a")

        with pytest.raises(PortalUnavailableError):
            portal.install_launcher(descriptor)

    def test_remove_launcher_without_portal(self) -> None:
        with pytest.raises(PortalUnavailableError):
            PortalAdapter(bus_factory=_no_bus).remove_launcher("a.desktop")


class TestIconBytes:
    """Tests for launcher icon loading."""

    def test_missing_icon(self, tmp_path) -> None:
        assert _read_icon_bytes(None) == b""
        assert _read_icon_bytes(tmp_path / "missing.png") == b""

    def test_existing_icon(self, tmp_path) -> None:
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"\x89PNG")
        assert _read_icon_bytes(icon) == b"\x89PNG"
