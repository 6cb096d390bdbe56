"""xdg-desktop-portal integration.

This module talks to ``org.freedesktop.portal.Desktop`` over the session
bus with Gio and exposes the handful of portals Sitewrap needs
(DynamicLauncher, Notification, OpenURI, FileChooser) behind blocking
methods. Probes never raise, so the UI can disable features up front.
"""

import re
import secrets
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import gi

gi.require_version("Gio", "2.0")
from gi.repository import Gio, GLib

from ..utils.logger import get_logger
from .launcher import (
    LauncherDescriptor,
    NotificationRequest,
    PortalCancelledError,
    PortalError,
    PortalUnavailableError,
    SaveFileRequest,
    desktop_entry_from_descriptor,
)

logger = get_logger(__name__)

DESKTOP_BUS_NAME = "org.freedesktop.portal.Desktop"
DESKTOP_OBJECT_PATH = "/org/freedesktop/portal/desktop"
REQUEST_INTERFACE = "org.freedesktop.portal.Request"
REQUEST_PATH_PREFIX = "/org/freedesktop/portal/desktop/request"

DYNAMIC_LAUNCHER_INTERFACE = "org.freedesktop.portal.DynamicLauncher"
NOTIFICATION_INTERFACE = "org.freedesktop.portal.Notification"
OPEN_URI_INTERFACE = "org.freedesktop.portal.OpenURI"
FILE_CHOOSER_INTERFACE = "org.freedesktop.portal.FileChooser"

# DynamicLauncher launcher_type value
LAUNCHER_TYPE_WEB_APPLICATION = 2

# Request::Response codes
RESPONSE_SUCCESS = 0
RESPONSE_CANCELLED = 1

PROBE_TIMEOUT_MS = 2000
CALL_TIMEOUT_MS = 25000
REQUEST_TIMEOUT_SECONDS = 300

_URI_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


BusFactory = Callable[[], Gio.DBusConnection]


def _session_bus() -> Gio.DBusConnection:
    return Gio.bus_get_sync(Gio.BusType.SESSION, None)


class PortalAdapter:
    """Synchronous façade over the desktop portals.

    Request-style portal methods answer through a
    ``org.freedesktop.portal.Request::Response`` signal. Those calls push
    a private main context, subscribe to the signal on the predicted
    request path and iterate the context until the answer arrives, so
    they can be used from the UI thread or from worker threads alike.
    """

    def __init__(self, bus_factory: Optional[BusFactory] = None) -> None:
        """Initialize portal adapter.

        Args:
            bus_factory: Callable returning the session bus connection
                (defaults to ``Gio.bus_get_sync``)
        """
        self._bus_factory = bus_factory or _session_bus
        self._connection: Optional[Gio.DBusConnection] = None

    # ------------------------------------------------------------------
    # Connection and probes
    # ------------------------------------------------------------------

    def _get_connection(self) -> Gio.DBusConnection:
        """Return the session bus connection, connecting on first use.

        Raises:
            PortalUnavailableError: If the session bus cannot be reached
        """
        if self._connection is None:
            try:
                self._connection = self._bus_factory()
            except GLib.Error as e:
                raise PortalUnavailableError(f"Session bus unavailable: {e.message}") from e
            if self._connection is None:
                raise PortalUnavailableError("Session bus unavailable")
        return self._connection

    def _interface_version(self, interface: str) -> Optional[int]:
        try:
            connection = self._get_connection()
            reply = connection.call_sync(
                DESKTOP_BUS_NAME,
                DESKTOP_OBJECT_PATH,
                "org.freedesktop.DBus.Properties",
                "Get",
                GLib.Variant("(ss)", (interface, "version")),
                GLib.VariantType.new("(v)"),
                Gio.DBusCallFlags.NONE,
                PROBE_TIMEOUT_MS,
                None,
            )
        except (PortalError, GLib.Error) as e:
            logger.debug("Portal probe for %s failed: %s", interface, e)
            return None

        version = reply.unpack()[0]
        return version if isinstance(version, int) else None

    def _probe(self, interface: str) -> bool:
        return self._interface_version(interface) is not None

    def is_supported(self) -> bool:
        """Check the launcher, notification and open-URI portals.

        Returns:
            True if all three portals answer
        """
        return all(
            self._probe(interface)
            for interface in (
                DYNAMIC_LAUNCHER_INTERFACE,
                NOTIFICATION_INTERFACE,
                OPEN_URI_INTERFACE,
            )
        )

    def is_open_uri_supported(self) -> bool:
        return self._probe(OPEN_URI_INTERFACE)

    def is_file_chooser_supported(self) -> bool:
        return self._probe(FILE_CHOOSER_INTERFACE)

    def is_notification_supported(self) -> bool:
        return self._probe(NOTIFICATION_INTERFACE)

    def warn_if_stubbed(self) -> bool:
        """Log a warning when host integration is unavailable.

        Returns:
            True if the portals are supported
        """
        supported = self.is_supported()
        if not supported:
            logger.warning("xdg-desktop-portal not available; host integration is disabled")
        return supported

    def _require(self, interface: str) -> Gio.DBusConnection:
        if not self._probe(interface):
            raise PortalUnavailableError(f"Portal {interface} is not available")
        return self._get_connection()

    # ------------------------------------------------------------------
    # Low level calls
    # ------------------------------------------------------------------

    def _call(
        self,
        connection: Gio.DBusConnection,
        interface: str,
        method: str,
        parameters: GLib.Variant,
        reply_type: Optional[str] = None,
    ) -> GLib.Variant:
        try:
            return connection.call_sync(
                DESKTOP_BUS_NAME,
                DESKTOP_OBJECT_PATH,
                interface,
                method,
                parameters,
                GLib.VariantType.new(reply_type) if reply_type else None,
                Gio.DBusCallFlags.NONE,
                CALL_TIMEOUT_MS,
                None,
            )
        except GLib.Error as e:
            raise PortalError(f"{interface}.{method} failed: {e.message}") from e

    @staticmethod
    def _new_token() -> str:
        return f"sitewrap_{secrets.token_hex(8)}"

    def _call_request(
        self,
        connection: Gio.DBusConnection,
        interface: str,
        method: str,
        build_parameters: Callable[[str], GLib.Variant],
    ) -> Tuple[int, Dict[str, Any]]:
        """Issue a request-style call and wait for its Response signal.

        Args:
            connection: Session bus connection
            interface: Portal interface name
            method: Method name
            build_parameters: Called with the handle token, returns the
                method parameters

        Returns:
            Tuple of (response code, results dictionary)

        Raises:
            PortalError: If the call fails or no response arrives in time
        """
        token = self._new_token()
        sender = (connection.get_unique_name() or "").lstrip(":").replace(".", "_")
        expected_path = f"{REQUEST_PATH_PREFIX}/{sender}/{token}"
        state: Dict[str, Any] = {}

        def on_response(_conn, _sender, _path, _iface, _signal, parameters, *_user_data):
            state["response"] = parameters.unpack()

        def on_timeout(*_user_data):
            state["timeout"] = True
            return GLib.SOURCE_REMOVE

        context = GLib.MainContext.new()
        context.push_thread_default()
        subscription = None
        timeout_source = None
        try:
            # Subscriptions dispatch into the thread-default context
            subscription = connection.signal_subscribe(
                DESKTOP_BUS_NAME,
                REQUEST_INTERFACE,
                "Response",
                expected_path,
                None,
                Gio.DBusSignalFlags.NONE,
                on_response,
            )

            reply = self._call(
                connection, interface, method, build_parameters(token), "(o)"
            )
            handle = reply.unpack()[0]
            if handle != expected_path:
                # Older portal versions pick their own request path
                connection.signal_unsubscribe(subscription)
                subscription = connection.signal_subscribe(
                    DESKTOP_BUS_NAME,
                    REQUEST_INTERFACE,
                    "Response",
                    handle,
                    None,
                    Gio.DBusSignalFlags.NONE,
                    on_response,
                )

            timeout_source = GLib.timeout_source_new_seconds(REQUEST_TIMEOUT_SECONDS)
            timeout_source.set_callback(on_timeout)
            timeout_source.attach(context)

            while "response" not in state and "timeout" not in state:
                context.iteration(True)
        finally:
            if timeout_source is not None:
                timeout_source.destroy()
            if subscription is not None:
                connection.signal_unsubscribe(subscription)
            context.pop_thread_default()

        if "response" not in state:
            raise PortalError(f"{interface}.{method} timed out")

        code, results = state["response"]
        return code, results

    # ------------------------------------------------------------------
    # DynamicLauncher
    # ------------------------------------------------------------------

    def install_launcher(self, descriptor: LauncherDescriptor) -> None:
        """Install (or replace) a desktop launcher.

        Args:
            descriptor: Launcher to install

        Raises:
            PortalUnavailableError: If the DynamicLauncher portal is missing
            PortalError: If the portal refuses the launcher
        """
        logger.info(f"Installing launcher via DynamicLauncher portal: {descriptor.desktop_id}")
        connection = self._require(DYNAMIC_LAUNCHER_INTERFACE)

        icon = Gio.BytesIcon.new(GLib.Bytes.new(_read_icon_bytes(descriptor.icon_file)))
        icon_variant = icon.serialize()

        def build(token: str) -> GLib.Variant:
            options = {
                "handle_token": GLib.Variant("s", token),
                "launcher_type": GLib.Variant("u", LAUNCHER_TYPE_WEB_APPLICATION),
            }
            return GLib.Variant(
                "(ssva{sv})", ("", descriptor.name, icon_variant, options)
            )

        code, results = self._call_request(
            connection, DYNAMIC_LAUNCHER_INTERFACE, "PrepareInstall", build
        )
        if code == RESPONSE_CANCELLED:
            raise PortalCancelledError("Launcher installation was cancelled")
        if code != RESPONSE_SUCCESS or "token" not in results:
            raise PortalError(f"PrepareInstall failed with response {code}")

        entry = desktop_entry_from_descriptor(descriptor)
        self._call(
            connection,
            DYNAMIC_LAUNCHER_INTERFACE,
            "Install",
            GLib.Variant(
                "(sssa{sv})", (results["token"], descriptor.desktop_id, entry, {})
            ),
        )
        logger.debug(f"Launcher installed: {descriptor.desktop_id}")

    def update_launcher(self, descriptor: LauncherDescriptor) -> None:
        self.install_launcher(descriptor)

    def remove_launcher(self, desktop_id: str) -> None:
        """Uninstall a desktop launcher.

        Raises:
            PortalUnavailableError: If the DynamicLauncher portal is missing
            PortalError: If the call fails
        """
        logger.info(f"Removing launcher via DynamicLauncher portal: {desktop_id}")
        connection = self._require(DYNAMIC_LAUNCHER_INTERFACE)
        self._call(
            connection,
            DYNAMIC_LAUNCHER_INTERFACE,
            "Uninstall",
            GLib.Variant("(sa{sv})", (desktop_id, {})),
        )

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def send_notification(self, request: NotificationRequest) -> None:
        """Show a desktop notification.

        Raises:
            PortalUnavailableError: If the Notification portal is missing
            PortalError: If the call fails
        """
        logger.info(f"Sending notification via portal: {request.app_id} ({request.title})")
        connection = self._require(NOTIFICATION_INTERFACE)

        notification = {
            "title": GLib.Variant("s", request.title),
            "body": GLib.Variant("s", request.body),
        }
        if request.icon:
            notification["icon"] = Gio.ThemedIcon.new(request.icon).serialize()

        self._call(
            connection,
            NOTIFICATION_INTERFACE,
            "AddNotification",
            GLib.Variant("(sa{sv})", (request.app_id, notification)),
        )

    # ------------------------------------------------------------------
    # OpenURI
    # ------------------------------------------------------------------

    def open_uri(self, uri: str) -> None:
        """Open a URI with the user's default handler.

        Args:
            uri: Absolute URI

        Raises:
            PortalError: If the URI is not absolute or the portal fails
            PortalUnavailableError: If the OpenURI portal is missing
        """
        if not uri or not _URI_SCHEME_PATTERN.match(uri.strip()):
            raise PortalError(f"Not an absolute URI: {uri!r}")

        logger.info(f"Opening URI via portal: {uri}")
        connection = self._require(OPEN_URI_INTERFACE)

        def build(token: str) -> GLib.Variant:
            options = {"handle_token": GLib.Variant("s", token)}
            return GLib.Variant("(ssa{sv})", ("", uri.strip(), options))

        code, _results = self._call_request(connection, OPEN_URI_INTERFACE, "OpenURI", build)
        if code == RESPONSE_CANCELLED:
            logger.debug(f"Opening {uri} was cancelled")
        elif code != RESPONSE_SUCCESS:
            raise PortalError(f"OpenURI failed with response {code}")

    # ------------------------------------------------------------------
    # FileChooser
    # ------------------------------------------------------------------

    def save_file(self, request: SaveFileRequest) -> Optional[Path]:
        """Ask the user for a destination and write the content there.

        Args:
            request: What to save and how to present the dialog

        Returns:
            Path that was written, or None if the user cancelled

        Raises:
            PortalUnavailableError: If the FileChooser portal is missing
            PortalError: If the portal fails or returns no local path
            OSError: If writing the file fails
        """
        logger.info(f"Saving file via FileChooser portal: {request.suggested_name}")
        connection = self._require(FILE_CHOOSER_INTERFACE)

        def build(token: str) -> GLib.Variant:
            options = {
                "handle_token": GLib.Variant("s", token),
                "accept_label": GLib.Variant("s", "Save"),
                "modal": GLib.Variant("b", True),
                "current_name": GLib.Variant("s", request.suggested_name),
            }
            if request.default_directory is not None:
                folder = str(request.default_directory).encode("utf-8") + b"\0"
                options["current_folder"] = GLib.Variant("ay", folder)
            return GLib.Variant("(ssa{sv})", ("", request.title, options))

        code, results = self._call_request(connection, FILE_CHOOSER_INTERFACE, "SaveFile", build)
        if code == RESPONSE_CANCELLED:
            logger.debug("Save dialog cancelled")
            return None
        if code != RESPONSE_SUCCESS:
            raise PortalError(f"SaveFile failed with response {code}")

        uris = results.get("uris") or []
        if not uris:
            logger.debug("Save dialog returned no file")
            return None

        local_path = Gio.File.new_for_uri(uris[0]).get_path()
        if not local_path:
            raise PortalError(f"Selected file is not local: {uris[0]}")

        path = Path(local_path)
        path.write_bytes(request.content)
        logger.info(f"Saved {len(request.content)} bytes to {path}")
        return path

    def close(self) -> None:
        """Drop the cached bus connection."""
        self._connection = None


def _read_icon_bytes(icon_file: Optional[Path]) -> bytes:
    """Read launcher icon bytes; unreadable or missing icons give b""."""
    if icon_file is None:
        return b""
    try:
        return Path(icon_file).read_bytes()
    except OSError as e:
        logger.warning(f"Failed to read icon {icon_file}; using empty icon: {e}")
        return b""
