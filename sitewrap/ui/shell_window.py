"""Webapp shell window.

One window per webapp: the engine view, an optional navigation bar and
a menu with reload, copy link, open in browser, permissions, clear
data, save, test notification and about.
"""

import threading
from typing import Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gdk, Gio, Gtk

from ..core.launcher import PortalError
from ..core.navigation import ShellSession
from ..core.webapp_manager import WebAppManager
from ..data.models import PermissionState, WebAppDefinition
from ..data.storage import StorageError
from ..utils.logger import get_logger
from ..webengine.engine import Engine, EngineConfig, EngineInitError, WebViewHandle
from .dialogs import confirm_destructive, post_to_main_loop, show_error_dialog

logger = get_logger(__name__)


def _create_engine(webapp_manager: WebAppManager, webapp: WebAppDefinition) -> Engine:
    profile_dir = webapp_manager.paths.profile_dir(str(webapp.id))
    return Engine(EngineConfig.from_environment(profile_dir))


class ShellWindow(Adw.ApplicationWindow):
    """Window hosting a single webapp."""

    def __init__(
        self,
        application: Adw.Application,
        webapp_manager: WebAppManager,
        portal,
        webapp: WebAppDefinition,
        **kwargs,
    ) -> None:
        """Initialize shell window.

        Args:
            application: GTK Application instance
            webapp_manager: WebAppManager for persistence
            portal: Portal adapter
            webapp: Webapp to show (launch already recorded)
            **kwargs: Additional arguments for Adw.ApplicationWindow

        Raises:
            EngineInitError: If the engine cannot be prepared
        """
        # Engine first: a failure must not leave a window registered with the app
        engine = _create_engine(webapp_manager, webapp)
        super().__init__(application=application, **kwargs)

        self.webapp_manager = webapp_manager
        self.portal = portal
        self.webapp = webapp
        self.session = ShellSession(webapp, portal, notify=self._toast)
        self.engine = engine
        self.view: Optional[WebViewHandle] = None

        self.set_title(webapp.name)
        self.set_default_size(1100, 760)

        self._build_ui()
        self._setup_actions()
        self._load_view(webapp.start_url)
        self._apply_portal_support()

        logger.info(f"Shell window opened for {webapp.name} ({webapp.id})")

    def _build_ui(self) -> None:
        self.toast_overlay = Adw.ToastOverlay()
        toolbar_view = Adw.ToolbarView()
        self.toast_overlay.set_child(toolbar_view)
        self.set_content(self.toast_overlay)

        header_bar = Adw.HeaderBar()
        title = Adw.WindowTitle.new(self.webapp.name, self.webapp.primary_origin)
        header_bar.set_title_widget(title)
        toolbar_view.add_top_bar(header_bar)

        if self.webapp.behavior.show_navigation:
            back_button = Gtk.Button.new_from_icon_name("go-previous-symbolic")
            back_button.set_tooltip_text("Back (requires web engine)")
            back_button.set_sensitive(False)
            header_bar.pack_start(back_button)

            forward_button = Gtk.Button.new_from_icon_name("go-next-symbolic")
            forward_button.set_tooltip_text("Forward (requires web engine)")
            forward_button.set_sensitive(False)
            header_bar.pack_start(forward_button)

            reload_button = Gtk.Button.new_from_icon_name("view-refresh-symbolic")
            reload_button.set_tooltip_text("Reload")
            reload_button.set_action_name("win.reload")
            header_bar.pack_start(reload_button)

        menu_button = Gtk.MenuButton()
        menu_button.set_icon_name("open-menu-symbolic")
        menu_button.set_menu_model(self._create_menu())
        header_bar.pack_end(menu_button)

        self.content = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        self.content.set_hexpand(True)
        self.content.set_vexpand(True)
        toolbar_view.set_content(self.content)

    def _create_menu(self) -> Gio.Menu:
        menu = Gio.Menu()

        navigation = Gio.Menu()
        navigation.append("Reload", "win.reload")
        navigation.append("Copy Link", "win.copy_link")
        navigation.append("Open in Default Browser", "win.open_in_browser")
        menu.append_section(None, navigation)

        settings = Gio.Menu()
        settings.append("Permissions", "win.permissions")
        settings.append("Clear Data", "win.clear_data")
        settings.append("Save Page As…", "win.save_page")
        settings.append("Test Notification", "win.test_notification")
        menu.append_section(None, settings)

        about = Gio.Menu()
        about.append("About", "win.about")
        menu.append_section(None, about)

        return menu

    def _setup_actions(self) -> None:
        self.actions = {}
        handlers = {
            "reload": self._on_reload,
            "copy_link": self._on_copy_link,
            "open_in_browser": self._on_open_in_browser,
            "permissions": self._on_permissions,
            "clear_data": self._on_clear_data,
            "save_page": self._on_save_page,
            "test_notification": self._on_test_notification,
            "about": self._on_about,
        }
        for name, handler in handlers.items():
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", handler)
            self.add_action(action)
            self.actions[name] = action

        application = self.get_application()
        if application is not None:
            application.set_accels_for_action("win.reload", ["<Ctrl>R", "F5"])

    def _apply_portal_support(self) -> None:
        """Disable actions whose portal backend is missing."""
        if not self.portal.is_supported():
            self.actions["permissions"].set_enabled(False)
            self.actions["test_notification"].set_enabled(False)
            self._toast("Desktop portals unavailable; some actions disabled")
        if not self.portal.is_open_uri_supported():
            self.actions["open_in_browser"].set_enabled(False)
        if not self.portal.is_file_chooser_supported():
            self.actions["save_page"].set_enabled(False)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def _load_view(self, url: str) -> None:
        """Build a fresh engine view for ``url`` and show it."""
        self.view = self.engine.build_web_view(
            url,
            on_navigation=self.session.navigation_handler(on_error=self._on_navigation_error),
        )

        child = self.content.get_first_child()
        while child is not None:
            self.content.remove(child)
            child = self.content.get_first_child()

        self.content.append(self._render_view(self.view))

    @staticmethod
    def _render_view(view: WebViewHandle) -> Gtk.Widget:
        """Render a placeholder for a view that has no engine widget."""
        container = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)
        container.set_margin_top(16)
        container.set_margin_bottom(16)
        container.set_margin_start(16)
        container.set_margin_end(16)
        container.set_hexpand(True)
        container.set_vexpand(True)

        label = Gtk.Label(label=view.caption, xalign=0)
        container.append(label)

        for title, target in view.placeholder_targets:
            button = Gtk.Button(label=title)
            button.set_halign(Gtk.Align.START)
            button.connect("clicked", lambda _button, url=target: view.navigate(url))
            container.append(button)

        return container

    def _toast(self, message: str) -> None:
        self.toast_overlay.add_toast(Adw.Toast.new(message))

    def _on_navigation_error(self, target: str, error: Exception) -> None:
        show_error_dialog(self, "Navigation failed", f"{target}: {error}")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_reload(self, *_args) -> None:
        self._load_view(self.session.current_url)
        self._toast("Reloaded")

    def _on_copy_link(self, *_args) -> None:
        display = Gdk.Display.get_default()
        if display is None:
            show_error_dialog(self, "Copy link failed", "No display available")
            return
        provider = Gdk.ContentProvider.new_for_value(self.session.current_url)
        display.get_clipboard().set_content(provider)
        self._toast("Link copied")

    def _on_open_in_browser(self, *_args) -> None:
        try:
            self.portal.open_uri(self.session.current_url)
        except PortalError as e:
            logger.error(f"Open in browser failed: {e}")
            show_error_dialog(self, "Open in default browser failed", str(e))

    def _on_permissions(self, *_args) -> None:
        from .permissions_window import PermissionsDialog

        try:
            dialog = PermissionsDialog(self.webapp_manager, self.webapp)
        except (StorageError, OSError) as e:
            logger.error(f"Failed to open permissions: {e}", exc_info=True)
            show_error_dialog(self, "Permissions unavailable", str(e))
            return
        dialog.present(self)

    def _on_clear_data(self, *_args) -> None:
        confirm_destructive(
            self,
            f"Clear data for {self.webapp.name}?",
            "This will clear cookies, storage, cache, and permissions for this web app.",
            "Clear",
            self._clear_data,
        )

    def _clear_data(self) -> None:
        """Reset the webapp and start over with a clean profile."""
        try:
            self.webapp_manager.reset_webapp(self.webapp.id)
            self.engine = _create_engine(self.webapp_manager, self.webapp)
        except (OSError, StorageError, EngineInitError) as e:
            logger.error(f"Clear data failed: {e}", exc_info=True)
            show_error_dialog(self, "Clear data failed", str(e))
            return

        self.session.reset()
        self._load_view(self.webapp.start_url)
        self._toast("Data cleared")

    def _on_save_page(self, *_args) -> None:
        request = self.session.page_export()

        def job() -> None:
            try:
                saved = self.portal.save_file(request)
            except (PortalError, OSError) as e:
                logger.error(f"Save failed: {e}")
                post_to_main_loop(show_error_dialog, self, "Save failed", str(e))
                return
            if saved is not None:
                post_to_main_loop(self._toast, "Saved page export")

        threading.Thread(target=job, daemon=True).start()

    def _on_test_notification(self, *_args) -> None:
        try:
            state = self.webapp_manager.notification_permission(self.webapp)
        except StorageError as e:
            show_error_dialog(self, "Notification failed", str(e))
            return

        if state is PermissionState.ASK:
            self._prompt_notification_permission()
        else:
            self._act_on_notification_permission(state)

    def _prompt_notification_permission(self) -> None:
        dialog = Adw.AlertDialog()
        dialog.set_heading(f"Allow notifications for {self.webapp.primary_origin}?")
        dialog.set_body("This site wants to show notifications.")
        dialog.add_response("block", "Block")
        dialog.add_response("allow", "Allow")
        dialog.set_response_appearance("allow", Adw.ResponseAppearance.SUGGESTED)
        dialog.set_default_response("allow")
        dialog.set_close_response("block")

        def on_response(_dialog, response):
            decision = PermissionState.ALLOW if response == "allow" else PermissionState.BLOCK
            try:
                self.webapp_manager.set_notification_permission(self.webapp, decision)
            except (StorageError, OSError) as e:
                logger.error(f"Failed to save notification permission: {e}")
                show_error_dialog(self, "Notification failed", str(e))
                return
            self._act_on_notification_permission(decision)

        dialog.connect("response", on_response)
        dialog.present(self)

    def _act_on_notification_permission(self, state: PermissionState) -> None:
        if state is PermissionState.BLOCK:
            self._toast("Notifications blocked (change in Permissions)")
            return

        try:
            self.portal.send_notification(self.session.sample_notification())
        except PortalError as e:
            logger.error(f"Notification failed: {e}")
            show_error_dialog(self, "Notification failed", str(e))
            return
        self._toast("Notification sent")

    def _on_about(self, *_args) -> None:
        about = Adw.AboutDialog()
        about.set_application_name(self.webapp.name)
        about.set_application_icon(self.webapp.icon_id)
        about.set_developer_name("Sitewrap")
        about.set_website(self.webapp.start_url)
        about.present(self)
