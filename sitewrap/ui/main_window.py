"""Main window for Sitewrap.

This module provides the manager window: the list of webapps with
search, and the launch/edit/permissions/reset/remove actions.
"""

from typing import Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gio, Gtk, Pango

from ..core.launcher import LAUNCHER_ICON_SIZE
from ..core.webapp_manager import BackgroundResult, WebAppManager
from ..data.models import WebAppDefinition
from ..data.storage import StorageError
from ..utils.logger import get_logger
from .dialogs import confirm_destructive, show_error_dialog

logger = get_logger(__name__)


def _on_off(value: bool) -> str:
    return "On" if value else "Off"


class MainWindow(Adw.ApplicationWindow):
    """Manager window.

    Shows the list of webapps with search and management capabilities.
    """

    def __init__(
        self,
        application: Adw.Application,
        webapp_manager: WebAppManager,
        portal_supported: bool = True,
        **kwargs,
    ) -> None:
        """Initialize main window.

        Args:
            application: GTK Application instance
            webapp_manager: WebAppManager for business logic
            portal_supported: Result of the desktop portal probe
            **kwargs: Additional arguments for Adw.ApplicationWindow
        """
        super().__init__(application=application, **kwargs)

        self.webapp_manager = webapp_manager
        self.portal_supported = portal_supported
        self._portal_warning_shown = False

        self.set_title("Sitewrap")
        self.set_default_size(900, 600)

        self._build_ui()
        self._load_webapps()

        self.connect("map", self._on_map)
        logger.debug("MainWindow initialized")

    def _build_ui(self) -> None:
        """Build the main window UI."""
        self.toast_overlay = Adw.ToastOverlay()
        toolbar_view = Adw.ToolbarView()
        self.toast_overlay.set_child(toolbar_view)
        self.set_content(self.toast_overlay)

        header_bar = Adw.HeaderBar()
        toolbar_view.add_top_bar(header_bar)

        new_button = Gtk.Button(label="New Web App")
        new_button.add_css_class("suggested-action")
        new_button.connect("clicked", self._on_new_webapp_clicked)
        header_bar.pack_start(new_button)

        menu_button = Gtk.MenuButton()
        menu_button.set_icon_name("open-menu-symbolic")
        menu_button.set_menu_model(self._create_menu())
        header_bar.pack_end(menu_button)

        content_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
        content_box.set_hexpand(True)
        content_box.set_vexpand(True)

        self.search_entry = Gtk.SearchEntry()
        self.search_entry.set_hexpand(True)
        self.search_entry.set_placeholder_text("Search web apps")
        self.search_entry.connect("search-changed", self._on_search_changed)

        search_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL)
        search_box.set_margin_top(12)
        search_box.set_margin_bottom(12)
        search_box.set_margin_start(12)
        search_box.set_margin_end(12)
        search_box.append(self.search_entry)
        content_box.append(search_box)

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_hexpand(True)
        scrolled.set_margin_start(12)
        scrolled.set_margin_end(12)
        scrolled.set_margin_bottom(12)

        self.list_box = Gtk.ListBox()
        self.list_box.add_css_class("boxed-list")
        self.list_box.set_selection_mode(Gtk.SelectionMode.NONE)
        self.list_box.connect("row-activated", self._on_row_activated)

        placeholder = Adw.StatusPage()
        placeholder.set_icon_name("applications-internet-symbolic")
        placeholder.set_title("No Web Apps")
        placeholder.set_description("Create one to get started")
        self.list_box.set_placeholder(placeholder)

        scrolled.set_child(self.list_box)
        content_box.append(scrolled)

        toolbar_view.set_content(content_box)

    def _create_menu(self) -> Gio.Menu:
        menu = Gio.Menu()
        menu.append("About Sitewrap", "app.about")
        menu.append("Quit", "app.quit")
        return menu

    def _on_map(self, *_args) -> None:
        if self.portal_supported or self._portal_warning_shown:
            return
        self._portal_warning_shown = True
        show_error_dialog(
            self,
            "Desktop integration unavailable",
            "xdg-desktop-portal was not found. Launchers and notifications "
            "are disabled until a portal backend is available.",
        )

    def _load_webapps(self) -> None:
        """Reload the list, honoring the current search text."""
        while True:
            row = self.list_box.get_row_at_index(0)
            if row is None:
                break
            self.list_box.remove(row)

        query = self.search_entry.get_text()
        webapps = self.webapp_manager.search_webapps(query)
        for webapp in webapps:
            self.list_box.append(self._create_webapp_row(webapp))

        logger.debug(f"Loaded {len(webapps)} webapps")

    def refresh(self) -> None:
        self._load_webapps()

    def _create_webapp_row(self, webapp: WebAppDefinition) -> Gtk.ListBoxRow:
        """Create list row for a webapp.

        Args:
            webapp: Definition to show

        Returns:
            Gtk.ListBoxRow widget
        """
        row = Gtk.ListBoxRow()
        row.set_activatable(True)
        row.set_selectable(False)
        row.webapp_id = webapp.id

        main_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)
        main_box.set_margin_start(12)
        main_box.set_margin_end(12)
        main_box.set_margin_top(8)
        main_box.set_margin_bottom(8)
        row.set_child(main_box)

        icon_path = self.webapp_manager.paths.existing_icon(webapp.icon_id, LAUNCHER_ICON_SIZE)
        if icon_path:
            icon = Gtk.Image.new_from_file(str(icon_path))
        else:
            icon = Gtk.Image.new_from_icon_name("applications-internet")
        icon.set_pixel_size(48)
        icon.set_valign(Gtk.Align.CENTER)
        main_box.append(icon)

        info_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        info_box.set_hexpand(True)
        main_box.append(info_box)

        name_label = Gtk.Label(label=webapp.name, xalign=0)
        name_label.add_css_class("title-4")
        name_label.set_ellipsize(Pango.EllipsizeMode.END)
        info_box.append(name_label)

        url_label = Gtk.Label(label=webapp.start_url, xalign=0)
        url_label.add_css_class("dim-label")
        url_label.set_ellipsize(Pango.EllipsizeMode.END)
        info_box.append(url_label)

        behavior_label = Gtk.Label(
            label=(
                f"External: {_on_off(webapp.behavior.open_external_links)} • "
                f"Nav: {_on_off(webapp.behavior.show_navigation)}"
            ),
            xalign=0,
        )
        behavior_label.add_css_class("caption")
        info_box.append(behavior_label)

        launched_label = Gtk.Label(
            label=f"Last launched: {webapp.last_launched_label}", xalign=0
        )
        launched_label.add_css_class("caption")
        launched_label.add_css_class("dim-label")
        info_box.append(launched_label)

        button_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)
        button_box.set_valign(Gtk.Align.CENTER)
        main_box.append(button_box)

        buttons = [
            ("Launch", "media-playback-start-symbolic", self._on_launch_clicked, False),
            ("Edit", "document-edit-symbolic", self._on_edit_clicked, False),
            ("Permissions", "security-medium-symbolic", self._on_permissions_clicked, False),
            ("Reset data", "edit-clear-all-symbolic", self._on_reset_clicked, True),
            ("Remove", "user-trash-symbolic", self._on_remove_clicked, True),
        ]
        for tooltip, icon_name, handler, destructive in buttons:
            button = Gtk.Button()
            button.set_icon_name(icon_name)
            button.set_tooltip_text(tooltip)
            button.set_valign(Gtk.Align.CENTER)
            if destructive:
                button.add_css_class("destructive-action")
            button.connect("clicked", handler, webapp.id)
            button_box.append(button)

        return row

    def _toast(self, message: str) -> None:
        self.toast_overlay.add_toast(Adw.Toast.new(message))

    def _on_background_complete(self, result: BackgroundResult) -> None:
        """Refresh after the icon fetch and launcher install finished."""
        for error in result.errors:
            logger.warning(f"Background task for {result.app_id}: {error}")
        if result.errors and self.portal_supported:
            self._toast(result.errors[-1])
        self._load_webapps()

    def _load_definition(self, webapp_id) -> Optional[WebAppDefinition]:
        try:
            return self.webapp_manager.get_webapp(webapp_id)
        except StorageError as e:
            logger.error(f"Failed to load webapp {webapp_id}: {e}")
            show_error_dialog(self, "Web app unavailable", str(e))
            self._load_webapps()
            return None

    def _on_search_changed(self, entry: Gtk.SearchEntry) -> None:
        logger.debug(f"Search query: {entry.get_text()}")
        self._load_webapps()

    def _on_row_activated(self, list_box: Gtk.ListBox, row: Gtk.ListBoxRow) -> None:
        if hasattr(row, "webapp_id"):
            self.launch_webapp(row.webapp_id)

    def _on_new_webapp_clicked(self, button: Gtk.Button) -> None:
        logger.info("New webapp button clicked")
        from .webapp_dialog import WebAppDialog

        dialog = WebAppDialog(
            self.webapp_manager,
            on_saved=lambda _webapp: self._load_webapps(),
            on_background_complete=self._on_background_complete,
        )
        dialog.present(self)

    def _on_launch_clicked(self, button: Gtk.Button, webapp_id) -> None:
        self.launch_webapp(webapp_id)

    def launch_webapp(self, webapp_id) -> None:
        """Launch a webapp shell in a separate process."""
        try:
            self.webapp_manager.launch_webapp(webapp_id)
        except StorageError as e:
            logger.error(f"WebApp not found: {webapp_id}")
            show_error_dialog(self, "Web app unavailable", str(e))
        except OSError as e:
            logger.error(f"Failed to launch webapp: {e}", exc_info=True)
            show_error_dialog(self, "Launch failed", str(e))
        self._load_webapps()

    def _on_edit_clicked(self, button: Gtk.Button, webapp_id) -> None:
        webapp = self._load_definition(webapp_id)
        if not webapp:
            return

        from .webapp_dialog import WebAppDialog

        dialog = WebAppDialog(
            self.webapp_manager,
            webapp=webapp,
            on_saved=lambda _webapp: self._load_webapps(),
            on_background_complete=self._on_background_complete,
        )
        dialog.present(self)

    def _on_permissions_clicked(self, button: Gtk.Button, webapp_id) -> None:
        webapp = self._load_definition(webapp_id)
        if not webapp:
            return

        from .permissions_window import PermissionsDialog

        try:
            dialog = PermissionsDialog(self.webapp_manager, webapp)
        except (StorageError, OSError) as e:
            logger.error(f"Failed to open permissions: {e}", exc_info=True)
            show_error_dialog(self, "Permissions unavailable", str(e))
            return
        dialog.present(self)

    def _on_reset_clicked(self, button: Gtk.Button, webapp_id) -> None:
        webapp = self._load_definition(webapp_id)
        if not webapp:
            return

        def reset() -> None:
            try:
                self.webapp_manager.reset_webapp(webapp_id)
            except OSError as e:
                logger.error(f"Error resetting webapp: {e}", exc_info=True)
                show_error_dialog(self, "Reset failed", str(e))
                return
            self._toast(f"Data cleared for {webapp.name}")
            self._load_webapps()

        confirm_destructive(
            self,
            f"Reset {webapp.name}?",
            "Cookies, site data, permissions and cached icons will be deleted. "
            "The web app itself stays.",
            "Reset",
            reset,
        )

    def _on_remove_clicked(self, button: Gtk.Button, webapp_id) -> None:
        webapp = self._load_definition(webapp_id)
        if not webapp:
            return

        def remove() -> None:
            try:
                launcher_removed = self.webapp_manager.remove_webapp(webapp_id)
            except OSError as e:
                logger.error(f"Error removing webapp: {e}", exc_info=True)
                show_error_dialog(self, "Remove failed", str(e))
                return
            if not launcher_removed:
                self._toast("Web app removed; its launcher could not be removed")
            self._load_webapps()

        confirm_destructive(
            self,
            f"Remove {webapp.name}?",
            "This will permanently delete the web app and all its data, "
            "including cookies, cache, permissions and its launcher.",
            "Remove",
            remove,
        )
