"""Per-origin permission editor.

Shows every origin of a webapp's permission store with one Ask/Allow/Block
row per permission. Every change is written immediately.
"""

from urllib.parse import urlsplit

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gtk

from ..core.webapp_manager import WebAppManager
from ..data.models import PermissionKind, PermissionState, WebAppDefinition
from ..data.storage import StorageError
from ..utils.logger import get_logger
from ..utils.validators import ValidationError

logger = get_logger(__name__)

STATE_ORDER = [PermissionState.ASK, PermissionState.ALLOW, PermissionState.BLOCK]


class PermissionsDialog(Adw.PreferencesDialog):
    """Permission editor for one webapp."""

    def __init__(self, webapp_manager: WebAppManager, webapp: WebAppDefinition) -> None:
        """Initialize permissions dialog.

        Args:
            webapp_manager: WebAppManager used to load and save
            webapp: Webapp whose permissions are edited

        Raises:
            StorageError: If the permission store cannot be loaded
            OSError: If the primary origin cannot be written
        """
        super().__init__()

        self.webapp_manager = webapp_manager
        self.webapp = webapp
        self.store = webapp_manager.load_permissions_for_editing(webapp.id)
        self._origin_groups = []

        self.set_title(f"{webapp.name} Permissions")

        self.page = Adw.PreferencesPage()
        self.page.set_icon_name("security-medium-symbolic")
        self.add(self.page)

        self._build_add_group()
        self._rebuild_origin_groups()

    def _build_add_group(self) -> None:
        add_group = Adw.PreferencesGroup()
        add_group.set_title("Add Origin")
        add_group.set_description("Enter a URL or host name, e.g. example.org")

        self.origin_entry = Adw.EntryRow()
        self.origin_entry.set_title("Origin")
        self.origin_entry.set_show_apply_button(True)
        self.origin_entry.connect("apply", self._on_add_origin)
        self.origin_entry.connect("entry-activated", self._on_add_origin)
        self.origin_entry.connect("changed", lambda _entry: self._clear_error())
        add_group.add(self.origin_entry)

        self.error_label = Gtk.Label(xalign=0)
        self.error_label.add_css_class("error")
        self.error_label.set_visible(False)
        self.error_label.set_margin_top(6)
        add_group.add(self.error_label)

        self.page.add(add_group)

    def _rebuild_origin_groups(self) -> None:
        for group in self._origin_groups:
            self.page.remove(group)
        self._origin_groups = []

        for origin in self.store.sorted_origins():
            group = self._create_origin_group(origin)
            self.page.add(group)
            self._origin_groups.append(group)

    def _create_origin_group(self, origin: str) -> Adw.PreferencesGroup:
        """Create the four permission rows of one origin."""
        entry = self.store.get_or_default(origin)

        group = Adw.PreferencesGroup()
        group.set_title(urlsplit(origin).hostname or origin)
        group.set_description(origin)

        for kind in PermissionKind:
            row = Adw.ComboRow()
            row.set_title(kind.label)
            model = Gtk.StringList()
            for state in STATE_ORDER:
                model.append(state.label)
            row.set_model(model)
            row.set_selected(STATE_ORDER.index(entry.get(kind)))
            row.connect("notify::selected", self._on_state_selected, origin, kind)
            group.add(row)

        return group

    def _on_state_selected(self, row: Adw.ComboRow, _pspec, origin: str, kind: PermissionKind) -> None:
        index = row.get_selected()
        if index < 0 or index >= len(STATE_ORDER):
            return

        state = STATE_ORDER[index]
        try:
            self.store = self.webapp_manager.set_permission(self.webapp.id, origin, kind, state)
        except (StorageError, OSError) as e:
            logger.error(f"Failed to save permission: {e}", exc_info=True)
            self.add_toast(Adw.Toast.new(f"Could not save permission: {e}"))

    def _on_add_origin(self, *_args) -> None:
        text = self.origin_entry.get_text()
        try:
            origin = self.webapp_manager.add_permission_origin(self.webapp.id, text)
        except ValidationError as e:
            self._show_error(str(e))
            return
        except (StorageError, OSError) as e:
            logger.error(f"Failed to add origin: {e}", exc_info=True)
            self._show_error(f"Could not save: {e}")
            return

        logger.info(f"Added origin {origin} to {self.webapp.id}")
        self.origin_entry.set_text("")
        self.store = self.webapp_manager.permissions.load(self.webapp.id)
        self._rebuild_origin_groups()

    def _show_error(self, message: str) -> None:
        self.error_label.set_text(message)
        self.error_label.set_visible(True)

    def _clear_error(self) -> None:
        self.error_label.set_visible(False)
