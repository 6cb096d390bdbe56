"""Dialog for adding/editing webapps.

This module provides a dialog for creating new webapps or editing
existing ones. Validation errors are shown inline and keep the dialog
open; the icon fetch and launcher install run after the dialog closes.
"""

from typing import Callable, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gtk

from ..core.webapp_manager import BackgroundResult, WebAppManager
from ..data.models import WebAppDefinition
from ..data.storage import StorageError
from ..utils.logger import get_logger
from ..utils.validators import ValidationError

logger = get_logger(__name__)


class WebAppDialog(Adw.Dialog):
    """Dialog for creating a webapp or editing an existing one."""

    def __init__(
        self,
        webapp_manager: WebAppManager,
        webapp: Optional[WebAppDefinition] = None,
        on_saved: Optional[Callable[[WebAppDefinition], None]] = None,
        on_background_complete: Optional[Callable[[BackgroundResult], None]] = None,
    ) -> None:
        """Initialize webapp dialog.

        Args:
            webapp_manager: WebAppManager used to save
            webapp: Definition to edit (None to create a new one)
            on_saved: Called with the saved definition
            on_background_complete: Called on the main loop when the icon
                fetch and launcher install finished
        """
        super().__init__()

        self.webapp_manager = webapp_manager
        self.webapp = webapp
        self.on_saved = on_saved
        self.on_background_complete = on_background_complete
        self._is_edit = webapp is not None
        self._submitting = False

        self.set_title("Edit Web App" if self._is_edit else "New Web App")
        self.set_content_width(520)

        self._build_ui()

        if webapp:
            self._load_webapp_data()

        logger.debug("WebAppDialog initialized (edit=%s)", self._is_edit)

    def _build_ui(self) -> None:
        """Build dialog UI."""
        content_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        content_box.set_margin_top(24)
        content_box.set_margin_bottom(24)
        content_box.set_margin_start(24)
        content_box.set_margin_end(24)

        header = Adw.HeaderBar()
        header.add_css_class("flat")
        header.set_show_end_title_buttons(False)

        cancel_button = Gtk.Button(label="Cancel")
        cancel_button.connect("clicked", lambda _button: self.close())
        header.pack_start(cancel_button)

        self.save_button = Gtk.Button(label="Save" if self._is_edit else "Create")
        self.save_button.add_css_class("suggested-action")
        self.save_button.connect("clicked", self._on_save_clicked)
        header.pack_end(self.save_button)

        basic_group = Adw.PreferencesGroup()

        self.url_entry = Adw.EntryRow()
        self.url_entry.set_title("URL")
        self.url_entry.connect("changed", self._on_input_changed)
        self.url_entry.connect("entry-activated", self._on_save_clicked)
        basic_group.add(self.url_entry)

        self.name_entry = Adw.EntryRow()
        self.name_entry.set_title("Name (optional)")
        self.name_entry.connect("entry-activated", self._on_save_clicked)
        basic_group.add(self.name_entry)

        content_box.append(basic_group)

        behavior_group = Adw.PreferencesGroup()
        behavior_group.set_title("Behavior")

        self.external_switch = Adw.SwitchRow()
        self.external_switch.set_title("Open external links in default browser")
        self.external_switch.set_active(True)
        behavior_group.add(self.external_switch)

        self.navigation_switch = Adw.SwitchRow()
        self.navigation_switch.set_title("Show navigation controls")
        self.navigation_switch.set_active(False)
        behavior_group.add(self.navigation_switch)

        content_box.append(behavior_group)

        self.error_label = Gtk.Label(xalign=0)
        self.error_label.add_css_class("error")
        self.error_label.set_wrap(True)
        self.error_label.set_visible(False)
        content_box.append(self.error_label)

        toolbar_view = Adw.ToolbarView()
        toolbar_view.add_top_bar(header)
        toolbar_view.set_content(content_box)
        self.set_child(toolbar_view)

        self._update_save_sensitivity()

    def _load_webapp_data(self) -> None:
        """Fill the form from the definition being edited."""
        self.url_entry.set_text(self.webapp.start_url)
        self.name_entry.set_text(self.webapp.name)
        self.external_switch.set_active(self.webapp.behavior.open_external_links)
        self.navigation_switch.set_active(self.webapp.behavior.show_navigation)

    def _on_input_changed(self, *_args) -> None:
        self._clear_error()
        self._update_save_sensitivity()

    def _update_save_sensitivity(self) -> None:
        has_url = bool(self.url_entry.get_text().strip())
        self.save_button.set_sensitive(has_url and not self._submitting)

    def _show_error(self, message: str) -> None:
        self.error_label.set_text(message)
        self.error_label.set_visible(True)

    def _clear_error(self) -> None:
        self.error_label.set_text("")
        self.error_label.set_visible(False)

    def _on_save_clicked(self, *_args) -> None:
        """Validate the form and save the webapp.

        A second activation while a submission is in flight is ignored.
        """
        if self._submitting:
            logger.debug("Ignoring save: submission already in progress")
            return

        self._submitting = True
        self._update_save_sensitivity()
        self._clear_error()

        url = self.url_entry.get_text()
        name = self.name_entry.get_text()
        open_external = self.external_switch.get_active()
        show_navigation = self.navigation_switch.get_active()

        try:
            if self.webapp:
                saved = self.webapp_manager.update_webapp(
                    self.webapp.id,
                    url,
                    name,
                    open_external,
                    show_navigation,
                    on_complete=self.on_background_complete,
                )
            else:
                saved = self.webapp_manager.create_webapp(
                    url,
                    name,
                    open_external_links=open_external,
                    show_navigation=show_navigation,
                    on_complete=self.on_background_complete,
                )
        except ValidationError as e:
            logger.info(f"Rejected webapp input: {e}")
            self._show_error(str(e))
            self._submitting = False
            self._update_save_sensitivity()
            return
        except (StorageError, OSError) as e:
            logger.error(f"Failed to save webapp: {e}", exc_info=True)
            self._show_error(f"Could not save: {e}")
            self._submitting = False
            self._update_save_sensitivity()
            return

        self.webapp = saved
        if self.on_saved:
            self.on_saved(saved)
        self.close()
