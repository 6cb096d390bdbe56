"""Small UI helpers shared by the windows.

Main-loop dispatch for background completions and the standard
alert dialogs.
"""

from typing import Any, Callable

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, GLib, Gtk

from ..utils.logger import get_logger

logger = get_logger(__name__)


def post_to_main_loop(callback: Callable[..., Any], *args: Any) -> None:
    """Run ``callback(*args)`` on the GLib main loop."""

    def dispatch() -> bool:
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Main loop callback failed: {e}", exc_info=True)
        return GLib.SOURCE_REMOVE

    GLib.idle_add(dispatch)


def show_error_dialog(parent: Gtk.Widget, heading: str, body: str) -> Adw.AlertDialog:
    """Present a dismissable error dialog.

    Args:
        parent: Widget the dialog is attached to
        heading: Short summary
        body: Details

    Returns:
        The presented dialog
    """
    dialog = Adw.AlertDialog()
    dialog.set_heading(heading)
    dialog.set_body(body)
    dialog.add_response("close", "Close")
    dialog.set_default_response("close")
    dialog.set_close_response("close")
    dialog.present(parent)
    return dialog


def confirm_destructive(
    parent: Gtk.Widget,
    heading: str,
    body: str,
    confirm_label: str,
    on_confirm: Callable[[], None],
) -> Adw.AlertDialog:
    """Ask before a destructive action.

    Args:
        parent: Widget the dialog is attached to
        heading: Question shown to the user
        body: Explanation of the consequences
        confirm_label: Label of the destructive button
        on_confirm: Called when the user confirms

    Returns:
        The presented dialog
    """
    dialog = Adw.AlertDialog()
    dialog.set_heading(heading)
    dialog.set_body(body)
    dialog.add_response("cancel", "Cancel")
    dialog.add_response("confirm", confirm_label)
    dialog.set_response_appearance("confirm", Adw.ResponseAppearance.DESTRUCTIVE)
    dialog.set_default_response("cancel")
    dialog.set_close_response("cancel")

    def on_response(_dialog, response):
        if response == "confirm":
            on_confirm()

    dialog.connect("response", on_response)
    dialog.present(parent)
    return dialog
