"""Launcher and portal request descriptions.

Plain data passed to the portal adapter, the errors it raises, and the
helpers that derive a launcher description from a webapp definition.
Nothing here needs a session bus, so callers can handle portal failures
without importing Gio.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..data.models import WebAppDefinition
from ..utils.xdg import APP_ID, AppPaths, build_desktop_id, is_flatpak

COMMAND_NAME = "sitewrap"
LAUNCHER_ICON_SIZE = 128


class PortalError(Exception):
    """Raised when a portal call fails."""

    pass


class PortalUnavailableError(PortalError):
    """Raised when the required portal backend is not available."""

    pass


class PortalCancelledError(PortalError):
    """Raised when the user dismissed a portal dialog."""

    pass


@dataclass
class LauncherDescriptor:
    """Desktop launcher handed to the DynamicLauncher portal.

    Attributes:
        desktop_id: Desktop file id (``<icon_id>.desktop``)
        name: Visible launcher name
        exec: Command line started by the launcher
        icon_name: Icon name written to the entry
        icon_file: PNG whose bytes become the launcher icon (optional)
    """

    desktop_id: str
    name: str
    exec: str
    icon_name: str
    icon_file: Optional[Path] = None


@dataclass
class NotificationRequest:
    app_id: str
    title: str
    body: str
    icon: Optional[str] = None


@dataclass
class SaveFileRequest:
    """Content to store through the FileChooser portal.

    Attributes:
        title: Dialog title
        suggested_name: File name proposed to the user
        content: Bytes written to the chosen file
        default_directory: Folder the dialog starts in (optional)
    """

    title: str
    suggested_name: str
    content: bytes
    default_directory: Optional[Path] = None


def desktop_entry_from_descriptor(descriptor: LauncherDescriptor) -> str:
    """Render the desktop entry installed for a launcher."""
    return (
        "[Desktop Entry]\n"
        f"Name={descriptor.name}\n"
        f"Exec={descriptor.exec}\n"
        "Type=Application\n"
        f"Icon={descriptor.icon_name}\n"
        "Categories=Network;WebBrowser;\n"
    )


def shell_command(webapp_id: str) -> List[str]:
    """Return the argv that opens a webapp shell.

    Args:
        webapp_id: UUID of the webapp

    Returns:
        Command as a list of arguments
    """
    if is_flatpak():
        return ["flatpak", "run", APP_ID, "--shell", str(webapp_id)]
    return [COMMAND_NAME, "--shell", str(webapp_id)]


def launcher_descriptor_for(
    definition: WebAppDefinition, paths: AppPaths
) -> LauncherDescriptor:
    """Describe the launcher of a webapp.

    The 128px cached icon is attached when it has been rendered.

    Args:
        definition: Webapp definition
        paths: Resolved application paths

    Returns:
        LauncherDescriptor
    """
    return LauncherDescriptor(
        desktop_id=build_desktop_id(definition.icon_id),
        name=definition.name,
        exec=" ".join(shell_command(str(definition.id))),
        icon_name=definition.icon_id,
        icon_file=paths.existing_icon(definition.icon_id, LAUNCHER_ICON_SIZE),
    )
