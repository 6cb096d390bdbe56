"""Main application class.

This module provides the GTK Application class that wires the registry,
the permission store, the portal and the engine together and opens
either the manager window or a webapp shell.
"""

import argparse
import uuid
from dataclasses import dataclass
from typing import List, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gio, GLib, Gtk

from . import __version__
from .core.portal import PortalAdapter
from .core.webapp_manager import WebAppManager
from .data.permissions import PermissionRepository
from .data.registry import AppRegistry
from .data.storage import StorageError
from .ui.dialogs import post_to_main_loop
from .ui.main_window import MainWindow
from .ui.shell_window import ShellWindow
from .utils.logger import get_logger
from .utils.xdg import APP_ID, AppPaths
from .webengine import engine
from .webengine.engine import EngineInitError

logger = get_logger(__name__)

TICK_INTERVAL_MS = 16


def build_argument_parser(add_help: bool = True) -> argparse.ArgumentParser:
    """Create the command line parser shared by main() and the application."""
    parser = argparse.ArgumentParser(
        prog="sitewrap",
        description="Turn websites into desktop web apps",
        add_help=add_help,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--manager",
        action="store_true",
        help="open the web app manager (default)",
    )
    parser.add_argument(
        "--shell",
        dest="shell_id",
        type=uuid.UUID,
        metavar="UUID",
        help="open the web app with this id",
    )
    parser.add_argument("--debug", action="store_true", help="verbose console logging")
    return parser


@dataclass
class _CLIOptions:
    """Represent parsed command line options."""

    shell_id: Optional[uuid.UUID] = None
    manager: bool = False

    @property
    def is_shell(self) -> bool:
        return self.shell_id is not None and not self.manager


def parse_command_line(args: List[str]) -> _CLIOptions:
    """Parse arguments, falling back to manager mode when they are invalid."""
    parser = build_argument_parser(add_help=False)
    try:
        namespace, _ = parser.parse_known_args(args)
    except SystemExit:
        logger.warning("Failed to parse command line args: %s", args)
        return _CLIOptions()

    return _CLIOptions(shell_id=namespace.shell_id, manager=namespace.manager)


class SitewrapApplication(Adw.Application):
    """Main application class.

    In manager mode the application is unique per session; every shell
    runs in its own process so it is registered as non-unique.
    """

    def __init__(self, shell_mode: bool = False) -> None:
        """Initialize application.

        Args:
            shell_mode: True when this process hosts a webapp shell
        """
        flags = Gio.ApplicationFlags.HANDLES_COMMAND_LINE
        if shell_mode:
            flags |= Gio.ApplicationFlags.NON_UNIQUE
        super().__init__(application_id=APP_ID, flags=flags)

        # Core components (initialized in do_startup)
        self.paths: Optional[AppPaths] = None
        self.portal: Optional[PortalAdapter] = None
        self.webapp_manager: Optional[WebAppManager] = None
        self.portal_supported = False
        self._tick_source_id = 0

        self.main_window: Optional[MainWindow] = None

        logger.info(f"SitewrapApplication initialized (ID: {APP_ID}, shell={shell_mode})")

    def do_startup(self) -> None:
        """Application startup - initialize components."""
        Adw.Application.do_startup(self)

        logger.info("Application starting up...")

        self._init_components()
        self._setup_actions()
        self._setup_shortcuts()

        engine.init()
        self._tick_source_id = GLib.timeout_add(TICK_INTERVAL_MS, self._on_tick)

        logger.info("Application startup complete")

    def _init_components(self) -> None:
        """Initialize core application components."""
        self.paths = AppPaths.from_environment()
        logger.info(f"Data root: {self.paths.data_root}")

        self.portal = PortalAdapter()
        self.portal_supported = self.portal.warn_if_stubbed()

        self.webapp_manager = WebAppManager(
            self.paths,
            AppRegistry(self.paths),
            PermissionRepository(self.paths),
            self.portal,
            post_to_ui=post_to_main_loop,
        )

    def _setup_actions(self) -> None:
        """Setup application actions."""
        about_action = Gio.SimpleAction.new("about", None)
        about_action.connect("activate", self._on_about_action)
        self.add_action(about_action)

        quit_action = Gio.SimpleAction.new("quit", None)
        quit_action.connect("activate", self._on_quit_action)
        self.add_action(quit_action)

        logger.debug("Actions setup complete")

    def _setup_shortcuts(self) -> None:
        """Setup keyboard shortcuts."""
        self.set_accels_for_action("app.quit", ["<Ctrl>Q"])
        self.set_accels_for_action("window.close", ["<Ctrl>W"])

    def _on_tick(self) -> bool:
        engine.tick()
        return GLib.SOURCE_CONTINUE

    def do_activate(self) -> None:
        """Application activation - create and show the manager window."""
        logger.info("Application activated")

        if not self.main_window:
            self.main_window = MainWindow(
                application=self,
                webapp_manager=self.webapp_manager,
                portal_supported=self.portal_supported,
            )

        self.main_window.present()

    def do_command_line(self, command_line: Gio.ApplicationCommandLine) -> int:
        """Handle command line arguments.

        Args:
            command_line: Command line object

        Returns:
            Exit code (0 for success)
        """
        logger.debug("Processing command line arguments")

        # Skip binary name (argv[0])
        argv = list(command_line.get_arguments())[1:]
        cli_options = parse_command_line(argv)

        if cli_options.is_shell:
            return self._open_shell(cli_options.shell_id)

        self.activate()
        return 0

    def _open_shell(self, webapp_id: uuid.UUID) -> int:
        """Open the shell window of one webapp.

        Returns:
            0 on success, 1 if the webapp is unknown or the engine fails
        """
        try:
            webapp = self.webapp_manager.record_launch(webapp_id)
        except StorageError as e:
            logger.error(f"Cannot open web app {webapp_id}: {e}")
            return 1

        try:
            window = ShellWindow(
                application=self,
                webapp_manager=self.webapp_manager,
                portal=self.portal,
                webapp=webapp,
            )
        except EngineInitError as e:
            logger.error(f"Engine initialization failed: {e}")
            return 1

        window.present()
        return 0

    def _on_about_action(
        self, action: Gio.SimpleAction, parameter: Optional[GLib.Variant]
    ) -> None:
        """Handle about action.

        Args:
            action: Action that was triggered
            parameter: Optional action parameter
        """
        logger.info("About action triggered")

        about = Adw.AboutDialog()
        about.set_application_name("Sitewrap")
        about.set_application_icon(APP_ID)
        about.set_version(__version__)
        about.set_developer_name("Sitewrap")
        about.set_license_type(Gtk.License.GPL_3_0)
        about.set_comments("Turn websites into desktop web apps")

        about.present(self.get_active_window())

    def _on_quit_action(
        self, action: Gio.SimpleAction, parameter: Optional[GLib.Variant]
    ) -> None:
        """Handle quit action.

        Args:
            action: Action that was triggered
            parameter: Optional action parameter
        """
        logger.info("Quit action triggered")
        self.quit()

    def do_shutdown(self) -> None:
        """Application shutdown - cleanup resources."""
        logger.info("Application shutting down...")

        if self._tick_source_id:
            GLib.source_remove(self._tick_source_id)
            self._tick_source_id = 0
        engine.shutdown()

        if self.portal:
            self.portal.close()
            logger.debug("Portal connection closed")

        Adw.Application.do_shutdown(self)

        logger.info("Application shutdown complete")
