"""Entry point for Sitewrap.

This module provides the main() function that validates the command
line, sets up logging and runs the GTK application.
"""

import sys
from typing import List, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
gi.require_version("Adw", "1")

from gi.repository import Gdk, Gtk

from .application import SitewrapApplication, build_argument_parser
from .utils.logger import Logger, get_logger
from .utils.xdg import AppPaths

logger = get_logger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application.

    Args:
        argv: Full argument vector including the program name
            (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    argv = list(sys.argv if argv is None else argv)

    # Malformed arguments exit with status 2 from argparse
    options = build_argument_parser().parse_args(argv[1:])

    try:
        if options.debug:
            Logger.set_debug_mode(True)
            logger.info("Debug mode enabled")

        try:
            Logger.setup(AppPaths.from_environment())
        except RuntimeError as e:
            logger.error(f"Cannot resolve application directories: {e}")
            return 1

        logger.info("Starting Sitewrap...")

        # Ensure a graphical session is available before registering the app
        init_result = Gtk.init_check()
        if isinstance(init_result, tuple):
            initialized, error = init_result
        else:
            initialized = bool(init_result)
            error = None

        display = Gdk.Display.get_default() if initialized else None

        if not initialized or display is None:
            logger.error("Cannot initialize GTK. Run inside a graphical session (Wayland/X11).")
            if error:
                logger.error("Details: %s", error.message)
            return 1

        shell_mode = options.shell_id is not None and not options.manager
        app = SitewrapApplication(shell_mode=shell_mode)
        exit_code = app.run([arg for arg in argv if arg != "--debug"])

        logger.info(f"Application exited with code: {exit_code}")
        return exit_code

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 130

    except Exception as e:
        logger.critical(f"Unhandled exception: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
