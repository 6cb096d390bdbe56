"""Logging system for Sitewrap.

This module provides a structured logging system with file rotation
and different log levels for development and production. Every module
logs through a child of the ``sitewrap`` logger; the rotating file
handler is attached once the state directories are known.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .xdg import AppPaths

ROOT_LOGGER_NAME = "sitewrap"


class Logger:
    """Centralized logging configuration.

    Provides both file and console logging with proper formatting
    and rotation.
    """

    _instance: Optional[logging.Logger] = None
    _file_handler: Optional[RotatingFileHandler] = None
    _debug_mode: bool = False

    DETAILED_FORMAT = (
        "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
    )
    SIMPLE_FORMAT = "%(levelname)-8s | %(message)s"

    @classmethod
    def get_root(cls) -> logging.Logger:
        """Get or create the ``sitewrap`` root logger (singleton pattern).

        Returns:
            Configured logger instance
        """
        if cls._instance is None:
            cls._instance = cls._setup_logger(ROOT_LOGGER_NAME)
        return cls._instance

    @classmethod
    def _setup_logger(cls, name: str) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)

        # Remove existing handlers
        logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG if cls._debug_mode else logging.INFO)
        console_handler.setFormatter(logging.Formatter(fmt=cls.SIMPLE_FORMAT))
        logger.addHandler(console_handler)

        return logger

    @classmethod
    def setup(cls, paths: AppPaths) -> None:
        """Attach the rotating file handler under the cache directory.

        Failing to open the log file is reported on the console and is
        otherwise not fatal.

        Args:
            paths: Resolved application paths
        """
        root = cls.get_root()
        if cls._file_handler is not None:
            root.removeHandler(cls._file_handler)
            cls._file_handler.close()
            cls._file_handler = None

        try:
            logs_dir = paths.logs_dir()
            logs_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                logs_dir / "app.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8",
            )
        except OSError as e:
            root.error(f"Failed to setup file logging: {e}")
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(fmt=cls.DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        root.addHandler(file_handler)
        cls._file_handler = file_handler

    @classmethod
    def set_debug_mode(cls, enabled: bool = True) -> None:
        """Enable or disable debug mode.

        Args:
            enabled: True to enable debug logging on console
        """
        cls._debug_mode = enabled
        if cls._instance:
            for handler in cls._instance.handlers:
                # RotatingFileHandler is a StreamHandler too; leave it at DEBUG
                if isinstance(handler, logging.StreamHandler) and not isinstance(
                    handler, RotatingFileHandler
                ):
                    handler.setLevel(logging.DEBUG if enabled else logging.INFO)

    @classmethod
    def is_debug_mode(cls) -> bool:
        return cls._debug_mode


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get logger instance.

    Module names are mapped under the ``sitewrap`` logger so that the
    handlers configured here apply to them.

    Args:
        name: Logger name, usually ``__name__``

    Returns:
        Logger instance
    """
    root = Logger.get_root()
    if name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return root.getChild(name)
