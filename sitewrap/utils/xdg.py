"""XDG Base Directory utilities.

This module resolves where Sitewrap keeps its state, following the
freedesktop.org Base Directory specification, and owns the helpers
that remove per-webapp artifacts (profile directories, cached icons).
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

# Application ID following reverse DNS notation
APP_ID = "xyz.andriishafar.Sitewrap"

# Directory name appended to each XDG base directory
APP_DIR_NAME = "sitewrap"

# Environment variable that relocates all state under a single root
ROOT_OVERRIDE_ENV = "SITEWRAP_ROOT"


def build_icon_id(webapp_id: str) -> str:
    """Return the icon identifier for a webapp.

    The icon id is a pure function of the webapp id and doubles as the
    prefix of every cached icon file and of the launcher desktop id.
    """
    return f"{APP_ID}.webapp.{webapp_id}"


def build_desktop_id(icon_id: str) -> str:
    """Return the desktop file id used by the launcher portal."""
    return f"{icon_id}.desktop"


def build_icon_filename(icon_id: str, size: int) -> str:
    """Return the filename of one rendered icon size."""
    return f"{icon_id}-{size}x{size}.png"


def _xdg_base(env_key: str, *fallback: str) -> Path:
    base = os.environ.get(env_key)
    if not base:
        return Path.home().joinpath(*fallback)
    return Path(base)


@dataclass(frozen=True)
class AppPaths:
    """Resolved configuration, data and cache roots.

    Getters only compute paths. Writers create the directories they need,
    so resolving paths never touches the filesystem.

    Attributes:
        config_root: Holds ``apps/`` and ``permissions/``
        data_root: Holds ``profiles/``
        cache_root: Holds ``icons/`` and ``logs/``
    """

    config_root: Path
    data_root: Path
    cache_root: Path

    @classmethod
    def for_root(cls, root: Path) -> "AppPaths":
        """Build a layout rooted at a single directory (used by tests).

        Args:
            root: Directory receiving ``config``, ``data`` and ``cache``

        Returns:
            AppPaths instance
        """
        root = Path(root)
        return cls(
            config_root=root / "config",
            data_root=root / "data",
            cache_root=root / "cache",
        )

    @classmethod
    def from_environment(cls) -> "AppPaths":
        """Resolve paths from ``SITEWRAP_ROOT`` or the XDG variables.

        Returns:
            AppPaths instance
        """
        override = os.environ.get(ROOT_OVERRIDE_ENV)
        if override:
            return cls.for_root(Path(override).expanduser())

        return cls(
            config_root=_xdg_base("XDG_CONFIG_HOME", ".config") / APP_DIR_NAME,
            data_root=_xdg_base("XDG_DATA_HOME", ".local", "share") / APP_DIR_NAME,
            cache_root=_xdg_base("XDG_CACHE_HOME", ".cache") / APP_DIR_NAME,
        )

    def apps_dir(self) -> Path:
        """Directory holding one ``<id>.toml`` per webapp."""
        return self.config_root / "apps"

    def permissions_dir(self) -> Path:
        """Directory holding one permission store per webapp."""
        return self.config_root / "permissions"

    def profiles_dir(self) -> Path:
        return self.data_root / "profiles"

    def icons_cache_dir(self) -> Path:
        return self.cache_root / "icons"

    def logs_dir(self) -> Path:
        return self.cache_root / "logs"

    def profile_dir(self, webapp_id: str) -> Path:
        """Get the isolated browsing profile directory of a webapp.

        Args:
            webapp_id: UUID of the webapp

        Returns:
            Path to the profile directory (not created)
        """
        return self.profiles_dir() / str(webapp_id)

    def icon_path(self, icon_id: str, size: int) -> Path:
        """Get the cached PNG path of one icon size."""
        return self.icons_cache_dir() / build_icon_filename(icon_id, size)

    def delete_profile_dir(self, webapp_id: str) -> None:
        """Remove a webapp profile directory recursively.

        A missing directory is not an error. Permission problems and other
        filesystem failures propagate as ``OSError``.

        Args:
            webapp_id: UUID of the webapp
        """
        try:
            shutil.rmtree(self.profile_dir(webapp_id))
        except FileNotFoundError:
            pass

    def delete_icons_for(self, icon_id: str) -> List[Path]:
        """Remove every cached icon whose filename starts with ``icon_id``.

        Args:
            icon_id: Icon identifier of the webapp

        Returns:
            Paths that were removed
        """
        removed: List[Path] = []
        try:
            entries = list(self.icons_cache_dir().iterdir())
        except FileNotFoundError:
            return removed

        for entry in entries:
            if not entry.name.startswith(icon_id) or not entry.is_file():
                continue
            try:
                entry.unlink()
            except FileNotFoundError:
                continue
            removed.append(entry)
        return removed

    def existing_icon(self, icon_id: str, size: int = 128) -> Optional[Path]:
        """Return the cached icon of the given size if it exists."""
        path = self.icon_path(icon_id, size)
        return path if path.is_file() else None


def is_flatpak() -> bool:
    """Check if running inside Flatpak sandbox.

    Returns:
        True if running in Flatpak, False otherwise
    """
    return Path("/.flatpak-info").exists()
