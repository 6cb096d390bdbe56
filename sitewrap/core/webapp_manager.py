"""WebApp management and lifecycle.

This module is the core business logic for managing webapps: creating,
editing, launching, resetting and removing them, and keeping the
registry, the permission store, the cached icons, the profile
directories and the desktop launchers consistent with each other.
"""

import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union
from uuid import UUID

from ..data.models import (
    BehaviorConfig,
    PermissionKind,
    PermissionState,
    PermissionStore,
    WebAppDefinition,
)
from ..data.permissions import PermissionRepository
from ..data.registry import AppRegistry
from ..utils.logger import Logger, get_logger
from ..utils.validators import parse_origin, validate_webapp_name
from ..utils.xdg import AppPaths, build_desktop_id, build_icon_id
from .icon_fetcher import IconFetcher
from .launcher import (
    LauncherDescriptor,
    PortalError,
    launcher_descriptor_for,
    shell_command,
)

logger = get_logger(__name__)

WebAppId = Union[UUID, str]
Job = Callable[[], None]
RunInBackground = Callable[[Job], None]
PostToUi = Callable[..., None]
Spawner = Callable[[Sequence[str]], Any]

REMOVED_DURING_JOB = "Web app was removed before integration finished"


@dataclass
class BackgroundResult:
    """Outcome of the icon/launcher job that follows a create or edit.

    Attributes:
        app_id: Webapp the job ran for
        icon_paths: Rendered icon files (empty if no fetch was needed)
        launcher_installed: Whether the portal accepted the launcher
        errors: Human-readable failures, in order
    """

    app_id: UUID
    icon_paths: List[Path] = field(default_factory=list)
    launcher_installed: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def run_in_thread(job: Job) -> None:
    """Run a job on a daemon thread."""
    threading.Thread(target=job, daemon=True).start()


def call_directly(callback: Callable[..., Any], *args: Any) -> None:
    callback(*args)


def spawn_detached(argv: Sequence[str]) -> subprocess.Popen:
    """Start a process detached from the manager's session."""
    return subprocess.Popen(
        list(argv),
        start_new_session=True,  # Detach from parent process
        stdout=subprocess.DEVNULL if not Logger.is_debug_mode() else None,
        stderr=subprocess.DEVNULL if not Logger.is_debug_mode() else None,
    )


class WebAppManager:
    """Manages webapp lifecycle and operations.

    This is the main business logic class that coordinates:
    - Registry and permission persistence
    - Icon fetching (on a background worker)
    - Desktop launchers through the portal
    - Profile and cache cleanup
    """

    def __init__(
        self,
        paths: AppPaths,
        registry: AppRegistry,
        permissions: PermissionRepository,
        portal,
        icon_fetcher_factory: Optional[Callable[[], IconFetcher]] = None,
        run_in_background: Optional[RunInBackground] = None,
        post_to_ui: Optional[PostToUi] = None,
        spawn: Optional[Spawner] = None,
    ) -> None:
        """Initialize webapp manager.

        Args:
            paths: Resolved application paths
            registry: Webapp definition store
            permissions: Permission store
            portal: Portal adapter for launchers
            icon_fetcher_factory: Creates an IconFetcher per job
            run_in_background: Runs a job off the UI thread (daemon thread
                by default)
            post_to_ui: Delivers a completion callback on the UI thread
                (called directly by default)
            spawn: Starts a shell process from an argv list
        """
        self.paths = paths
        self.registry = registry
        self.permissions = permissions
        self.portal = portal
        self._icon_fetcher_factory = icon_fetcher_factory or IconFetcher
        self._run_in_background = run_in_background or run_in_thread
        self._post_to_ui = post_to_ui or call_directly
        self._spawn = spawn or spawn_detached
        logger.info("WebAppManager initialized")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_webapps(self) -> List[WebAppDefinition]:
        """Get all webapps sorted by name (case-insensitive).

        Returns:
            List of definitions
        """
        return sorted(self.registry.list(), key=lambda app: (app.name.casefold(), str(app.id)))

    def search_webapps(self, query: str) -> List[WebAppDefinition]:
        """Search webapps.

        Matches the name, start URL and origin. The words "external" and
        "navigation" (or a prefix of them) also match webapps that have
        the corresponding behavior enabled.

        Args:
            query: Search string

        Returns:
            List of matching definitions, sorted by name
        """
        webapps = self.get_all_webapps()
        needle = (query or "").strip().lower()
        if not needle:
            return webapps

        def matches(app: WebAppDefinition) -> bool:
            return (
                needle in app.name.lower()
                or needle in app.start_url.lower()
                or needle in app.primary_origin.lower()
                or (app.behavior.open_external_links and needle in "external")
                or (app.behavior.show_navigation and needle in "navigation")
            )

        return [app for app in webapps if matches(app)]

    def get_webapp(self, webapp_id: WebAppId) -> WebAppDefinition:
        """Get webapp by ID.

        Raises:
            NotFoundError: If the webapp does not exist
            ParseError: If its definition is malformed
        """
        return self.registry.load(webapp_id)

    def launcher_descriptor_for(self, definition: WebAppDefinition) -> LauncherDescriptor:
        return launcher_descriptor_for(definition, self.paths)

    # ------------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------------

    def create_webapp(
        self,
        url: str,
        name: str = "",
        open_external_links: bool = True,
        show_navigation: bool = False,
        on_complete: Optional[Callable[[BackgroundResult], None]] = None,
    ) -> WebAppDefinition:
        """Create a new webapp.

        The definition is saved before the icon fetch and launcher install
        start on the background worker.

        Args:
            url: Start URL as typed by the user
            name: Display name; empty means "use the host"
            open_external_links: Open other origins in the default browser
            show_navigation: Show navigation controls in the shell
            on_complete: Receives the BackgroundResult on the UI thread

        Returns:
            The saved definition

        Raises:
            ValidationError: If the URL or name is invalid
            OSError: If the definition cannot be saved
        """
        cleaned_name = validate_webapp_name(name)
        definition = WebAppDefinition.new(
            cleaned_name,
            url,
            BehaviorConfig(
                open_external_links=open_external_links,
                show_navigation=show_navigation,
            ),
        )
        logger.info(f"Creating new webapp: {definition.name} ({definition.start_url})")

        self.registry.save(definition)
        self._schedule_integration(definition, fetch_icons=True, on_complete=on_complete)

        logger.info(f"WebApp created successfully: {definition.id}")
        return definition

    def update_webapp(
        self,
        webapp_id: WebAppId,
        url: str,
        name: str,
        open_external_links: bool,
        show_navigation: bool,
        on_complete: Optional[Callable[[BackgroundResult], None]] = None,
    ) -> WebAppDefinition:
        """Update webapp information.

        Icons are refetched only when the start URL changed; the launcher
        is reinstalled in every case so its name follows the registry.

        Returns:
            The saved definition

        Raises:
            NotFoundError: If the webapp does not exist
            ValidationError: If the URL or name is invalid
            OSError: If the definition cannot be saved
        """
        definition = self.registry.load(webapp_id)
        logger.info(f"Updating webapp: {definition.id}")

        cleaned_name = validate_webapp_name(name)
        url_changed = definition.set_start_url(url)
        definition.set_name(cleaned_name)
        definition.behavior.open_external_links = open_external_links
        definition.behavior.show_navigation = show_navigation

        self.registry.save(definition)
        self._schedule_integration(definition, fetch_icons=url_changed, on_complete=on_complete)

        logger.debug(f"WebApp updated: {definition.id} (url_changed={url_changed})")
        return definition

    def _schedule_integration(
        self,
        definition: WebAppDefinition,
        fetch_icons: bool,
        on_complete: Optional[Callable[[BackgroundResult], None]],
    ) -> None:
        def job() -> None:
            result = self.run_integration(definition, fetch_icons)
            if on_complete is not None:
                self._post_to_ui(on_complete, result)

        self._run_in_background(job)

    def run_integration(self, definition: WebAppDefinition, fetch_icons: bool) -> BackgroundResult:
        """Fetch icons (optionally) and install the launcher.

        Never raises: failures are logged and collected in the result.

        Args:
            definition: Saved webapp definition
            fetch_icons: Whether to refresh the icon cache first

        Returns:
            BackgroundResult
        """
        result = BackgroundResult(app_id=definition.id)

        if not self.registry.exists(definition.id):
            logger.info(f"Skipping integration for removed webapp {definition.id}")
            result.errors.append(REMOVED_DURING_JOB)
            return result

        if fetch_icons:
            try:
                fetcher = self._icon_fetcher_factory()
                try:
                    icons = fetcher.fetch_and_cache_icon(
                        definition.start_url,
                        definition.icon_id,
                        self.paths.icons_cache_dir(),
                    )
                finally:
                    fetcher.close()
                result.icon_paths = list(icons.rendered_paths)
            except Exception as e:
                logger.error(f"Failed to cache icons for {definition.id}: {e}", exc_info=True)
                result.errors.append(f"Icon cache failed: {e}")

        if not self.registry.exists(definition.id):
            logger.info(f"Webapp {definition.id} removed while fetching icons")
            try:
                self.paths.delete_icons_for(definition.icon_id)
            except OSError as e:
                logger.error(f"Failed to drop icons of removed webapp {definition.id}: {e}")
            result.icon_paths = []
            result.errors.append(REMOVED_DURING_JOB)
            return result

        try:
            self.portal.install_launcher(self.launcher_descriptor_for(definition))
            result.launcher_installed = True
        except PortalError as e:
            logger.warning(f"Launcher install failed for {definition.id}: {e}")
            result.errors.append(f"Launcher install failed: {e}")
        except Exception as e:
            logger.error(f"Launcher install failed for {definition.id}: {e}", exc_info=True)
            result.errors.append(f"Launcher install failed: {e}")

        return result

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    def record_launch(self, webapp_id: WebAppId) -> WebAppDefinition:
        """Stamp ``last_launched_at`` and persist it.

        Raises:
            NotFoundError: If the webapp does not exist
        """
        definition = self.registry.load(webapp_id)
        definition.mark_launched()
        self.registry.save(definition)
        logger.debug(f"Recorded launch of {definition.id}")
        return definition

    def launch_webapp(self, webapp_id: WebAppId) -> WebAppDefinition:
        """Record the launch and start the webapp shell in its own process.

        Raises:
            NotFoundError: If the webapp does not exist
            OSError: If the shell process cannot be started
        """
        definition = self.record_launch(webapp_id)
        argv = shell_command(str(definition.id))
        logger.info(f"Launching webapp {definition.name}: {' '.join(argv)}")
        self._spawn(argv)
        return definition

    # ------------------------------------------------------------------
    # Reset / remove
    # ------------------------------------------------------------------

    def reset_webapp(self, webapp_id: WebAppId) -> None:
        """Delete permissions, profile data and cached icons.

        The registry entry and the launcher stay in place.

        Raises:
            OSError: If a file cannot be removed
        """
        webapp_id = str(webapp_id)
        logger.warning(f"Resetting webapp data: {webapp_id}")

        self.permissions.delete(webapp_id)
        self.paths.delete_profile_dir(webapp_id)
        removed = self.paths.delete_icons_for(build_icon_id(webapp_id))
        logger.debug(f"Reset {webapp_id}: removed {len(removed)} cached icons")

    def remove_webapp(self, webapp_id: WebAppId) -> bool:
        """Delete a webapp and all its data.

        Launcher removal failures are logged and do not stop the removal.

        Returns:
            True if the launcher was removed as well

        Raises:
            OSError: If local files cannot be removed
        """
        webapp_id = str(webapp_id)
        logger.warning(f"Removing webapp: {webapp_id}")

        self.reset_webapp(webapp_id)
        self.registry.delete(webapp_id)

        desktop_id = build_desktop_id(build_icon_id(webapp_id))
        try:
            self.portal.remove_launcher(desktop_id)
        except PortalError as e:
            logger.warning(f"Failed to remove launcher {desktop_id}: {e}")
            return False

        logger.info(f"WebApp removed: {webapp_id}")
        return True

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def load_permissions_for_editing(self, webapp_id: WebAppId) -> PermissionStore:
        """Load a permission store with the primary origin materialized.

        The store is written back so the primary origin appears on disk.

        Raises:
            NotFoundError: If the webapp does not exist
            ParseError: If the stored permissions are malformed
        """
        definition = self.registry.load(webapp_id)
        store = self.permissions.load(definition.id)
        store.get_or_default(definition.primary_origin)
        self.permissions.save(definition.id, store)
        return store

    def set_permission(
        self,
        webapp_id: WebAppId,
        origin: str,
        kind: PermissionKind,
        state: PermissionState,
    ) -> PermissionStore:
        """Store one permission decision and save immediately."""
        store = self.permissions.load(webapp_id)
        store.get_or_default(origin).set(kind, state)
        self.permissions.save(webapp_id, store)
        logger.info(f"Permission {PermissionKind(kind).value} for {origin} set to {PermissionState(state).value}")
        return store

    def add_permission_origin(self, webapp_id: WebAppId, text: str) -> str:
        """Add an origin with default permissions.

        Args:
            webapp_id: UUID of the webapp
            text: URL or bare host typed by the user

        Returns:
            The origin that was added (or already present)

        Raises:
            InvalidUrlError: If no origin can be derived from the text
        """
        origin = parse_origin(text)
        store = self.permissions.load(webapp_id)
        store.get_or_default(origin)
        self.permissions.save(webapp_id, store)
        logger.debug(f"Added permission origin {origin} for {webapp_id}")
        return origin

    def notification_permission(self, definition: WebAppDefinition) -> PermissionState:
        """Stored notification decision for the primary origin."""
        store = self.permissions.load(definition.id)
        entry = store.origins.get(definition.primary_origin)
        return entry.notifications if entry is not None else PermissionState.ASK

    def set_notification_permission(
        self, definition: WebAppDefinition, state: PermissionState
    ) -> None:
        self.set_permission(
            definition.id, definition.primary_origin, PermissionKind.NOTIFICATIONS, state
        )
