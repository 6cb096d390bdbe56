"""Navigation policy for shell windows.

Decides whether a navigation stays inside the webapp or is handed to
the user's default browser, and tracks the URL the shell is showing.
"""

import re
import weakref
from typing import Callable, Optional

from ..data.models import WebAppDefinition
from ..utils.logger import get_logger
from ..utils.validators import InvalidUrlError, origin_for
from .launcher import NotificationRequest, SaveFileRequest

logger = get_logger(__name__)

NAVIGATED_MESSAGE = "Navigated"
OPENED_EXTERNALLY_MESSAGE = "Opened externally"

OPAQUE_ORIGIN = "null"
WEB_SCHEMES = ("http", "https")

_SCHEME_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*):")

Notifier = Callable[[str], None]


def navigation_origin(target: str) -> Optional[str]:
    """Origin of a navigation target.

    Targets without a URL scheme, and http(s) URLs that do not parse,
    yield None. Any other scheme (``mailto:``, ``ftp:``, ``about:``...)
    yields the opaque origin ``"null"``, which never equals a webapp
    origin.

    Args:
        target: URL the page wants to open

    Returns:
        Serialized origin, ``"null"``, or None if the target is not a URL
    """
    candidate = target.strip()
    match = _SCHEME_PATTERN.match(candidate)
    if match is None:
        return None

    try:
        return origin_for(candidate)
    except InvalidUrlError:
        if match.group(1).lower() in WEB_SCHEMES:
            return None
        return OPAQUE_ORIGIN


def is_external_navigation(definition: WebAppDefinition, target: str) -> bool:
    """Check whether ``target`` should leave the webapp.

    Args:
        definition: Webapp being navigated
        target: URL the page wants to open

    Returns:
        True if the URL belongs to another origin (opaque origins
        included) and external links are enabled for the webapp
    """
    if not definition.behavior.open_external_links:
        return False

    target_origin = navigation_origin(target)
    if target_origin is None:
        return False

    return target_origin != definition.primary_origin


class ShellSession:
    """State of one shell window: the webapp and its current URL."""

    def __init__(
        self,
        definition: WebAppDefinition,
        portal,
        notify: Optional[Notifier] = None,
    ) -> None:
        """Initialize session.

        Args:
            definition: Webapp shown by the shell
            portal: Portal adapter used to open external links
            notify: Called with short user-facing messages (toasts)
        """
        self.definition = definition
        self.portal = portal
        self.notify = notify
        self.current_url = definition.start_url

    def _notify(self, message: str) -> None:
        if self.notify is not None:
            self.notify(message)

    def handle_navigation_request(self, target: str) -> bool:
        """Route a navigation request from the engine.

        External targets go to the default handler through the portal and
        leave the current URL untouched; internal ones become current.

        Args:
            target: Requested URL

        Returns:
            True if the navigation was delegated externally

        Raises:
            PortalError: If the portal fails to open an external target
        """
        if is_external_navigation(self.definition, target):
            logger.info(f"Opening external link {target}")
            self.portal.open_uri(target)
            self._notify(OPENED_EXTERNALLY_MESSAGE)
            return True

        logger.debug(f"Navigating to {target}")
        self.current_url = target
        self._notify(NAVIGATED_MESSAGE)
        return False

    def reset(self) -> None:
        """Go back to the start URL (after clearing data)."""
        self.current_url = self.definition.start_url

    def navigation_handler(
        self, on_error: Optional[Callable[[str, Exception], None]] = None
    ) -> Callable[[str], None]:
        """Return a callback for the engine bound weakly to this session.

        The engine keeps the callback alive; holding only a weak reference
        lets the session (and its window) go away independently.

        Args:
            on_error: Called with the target and the exception when routing
                fails

        Returns:
            Navigation callback
        """
        session_ref = weakref.ref(self)

        def on_navigation(target: str) -> None:
            session = session_ref()
            if session is None:
                logger.debug(f"Dropping navigation to {target}: session closed")
                return
            try:
                session.handle_navigation_request(target)
            except Exception as e:
                logger.error(f"Navigation to {target} failed: {e}")
                if on_error is None:
                    raise
                on_error(target, e)

        return on_navigation

    def sample_notification(self) -> NotificationRequest:
        """Notification sent by the shell's "Test Notification" action."""
        return NotificationRequest(
            app_id=self.definition.icon_id,
            title=f"{self.definition.name} says hi",
            body=f"Sample notification for {self.definition.primary_origin}",
            icon=self.definition.icon_id,
        )

    def page_export(self) -> SaveFileRequest:
        """Plain-text export of the current page for "Save Page As…"."""
        return SaveFileRequest(
            title=f"Save page - {self.definition.name}",
            suggested_name=f"{self.definition.name.replace(' ', '_')}-page.txt",
            content=(
                f"Export for {self.definition.name}\nURL: {self.current_url}\n"
            ).encode("utf-8"),
        )
