"""Web engine dispatch.

Selects the rendering backend for a shell window from the environment
and keeps the global tick hook the application pumps every 16ms. No
backend in this module renders web content: both hand back a
WebViewHandle that the shell window turns into placeholder widgets,
and navigation requests are routed through the callback they carry.
"""

import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

ENGINE_ROOT_ENV_VARS = ("SITEWRAP_CEF_ROOT", "CEF_ROOT")
CORE_LIBRARY = "libcef.so"
EXTERNAL_PLACEHOLDER_URL = "https://example.org"

NavigationHandler = Callable[[str], None]
TickHook = Callable[[], None]


class EngineInitError(Exception):
    """Raised when the engine cannot be prepared for a profile."""

    pass


class EngineMode(Enum):
    """Backend selection outcome."""

    STUB = "stub"
    ENGINE_MISSING = "engine-missing"
    ENGINE_READY = "engine-ready"


@dataclass
class EngineConfig:
    """Engine settings for one shell window.

    Attributes:
        profile_dir: Isolated profile directory of the webapp
        engine_root: Directory holding the engine runtime (optional)
    """

    profile_dir: Path
    engine_root: Optional[Path] = None

    @classmethod
    def from_environment(cls, profile_dir: Path) -> "EngineConfig":
        """Build a config, reading the engine root from the environment."""
        root = None
        for variable in ENGINE_ROOT_ENV_VARS:
            value = os.environ.get(variable)
            if value:
                root = Path(value)
                break
        return cls(profile_dir=Path(profile_dir), engine_root=root)

    def detect_mode(self) -> EngineMode:
        if self.engine_root is None:
            return EngineMode.STUB
        if (self.engine_root / CORE_LIBRARY).exists():
            return EngineMode.ENGINE_READY
        return EngineMode.ENGINE_MISSING


@dataclass
class WebViewHandle:
    """Toolkit-neutral stand-in for a web view.

    Attributes:
        start_url: URL the view was opened with
        mode: Backend mode that produced the view
        caption: Text shown in place of page content
        placeholder_targets: (label, url) pairs offered as navigation buttons
    """

    start_url: str
    mode: EngineMode
    caption: str
    placeholder_targets: List[Tuple[str, str]] = field(default_factory=list)
    on_navigation: Optional[NavigationHandler] = None

    def navigate(self, url: str) -> None:
        """Report a navigation request to the owner of the view."""
        logger.debug(f"Navigation requested: {url}")
        if self.on_navigation is not None:
            self.on_navigation(url)


class _Backend:
    caption = ""

    def __init__(self, config: EngineConfig, mode: EngineMode) -> None:
        self.config = config
        self.mode = mode

    def build_web_view(
        self, start_url: str, on_navigation: Optional[NavigationHandler]
    ) -> WebViewHandle:
        return WebViewHandle(
            start_url=start_url,
            mode=self.mode,
            caption=self.caption,
            placeholder_targets=[
                ("Navigate (same origin)", start_url),
                ("Navigate external example.org", EXTERNAL_PLACEHOLDER_URL),
            ],
            on_navigation=on_navigation,
        )

    def tick_hook(self) -> Optional[TickHook]:
        """Per-backend message loop pump; None when nothing needs pumping."""
        return None


class StubBackend(_Backend):
    caption = "Web view placeholder\nNavigation hooks are stubbed"


class PlaceholderBackend(_Backend):
    """Used when the engine runtime is present but no bindings are wired."""

    caption = "Engine runtime detected; rendering stub until the backend is wired"


class Engine:
    """Per-window engine front end."""

    def __init__(self, config: EngineConfig) -> None:
        """Initialize engine and select the backend.

        Args:
            config: Engine configuration

        Raises:
            EngineInitError: If the profile directory cannot be created
        """
        self.config = config
        self.mode = config.detect_mode()

        try:
            config.profile_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EngineInitError(f"Cannot create profile {config.profile_dir}: {e}") from e

        logger.info(
            "Initializing engine (profile=%s, mode=%s, root=%s)",
            config.profile_dir,
            self.mode.value,
            config.engine_root,
        )

        if self.mode is EngineMode.ENGINE_READY:
            self.backend: _Backend = PlaceholderBackend(config, self.mode)
        else:
            self.backend = StubBackend(config, self.mode)

        set_tick_hook(self.backend.tick_hook())

    def build_web_view(
        self,
        start_url: str,
        on_navigation: Optional[NavigationHandler] = None,
    ) -> WebViewHandle:
        """Create a web view for ``start_url``.

        Args:
            start_url: URL to open
            on_navigation: Called with every URL the view wants to visit

        Returns:
            WebViewHandle
        """
        return self.backend.build_web_view(start_url, on_navigation)


_tick_lock = threading.Lock()
_tick_hook: Optional[TickHook] = None
_ticking = False
_shut_down = False


def set_tick_hook(hook: Optional[TickHook]) -> None:
    """Replace the global tick hook (None clears it)."""
    global _tick_hook
    with _tick_lock:
        _tick_hook = hook


def init() -> None:
    """Prepare the engine for the process."""
    global _shut_down
    with _tick_lock:
        _shut_down = False
    logger.info("Engine init (stub)")


def tick() -> None:
    """Pump the engine message loop once.

    Nested calls and calls after shutdown return immediately.
    """
    global _ticking
    with _tick_lock:
        if _ticking or _shut_down or _tick_hook is None:
            return
        hook = _tick_hook
        _ticking = True

    try:
        hook()
    finally:
        with _tick_lock:
            _ticking = False


def shutdown() -> None:
    """Stop pumping and drop the tick hook."""
    global _tick_hook, _shut_down
    with _tick_lock:
        _tick_hook = None
        _shut_down = True
    logger.info("Engine shutdown (stub)")
