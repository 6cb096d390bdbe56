"""Shared fixtures for the Sitewrap test suite."""

from pathlib import Path
from typing import List, Optional

import pytest

from sitewrap.core.icon_fetcher import IconResult
from sitewrap.core.launcher import (
    LauncherDescriptor,
    NotificationRequest,
    PortalUnavailableError,
    SaveFileRequest,
)
from sitewrap.core.webapp_manager import WebAppManager
from sitewrap.data.permissions import PermissionRepository
from sitewrap.data.registry import AppRegistry
from sitewrap.utils.xdg import ROOT_OVERRIDE_ENV, AppPaths, build_icon_filename


class FakePortal:
    """In-memory stand-in for the portal adapter, recording every call."""

    def __init__(self, supported: bool = True) -> None:
        self.supported = supported
        self.installed: List[LauncherDescriptor] = []
        self.removed: List[str] = []
        self.opened: List[str] = []
        self.notifications: List[NotificationRequest] = []
        self.saved: List[SaveFileRequest] = []

    def _require(self) -> None:
        if not self.supported:
            raise PortalUnavailableError("portal unavailable")

    def is_supported(self) -> bool:
        return self.supported

    def is_open_uri_supported(self) -> bool:
        return self.supported

    def is_file_chooser_supported(self) -> bool:
        return self.supported

    def install_launcher(self, descriptor: LauncherDescriptor) -> None:
        self._require()
        self.installed.append(descriptor)

    def remove_launcher(self, desktop_id: str) -> None:
        self._require()
        self.removed.append(desktop_id)

    def open_uri(self, uri: str) -> None:
        self._require()
        self.opened.append(uri)

    def send_notification(self, request: NotificationRequest) -> None:
        self._require()
        self.notifications.append(request)

    def save_file(self, request: SaveFileRequest) -> Optional[Path]:
        self._require()
        self.saved.append(request)
        return None


class FakeIconFetcher:
    """Writes a tiny PNG ladder without touching the network."""

    calls: List[str] = []

    def fetch_and_cache_icon(self, start_url: str, icon_id: str, cache_dir: Path) -> IconResult:
        FakeIconFetcher.calls.append(start_url)
        cache_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for size in (16, 128):
            path = cache_dir / build_icon_filename(icon_id, size)
            path.write_bytes(b"png")
            paths.append(path)
        return IconResult(icon_id=icon_id, rendered_paths=paths, source_url=None)

    def close(self) -> None:
        pass


@pytest.fixture(autouse=True)
def isolated_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every environment-derived path at the test directory."""
    root = tmp_path / "root"
    monkeypatch.setenv(ROOT_OVERRIDE_ENV, str(root))
    monkeypatch.delenv("SITEWRAP_CEF_ROOT", raising=False)
    monkeypatch.delenv("CEF_ROOT", raising=False)
    return root


@pytest.fixture
def paths(isolated_root: Path) -> AppPaths:
    return AppPaths.for_root(isolated_root)


@pytest.fixture
def registry(paths: AppPaths) -> AppRegistry:
    return AppRegistry(paths)


@pytest.fixture
def permissions(paths: AppPaths) -> PermissionRepository:
    return PermissionRepository(paths)


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def spawned() -> List[List[str]]:
    return []


@pytest.fixture
def manager(
    paths: AppPaths,
    registry: AppRegistry,
    permissions: PermissionRepository,
    portal: FakePortal,
    spawned: List[List[str]],
) -> WebAppManager:
    """WebAppManager running its background jobs synchronously."""
    FakeIconFetcher.calls = []
    return WebAppManager(
        paths,
        registry,
        permissions,
        portal,
        icon_fetcher_factory=FakeIconFetcher,
        run_in_background=lambda job: job(),
        spawn=lambda argv: spawned.append(list(argv)),
    )


@pytest.fixture
def fake_fetcher_cls():
    """The icon fetcher class used by the ``manager`` fixture."""
    return FakeIconFetcher
