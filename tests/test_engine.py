"""Tests for engine mode selection and the tick hook."""

from pathlib import Path
from typing import List

import pytest

from sitewrap.webengine import engine
from sitewrap.webengine.engine import (
    EXTERNAL_PLACEHOLDER_URL,
    Engine,
    EngineConfig,
    EngineInitError,
    EngineMode,
)


@pytest.fixture(autouse=True)
def fresh_engine():
    engine.init()
    engine.set_tick_hook(None)
    yield
    engine.set_tick_hook(None)
    engine.init()


class TestEngineConfig:
    """Tests for backend selection."""

    def test_stub_without_root(self, tmp_path: Path) -> None:
        config = EngineConfig.from_environment(tmp_path / "profile")
        assert config.engine_root is None
        assert config.detect_mode() is EngineMode.STUB

    def test_missing_runtime(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CEF_ROOT", str(tmp_path / "cef"))
        config = EngineConfig.from_environment(tmp_path / "profile")
        assert config.detect_mode() is EngineMode.ENGINE_MISSING

    def test_runtime_present(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = tmp_path / "cef"
        root.mkdir()
        (root / "libcef.so").write_bytes(b"")
        monkeypatch.setenv("SITEWRAP_CEF_ROOT", str(root))
        monkeypatch.setenv("CEF_ROOT", str(tmp_path / "elsewhere"))

        config = EngineConfig.from_environment(tmp_path / "profile")

        assert config.engine_root == root
        assert config.detect_mode() is EngineMode.ENGINE_READY


class TestEngine:
    """Tests for Engine and its web views."""

    def test_creates_profile_directory(self, tmp_path: Path) -> None:
        profile = tmp_path / "profiles" / "abc"
        Engine(EngineConfig(profile_dir=profile))
        assert profile.is_dir()

    def test_unwritable_profile(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(EngineInitError):
            Engine(EngineConfig(profile_dir=blocker / "profile"))

    def test_placeholder_targets(self, tmp_path: Path) -> None:
        view = Engine(EngineConfig(profile_dir=tmp_path)).build_web_view("https://a.test/")

        assert view.mode is EngineMode.STUB
        assert view.caption
        assert [url for _, url in view.placeholder_targets] == [
            "https://a.test/",
            EXTERNAL_PLACEHOLDER_URL,
        ]

    def test_navigation_goes_to_callback(self, tmp_path: Path) -> None:
        seen: List[str] = []
        view = Engine(EngineConfig(profile_dir=tmp_path)).build_web_view(
            "https://a.test/", on_navigation=seen.append
        )

        view.navigate("https://a.test/next")

        assert seen == ["https://a.test/next"]


class TestTick:
    """Tests for the global tick hook."""

    def test_tick_without_hook(self) -> None:
        engine.tick()

    def test_tick_calls_hook(self) -> None:
        calls: List[int] = []
        engine.set_tick_hook(lambda: calls.append(1))

        engine.tick()
        engine.tick()

        assert calls == [1, 1]

    def test_tick_is_not_reentrant(self) -> None:
        calls: List[int] = []

        def hook() -> None:
            calls.append(1)
            engine.tick()

        engine.set_tick_hook(hook)
        engine.tick()

        assert calls == [1]

    def test_hook_error_releases_guard(self) -> None:
        def failing() -> None:
            raise RuntimeError("boom")

        engine.set_tick_hook(failing)
        with pytest.raises(RuntimeError):
            engine.tick()

        calls: List[int] = []
        engine.set_tick_hook(lambda: calls.append(1))
        engine.tick()
        assert calls == [1]

    def test_no_tick_after_shutdown(self) -> None:
        calls: List[int] = []
        engine.set_tick_hook(lambda: calls.append(1))

        engine.shutdown()
        engine.set_tick_hook(lambda: calls.append(2))
        engine.tick()

        assert calls == []
