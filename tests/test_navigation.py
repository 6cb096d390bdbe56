"""Tests for the shell navigation policy."""

import gc
from typing import List

import pytest

from sitewrap.core.launcher import PortalError
from sitewrap.core.navigation import (
    NAVIGATED_MESSAGE,
    OPAQUE_ORIGIN,
    OPENED_EXTERNALLY_MESSAGE,
    ShellSession,
    is_external_navigation,
    navigation_origin,
)
from sitewrap.data.models import BehaviorConfig, WebAppDefinition


@pytest.fixture
def webapp() -> WebAppDefinition:
    return WebAppDefinition.new("Example", "https://example.com/")


class TestExternalPolicy:
    """Tests for is_external_navigation."""

    def test_same_origin_stays(self, webapp: WebAppDefinition) -> None:
        assert not is_external_navigation(webapp, "https://example.com/inbox")

    def test_default_port_is_same_origin(self, webapp: WebAppDefinition) -> None:
        assert not is_external_navigation(webapp, "https://example.com:443/x")

    def test_other_origin_leaves(self, webapp: WebAppDefinition) -> None:
        assert is_external_navigation(webapp, "https://example.org")

    def test_subdomain_is_another_origin(self, webapp: WebAppDefinition) -> None:
        assert is_external_navigation(webapp, "https://www.example.com/")

    def test_scheme_change_is_another_origin(self, webapp: WebAppDefinition) -> None:
        assert is_external_navigation(webapp, "http://example.com/")

    def test_disabled_keeps_everything_inside(self) -> None:
        webapp = WebAppDefinition.new(
            "", "example.com", BehaviorConfig(open_external_links=False)
        )
        assert not is_external_navigation(webapp, "https://example.org")

    @pytest.mark.parametrize(
        "target",
        [
            "about:blank",
            "mailto:someone@example.org",
            "tel:+123",
            "ftp://files.example.org/x",
            "file:///etc/passwd",
        ],
    )
    def test_non_web_scheme_leaves(self, webapp: WebAppDefinition, target: str) -> None:
        assert navigation_origin(target) == OPAQUE_ORIGIN
        assert is_external_navigation(webapp, target)

    @pytest.mark.parametrize("target", ["", "   ", "/relative/path", "https://"])
    def test_unparsable_target_stays(self, webapp: WebAppDefinition, target: str) -> None:
        assert navigation_origin(target) is None
        assert not is_external_navigation(webapp, target)


class TestShellSession:
    """Tests for ShellSession."""

    def test_external_link_is_delegated(self, webapp: WebAppDefinition, portal) -> None:
        messages: List[str] = []
        session = ShellSession(webapp, portal, notify=messages.append)

        assert session.handle_navigation_request("https://example.org") is True
        assert portal.opened == ["https://example.org"]
        assert session.current_url == "https://example.com/"
        assert messages == [OPENED_EXTERNALLY_MESSAGE]

    def test_mailto_link_keeps_current_url(self, webapp: WebAppDefinition, portal) -> None:
        session = ShellSession(webapp, portal)

        assert session.handle_navigation_request("mailto:someone@example.org") is True
        assert portal.opened == ["mailto:someone@example.org"]
        assert session.current_url == "https://example.com/"

    def test_internal_link_becomes_current(self, webapp: WebAppDefinition, portal) -> None:
        messages: List[str] = []
        session = ShellSession(webapp, portal, notify=messages.append)

        assert session.handle_navigation_request("https://example.com/next") is False
        assert portal.opened == []
        assert session.current_url == "https://example.com/next"
        assert messages == [NAVIGATED_MESSAGE]

    def test_reset_returns_to_start(self, webapp: WebAppDefinition, portal) -> None:
        session = ShellSession(webapp, portal)
        session.handle_navigation_request("https://example.com/deep")
        session.reset()
        assert session.current_url == webapp.start_url

    def test_portal_failure_propagates(self, webapp: WebAppDefinition, portal) -> None:
        portal.supported = False
        session = ShellSession(webapp, portal)

        with pytest.raises(PortalError):
            session.handle_navigation_request("https://example.org")

    def test_handler_reports_errors(self, webapp: WebAppDefinition, portal) -> None:
        portal.supported = False
        errors = []
        session = ShellSession(webapp, portal)
        handler = session.navigation_handler(on_error=lambda target, e: errors.append(target))

        handler("https://example.org")

        assert errors == ["https://example.org"]

    def test_handler_does_not_keep_session_alive(self, webapp: WebAppDefinition, portal) -> None:
        session = ShellSession(webapp, portal)
        handler = session.navigation_handler()
        del session
        gc.collect()

        handler("https://example.org")

        assert portal.opened == []

    def test_sample_notification(self, webapp: WebAppDefinition, portal) -> None:
        request = ShellSession(webapp, portal).sample_notification()

        assert request.app_id == webapp.icon_id
        assert request.title == "Example says hi"
        assert request.body == "Sample notification for https://example.com"

    def test_page_export(self, portal) -> None:
        webapp = WebAppDefinition.new("My Mail", "mail.example.com")
        session = ShellSession(webapp, portal)
        session.handle_navigation_request("https://mail.example.com/inbox")

        request = session.page_export()

        assert request.suggested_name == "My_Mail-page.txt"
        assert request.content == b"Export for My Mail\nURL: https://mail.example.com/inbox\n"
