"""Tests for URL normalization and origin derivation."""

import pytest

from sitewrap.utils.validators import (
    InvalidUrlError,
    ValidationError,
    host_of,
    normalize_url,
    origin_for,
    parse_origin,
    validate_webapp_name,
)


class TestNormalizeUrl:
    """Tests for normalize_url."""

    def test_bare_host_gets_https(self) -> None:
        assert normalize_url("example.com") == "https://example.com/"

    def test_whitespace_is_trimmed(self) -> None:
        assert normalize_url("  https://example.com/app  ") == "https://example.com/app"

    def test_scheme_check_is_case_insensitive(self) -> None:
        assert normalize_url("HTTP://Example.COM/Path") == "http://example.com/Path"

    def test_http_is_kept(self) -> None:
        assert normalize_url("http://example.com") == "http://example.com/"

    def test_default_port_is_dropped(self) -> None:
        assert normalize_url("https://example.com:443/x") == "https://example.com/x"

    def test_other_port_is_kept(self) -> None:
        assert normalize_url("http://localhost:8080") == "http://localhost:8080/"

    def test_query_and_fragment_survive(self) -> None:
        assert normalize_url("example.com/a?b=1#top") == "https://example.com/a?b=1#top"

    def test_spaces_in_path_are_percent_encoded(self) -> None:
        assert normalize_url("example.com/a b") == "https://example.com/a%20b"

    def test_unicode_host_is_punycoded(self) -> None:
        assert normalize_url("https://bücher.example/") == "https://xn--bcher-kva.example/"

    @pytest.mark.parametrize("text", ["", "   ", "https://", "http://exa mple.com"])
    def test_invalid_input(self, text: str) -> None:
        with pytest.raises(InvalidUrlError):
            normalize_url(text)

    def test_invalid_url_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            normalize_url("")


class TestOrigins:
    """Tests for origin_for and parse_origin."""

    def test_origin_omits_path(self) -> None:
        assert origin_for("https://example.com/a/b?c") == "https://example.com"

    def test_default_port_equivalence(self) -> None:
        assert origin_for("https://a.test:443/x") == origin_for("https://a.test/y")

    def test_non_default_port(self) -> None:
        assert origin_for("http://a.test:8080/") == "http://a.test:8080"

    def test_scheme_distinguishes_origins(self) -> None:
        assert origin_for("http://a.test/") != origin_for("https://a.test/")

    @pytest.mark.parametrize("url", ["mailto:someone@example.com", "file:///tmp/x", "not a url"])
    def test_opaque_origins_are_rejected(self, url: str) -> None:
        with pytest.raises(InvalidUrlError):
            origin_for(url)

    def test_origin_of_normalized_url(self) -> None:
        assert origin_for(normalize_url("Example.com:443/path")) == "https://example.com"

    def test_parse_origin_accepts_bare_host(self) -> None:
        assert parse_origin("example.org") == "https://example.org"

    def test_parse_origin_accepts_url(self) -> None:
        assert parse_origin("http://example.org:81/x") == "http://example.org:81"

    def test_parse_origin_rejects_empty(self) -> None:
        with pytest.raises(InvalidUrlError):
            parse_origin("  ")


class TestNames:
    """Tests for display name helpers."""

    def test_host_of(self) -> None:
        assert host_of("https://www.example.com/x") == "www.example.com"
        assert host_of("nonsense") == ""

    def test_name_is_trimmed(self) -> None:
        assert validate_webapp_name("  Mail  ") == "Mail"

    def test_empty_name_is_allowed(self) -> None:
        assert validate_webapp_name("") == ""

    def test_control_characters_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_webapp_name("Mail\nBox")
