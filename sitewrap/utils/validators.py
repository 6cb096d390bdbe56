"""Input validation utilities.

This module turns what users type into the canonical URL and origin
strings stored in the registry and permission files.
"""

from urllib.parse import quote, urlsplit, urlunsplit

import validators as external_validators

_DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when re-quoting already-typed URL parts
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
_QUERY_SAFE = _PATH_SAFE + "?"


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


class InvalidUrlError(ValidationError):
    """Raised when text cannot be turned into an absolute http(s) URL."""

    pass


def _has_http_scheme(text: str) -> bool:
    lowered = text.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def _encode_host(host: str) -> str:
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise InvalidUrlError(f"Invalid host name: {host}") from e


def normalize_url(text: str) -> str:
    """Normalize user input into an absolute http(s) URL.

    Input without an ``http://`` or ``https://`` prefix gets ``https://``
    prepended, so ``example.com`` becomes ``https://example.com/``.

    Args:
        text: URL as typed by the user

    Returns:
        Normalized URL string

    Raises:
        InvalidUrlError: If the text does not form a valid URL
    """
    if not text or not text.strip():
        raise InvalidUrlError("Please enter a URL")

    candidate = text.strip()
    if not _has_http_scheme(candidate):
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL: {text.strip()}") from e

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not host:
        raise InvalidUrlError(f"URL has no host: {text.strip()}")

    host = _encode_host(host)
    netloc = host
    if ":" in host:
        netloc = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path, safe=_PATH_SAFE) or "/"
    query = quote(parts.query, safe=_QUERY_SAFE)
    fragment = quote(parts.fragment, safe=_QUERY_SAFE)
    normalized = urlunsplit((scheme, netloc, path, query, fragment))

    if not external_validators.url(normalized, simple_host=True, strict_query=False):
        raise InvalidUrlError(f"Invalid URL: {text.strip()}")

    return normalized


def origin_for(url: str) -> str:
    """Return the ASCII serialization of a URL's origin.

    Default ports are omitted, so ``https://a.test:443/x`` and
    ``https://a.test/y`` share the origin ``https://a.test``.

    Args:
        url: Absolute URL

    Returns:
        Origin string ``scheme://host[:port]``

    Raises:
        InvalidUrlError: If the URL has an opaque origin (no host, or a
            scheme other than http/https)
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except (AttributeError, ValueError) as e:
        raise InvalidUrlError(f"Invalid URL: {url}") from e

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise InvalidUrlError(f"URL has an opaque origin: {url}")

    host = parts.hostname
    if not host:
        raise InvalidUrlError(f"URL has no host: {url}")

    host = _encode_host(host)
    if ":" in host:
        host = f"[{host}]"
    if port is None or port == _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def parse_origin(text: str) -> str:
    """Derive an origin from a URL or a bare host name.

    Args:
        text: Either an absolute URL or something like ``example.org``

    Returns:
        Origin string

    Raises:
        InvalidUrlError: If no origin can be derived
    """
    value = (text or "").strip()
    if not value:
        raise InvalidUrlError("Please enter an origin")

    try:
        return origin_for(value)
    except InvalidUrlError:
        return origin_for(f"https://{value}")


def host_of(url: str) -> str:
    """Return the host of a URL, or an empty string."""
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


def validate_webapp_name(name: str) -> str:
    """Clean up a webapp display name.

    Args:
        name: Name as typed by the user

    Returns:
        Trimmed name (may be empty, meaning "derive from the URL")

    Raises:
        ValidationError: If the name contains control characters
    """
    cleaned = (name or "").strip()
    if any(ord(char) < 32 for char in cleaned):
        raise ValidationError("Name must not contain control characters")
    return cleaned
