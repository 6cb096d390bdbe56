"""Automatic favicon fetching and processing.

This module handles icon detection and download from websites, decodes
whatever the site serves (ICO containers included), renders the fixed
size ladder used by launchers and falls back to a generated letter
icon when nothing usable is found.
"""

import hashlib
import io
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup
from PIL import Image, ImageDraw, ImageFont
from PIL.IcoImagePlugin import IcoFile

from ..utils.logger import get_logger
from ..utils.xdg import build_icon_filename

logger = get_logger(__name__)

ICON_SIZES = (16, 32, 48, 64, 128, 256, 512)
MAX_ICON_BYTES = 5 * 1024 * 1024
MAX_PAGE_BYTES = 5 * 1024 * 1024
FALLBACK_CANVAS = 512
FALLBACK_GLYPH_SIZE = 220
USER_AGENT = "sitewrap-icon-fetcher/0.1"


class IconError(Exception):
    """Raised when a single icon candidate cannot be used."""

    pass


@dataclass
class IconResult:
    """Outcome of an icon fetch.

    Attributes:
        icon_id: Icon identifier the files were written for
        rendered_paths: One PNG path per ladder size, smallest first
        source_url: Candidate the icon came from (None for the fallback)
    """

    icon_id: str
    rendered_paths: List[Path] = field(default_factory=list)
    source_url: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source_url is None


def _host_of(url: str) -> str:
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


class IconFetcher:
    """Fetches and processes webapp icons automatically.

    Tries the candidates in order and keeps the first one that decodes:
    1. ``<link rel="icon">`` entries of the start page
    2. ``<link rel="apple-touch-icon">`` entries
    3. ``/favicon.ico`` at the site root
    4. Generated letter icon
    """

    DEFAULT_TIMEOUT = 10  # seconds
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize icon fetcher.

        Args:
            session: Optional requests session (a new one is created if None)
            clock: Monotonic clock used for request deadlines
        """
        self.session = session or requests.Session()
        self._clock = clock
        self.session.headers.update({"User-Agent": USER_AGENT})
        logger.debug("IconFetcher initialized")

    def fetch_and_cache_icon(
        self, start_url: str, icon_id: str, cache_dir: Path
    ) -> IconResult:
        """Fetch the best icon for a site and write the size ladder.

        Network and decoding problems never escape; they select the next
        candidate and finally the generated fallback.

        Args:
            start_url: Start URL of the webapp
            icon_id: Icon identifier used as file prefix
            cache_dir: Directory receiving ``<icon_id>-<N>x<N>.png``

        Returns:
            IconResult listing the written files

        Raises:
            OSError: If the rendered icons cannot be written
        """
        logger.info(f"Fetching icon for URL: {start_url}")

        html = self._fetch_page(start_url)
        candidates = self.discover_icon_urls(html, start_url)

        rendered: Optional[Dict[int, bytes]] = None
        source_url: Optional[str] = None
        for candidate in candidates:
            try:
                data = self._download_icon(candidate)
                image = decode_icon(data)
                rendered = render_ladder(image)
            except Exception as e:
                logger.debug(f"Icon candidate {candidate} rejected: {e}")
                continue
            source_url = candidate
            logger.debug(f"Using icon from {candidate}")
            break

        if rendered is None:
            host = _host_of(start_url)
            logger.info(f"No usable icon for {start_url}, generating fallback")
            rendered = render_ladder(generate_fallback_icon(host))

        paths = write_ladder(rendered, icon_id, cache_dir)
        logger.info(f"Icon saved successfully: {icon_id} ({len(paths)} sizes)")
        return IconResult(icon_id=icon_id, rendered_paths=paths, source_url=source_url)

    def _fetch_page(self, url: str) -> str:
        """Download the start page; any failure yields an empty document."""
        try:
            data, encoding = self._get_limited(url, MAX_PAGE_BYTES)
        except (IconError, requests.RequestException) as e:
            logger.debug(f"Failed to fetch page {url}: {e}")
            return ""
        try:
            return data.decode(encoding or "utf-8", errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")

    @staticmethod
    def discover_icon_urls(html: str, page_url: str) -> List[str]:
        """List icon candidate URLs in preference order.

        Args:
            html: Page markup (may be empty)
            page_url: URL the markup came from, used to resolve hrefs

        Returns:
            Absolute candidate URLs, ending with the site's ``/favicon.ico``
        """
        icons: List[str] = []
        touch_icons: List[str] = []

        if html:
            soup = BeautifulSoup(html, "html.parser")
            for link in soup.find_all("link"):
                href = link.get("href")
                if not href:
                    continue
                rel = link.get("rel") or []
                if isinstance(rel, str):
                    rel = rel.split()
                tokens = {token.lower() for token in rel}
                if "icon" in tokens:
                    icons.append(urljoin(page_url, href.strip()))
                elif "apple-touch-icon" in tokens:
                    touch_icons.append(urljoin(page_url, href.strip()))

        candidates: List[str] = []
        for url in icons + touch_icons + [urljoin(page_url, "/favicon.ico")]:
            if url not in candidates:
                candidates.append(url)
        return candidates

    def _download_icon(self, url: str) -> bytes:
        """Download an icon candidate, enforcing the size limit.

        Raises:
            IconError: If the response is too large, too slow or not successful
            requests.RequestException: On network errors
        """
        data, _encoding = self._get_limited(url, MAX_ICON_BYTES)
        if not data:
            raise IconError("Empty icon response")
        return data

    def _get_limited(self, url: str, limit: int) -> Tuple[bytes, Optional[str]]:
        """GET a URL within the size limit and the total time budget.

        ``DEFAULT_TIMEOUT`` bounds the whole request, not only single
        socket reads.

        Returns:
            Body bytes and the declared text encoding (may be None)

        Raises:
            IconError: If the body is too large or the deadline passes
            requests.RequestException: On network and HTTP errors
        """
        deadline = self._clock() + self.DEFAULT_TIMEOUT
        response = self.session.get(url, timeout=self.DEFAULT_TIMEOUT, stream=True)
        try:
            response.raise_for_status()

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > limit:
                raise IconError(f"Response too large ({declared} bytes)")

            buffer = bytearray()
            for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > limit:
                    raise IconError("Response exceeds size limit")
                if self._clock() > deadline:
                    raise IconError(f"Timed out after {self.DEFAULT_TIMEOUT}s")

            return bytes(buffer), response.encoding
        finally:
            response.close()

    def close(self) -> None:
        """Close HTTP session."""
        self.session.close()
        logger.debug("IconFetcher session closed")


def decode_icon(data: bytes) -> Image.Image:
    """Decode icon bytes into an RGBA image.

    ICO containers are opened first, keeping the widest frame; anything
    else goes through Pillow's format detection.

    Raises:
        IconError: If the bytes are not a decodable image
    """
    try:
        ico = IcoFile(io.BytesIO(data))
    except Exception:
        # Not an ICO container
        ico = None

    try:
        if ico is not None and ico.sizes():
            largest = max(ico.sizes(), key=lambda size: (size[0], size[1]))
            image = ico.getimage(largest)
        else:
            image = Image.open(io.BytesIO(data))
            image.load()
        return image.convert("RGBA")
    except Exception as e:
        raise IconError(f"Cannot decode icon: {e}") from e


def render_ladder(image: Image.Image) -> Dict[int, bytes]:
    """Resize an image to every ladder size and encode each as PNG.

    Raises:
        IconError: If encoding fails
    """
    rendered: Dict[int, bytes] = {}
    source = image.convert("RGBA")
    for size in ICON_SIZES:
        resized = source.resize((size, size), Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        try:
            resized.save(buffer, format="PNG")
        except (OSError, ValueError) as e:
            raise IconError(f"Failed to encode {size}px icon: {e}") from e
        rendered[size] = buffer.getvalue()
    return rendered


def write_ladder(rendered: Dict[int, bytes], icon_id: str, cache_dir: Path) -> List[Path]:
    """Write rendered PNGs as ``<icon_id>-<N>x<N>.png``.

    Raises:
        OSError: If the directory or a file cannot be written
    """
    cache_dir.mkdir(parents=True, exist_ok=True)
    paths: List[Path] = []
    for size in sorted(rendered):
        path = cache_dir / build_icon_filename(icon_id, size)
        path.write_bytes(rendered[size])
        paths.append(path)
    return paths


def fallback_initial(host: str) -> str:
    """First character of the host without ``www.``, uppercased."""
    trimmed = host[4:] if host.startswith("www.") else host
    for char in trimmed:
        return char.upper()
    return "S"


def fallback_seed(host: str) -> int:
    """Seed derived from the first 8 bytes of SHA-256(host), little endian."""
    digest = hashlib.sha256(host.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "little")


def generate_fallback_icon(host: str) -> Image.Image:
    """Generate a deterministic letter icon for a host.

    The background color comes from a generator seeded by the host, and
    the initial is drawn in white in the middle of a 512x512 canvas.

    Args:
        host: Host name of the webapp (may be empty)

    Returns:
        RGBA image
    """
    rng = random.Random(fallback_seed(host))
    background = (rng.randrange(256), rng.randrange(256), rng.randrange(256), 255)
    canvas = Image.new("RGBA", (FALLBACK_CANVAS, FALLBACK_CANVAS), background)

    initial = fallback_initial(host)
    font = ImageFont.load_default(size=FALLBACK_GLYPH_SIZE)

    # Glyph coverage as an alpha mask, then white through the mask
    mask = Image.new("L", canvas.size, 0)
    draw = ImageDraw.Draw(mask)
    left, top, right, bottom = draw.textbbox((0, 0), initial, font=font)
    x = (FALLBACK_CANVAS - (right - left)) / 2 - left
    y = (FALLBACK_CANVAS - (bottom - top)) / 2 - top
    draw.text((x, y), initial, fill=255, font=font)
    canvas.paste((255, 255, 255, 255), (0, 0, FALLBACK_CANVAS, FALLBACK_CANVAS), mask)

    return canvas


def fetch_and_cache_icon(start_url: str, icon_id: str, cache_dir: Path) -> IconResult:
    """Convenience wrapper that uses a short-lived IconFetcher."""
    fetcher = IconFetcher()
    try:
        return fetcher.fetch_and_cache_icon(start_url, icon_id, cache_dir)
    finally:
        fetcher.close()
