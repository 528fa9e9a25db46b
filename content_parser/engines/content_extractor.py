"""Content extraction toolkit: HTML cleaning, image and metadata harvesting,
relative URL resolution and feed format sniffing.

Nothing here touches the network, and nothing raises on malformed input:
markup is parsed leniently and the best available result is returned.
Strategies that need a hard failure raise it themselves.
"""

import json
import logging
import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, UnicodeDammit
from bs4.element import Tag

from content_parser.config.settings import ExtractionSettings


logger = logging.getLogger(__name__)


KNOWN_FEED_FORMATS = frozenset({"rss", "atom", "json"})

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

# scheme://... counts as absolute
_ABSOLUTE_URL = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")

# Schemes without an authority part that must never be rebased
_OPAQUE_SCHEMES = ("data:", "mailto:", "tel:", "javascript:")

_WHITESPACE = re.compile(r"\s+")

_URL_ATTRIBUTES = ("src", "href")


def resolve_url(candidate: str, base_url: str) -> str:
    """Resolve ``candidate`` against ``base_url``.

    Absolute URLs pass through unchanged; ``//host/path`` adopts the base
    scheme; ``/path`` adopts the base scheme and host; each leading ``../``
    walks one segment up the base directory; anything else is appended to
    the base directory (the base path minus its trailing file name).

    Example:
        >>> resolve_url("/a/b", "https://h.test/x/y")
        'https://h.test/a/b'
        >>> resolve_url("../z", "https://h.test/a/b/")
        'https://h.test/a/z'
    """
    candidate = (candidate or "").strip()
    if not candidate or _ABSOLUTE_URL.match(candidate):
        return candidate
    if candidate.lower().startswith(_OPAQUE_SCHEMES):
        return candidate
    if not base_url:
        return candidate

    base = urlsplit(base_url.strip())
    scheme = base.scheme or "https"

    if candidate.startswith("//"):
        return f"{scheme}:{candidate}"

    if candidate.startswith("/"):
        return f"{scheme}://{base.netloc}{candidate}"

    directory = base.path if base.path.endswith("/") else base.path.rsplit("/", 1)[0]
    segments = [segment for segment in directory.split("/") if segment]

    while candidate.startswith(("../", "./")):
        if candidate.startswith("../"):
            candidate = candidate[3:]
            if segments:
                segments.pop()
        else:
            candidate = candidate[2:]

    prefix = "/" + "/".join(segments) + "/" if segments else "/"
    return f"{scheme}://{base.netloc}{prefix}{candidate}"


def detect_feed_format(content: str, requested_type: str | None = None) -> str:
    """Decide which feed format ``content`` is in.

    An explicit known format always wins. Otherwise JSON Feed and Atom must be
    positively confirmed; RSS is the fallback.

    Args:
        content: Raw feed body
        requested_type: Caller hint ("rss", "atom", "json", "auto", ...)

    Returns:
        One of "json", "atom" or "rss"
    """
    hint = (requested_type or "").strip().lower()
    if hint in KNOWN_FEED_FORMATS:
        return hint

    body = (content or "").strip()

    if body.startswith("{"):
        try:
            data = json.loads(body)
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            return "json"

    if ATOM_NAMESPACE in body and re.search(r"<(?:[\w-]+:)?feed[\s>]", body):
        return "atom"

    return "rss"


class ContentExtractor:
    """Stateless HTML helpers shared by every parser strategy.

    Attributes:
        settings: Tags, attributes and image selectors to use
    """

    def __init__(self, settings: ExtractionSettings | None = None) -> None:
        self.settings = settings or ExtractionSettings()

    @staticmethod
    def parse(html: str) -> BeautifulSoup:
        """Parse markup leniently with lxml."""
        return BeautifulSoup(html or "", "lxml")

    @staticmethod
    def _render(soup: BeautifulSoup, original: str) -> str:
        # lxml wraps fragments in <html><body>; give fragments back as fragments
        if re.search(r"<html[\s>]", original, re.IGNORECASE) or soup.body is None:
            return str(soup)
        return soup.body.decode_contents()

    def clean_html(self, html: str) -> str:
        """Strip configured tags and event-handler attributes, collapse whitespace.

        Args:
            html: Markup to clean (document or fragment)

        Returns:
            Cleaned markup; empty string for empty input
        """
        if not html:
            return ""

        try:
            soup = self.parse(html)

            for tag_name in self.settings.remove_tags:
                for element in soup.find_all(tag_name):
                    element.decompose()

            remove_attributes = set(self.settings.remove_attributes)
            for element in soup.find_all(True):
                for attribute in [a for a in element.attrs if a.lower() in remove_attributes]:
                    del element[attribute]

            cleaned = self._render(soup, html)
        except Exception as e:
            logger.warning(f"Failed to clean HTML, returning input unchanged: {e}")
            cleaned = html

        return _WHITESPACE.sub(" ", cleaned).strip()

    def extract_images(self, html: str, base_url: str | None = None) -> list[str]:
        """Collect image URLs in configured selector order.

        Duplicates are kept; deduplication is a strategy concern.

        Args:
            html: Markup to search
            base_url: Base for resolving relative URLs; left as-is when None

        Returns:
            Image URLs, og:image and twitter:image first by default
        """
        if not html:
            return []

        images: list[str] = []
        try:
            soup = self.parse(html)
            for selector in self.settings.image_selectors:
                for element in soup.select(selector):
                    url = self._image_url(element)
                    if url:
                        images.append(resolve_url(url, base_url) if base_url else url)
        except Exception as e:
            logger.warning(f"Failed to extract images: {e}")

        return images

    @staticmethod
    def _image_url(element: Tag) -> str:
        if element.name == "meta":
            return (element.get("content") or "").strip()
        return (element.get("src") or element.get("data-src") or "").strip()

    def extract_text(self, html: str) -> str:
        """Clean ``html``, drop every tag and normalize whitespace."""
        if not html:
            return ""

        cleaned = self.clean_html(html)
        try:
            text = self.parse(cleaned).get_text(" ")
        except Exception as e:
            logger.warning(f"Failed to extract text: {e}")
            text = re.sub(r"<[^>]+>", " ", cleaned)

        return _WHITESPACE.sub(" ", text).strip()

    def extract_meta_tags(self, html: str) -> dict[str, str]:
        """Map each <meta> ``property`` or ``name`` to its ``content``.

        The first occurrence of a key wins.
        """
        if not html:
            return {}

        tags: dict[str, str] = {}
        try:
            for meta in self.parse(html).find_all("meta"):
                key = meta.get("property") or meta.get("name")
                content = meta.get("content")
                if key and content is not None:
                    tags.setdefault(key.strip(), content.strip())
        except Exception as e:
            logger.warning(f"Failed to extract meta tags: {e}")

        return tags

    def fix_relative_urls(self, html: str, base_url: str) -> str:
        """Rewrite relative ``src``/``href`` attributes to absolute URLs."""
        if not html:
            return ""

        try:
            soup = self.parse(html)
            for attribute in _URL_ATTRIBUTES:
                for element in soup.find_all(attrs={attribute: True}):
                    value = element.get(attribute)
                    if isinstance(value, str) and value.strip() and not value.startswith("#"):
                        element[attribute] = resolve_url(value, base_url)
            return self._render(soup, html)
        except Exception as e:
            logger.warning(f"Failed to fix relative URLs: {e}")
            return html

    def select_first(self, html: str, selector: str) -> str | None:
        """Return the outer HTML of the first element matching a CSS selector."""
        if not html or not selector:
            return None
        try:
            element = self.parse(html).select_one(selector)
        except Exception as e:
            logger.warning(f"Invalid CSS selector {selector!r}: {e}")
            return None
        return str(element) if element is not None else None

    @staticmethod
    def normalize_encoding(content: bytes | str) -> str:
        """Return ``content`` as text, detecting legacy encodings for bytes."""
        if not content:
            return ""
        if isinstance(content, str):
            return content
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            pass
        dammit = UnicodeDammit(content, ["utf-8", "iso-8859-1", "windows-1252"])
        return dammit.unicode_markup or content.decode("utf-8", errors="replace")
