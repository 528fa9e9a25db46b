"""RSS, Atom and JSON Feed parser."""

import json
import logging
from typing import Any

import feedparser

from content_parser.engines.content_extractor import ContentExtractor, detect_feed_format, resolve_url
from content_parser.engines.errors import ExtractionError
from content_parser.engines.http_client import HttpClient
from content_parser.engines.item_normalizer import normalize_item
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document, require_http_url


logger = logging.getLogger(__name__)


class FeedsParser:
    """Parser for syndication feeds.

    The feed format comes from ``request.type`` when it names a known format
    and is sniffed from the body otherwise (``auto`` or anything else). RSS
    and Atom are parsed with feedparser, JSON Feed with the json module.

    Attributes:
        name: Registry name ("feeds")
        http_client: Client used to download the feed
        extractor: Toolkit used to pull images out of entry HTML
    """

    name = "feeds"
    description = "RSS 2.0, Atom and JSON Feed parser with format auto-detection"
    supported_types = ("auto", "rss", "atom", "json")

    def __init__(self, http_client: HttpClient, extractor: ContentExtractor):
        self.http_client = http_client
        self.extractor = extractor

    def extract(self, request: ParseRequest) -> Extraction:
        """Fetch the feed at ``request.source`` and return its entries.

        Args:
            request: Parse request; ``type`` is the feed format hint

        Returns:
            Extraction with one item per entry and ``detected_type`` metadata

        Raises:
            ExtractionError: If the body cannot be parsed as the detected format.
        """
        url = require_http_url(request.source)
        content = fetch_document(self.http_client, url).text

        feed_type = detect_feed_format(content, request.type)
        logger.debug(f"Feed {url} detected as {feed_type}")

        if feed_type == "json":
            items = self._parse_json_feed(content, url)
        else:
            items = self._parse_xml_feed(content, feed_type, url)

        return Extraction(
            items=[normalize_item(item) for item in items],
            metadata={"detected_type": feed_type},
        )

    def _parse_xml_feed(self, content: str, feed_type: str, base_url: str) -> list[dict[str, Any]]:
        """Parse an RSS or Atom body with feedparser."""
        feed = feedparser.parse(content)

        if feed.bozo and not feed.entries:
            label = "RSS" if feed_type == "rss" else "Atom"
            raise ExtractionError(
                f"Failed to parse {label} feed: {feed.get('bozo_exception') or 'invalid XML'}"
            )

        items: list[dict[str, Any]] = []
        for entry in feed.entries:
            item = self._parse_entry(entry, base_url)
            if item is not None:
                items.append(item)

        return items

    def _parse_entry(self, entry: Any, base_url: str) -> dict[str, Any] | None:
        """Parse a single feedparser entry into an item.

        Args:
            entry: feedparser entry object
            base_url: Feed URL that relative image URLs resolve against

        Returns:
            Item dict, or None if the entry is unusable
        """
        try:
            description = entry.get("summary") or ""
            if not description and entry.get("content"):
                description = entry.content[0].get("value", "")

            item: dict[str, Any] = {
                "title": (entry.get("title") or "").strip(),
                "url": (entry.get("link") or "").strip(),
                "description": description.strip(),
                "published_at": entry.get("published") or entry.get("updated"),
            }

            enclosures = entry.get("enclosures") or []
            if enclosures and enclosures[0].get("href"):
                item["enclosure"] = enclosures[0]["href"]

            if description:
                images = self.extractor.extract_images(description, base_url)
                if images:
                    item["images"] = images

            return item
        except Exception as e:
            logger.warning(f"Failed to parse feed entry: {e}")
            return None

    def _parse_json_feed(self, content: str, base_url: str) -> list[dict[str, Any]]:
        """Parse a JSON Feed (https://jsonfeed.org) body."""
        try:
            data = json.loads(content)
        except ValueError as e:
            raise ExtractionError(f"Failed to parse JSON feed: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise ExtractionError("Invalid JSON feed: missing items array")

        items: list[dict[str, Any]] = []
        for entry in data["items"]:
            if not isinstance(entry, dict):
                continue

            content_html = entry.get("content_html") or ""
            description = (
                entry.get("content_text")
                or self.extractor.extract_text(content_html)
                or entry.get("summary")
                or ""
            )

            item: dict[str, Any] = {
                "title": entry.get("title") or "",
                "url": entry.get("url") or entry.get("id") or "",
                "description": description,
                "published_at": entry.get("date_published") or entry.get("date_modified"),
            }

            images = self.extractor.extract_images(content_html, base_url) if content_html else []
            if isinstance(entry.get("image"), str) and entry["image"]:
                images.append(resolve_url(entry["image"], base_url))
            if images:
                item["images"] = images

            items.append(item)

        return items
