"""Multi-URL parser delegating each URL to the single page parser."""

import json
import logging
from typing import Any
from urllib.parse import urlparse

from content_parser.engines.errors import CancelledError, ParserError, ValidationError
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.single_page import SinglePageParser


logger = logging.getLogger(__name__)


INVALID_FORMAT_MESSAGE = (
    "Invalid source format: Expected JSON array, comma-separated, or newline-separated URLs"
)


def parse_url_list(source: str) -> list[str] | None:
    """Split ``source`` into candidate URLs.

    Accepts a JSON array, a comma-separated list or a newline-separated
    list, tried in that order.

    Returns:
        Stripped, non-empty candidates, or None when the format is not recognized
    """
    source = (source or "").strip()
    if not source:
        return None

    if source.startswith("["):
        try:
            decoded = json.loads(source)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return [str(url).strip() for url in decoded if isinstance(url, str) and url.strip()]

    for separator in (",", "\n"):
        if separator in source:
            return [url.strip() for url in source.split(separator) if url.strip()]

    return None


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class MultiUrlParser:
    """Parses a list of pages, one item per valid URL.

    Each URL is handed to the single page parser with the request's type and
    options. Per-URL failures are recorded on the item (``parse_success`` and
    ``parse_error``) instead of failing the whole request; invalid URLs are
    skipped. A cancelled deadline still aborts the remaining URLs.

    Attributes:
        name: Registry name ("multi")
        single_page: Parser used for every URL
    """

    name = "multi"
    description = "Parses several pages at once (JSON array, comma or newline separated URLs)"
    supported_types = ("auto", "css", "xpath")

    def __init__(self, single_page: SinglePageParser):
        self.single_page = single_page

    def extract(self, request: ParseRequest) -> Extraction:
        urls = parse_url_list(request.source)
        if urls is None:
            raise ValidationError(INVALID_FORMAT_MESSAGE)

        items: list[dict[str, Any]] = []
        successful = failed = 0

        for url in urls:
            if not is_valid_url(url):
                logger.warning(f"Skipping invalid URL in multi-URL request: {url!r}")
                continue

            item = self._parse_one(request.with_source(url))
            if item["parse_success"]:
                successful += 1
            else:
                failed += 1
            items.append(item)

        return Extraction(
            items=items,
            metadata={"total_urls": len(items), "successful": successful, "failed": failed},
        )

    def _parse_one(self, request: ParseRequest) -> dict[str, Any]:
        try:
            extraction = self.single_page.extract(request)
        except CancelledError:
            raise
        except ParserError as e:
            return self._failed_item(request.source, e.message)
        except Exception as e:
            logger.warning(f"Failed to parse {request.source}: {e}")
            return self._failed_item(request.source, str(e) or type(e).__name__)

        item = dict(extraction.items[0]) if extraction.items else {}
        item["source_url"] = request.source
        item["parse_success"] = True
        return item

    @staticmethod
    def _failed_item(url: str, error: str) -> dict[str, Any]:
        return {"source_url": url, "parse_success": False, "parse_error": error}
