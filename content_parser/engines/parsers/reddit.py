"""Reddit listing JSON parser."""

import json
import logging
import re
from typing import Any

from content_parser.engines.errors import ExtractionError
from content_parser.engines.http_client import HttpClient
from content_parser.engines.item_normalizer import normalize_item, to_iso_date
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document, require_http_url


logger = logging.getLogger(__name__)


REDDIT_BASE_URL = "https://reddit.com"

VIDEO_HOSTS = ("v.redd.it", "youtube.com", "youtu.be")
IMAGE_HOSTS = ("i.redd.it", "i.imgur.com")
IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


def post_type(post: dict[str, Any]) -> str:
    """Classify a post as "text", "video", "image" or "link"."""
    if post.get("is_self"):
        return "text"

    url = post.get("url") or ""
    if any(host in url for host in VIDEO_HOSTS):
        return "video"
    if any(host in url for host in IMAGE_HOSTS) or IMAGE_EXTENSION.search(url):
        return "image"
    return "link"


class RedditParser:
    """Parser for Reddit listing endpoints (``/r/<sub>/.json`` and friends).

    Attributes:
        name: Registry name ("reddit")
        http_client: Client used to download the listing
    """

    name = "reddit"
    description = "Reddit listing JSON parser (posts, scores, media type)"
    supported_types = ("json", "listing")

    def __init__(self, http_client: HttpClient):
        self.http_client = http_client

    def extract(self, request: ParseRequest) -> Extraction:
        """Fetch a Reddit listing and return one item per post.

        The upstream ``after`` cursor is reported in metadata so callers can
        request the next listing page.

        Raises:
            ExtractionError: If the body is not JSON or has no ``data.children``.
        """
        url = require_http_url(request.source)
        content = fetch_document(self.http_client, url, json=True).text

        try:
            data = json.loads(content)
        except ValueError as e:
            raise ExtractionError(f"Failed to parse Reddit JSON: {e}") from e

        listing = data.get("data") if isinstance(data, dict) else None
        if not isinstance(listing, dict) or not isinstance(listing.get("children"), list):
            raise ExtractionError("Invalid Reddit JSON: missing data.children array")

        items = [
            normalize_item(self._parse_post(child["data"]))
            for child in listing["children"]
            if isinstance(child, dict) and isinstance(child.get("data"), dict)
        ]

        metadata: dict[str, Any] = {}
        if listing.get("after"):
            metadata["after"] = listing["after"]

        return Extraction(items=items, metadata=metadata)

    def _parse_post(self, post: dict[str, Any]) -> dict[str, Any]:
        return {
            "title": post.get("title") or "",
            "url": post.get("url") or "",
            "permalink": REDDIT_BASE_URL + (post.get("permalink") or ""),
            "description": post.get("selftext") or "",
            "author": post.get("author"),
            "score": post.get("score") or 0,
            "upvote_ratio": post.get("upvote_ratio"),
            "gilded": post.get("gilded") or 0,
            "num_comments": post.get("num_comments") or 0,
            "created_at": to_iso_date(post.get("created_utc")),
            "type": post_type(post),
            "nsfw": bool(post.get("over_18", False)),
            "spoiler": bool(post.get("spoiler", False)),
        }
