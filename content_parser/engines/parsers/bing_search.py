"""Bing web search results parser."""

import logging
from typing import Any
from urllib.parse import urlencode

from bs4.element import Tag

from content_parser.engines.content_extractor import ContentExtractor
from content_parser.engines.errors import ValidationError
from content_parser.engines.http_client import HttpClient
from content_parser.engines.item_normalizer import normalize_item, registered_domain
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document


logger = logging.getLogger(__name__)


BING_SEARCH_URL = "https://www.bing.com/search"

# Bing serves at most 50 results per page
MAX_RESULTS_PER_PAGE = 50

# Result container classes mapped to result types, checked in order
RESULT_TYPE_CLASSES = (
    ("b_vidans", "video"),
    ("b_news", "news"),
    ("b_imageans", "image"),
)


def build_query(request: ParseRequest) -> str:
    """Join the request source and keywords into one search query."""
    terms = [request.source.strip()] + [keyword.strip() for keyword in request.keywords]
    return " ".join(term for term in terms if term)


def build_search_url(request: ParseRequest) -> str:
    """Build the Bing results page URL for ``request``.

    Upstream paging is controlled by ``options["count"]`` (results per page,
    capped at 50) and ``options["first"]`` (1-based index of the first
    result). Each filter becomes a ``filters=key:"value"`` parameter.

    Raises:
        ValidationError: If neither source nor keywords give a query, or
            count/first are not positive integers.
    """
    query = build_query(request)
    if not query:
        raise ValidationError("Parse request validation failed: a search query is required")

    count = _positive_int(request.options.get("count", MAX_RESULTS_PER_PAGE), "count")
    params: list[tuple[str, Any]] = [("q", query), ("count", min(count, MAX_RESULTS_PER_PAGE))]

    if request.options.get("first") is not None:
        params.append(("first", _positive_int(request.options["first"], "first")))

    for key, value in request.filters.items():
        params.append(("filters", f'{key}:"{value}"'))

    return f"{BING_SEARCH_URL}?{urlencode(params)}"


def _positive_int(value: Any, option: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = 0
    if number < 1 or isinstance(value, bool):
        raise ValidationError(f"Parse request validation failed: option '{option}' must be a positive integer")
    return number


class BingSearchParser:
    """Parser for Bing web search result pages.

    Attributes:
        name: Registry name ("bing")
        http_client: Client used to download the results page
        extractor: Toolkit used for snippet text
    """

    name = "bing"
    description = "Bing web search results parser"
    supported_types = ("search", "web", "news")

    def __init__(self, http_client: HttpClient, extractor: ContentExtractor):
        self.http_client = http_client
        self.extractor = extractor

    def extract(self, request: ParseRequest) -> Extraction:
        """Search Bing and return one item per organic result."""
        url = build_search_url(request)
        html = fetch_document(self.http_client, url).text

        soup = self.extractor.parse(html)
        items = []
        for result in soup.select("ol#b_results > li.b_algo"):
            item = self._parse_result(result)
            if item is not None:
                items.append(normalize_item(item))

        return Extraction(items=items, metadata={"query": build_query(request), "search_url": url})

    def _parse_result(self, result: Tag) -> dict[str, Any] | None:
        try:
            link = result.select_one("h2 a")
            snippet = result.select_one("p")
            cite = result.select_one(".b_attribution cite")
            published = result.select_one("span.news_dt")

            url = link.get("href") if link is not None else None
            return {
                "title": link.get_text(strip=True) if link is not None else None,
                "url": url,
                "description": self.extractor.extract_text(str(snippet)) if snippet is not None else None,
                "domain": cite.get_text(strip=True) if cite is not None else registered_domain(url),
                "type": self._result_type(result),
                "published_time": published.get_text(strip=True) if published is not None else None,
            }
        except Exception as e:
            logger.warning(f"Failed to parse Bing result: {e}")
            return None

    @staticmethod
    def _result_type(result: Tag) -> str:
        classes = result.get("class") or []
        for css_class, result_type in RESULT_TYPE_CLASSES:
            if css_class in classes:
                return result_type
        return "web"
