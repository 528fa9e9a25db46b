"""Single page content parser."""

import logging
from typing import Any

import lxml.html
from lxml import etree

from content_parser.engines.content_extractor import ContentExtractor
from content_parser.engines.http_client import HttpClient
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document, require_http_url


logger = logging.getLogger(__name__)


# Main-content candidates for auto mode, in priority order
AUTO_CONTENT_SELECTORS = (
    "article",
    "main",
    "[class*=content]",
    "[class*=article]",
    "[id*=content]",
    "[id*=article]",
    "body",
)


def select_by_xpath(html: str, query: str) -> str | None:
    """Return the outer HTML of the first node matching an XPath query.

    Text and attribute results are returned as strings. Invalid expressions
    are logged and treated as no match.
    """
    if not html or not query:
        return None

    try:
        tree = lxml.html.fromstring(html)
        nodes = tree.xpath(query)
    except (etree.XPathError, etree.ParserError, ValueError) as e:
        logger.warning(f"XPath query {query!r} failed: {e}")
        return None

    if isinstance(nodes, list):
        if not nodes:
            return None
        node = nodes[0]
    else:
        node = nodes

    if isinstance(node, etree._Element):
        return lxml.html.tostring(node, encoding="unicode")
    return str(node)


class SinglePageParser:
    """Extracts the main content of one web page as a single item.

    ``request.type`` selects the extraction mode: ``css`` and ``xpath`` use
    ``options["selector"]``; ``auto`` (and anything else) tries common
    main-content containers. A selector that matches nothing falls back to
    the whole page.

    Options:
        selector: CSS selector or XPath expression for css/xpath modes
        clean_html: Strip scripts, styles and event handlers first
    """

    name = "single_page"
    description = "Single web page extractor (auto, CSS selector or XPath)"
    supported_types = ("auto", "css", "xpath")

    def __init__(self, http_client: HttpClient, extractor: ContentExtractor):
        self.http_client = http_client
        self.extractor = extractor

    def extract(self, request: ParseRequest) -> Extraction:
        url = require_http_url(request.source)
        html = fetch_document(self.http_client, url).text
        return Extraction(items=[self.extract_page(url, html, request)])

    def extract_page(self, url: str, html: str, request: ParseRequest) -> dict[str, Any]:
        """Build the page item from already fetched ``html``."""
        if request.options.get("clean_html"):
            html = self.extractor.clean_html(html)

        html = self.extractor.fix_relative_urls(html, url)

        selector = str(request.options.get("selector") or "")
        mode = (request.type or "auto").strip().lower()

        if mode == "css":
            content_html = self.extractor.select_first(html, selector) or html
        elif mode == "xpath":
            content_html = select_by_xpath(html, selector) or html
        else:
            content_html = self._auto_content(html)

        meta = self.extractor.extract_meta_tags(html)

        return {
            "url": url,
            "title": self._title(html),
            "description": meta.get("description"),
            "html": content_html,
            "content": self.extractor.extract_text(content_html),
            "images": self.extractor.extract_images(content_html, url),
            "meta": meta,
        }

    def _auto_content(self, html: str) -> str:
        for selector in AUTO_CONTENT_SELECTORS:
            found = self.extractor.select_first(html, selector)
            if found:
                return found
        return html

    def _title(self, html: str) -> str | None:
        title = self.extractor.parse(html).find("title")
        if title is None:
            return None
        return title.get_text(strip=True)
