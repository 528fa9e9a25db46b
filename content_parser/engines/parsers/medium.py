"""Medium article parser."""

import logging
from typing import Any

from bs4 import BeautifulSoup

from content_parser.engines.content_extractor import ContentExtractor
from content_parser.engines.http_client import HttpClient
from content_parser.engines.item_normalizer import to_iso_date
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document, require_http_url


logger = logging.getLogger(__name__)


# Markers Medium embeds in member-only story pages
PAYWALL_MARKERS = ("meteredContent", "paywall", "member-only")


def _meta(soup: BeautifulSoup, **attrs: str) -> str | None:
    element = soup.find("meta", attrs=attrs)
    if element is None or element.get("content") is None:
        return None
    return element["content"].strip()


class MediumParser:
    """Parser for a single Medium story page.

    Attributes:
        name: Registry name ("medium")
        http_client: Client used to download the story
        extractor: Toolkit used for cleaning, text and images
    """

    name = "medium"
    description = "Medium article parser (author, tags, reading time, paywall)"
    supported_types = ("article", "auto")

    def __init__(self, http_client: HttpClient, extractor: ContentExtractor):
        self.http_client = http_client
        self.extractor = extractor

    def extract(self, request: ParseRequest) -> Extraction:
        url = require_http_url(request.source)
        html = fetch_document(self.http_client, url).text
        return Extraction(items=[self._parse_article(url, html)])

    def _parse_article(self, url: str, html: str) -> dict[str, Any]:
        soup = self.extractor.parse(html)

        article = soup.find("article")
        article_html = str(article) if article is not None else html
        cleaned_html = self.extractor.clean_html(article_html)

        return {
            "url": url,
            "title": self._title(soup),
            "author": _meta(soup, name="author") or _meta(soup, property="article:author"),
            "description": _meta(soup, property="og:description") or _meta(soup, name="description"),
            "content": self.extractor.extract_text(cleaned_html),
            "html": cleaned_html,
            "published_at": to_iso_date(_meta(soup, property="article:published_time")),
            "tags": [
                element["content"].strip()
                for element in soup.find_all("meta", attrs={"property": "article:tag"})
                if (element.get("content") or "").strip()
            ],
            "reading_time": _meta(soup, name="twitter:data1"),
            "images": self.extractor.extract_images(article_html, url),
            "is_paywalled": any(marker in html for marker in PAYWALL_MARKERS),
            "claps": self._claps(soup),
            "canonical_url": self._canonical_url(soup),
            "publication": _meta(soup, property="og:site_name"),
        }

    @staticmethod
    def _title(soup: BeautifulSoup) -> str | None:
        if soup.title is not None and soup.title.get_text(strip=True):
            return soup.title.get_text(strip=True)

        heading = soup.select_one("article h1")
        if heading is not None:
            return heading.get_text(strip=True)

        return _meta(soup, property="og:title")

    @staticmethod
    def _claps(soup: BeautifulSoup) -> str | None:
        counter = soup.select_one('button[data-action="show-recommends-list"] span')
        return counter.get_text(strip=True) if counter is not None else None

    @staticmethod
    def _canonical_url(soup: BeautifulSoup) -> str | None:
        link = soup.find("link", rel="canonical")
        return link.get("href") if link is not None else None
