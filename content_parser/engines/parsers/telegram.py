"""Telegram public channel preview parser."""

import logging
import re
from typing import Any

from bs4.element import Tag

from content_parser.engines.content_extractor import ContentExtractor, resolve_url
from content_parser.engines.http_client import HttpClient
from content_parser.engines.item_normalizer import normalize_item, to_iso_date
from content_parser.engines.models import Extraction, ParseRequest
from content_parser.engines.parsers.base import fetch_document, require_source


logger = logging.getLogger(__name__)


TELEGRAM_PREVIEW_URL = "https://t.me/s/"
TELEGRAM_BASE_URL = "https://t.me/"

_BACKGROUND_IMAGE = re.compile(r"background-image:\s*url\(['\"]?([^'\")]+)['\"]?\)")


def channel_url(source: str) -> str:
    """Map a channel name (``durov`` or ``@durov``) to its preview page URL.

    Full URLs are used as given.
    """
    source = source.strip()
    if source.lower().startswith(("http://", "https://")):
        return source
    return TELEGRAM_PREVIEW_URL + source.lstrip("@")


class TelegramParser:
    """Parser for the public web preview of a Telegram channel.

    Attributes:
        name: Registry name ("telegram")
        http_client: Client used to download the preview page
        extractor: Toolkit used for text and images
    """

    name = "telegram"
    description = "Telegram public channel parser (t.me/s preview pages)"
    supported_types = ("channel", "auto")

    def __init__(self, http_client: HttpClient, extractor: ContentExtractor):
        self.http_client = http_client
        self.extractor = extractor

    def extract(self, request: ParseRequest) -> Extraction:
        """Return one item per message on the channel preview page."""
        url = channel_url(require_source(request.source, "channel"))
        html = fetch_document(self.http_client, url).text

        soup = self.extractor.parse(html)
        items = []
        # Class token match excludes the tgme_widget_message_* children
        for message in soup.select("div.tgme_widget_message"):
            item = self._parse_message(message)
            if item is not None:
                items.append(normalize_item(item))

        logger.debug(f"Found {len(items)} messages at {url}")
        return Extraction(items=items)

    def _parse_message(self, message: Tag) -> dict[str, Any] | None:
        try:
            message_html = str(message)
            # data-post is "<channel>/<message id>"
            data_post = message.get("data-post") or ""
            message_id = data_post.rsplit("/", 1)[-1] if data_post else ""

            text_html = "".join(str(node) for node in message.select("div.tgme_widget_message_text"))
            forwarded = message.select_one("div.tgme_widget_message_forwarded_from")
            reply = message.select_one("div.tgme_widget_message_reply")
            reply_author = reply.select_one("div.tgme_widget_message_author") if reply else None
            video = message.select_one("video[src]")
            time_element = message.select_one("time[datetime]")

            return {
                "url": TELEGRAM_BASE_URL + data_post if data_post else None,
                "message_id": message_id or None,
                "author": self._text(message.select_one("div.tgme_widget_message_author")),
                "content": self.extractor.extract_text(text_html) if text_html else "",
                "html": message_html,
                "created_at": to_iso_date(time_element["datetime"]) if time_element else None,
                "views": self._text(message.select_one("span.tgme_widget_message_views")),
                "type": self._message_type(message),
                "images": self._images(message, message_html),
                "video_url": video["src"] if video else None,
                "forwarded": forwarded is not None,
                "forwarded_from": self._text(forwarded),
                "is_reply": reply is not None,
                "reply_to_author": self._text(reply_author),
            }
        except Exception as e:
            logger.warning(f"Failed to parse Telegram message: {e}")
            return None

    @staticmethod
    def _text(element: Tag | None) -> str | None:
        return element.get_text(" ", strip=True) if element is not None else None

    @staticmethod
    def _message_type(message: Tag) -> str:
        if message.select_one("[class*=tgme_widget_message_video]"):
            return "video"
        if message.select_one("[class*=tgme_widget_message_photo]"):
            return "photo"
        if message.select_one("[class*=tgme_widget_message_document]"):
            return "document"
        return "text"

    def _images(self, message: Tag, message_html: str) -> list[str]:
        images = self.extractor.extract_images(message_html, TELEGRAM_BASE_URL)
        # Photos are rendered as CSS backgrounds rather than <img> tags
        for wrap in message.select("[class*=tgme_widget_message_photo_wrap]"):
            found = _BACKGROUND_IMAGE.search(wrap.get("style") or "")
            if found:
                images.append(resolve_url(found.group(1), TELEGRAM_BASE_URL))
        return images
