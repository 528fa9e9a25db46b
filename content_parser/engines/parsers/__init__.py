"""Concrete parser strategies."""

from content_parser.engines.parsers.bing_search import BingSearchParser
from content_parser.engines.parsers.feeds import FeedsParser
from content_parser.engines.parsers.medium import MediumParser
from content_parser.engines.parsers.multi_url import MultiUrlParser
from content_parser.engines.parsers.reddit import RedditParser
from content_parser.engines.parsers.single_page import SinglePageParser
from content_parser.engines.parsers.telegram import TelegramParser

__all__ = [
    "BingSearchParser",
    "FeedsParser",
    "MediumParser",
    "MultiUrlParser",
    "RedditParser",
    "SinglePageParser",
    "TelegramParser",
]
