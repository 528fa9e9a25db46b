"""Engines module - core parsing components."""

from content_parser.engines.cancellation import Deadline, current_deadline, deadline_scope
from content_parser.engines.content_extractor import (
    ContentExtractor,
    detect_feed_format,
    resolve_url,
)
from content_parser.engines.errors import (
    CancelledError,
    ExtractionError,
    FetchError,
    ParserAlreadyRegisteredError,
    ParserError,
    ParserNotFoundError,
    RateLimitedError,
    RegistryError,
    ValidationError,
)
from content_parser.engines.http_client import FetchResponse, HttpClient
from content_parser.engines.models import Extraction, ParseRequest, ParseResult
from content_parser.engines.parser_strategy import ParserStrategy
from content_parser.engines.rate_limiter import RateLimiter

__all__ = [
    # Data model
    "ParseRequest",
    "ParseResult",
    "Extraction",
    "ParserStrategy",
    # Collaborators
    "HttpClient",
    "FetchResponse",
    "RateLimiter",
    "ContentExtractor",
    "resolve_url",
    "detect_feed_format",
    # Cancellation
    "Deadline",
    "current_deadline",
    "deadline_scope",
    # Exceptions
    "ParserError",
    "ValidationError",
    "RateLimitedError",
    "FetchError",
    "ExtractionError",
    "CancelledError",
    "RegistryError",
    "ParserNotFoundError",
    "ParserAlreadyRegisteredError",
]
