"""Configuration settings for the content parser core."""

from dataclasses import dataclass, field
from pathlib import Path
import os

from dotenv import load_dotenv


DEFAULT_USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
}

DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

DEFAULT_REMOVE_TAGS: list[str] = ["script", "style", "iframe", "noscript"]

DEFAULT_REMOVE_ATTRIBUTES: list[str] = ["onclick", "onload", "onerror"]

DEFAULT_IMAGE_SELECTORS: list[str] = [
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
    "img[src]",
]


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class HttpSettings:
    """Settings for the resilient HTTP client.

    Attributes:
        timeout: Per-attempt request timeout in seconds
        max_attempts: Total attempts per logical request (first try included)
        backoff_base_delay: Delay before the first retry, in seconds
        backoff_multiplier: Factor applied to the delay on each further retry
        retryable_statuses: HTTP statuses that trigger a retry
        user_agents: Pool of User-Agent strings rotated round-robin
        default_headers: Headers sent with every request
    """

    timeout: float = 20.0
    max_attempts: int = 3
    backoff_base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES
    user_agents: list[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))


@dataclass
class RateLimitSettings:
    """Two-window admission limits for one rate-limit key."""

    short_limit: int = 30
    short_window_seconds: int = 60
    long_limit: int = 300
    long_window_seconds: int = 3600


@dataclass
class ExtractionSettings:
    """Settings for the content extraction toolkit."""

    remove_tags: list[str] = field(default_factory=lambda: list(DEFAULT_REMOVE_TAGS))
    remove_attributes: list[str] = field(default_factory=lambda: list(DEFAULT_REMOVE_ATTRIBUTES))
    image_selectors: list[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_SELECTORS))


@dataclass
class BatchSettings:
    """Settings for batch execution at the boundary.

    Attributes:
        max_workers: Thread pool size for concurrent batch items
        item_timeout: Per-item deadline in seconds, or None for no deadline
        max_requests: Largest batch accepted in one call
    """

    max_workers: int = 4
    item_timeout: float | None = 60.0
    max_requests: int = 100


# Per-parser overrides, keyed by registry name
DEFAULT_PARSER_RATE_LIMITS: dict[str, RateLimitSettings] = {
    "feeds": RateLimitSettings(short_limit=60, long_limit=600),
    "reddit": RateLimitSettings(short_limit=30, long_limit=120),
    "single_page": RateLimitSettings(short_limit=45, long_limit=300),
    "telegram": RateLimitSettings(short_limit=15, long_limit=100),
    "medium": RateLimitSettings(short_limit=25, long_limit=200),
    "bing": RateLimitSettings(short_limit=20, long_limit=150),
    "multi": RateLimitSettings(short_limit=10, long_limit=80),
}


@dataclass
class Settings:
    """Configuration settings for the content parser core.

    Attributes:
        http: Resilient HTTP client settings
        rate_limit: Global default two-window limits
        parser_rate_limits: Per-parser overrides of the global default
        extraction: Content extraction toolkit settings
        batch: Batch execution settings
    """

    http: HttpSettings = field(default_factory=HttpSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    parser_rate_limits: dict[str, RateLimitSettings] = field(
        default_factory=lambda: dict(DEFAULT_PARSER_RATE_LIMITS)
    )
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    batch: BatchSettings = field(default_factory=BatchSettings)

    def rate_limit_for(self, name: str) -> RateLimitSettings:
        """Return the rate limits for a parser, falling back to the global default."""
        return self.parser_rate_limits.get(name.strip().lower(), self.rate_limit)

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If any configuration value is invalid.
        """
        errors: list[str] = []

        if self.http.timeout <= 0:
            errors.append("http.timeout must be positive")

        if self.http.max_attempts < 1:
            errors.append("http.max_attempts must be at least 1")

        if self.http.backoff_base_delay < 0:
            errors.append("http.backoff_base_delay must be non-negative")

        if self.http.backoff_multiplier < 1:
            errors.append("http.backoff_multiplier must be at least 1")

        if not self.http.user_agents:
            errors.append("http.user_agents must not be empty")

        limits = [("rate_limit", self.rate_limit)] + [
            (f"parser_rate_limits.{name}", value)
            for name, value in self.parser_rate_limits.items()
        ]
        for label, value in limits:
            if value.short_limit < 1 or value.long_limit < 1:
                errors.append(f"{label} limits must be at least 1")
            if value.short_window_seconds < 1 or value.long_window_seconds < 1:
                errors.append(f"{label} windows must be at least 1 second")

        if self.batch.max_workers < 1:
            errors.append("batch.max_workers must be at least 1")

        if self.batch.item_timeout is not None and self.batch.item_timeout <= 0:
            errors.append("batch.item_timeout must be positive when set")

        if self.batch.max_requests < 1:
            errors.append("batch.max_requests must be at least 1")

        if errors:
            raise ConfigurationError("; ".join(errors))


def _parse_float(value: str | None, default: float) -> float:
    """Parse a string to float, returning default if None or invalid."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_int(value: str | None, default: int) -> int:
    """Parse a string to int, returning default if None or invalid."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_list(value: str | None, default: list[str], sep: str = "|") -> list[str]:
    """Parse a separator-delimited string, returning default if None or empty."""
    if value is None:
        return list(default)
    parts = [part.strip() for part in value.split(sep) if part.strip()]
    return parts or list(default)


def _parse_statuses(value: str | None, default: frozenset[int]) -> frozenset[int]:
    """Parse a comma-separated status list, returning default if None or invalid."""
    if value is None:
        return default
    try:
        statuses = frozenset(int(part) for part in value.split(",") if part.strip())
    except ValueError:
        return default
    return statuses or default


def _parse_optional_float(value: str | None, default: float | None) -> float | None:
    """Parse a float where "none" or "0" disables the setting."""
    if value is None:
        return default
    if value.strip().lower() in ("", "none", "0"):
        return None
    try:
        return float(value)
    except ValueError:
        return default


def _load_parser_rate_limits(default: RateLimitSettings) -> dict[str, RateLimitSettings]:
    """Apply PARSER_RATE_LIMIT_<NAME>_RPM/RPH overrides on top of the built-in table."""
    limits: dict[str, RateLimitSettings] = {}
    for name, value in DEFAULT_PARSER_RATE_LIMITS.items():
        prefix = f"PARSER_RATE_LIMIT_{name.upper()}"
        limits[name] = RateLimitSettings(
            short_limit=_parse_int(os.getenv(f"{prefix}_RPM"), value.short_limit),
            short_window_seconds=default.short_window_seconds,
            long_limit=_parse_int(os.getenv(f"{prefix}_RPH"), value.long_limit),
            long_window_seconds=default.long_window_seconds,
        )
    return limits


def load_settings(env_path: str | Path | None = None, validate: bool = True) -> Settings:
    """Load settings from environment variables and .env file.

    Args:
        env_path: Optional path to .env file. If None, searches for .env
                  in current directory and parent directories.
        validate: If True, validate settings after loading.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        ConfigurationError: If validate=True and configuration is invalid.
    """
    # Load .env file if it exists
    if env_path:
        load_dotenv(env_path)
    else:
        load_dotenv()

    http = HttpSettings(
        timeout=_parse_float(os.getenv("PARSER_HTTP_TIMEOUT"), 20.0),
        max_attempts=_parse_int(os.getenv("PARSER_HTTP_MAX_ATTEMPTS"), 3),
        backoff_base_delay=_parse_float(os.getenv("PARSER_HTTP_RETRY_DELAY"), 1.0),
        backoff_multiplier=_parse_float(os.getenv("PARSER_HTTP_BACKOFF_FACTOR"), 2.0),
        retryable_statuses=_parse_statuses(
            os.getenv("PARSER_HTTP_RETRY_STATUSES"), DEFAULT_RETRYABLE_STATUSES
        ),
        user_agents=_parse_list(os.getenv("PARSER_HTTP_USER_AGENTS"), DEFAULT_USER_AGENTS),
        default_headers=dict(DEFAULT_HEADERS),
    )

    rate_limit = RateLimitSettings(
        short_limit=_parse_int(os.getenv("PARSER_RATE_LIMIT_RPM"), 30),
        short_window_seconds=_parse_int(os.getenv("PARSER_RATE_LIMIT_SHORT_WINDOW"), 60),
        long_limit=_parse_int(os.getenv("PARSER_RATE_LIMIT_RPH"), 300),
        long_window_seconds=_parse_int(os.getenv("PARSER_RATE_LIMIT_LONG_WINDOW"), 3600),
    )

    extraction = ExtractionSettings(
        remove_tags=_parse_list(os.getenv("PARSER_EXTRACTION_REMOVE_TAGS"), DEFAULT_REMOVE_TAGS, ","),
        remove_attributes=_parse_list(
            os.getenv("PARSER_EXTRACTION_REMOVE_ATTRIBUTES"), DEFAULT_REMOVE_ATTRIBUTES, ","
        ),
        image_selectors=list(DEFAULT_IMAGE_SELECTORS),
    )

    batch = BatchSettings(
        max_workers=_parse_int(os.getenv("PARSER_BATCH_MAX_WORKERS"), 4),
        item_timeout=_parse_optional_float(os.getenv("PARSER_BATCH_ITEM_TIMEOUT"), 60.0),
        max_requests=_parse_int(os.getenv("PARSER_BATCH_MAX_REQUESTS"), 100),
    )

    settings = Settings(
        http=http,
        rate_limit=rate_limit,
        parser_rate_limits=_load_parser_rate_limits(rate_limit),
        extraction=extraction,
        batch=batch,
    )

    if validate:
        settings.validate()

    return settings
