"""Configuration module - settings and environment management."""

from content_parser.config.settings import (
    BatchSettings,
    ConfigurationError,
    ExtractionSettings,
    HttpSettings,
    RateLimitSettings,
    Settings,
    load_settings,
)

__all__ = [
    "BatchSettings",
    "ConfigurationError",
    "ExtractionSettings",
    "HttpSettings",
    "RateLimitSettings",
    "Settings",
    "load_settings",
]
