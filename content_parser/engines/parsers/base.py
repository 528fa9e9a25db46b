"""Helpers shared by the concrete parser strategies."""

import logging

from content_parser.engines.errors import FetchError, ValidationError
from content_parser.engines.http_client import FetchResponse, HttpClient


logger = logging.getLogger(__name__)


def require_source(source: str, what: str = "source") -> str:
    """Return the stripped source, raising ValidationError when it is empty."""
    value = (source or "").strip()
    if not value:
        raise ValidationError(f"Parse request validation failed: {what} is required")
    return value


def require_http_url(source: str) -> str:
    """Return ``source`` when it is an http(s) URL.

    Raises:
        ValidationError: If the source is empty or not an http(s) URL.
    """
    url = require_source(source, "source URL")
    if not url.lower().startswith(("http://", "https://")):
        raise ValidationError(f"Parse request validation failed: '{url}' is not an http(s) URL")
    return url


def fetch_document(
    http_client: HttpClient,
    url: str,
    headers: dict[str, str] | None = None,
    json: bool = False,
) -> FetchResponse:
    """Fetch ``url`` and insist on a successful status.

    The HTTP client hands back non-retryable statuses such as 404 as normal
    responses; every strategy treats them as unusable upstream content.

    Args:
        http_client: Client to fetch with
        url: Document URL
        headers: Extra request headers
        json: Ask for a JSON response

    Returns:
        The successful FetchResponse

    Raises:
        FetchError: On a 4xx/5xx response or when the client gives up.
    """
    if json:
        headers = {"Accept": "application/json", **(headers or {})}

    response = http_client.fetch(url, headers)
    if response.status_code >= 400:
        logger.warning(f"Upstream returned HTTP {response.status_code} for {url}")
        raise FetchError(
            f"Upstream returned HTTP {response.status_code} for {url}",
            url=url,
            status_code=response.status_code,
        )
    return response
