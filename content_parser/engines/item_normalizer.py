"""Item normalization utilities shared by parser strategies."""

import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import tldextract
from dateutil import parser as date_parser
from dateutil.parser import ParserError


logger = logging.getLogger(__name__)


# Tracking parameters to strip from URLs (all lowercase for case-insensitive matching)
TRACKING_PARAMS = frozenset({
    # UTM parameters
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content', 'utm_id',
    # Ad click identifiers
    'fbclid', 'gclid', 'gclsrc', 'dclid', 'msclkid', 'twclid', 'li_fat_id',
    # Mailchimp
    'mc_cid', 'mc_eid',
    # Google Analytics
    '_ga', '_gl',
    # Social share referrers
    'ref_src', 'ref_url', 'igshid', 'share_id',
})

# Offline snapshot only; never fetch the public suffix list at runtime
_domain_extractor = tldextract.TLDExtract(suffix_list_urls=())

_WHITESPACE = re.compile(r'\s+')


def normalize_url(url: str | None) -> str | None:
    """Strip tracking parameters and the fragment from a URL.

    Args:
        url: URL to normalize, may contain tracking parameters

    Returns:
        Canonical URL, or the input unchanged when empty

    Example:
        >>> normalize_url("https://example.com/post?utm_source=x&id=7#top")
        'https://example.com/post?id=7'
    """
    if not url:
        return url

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query, keep_blank_values=True)
    kept = {
        key: values
        for key, values in query_params.items()
        if key.lower() not in TRACKING_PARAMS and not key.lower().startswith('utm_')
    }
    query = urlencode(kept, doseq=True) if kept else ''

    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, parsed.params, query, ''))


def registered_domain(url: str | None) -> str | None:
    """Return the registrable domain of ``url`` ("news.bbc.co.uk" -> "bbc.co.uk").

    Falls back to the bare host for hosts without a known public suffix
    (localhost, IP addresses, test domains).
    """
    if not url:
        return None

    host = urlparse(url if '//' in url else f'//{url}').hostname
    if not host:
        return None

    extracted = _domain_extractor(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}"
    return host


def parse_date(date_str: str | None) -> datetime | None:
    """Parse a date string into a datetime object.

    Uses python-dateutil for flexible parsing. Returns None on parse failure
    instead of raising an exception.

    Args:
        date_str: Date string in any common format, or None

    Returns:
        Parsed datetime object, or None if parsing fails or input is None

    Example:
        >>> parse_date("Mon, 15 Jan 2024 10:30:00 GMT")
        datetime.datetime(2024, 1, 15, 10, 30, tzinfo=tzutc())
    """
    if not isinstance(date_str, str):
        return None

    date_str = date_str.strip()
    if not date_str:
        return None

    try:
        return date_parser.parse(date_str)
    except (ParserError, ValueError, OverflowError) as e:
        logger.warning(f"Failed to parse date '{date_str}': {e}")
        return None


def to_iso_date(value: Any) -> str | None:
    """Render a date string, datetime or Unix timestamp as ISO 8601.

    Unparsable strings are returned unchanged so no upstream value is lost.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()

    parsed = parse_date(str(value))
    return parsed.isoformat() if parsed else str(value)


def normalize_text(text: str | None) -> str | None:
    """Normalize text: NFC unicode, trimmed, internal whitespace collapsed.

    Example:
        >>> normalize_text("  Hello   World  ")
        'Hello World'
    """
    if text is None:
        return None

    normalized = unicodedata.normalize('NFC', text)
    return _WHITESPACE.sub(' ', normalized).strip()


def normalize_item(item: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``item`` with canonical URL, ISO date and trimmed text.

    Adds ``canonical_url`` and ``domain`` when the item has a ``url``;
    ``title``, ``author`` and ``description`` are whitespace-normalized and
    ``published_at`` becomes ISO 8601 where it can be parsed. Unknown keys
    pass through untouched.
    """
    normalized = dict(item)

    for key in ('title', 'author', 'description'):
        if isinstance(normalized.get(key), str):
            normalized[key] = normalize_text(normalized[key])

    if normalized.get('published_at') is not None:
        normalized['published_at'] = to_iso_date(normalized['published_at'])

    url = normalized.get('url')
    if isinstance(url, str) and url:
        normalized.setdefault('canonical_url', normalize_url(url))
        normalized.setdefault('domain', registered_domain(url))

    return normalized
