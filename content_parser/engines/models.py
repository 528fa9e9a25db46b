"""Request, result and extraction data models."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from content_parser.engines.errors import ParserError, ValidationError


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return a read-only copy of ``mapping``."""
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ParseRequest:
    """An immutable request to run one parser strategy.

    Attributes:
        source: Source locator (URL, channel name, search query, URL list)
        type: Sub-mode selector such as a feed format hint or extraction mode
        keywords: Ordered keywords for search-style strategies
        options: Strategy-specific parameters
        limit: Maximum number of items to return, or None for all
        offset: Number of leading items to skip, or None for zero
        filters: Strategy-specific filters
    """

    source: str
    type: str
    keywords: tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    limit: int | None = None
    offset: int | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", tuple(self.keywords or ()))
        object.__setattr__(self, "options", _freeze(self.options))
        object.__setattr__(self, "filters", _freeze(self.filters))

    @property
    def effective_offset(self) -> int:
        return self.offset or 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParseRequest":
        """Build a request from a decoded wire payload.

        Args:
            data: Mapping with at least ``source`` and ``type`` keys

        Returns:
            ParseRequest built from the payload

        Raises:
            ValidationError: If a field has the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Parse request must be an object")

        limit = data.get("limit")
        offset = data.get("offset")
        if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
            raise ValidationError("Parse request validation failed: limit must be a positive integer")
        if offset is not None and (not isinstance(offset, int) or isinstance(offset, bool) or offset < 0):
            raise ValidationError("Parse request validation failed: offset must be a non-negative integer")

        keywords = data.get("keywords") or []
        if not isinstance(keywords, (list, tuple)) or not all(isinstance(k, str) for k in keywords):
            raise ValidationError("Parse request validation failed: keywords must be a list of strings")

        for key in ("options", "filters"):
            if data.get(key) is not None and not isinstance(data[key], Mapping):
                raise ValidationError(f"Parse request validation failed: {key} must be an object")

        return cls(
            source=str(data.get("source") or ""),
            type=str(data.get("type") or ""),
            keywords=tuple(keywords),
            options=data.get("options") or {},
            limit=limit,
            offset=offset,
            filters=data.get("filters") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "type": self.type,
            "keywords": list(self.keywords),
            "options": dict(self.options),
            "limit": self.limit,
            "offset": self.offset,
            "filters": dict(self.filters),
        }

    def with_source(self, source: str, type: str | None = None) -> "ParseRequest":
        """Return a copy of this request aimed at a different source."""
        return ParseRequest(
            source=source,
            type=self.type if type is None else type,
            keywords=self.keywords,
            options=self.options,
            limit=self.limit,
            offset=self.offset,
            filters=self.filters,
        )


@dataclass
class Extraction:
    """Output of a strategy's extraction step.

    Attributes:
        items: Normalized item maps, in extraction order
        metadata: Strategy diagnostics merged into the result metadata
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one pipeline execution.

    A failure never carries items: ``items`` is empty, ``total`` is 0 and
    ``next_offset`` is None whenever ``success`` is False.

    Attributes:
        success: Whether the execution produced items
        items: Paginated items, in extraction order
        error: Failure message; None on success
        metadata: Parser name, source, type and strategy diagnostics
        total: Item count before pagination
        next_offset: Offset of the next page, or None when exhausted or unpaginated
        error_kind: Failure category (validation, rate_limited, fetch, ...)
        retry_after: Seconds to wait before retrying a rate-limited request
    """

    success: bool
    items: list[dict[str, Any]]
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    total: int = 0
    next_offset: int | None = None
    error_kind: str | None = None
    retry_after: int | None = None

    @classmethod
    def success_result(
        cls,
        items: list[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
        total: int | None = None,
        next_offset: int | None = None,
    ) -> "ParseResult":
        return cls(
            success=True,
            items=list(items),
            error=None,
            metadata=dict(metadata or {}),
            total=len(items) if total is None else total,
            next_offset=next_offset,
        )

    @classmethod
    def failure(
        cls,
        error: ParserError | str,
        metadata: dict[str, Any] | None = None,
        kind: str | None = None,
    ) -> "ParseResult":
        """Build a failure result from an error value or message."""
        if isinstance(error, ParserError):
            message = error.message
            error_kind = kind or error.kind
            retry_after = getattr(error, "retry_after", None)
        else:
            message = str(error)
            error_kind = kind or "error"
            retry_after = None

        return cls(
            success=False,
            items=[],
            error=message or "Parse failed",
            metadata=dict(metadata or {}),
            total=0,
            next_offset=None,
            error_kind=error_kind,
            retry_after=retry_after,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "items": self.items,
            "error": self.error,
            "error_kind": self.error_kind,
            "retry_after": self.retry_after,
            "metadata": self.metadata,
            "total": self.total,
            "next_offset": self.next_offset,
        }
