"""Parser pipeline: the fixed execution contract every strategy plugs into.

Every execution runs the same steps in order:

1. validate the request
2. admit it through the rate limiter (keyed by parser name)
3. extract items with the strategy
4. count the total
5. slice the requested page
6. compute the next offset
7. build metadata
8. package a ParseResult

Steps 1 and 2 return error values instead of raising; anything raised from
step 3 onward is converted into a failure result, so a single request never
raises out of ``run``. Only registry lookups in ``execute`` raise.
"""

import logging
import time
from typing import Any, Sequence, TypeVar

from content_parser.agent.registry import ParserRegistry, normalize_name
from content_parser.config.settings import Settings
from content_parser.engines.cancellation import Deadline, deadline_scope
from content_parser.engines.errors import (
    ExtractionError,
    ParserError,
    RateLimitedError,
    ValidationError,
)
from content_parser.engines.models import ParseRequest, ParseResult
from content_parser.engines.observability import log_stage_counts
from content_parser.engines.parser_strategy import ParserStrategy
from content_parser.engines.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


T = TypeVar("T")


def paginate(items: Sequence[T], offset: int | None, limit: int | None) -> list[T]:
    """Return the page of ``items`` starting at ``offset`` with at most ``limit`` items.

    The offset applies even without a limit; no limit means no truncation.

    Example:
        >>> paginate([1, 2, 3, 4], offset=1, limit=2)
        [2, 3]
    """
    start = offset or 0
    if limit is None:
        return list(items[start:])
    return list(items[start:start + limit])


def next_offset(offset: int | None, limit: int | None, total: int, returned: int) -> int | None:
    """Offset of the following page, or None when unpaginated or exhausted.

    Example:
        >>> next_offset(0, 1, total=2, returned=1)
        1
        >>> next_offset(1, 1, total=2, returned=1) is None
        True
    """
    if limit is None:
        return None
    following = (offset or 0) + returned
    return following if following < total else None


def validate_request(request: ParseRequest) -> ValidationError | None:
    """Check the fields every strategy relies on; return the problem, if any."""
    if not isinstance(request.source, str) or not request.source.strip():
        return ValidationError("Parse request validation failed: source is required")

    if request.limit is not None and (
        not isinstance(request.limit, int) or isinstance(request.limit, bool) or request.limit < 1
    ):
        return ValidationError("Parse request validation failed: limit must be a positive integer")

    if request.offset is not None and (
        not isinstance(request.offset, int) or isinstance(request.offset, bool) or request.offset < 0
    ):
        return ValidationError("Parse request validation failed: offset must be a non-negative integer")

    if not all(isinstance(keyword, str) for keyword in request.keywords):
        return ValidationError("Parse request validation failed: keywords must be strings")

    return None


class ParserPipeline:
    """Runs parse requests through registered strategies.

    The pipeline holds no per-request state; one instance serves concurrent
    executions from many threads.

    Attributes:
        registry: Name -> strategy lookup
        rate_limiter: Shared admission counters
        settings: Rate-limit configuration source
    """

    def __init__(
        self,
        registry: ParserRegistry,
        rate_limiter: RateLimiter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.rate_limiter = rate_limiter or RateLimiter()
        self.settings = settings or Settings()

    def execute(
        self,
        strategy_name: str,
        request: ParseRequest,
        deadline: Deadline | None = None,
    ) -> ParseResult:
        """Resolve ``strategy_name`` and run ``request`` through it.

        Args:
            strategy_name: Registered parser name (case and padding insensitive)
            request: Parse request
            deadline: Optional caller deadline; expiry yields a cancelled failure

        Returns:
            ParseResult, successful or not

        Raises:
            ParserNotFoundError: If no parser is registered under the name.
        """
        strategy = self.registry.get(strategy_name)
        return self.run(strategy, request, deadline=deadline, name=normalize_name(strategy_name))

    def run(
        self,
        strategy: ParserStrategy,
        request: ParseRequest,
        deadline: Deadline | None = None,
        name: str | None = None,
    ) -> ParseResult:
        """Run the execution contract for an already resolved strategy.

        Args:
            strategy: Strategy to extract with
            request: Parse request
            deadline: Optional caller deadline
            name: Rate-limit key and reported parser name; defaults to ``strategy.name``

        Returns:
            ParseResult; never raises for problems with this request
        """
        name = normalize_name(name or getattr(strategy, "name", "") or type(strategy).__name__)
        started = time.monotonic()
        base_metadata = {"parser": name, "source": request.source, "type": request.type}

        error = validate_request(request) or self.admit(name)
        if error is not None:
            logger.info(f"Parser '{name}' rejected request: {error.message}")
            return ParseResult.failure(error, self._finish(base_metadata, started))

        try:
            with deadline_scope(deadline):
                if deadline is not None:
                    deadline.check()
                extraction = strategy.extract(request)
                items = list(extraction.items)
                total = len(items)
                log_stage_counts(name, "extracted", total)

                page = paginate(items, request.offset, request.limit)
                log_stage_counts(name, "returned", len(page))

                metadata = {**extraction.metadata, **base_metadata}
        except ParserError as e:
            logger.warning(f"Parser '{name}' failed for {request.source}: {e.message}")
            return ParseResult.failure(e, self._finish(base_metadata, started))
        except Exception as e:
            logger.exception(f"Parser '{name}' raised while extracting {request.source}")
            message = str(e) or type(e).__name__
            return ParseResult.failure(ExtractionError(message), self._finish(base_metadata, started))

        return ParseResult.success_result(
            items=page,
            metadata=self._finish(metadata, started),
            total=total,
            next_offset=next_offset(request.offset, request.limit, total, len(page)),
        )

    def admit(self, name: str) -> RateLimitedError | None:
        """Take one admission for ``name``; return the rejection, if any."""
        limits = self.settings.rate_limit_for(name)
        admitted = self.rate_limiter.admit(
            name,
            limits.short_limit,
            limits.short_window_seconds,
            limits.long_limit,
            limits.long_window_seconds,
        )
        if admitted:
            return None

        retry_after = self.rate_limiter.available_in(name, limits.short_limit, limits.long_limit)
        return RateLimitedError(name, retry_after=retry_after or None)

    @staticmethod
    def _finish(metadata: dict[str, Any], started: float) -> dict[str, Any]:
        metadata["duration_ms"] = int((time.monotonic() - started) * 1000)
        return metadata
