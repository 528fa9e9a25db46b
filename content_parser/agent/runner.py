"""Runner module for the content parser.

This module wires together all components (the composition root) and runs
single and batch parse requests at the boundary.
"""

import json
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, TextIO

from content_parser.agent.pipeline import ParserPipeline
from content_parser.agent.registry import ParserRegistry
from content_parser.config.settings import ConfigurationError, Settings, load_settings
from content_parser.engines.cancellation import Deadline
from content_parser.engines.content_extractor import ContentExtractor
from content_parser.engines.errors import ParserNotFoundError, ValidationError
from content_parser.engines.http_client import HttpClient
from content_parser.engines.models import ParseRequest, ParseResult
from content_parser.engines.observability import BatchMetrics, create_batch_metrics, write_batch_log
from content_parser.engines.parsers import (
    BingSearchParser,
    FeedsParser,
    MediumParser,
    MultiUrlParser,
    RedditParser,
    SinglePageParser,
    TelegramParser,
)
from content_parser.engines.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_PARSE_ERROR = 2


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Logs go to stderr so stdout stays clean for JSON output.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_http_client(settings: Settings) -> HttpClient:
    return HttpClient(settings.http)


def build_registry(
    settings: Settings,
    http_client: HttpClient | None = None,
    extractor: ContentExtractor | None = None,
) -> ParserRegistry:
    """Register every built-in parser strategy.

    Args:
        settings: Loaded settings
        http_client: Shared HTTP client; built from settings when omitted
        extractor: Shared extraction toolkit; built from settings when omitted

    Returns:
        Registry holding feeds, reddit, single_page, medium, telegram, bing and multi
    """
    http_client = http_client or build_http_client(settings)
    extractor = extractor or ContentExtractor(settings.extraction)

    registry = ParserRegistry()
    registry.register("feeds", FeedsParser(http_client, extractor))
    registry.register("reddit", RedditParser(http_client))
    registry.register("single_page", SinglePageParser(http_client, extractor))
    registry.register("medium", MediumParser(http_client, extractor))
    registry.register("telegram", TelegramParser(http_client, extractor))
    registry.register("bing", BingSearchParser(http_client, extractor))
    registry.register("multi", lambda: MultiUrlParser(registry.get("single_page")))
    return registry


def build_pipeline(
    settings: Settings | None = None,
    http_client: HttpClient | None = None,
    rate_limiter: RateLimiter | None = None,
) -> ParserPipeline:
    """Build a ready-to-use pipeline with all built-in parsers registered."""
    settings = settings or Settings()
    registry = build_registry(settings, http_client=http_client)
    return ParserPipeline(registry, rate_limiter or RateLimiter(), settings)


def parse(
    pipeline: ParserPipeline,
    name: str,
    payload: ParseRequest | Mapping[str, Any],
    timeout: float | None = None,
) -> ParseResult:
    """Execute one request at the boundary.

    Unlike ``ParserPipeline.execute``, an unknown parser name or a malformed
    payload is reported as a failure result rather than raised.

    Args:
        pipeline: Pipeline to execute with
        name: Parser name
        payload: ParseRequest or its decoded wire form
        timeout: Optional deadline in seconds

    Returns:
        ParseResult
    """
    metadata = {"parser": name}
    try:
        request = payload if isinstance(payload, ParseRequest) else ParseRequest.from_dict(payload)
    except ValidationError as e:
        return ParseResult.failure(e, metadata)

    deadline = Deadline(timeout) if timeout is not None else None
    try:
        return pipeline.execute(name, request, deadline=deadline)
    except ParserNotFoundError as e:
        logger.error(str(e))
        metadata.update(source=request.source, type=request.type)
        return ParseResult.failure(str(e), metadata, kind=e.kind)


@dataclass
class BatchResult:
    """Outcome of a batch run.

    Attributes:
        results: Per-item entries in request order
        metrics: Aggregated batch metrics
    """
    results: list[dict[str, Any]] = field(default_factory=list)
    metrics: BatchMetrics = field(default_factory=BatchMetrics)

    @property
    def summary(self) -> dict[str, int]:
        return self.metrics.summary

    def to_dict(self) -> dict[str, Any]:
        return {"results": self.results, "summary": self.summary}


def _batch_entry(name: str, result: ParseResult) -> dict[str, Any]:
    if result.success:
        return {"parser": name, "success": True, "data": result.to_dict()}
    return {
        "parser": name,
        "success": False,
        "error": result.error,
        "error_kind": result.error_kind,
        "retry_after": result.retry_after,
        "data": None,
    }


def _run_batch_item(
    pipeline: ParserPipeline,
    item: Any,
    item_timeout: float | None,
) -> dict[str, Any]:
    if not isinstance(item, Mapping):
        error = ValidationError("Batch item must be an object")
        return _batch_entry("", ParseResult.failure(error))

    name = str(item.get("parser") or "")
    if not name.strip():
        error = ValidationError("Batch item validation failed: parser is required")
        return _batch_entry(name, ParseResult.failure(error))

    payload = {key: value for key, value in item.items() if key != "parser"}
    try:
        result = parse(pipeline, name, payload, timeout=item_timeout)
    except Exception as e:
        logger.exception(f"Batch item for parser '{name}' failed unexpectedly")
        result = ParseResult.failure(str(e) or type(e).__name__, {"parser": name})
    return _batch_entry(name, result)


def run_batch(
    pipeline: ParserPipeline,
    requests: Iterable[Any],
    max_workers: int = 4,
    item_timeout: float | None = None,
    max_requests: int | None = None,
) -> BatchResult:
    """Execute independent parse requests concurrently.

    Each item is a mapping with a ``parser`` key plus the request fields.
    Every item gets its own deadline, and one item's failure (validation,
    rate limit, fetch, timeout, unknown parser) never affects its siblings.

    Args:
        pipeline: Pipeline to execute with
        requests: Batch items
        max_workers: Thread pool size
        item_timeout: Per-item deadline in seconds
        max_requests: Largest accepted batch, unbounded when None

    Returns:
        BatchResult with per-item entries in request order and the summary

    Raises:
        ValidationError: If the batch is empty or larger than ``max_requests``.
    """
    items = list(requests)
    if not items:
        raise ValidationError("Batch validation failed: at least one request is required")
    if max_requests is not None and len(items) > max_requests:
        raise ValidationError(f"Batch validation failed: maximum {max_requests} requests allowed per batch")

    run_timestamp = datetime.now()
    started = time.monotonic()
    logger.info(f"Running batch of {len(items)} requests with {max_workers} workers")

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="parser") as executor:
        futures = [executor.submit(_run_batch_item, pipeline, item, item_timeout) for item in items]
        results = [future.result() for future in futures]

    metrics = create_batch_metrics(
        results,
        duration_ms=int((time.monotonic() - started) * 1000),
        run_timestamp=run_timestamp,
    )
    logger.info(
        f"Batch completed: {metrics.successful} successful, {metrics.failed} failed "
        f"in {metrics.duration_ms}ms"
    )
    return BatchResult(results=results, metrics=metrics)


def _emit(data: Any, output: TextIO) -> None:
    output.write(json.dumps(data, indent=2, ensure_ascii=False, default=str))
    output.write("\n")


def run(
    command: str,
    parser_name: str | None = None,
    payload: Mapping[str, Any] | None = None,
    batch: list[Any] | None = None,
    timeout: float | None = None,
    max_workers: int | None = None,
    log_dir: str | None = None,
    env_file: str | None = None,
    verbose: bool = False,
    output: TextIO | None = None,
) -> int:
    """Run one CLI command and write its JSON output.

    Args:
        command: "parse", "batch" or "list"
        parser_name: Parser to use for "parse"
        payload: Request fields for "parse"
        batch: Batch items for "batch"
        timeout: Deadline in seconds (per item for "batch")
        max_workers: Batch thread pool size; settings value when None
        log_dir: Directory for the batch JSON run log; no log when None
        env_file: Optional .env file to load settings from
        verbose: If True, enable verbose/debug logging.
        output: Stream for JSON output (default: stdout)

    Returns:
        Exit code:
        - 0: Success
        - 1: Configuration error
        - 2: Parse failure (any failed item for "batch")
    """
    _setup_logging(verbose)
    output = output or sys.stdout

    try:
        settings = load_settings(env_path=env_file, validate=True)
        logger.debug("Configuration loaded successfully")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    pipeline = build_pipeline(settings)

    if command == "list":
        _emit(pipeline.registry.all_details(), output)
        return EXIT_SUCCESS

    if command == "parse":
        result = parse(pipeline, parser_name or "", payload or {}, timeout=timeout)
        _emit(result.to_dict(), output)
        if not result.success:
            logger.error(f"Parse failed ({result.error_kind}): {result.error}")
            return EXIT_PARSE_ERROR
        return EXIT_SUCCESS

    if command == "batch":
        try:
            batch_result = run_batch(
                pipeline,
                batch or [],
                max_workers=max_workers or settings.batch.max_workers,
                item_timeout=timeout if timeout is not None else settings.batch.item_timeout,
                max_requests=settings.batch.max_requests,
            )
        except ValidationError as e:
            logger.error(e.message)
            _emit({"success": False, "error": e.message, "error_kind": e.kind}, output)
            return EXIT_PARSE_ERROR

        if log_dir:
            try:
                write_batch_log(batch_result.metrics, log_dir)
            except OSError as e:
                logger.error(f"Failed to write batch log: {e}")

        _emit(batch_result.to_dict(), output)
        return EXIT_SUCCESS if batch_result.metrics.failed == 0 else EXIT_PARSE_ERROR

    logger.error(f"Unknown command: {command}")
    return EXIT_CONFIG_ERROR
