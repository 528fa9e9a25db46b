"""Observability and run metrics for parser executions.

This module provides data structures and functions for logging pipeline
stage counts, aggregating batch outcomes and writing batch run logs.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable


logger = logging.getLogger(__name__)


@dataclass
class BatchMetrics:
    """Metrics collected during a batch run.

    Attributes:
        total: Number of requests in the batch
        successful: Requests that produced a success result
        failed: Requests that produced a failure result
        items_by_parser: Items returned per parser name
        errors_by_kind: Failure counts per error kind
        errors: Error messages encountered, prefixed with the parser name
        duration_ms: Wall-clock duration of the batch
        run_timestamp: Timestamp when the batch started
    """
    total: int = 0
    successful: int = 0
    failed: int = 0
    items_by_parser: dict[str, int] = field(default_factory=dict)
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    run_timestamp: datetime = field(default_factory=datetime.now)

    @property
    def summary(self) -> dict[str, int]:
        return {"total": self.total, "successful": self.successful, "failed": self.failed}


def create_batch_metrics(
    entries: Iterable[dict[str, Any]],
    duration_ms: int = 0,
    run_timestamp: datetime | None = None,
) -> BatchMetrics:
    """Aggregate per-item batch entries into BatchMetrics.

    Args:
        entries: Batch entries as produced by the runner; each has ``parser``,
            ``success`` and either ``data`` (a result dict) or ``error``
        duration_ms: Batch duration in milliseconds
        run_timestamp: When the batch started (defaults to now)

    Returns:
        BatchMetrics with counts filled in

    Example:
        >>> metrics = create_batch_metrics([
        ...     {"parser": "feeds", "success": True, "data": {"items": [{}, {}]}},
        ...     {"parser": "reddit", "success": False, "error": "boom", "error_kind": "fetch"},
        ... ])
        >>> metrics.summary
        {'total': 2, 'successful': 1, 'failed': 1}
    """
    items_by_parser: Counter[str] = Counter()
    errors_by_kind: Counter[str] = Counter()
    errors: list[str] = []
    total = successful = 0

    for entry in entries:
        total += 1
        parser = entry.get("parser") or "unknown"
        if entry.get("success"):
            successful += 1
            items_by_parser[parser] += len((entry.get("data") or {}).get("items") or [])
        else:
            errors_by_kind[entry.get("error_kind") or "error"] += 1
            errors.append(f"{parser}: {entry.get('error')}")

    return BatchMetrics(
        total=total,
        successful=successful,
        failed=total - successful,
        items_by_parser=dict(items_by_parser),
        errors_by_kind=dict(errors_by_kind),
        errors=errors,
        duration_ms=duration_ms,
        run_timestamp=run_timestamp or datetime.now(),
    )


def write_batch_log(metrics: BatchMetrics, output_dir: str = "output") -> str:
    """Write batch metrics to a JSON log file.

    Creates ``batch_log_YYYYMMDD_HHMMSS.json`` in ``output_dir``, creating
    the directory if needed.

    Args:
        metrics: BatchMetrics instance to write
        output_dir: Directory path for the log file

    Returns:
        The filepath of the written JSON file

    Raises:
        OSError: If the directory cannot be created or the file cannot be written
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    timestamp = metrics.run_timestamp.strftime('%Y%m%d_%H%M%S')
    filepath = output_path / f"batch_log_{timestamp}.json"

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(_metrics_to_dict(metrics), f, indent=2, ensure_ascii=False)

    logger.info(f"Batch log written to {filepath}")
    return str(filepath)


def _metrics_to_dict(metrics: BatchMetrics) -> dict[str, Any]:
    return {
        "summary": metrics.summary,
        "items_by_parser": metrics.items_by_parser,
        "errors_by_kind": metrics.errors_by_kind,
        "errors": metrics.errors,
        "duration_ms": metrics.duration_ms,
        "run_timestamp": metrics.run_timestamp.isoformat(),
    }


def log_stage_counts(parser: str, stage: str, count: int) -> None:
    """Log the item count a parser execution reached at a pipeline stage.

    Example:
        >>> log_stage_counts("feeds", "extracted", 45)
        # Logs: "Parser 'feeds' stage 'extracted': 45 items"
    """
    logger.info(f"Parser '{parser}' stage '{stage}': {count} items")
