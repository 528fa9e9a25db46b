"""Agent module - registry, pipeline and runner."""

from content_parser.agent.pipeline import ParserPipeline, next_offset, paginate
from content_parser.agent.registry import ParserRegistry, normalize_name
from content_parser.agent.runner import (
    BatchResult,
    build_pipeline,
    build_registry,
    parse,
    run_batch,
)

__all__ = [
    "ParserRegistry",
    "normalize_name",
    "ParserPipeline",
    "paginate",
    "next_offset",
    "BatchResult",
    "build_pipeline",
    "build_registry",
    "parse",
    "run_batch",
]
