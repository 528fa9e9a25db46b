#!/usr/bin/env python3
"""Main entry point for the content parser.

This module provides the CLI interface for running parsers.

Usage:
    content-parser list
    content-parser parse feeds https://example.com/feed.xml --limit 10
    content-parser parse single_page https://example.com --type css --option selector=article
    content-parser batch requests.json --log-dir output
    content-parser -v parse reddit https://www.reddit.com/r/python/.json
"""

import argparse
import json
import logging
import sys
from typing import Any

from content_parser.agent.runner import EXIT_PARSE_ERROR, run


logger = logging.getLogger(__name__)


def _key_value(text: str) -> tuple[str, Any]:
    """Parse ``key=value``; the value is decoded as JSON when it parses."""
    key, separator, raw = text.partition("=")
    if not separator or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key.strip(), value


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="content-parser",
        description="Content parser - extract items from feeds, pages, Reddit, Telegram and search",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging output",
    )

    parser.add_argument(
        "--env-file",
        help="Load settings from this .env file",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List available parsers")

    parse_cmd = commands.add_parser("parse", help="Run one parser against a source")
    parse_cmd.add_argument("parser", help="Parser name (see 'list')")
    parse_cmd.add_argument("source", help="Source URL, channel name, query or URL list")
    parse_cmd.add_argument("--type", default="auto", help="Parser sub-mode (default: auto)")
    parse_cmd.add_argument(
        "--keyword", action="append", default=[], dest="keywords", help="Keyword (repeatable)"
    )
    parse_cmd.add_argument(
        "--option", action="append", default=[], type=_key_value, dest="options",
        help="Parser option as key=value (repeatable)",
    )
    parse_cmd.add_argument(
        "--filter", action="append", default=[], type=_key_value, dest="filters",
        help="Filter as key=value (repeatable)",
    )
    parse_cmd.add_argument("--limit", type=int, help="Maximum number of items")
    parse_cmd.add_argument("--offset", type=int, help="Number of items to skip")
    parse_cmd.add_argument("--timeout", type=float, help="Deadline in seconds")

    batch_cmd = commands.add_parser("batch", help="Run a JSON batch of requests concurrently")
    batch_cmd.add_argument(
        "file",
        help="JSON file holding a list of requests (or {\"requests\": [...]}); '-' for stdin",
    )
    batch_cmd.add_argument("--workers", type=int, help="Concurrent workers")
    batch_cmd.add_argument("--timeout", type=float, help="Per-item deadline in seconds")
    batch_cmd.add_argument("--log-dir", help="Write a JSON batch log to this directory")

    return parser.parse_args(args)


def load_batch(path: str) -> list[Any]:
    """Read batch items from a JSON file or stdin.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not JSON or not a list of requests.
    """
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

    if isinstance(data, dict):
        data = data.get("requests")
    if not isinstance(data, list):
        raise ValueError("batch file must hold a JSON list of requests")
    return data


def main(args: list[str] | None = None) -> int:
    """Main entry point for the content parser.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parsed = parse_args(args)

    if parsed.command == "parse":
        payload = {
            "source": parsed.source,
            "type": parsed.type,
            "keywords": parsed.keywords,
            "options": dict(parsed.options),
            "filters": dict(parsed.filters),
            "limit": parsed.limit,
            "offset": parsed.offset,
        }
        return run(
            "parse",
            parser_name=parsed.parser,
            payload=payload,
            timeout=parsed.timeout,
            env_file=parsed.env_file,
            verbose=parsed.verbose,
        )

    if parsed.command == "batch":
        try:
            batch = load_batch(parsed.file)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read batch file {parsed.file}: {e}")
            return EXIT_PARSE_ERROR
        return run(
            "batch",
            batch=batch,
            timeout=parsed.timeout,
            max_workers=parsed.workers,
            log_dir=parsed.log_dir,
            env_file=parsed.env_file,
            verbose=parsed.verbose,
        )

    return run("list", env_file=parsed.env_file, verbose=parsed.verbose)


if __name__ == "__main__":
    sys.exit(main())
