"""Unit tests for the command line interface.

Feature: content-parser
"""

import argparse
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from content_parser.main import _key_value, load_batch, main, parse_args


class TestArgumentParsing:
    """Unit tests for argument parsing."""

    def test_parse_command_arguments(self):
        args = parse_args([
            "-v", "parse", "single_page", "https://x.test/",
            "--type", "css",
            "--option", "selector=article",
            "--option", "clean_html=true",
            "--filter", "site=x.test",
            "--keyword", "python",
            "--limit", "5",
            "--offset", "10",
        ])

        assert args.verbose is True
        assert args.command == "parse"
        assert args.parser == "single_page"
        assert args.type == "css"
        assert dict(args.options) == {"selector": "article", "clean_html": True}
        assert dict(args.filters) == {"site": "x.test"}
        assert args.keywords == ["python"]
        assert args.limit == 5
        assert args.offset == 10

    def test_type_defaults_to_auto(self):
        assert parse_args(["parse", "feeds", "https://x.test/feed"]).type == "auto"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    @pytest.mark.parametrize("text, expected", [
        ("count=20", ("count", 20)),
        ("name=plain text", ("name", "plain text")),
        (" first =1", ("first", 1)),
        ("empty=", ("empty", "")),
    ])
    def test_key_value(self, text, expected):
        assert _key_value(text) == expected

    @pytest.mark.parametrize("text", ["novalue", "=1"])
    def test_key_value_rejects_malformed(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            _key_value(text)


class TestLoadBatch:
    """Unit tests for batch file loading."""

    def test_list_file(self, tmp_path: Path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([{"parser": "feeds"}]), encoding="utf-8")

        assert load_batch(str(path)) == [{"parser": "feeds"}]

    def test_wrapped_requests(self, tmp_path: Path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"requests": [{"parser": "bing"}]}), encoding="utf-8")

        assert load_batch(str(path)) == [{"parser": "bing"}]

    def test_non_list_is_rejected(self, tmp_path: Path):
        path = tmp_path / "batch.json"
        path.write_text('{"parser": "feeds"}', encoding="utf-8")

        with pytest.raises(ValueError):
            load_batch(str(path))


class TestMain:
    """Unit tests for dispatching to the runner."""

    def test_parse_dispatch(self):
        with patch("content_parser.main.run", return_value=0) as mock_run:
            code = main(["parse", "feeds", "https://x.test/feed", "--limit", "3", "--timeout", "5"])

        assert code == 0
        kwargs = mock_run.call_args.kwargs
        assert mock_run.call_args.args == ("parse",)
        assert kwargs["parser_name"] == "feeds"
        assert kwargs["payload"] == {
            "source": "https://x.test/feed",
            "type": "auto",
            "keywords": [],
            "options": {},
            "filters": {},
            "limit": 3,
            "offset": None,
        }
        assert kwargs["timeout"] == 5.0

    def test_batch_dispatch(self, tmp_path: Path):
        path = tmp_path / "batch.json"
        path.write_text('[{"parser": "feeds", "source": "https://x.test/feed", "type": "rss"}]', encoding="utf-8")

        with patch("content_parser.main.run", return_value=2) as mock_run:
            code = main(["batch", str(path), "--workers", "2", "--log-dir", "out"])

        assert code == 2
        kwargs = mock_run.call_args.kwargs
        assert kwargs["batch"][0]["parser"] == "feeds"
        assert kwargs["max_workers"] == 2
        assert kwargs["log_dir"] == "out"

    def test_unreadable_batch_file(self, tmp_path: Path):
        with patch("content_parser.main.run") as mock_run:
            code = main(["batch", str(tmp_path / "missing.json")])

        assert code == 2
        mock_run.assert_not_called()

    def test_list_dispatch(self):
        with patch("content_parser.main.run", return_value=0) as mock_run:
            assert main(["list"]) == 0

        mock_run.assert_called_once_with("list", env_file=None, verbose=False)
