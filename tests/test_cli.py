"""Unit tests for CLI argument parsing and commands."""

import argparse
import json
import os
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import respx

from wayback_archivist.cli import (
    build_parser,
    download_options,
    main,
    parse_collapse,
    parse_filter,
    search_options_from_args,
)
from wayback_archivist.config import Settings
from wayback_archivist.models import Field, MatchScope, OutputFormat

CDX_URL = "http://web.archive.org/cdx/search/cdx"


class TestBuildParser:
    """Tests for CLI argument parser."""

    def test_search_command(self) -> None:
        args = build_parser().parse_args(["search", "--target", "example.com"])
        assert args.cmd == "search"
        assert args.format == "json"
        assert args.scope == "default"
        assert args.filters == []

    def test_search_with_options(self) -> None:
        args = build_parser().parse_args([
            "search", "--target", "example.com", "--format", "cdx", "--limit", "5",
            "--scope", "prefix", "--filter", "!statuscode:404", "--filter", "mimetype:image/.*",
            "--collapse", "timestamp:8", "--from", "2010", "--to", "20201231235959",
            "--fields", "original, timestamp",
        ])
        opts = search_options_from_args(args)
        assert opts.format is OutputFormat.CDX
        assert opts.scope is MatchScope.PREFIX
        assert opts.limit == 5
        assert [f.to_param() for f in opts.filters] == ["!statuscode:404", "mimetype:image/.*"]
        assert opts.collapse[0].to_param() == "timestamp:8"
        assert opts.from_date == datetime(2010, 1, 1)
        assert opts.to_date == datetime(2020, 12, 31, 23, 59, 59)
        assert opts.fields == ["original", "timestamp"]

    def test_all_pages_requests_resume_key(self) -> None:
        args = build_parser().parse_args(["search", "--target", "e.com", "--all-pages"])
        assert search_options_from_args(args).show_resumption_key is True

    def test_download_command(self) -> None:
        args = build_parser().parse_args(["download", "--target", "example.com"])
        assert args.cmd == "download"
        assert args.dest is None
        assert args.filetype is None
        assert args.quiet is False

    def test_verbose_flag(self) -> None:
        args = build_parser().parse_args(["-v", "download", "--target", "e.com"])
        assert args.verbose is True

    def test_no_command_raises(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_target_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["search"])

    def test_invalid_scope_raises(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["search", "--target", "e.com", "--scope", "planet"])

    def test_invalid_date_raises(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["search", "--target", "e.com", "--from", "yesterday"])


class TestArgumentTypes:
    def test_parse_filter(self) -> None:
        f = parse_filter("MimeType:image/png")
        assert f.field is Field.MIME_TYPE
        assert f.invert is False

    def test_parse_filter_keeps_colons_in_pattern(self) -> None:
        assert parse_filter("original:http://.*").pattern == "http://.*"

    def test_parse_filter_requires_colon(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_filter("mimetype")

    def test_parse_filter_unknown_field(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError, match="Unknown filter field"):
            parse_filter("colour:red")

    def test_parse_collapse(self) -> None:
        assert parse_collapse("digest").length is None
        assert parse_collapse("urlkey:10").length == 10

    def test_parse_collapse_bad_length(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_collapse("urlkey:ten")


class TestDownloadOptions:
    def test_defaults(self) -> None:
        s = Settings()
        opts = download_options(s)
        assert opts.format is OutputFormat.JSON
        assert opts.scope is MatchScope.DOMAIN
        assert opts.limit == s.search_limit
        assert opts.show_resumption_key is True
        assert opts.filters[0].pattern == s.default_filetype
        assert opts.collapse[0].to_param() == "filename"

    def test_filetype_override(self) -> None:
        opts = download_options(Settings(), "text/html")
        assert opts.filters[0].to_param() == "mimetype:text/html"


class TestMain:
    def test_search_prints_json(self, capsys, json_body: str) -> None:
        with respx.mock() as mock:
            mock.get(CDX_URL).mock(return_value=httpx.Response(200, text=json_body))
            rc = main(["search", "--target", "example.com", "--limit", "2"])

        assert rc == 0
        out = json.loads(capsys.readouterr().out)
        assert len(out["captures"]) == 2
        assert out["captures"][0]["operation"] == "Waiting"
        assert out["resumption_key"] is None

    def test_search_failure_returns_1(self) -> None:
        with respx.mock() as mock:
            mock.get(CDX_URL).mock(return_value=httpx.Response(500))
            rc = main(["search", "--target", "example.com"])
        assert rc == 1

    def test_download_end_to_end(self, capsys, tmp_path: Path) -> None:
        body = json.dumps([
            ["urlkey", "timestamp", "original", "mimetype", "statuscode", "digest", "length"],
            ["com,example)/a.png", "20200101000000", "http://example.com/a.png",
             "image/png", "200", "D", "3"],
            [],
            ["NEXTKEY"],
        ])
        env = {
            "WAYBACK_DEST_DIR": str(tmp_path),
            "WAYBACK_DOWNLOAD_DELAY_SECONDS": "0",
        }
        with patch.dict(os.environ, env), respx.mock() as mock:
            search = mock.get(CDX_URL).mock(return_value=httpx.Response(200, text=body))
            mock.get(host="web.archive.org").mock(return_value=httpx.Response(200, content=b"PNG"))
            rc = main(["download", "--target", "example.com", "--quiet"])

        assert rc == 0
        params = search.calls.last.request.url.params
        assert params["matchType"] == "domain"
        assert params["output"] == "json"
        assert params["collapse"] == "filename"
        summary = json.loads(capsys.readouterr().out)
        assert summary["Done"] == 1
        assert (tmp_path / "example.com" / "20200101000000_a.png").read_bytes() == b"PNG"

    def test_download_no_results(self, capsys, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"WAYBACK_DEST_DIR": str(tmp_path)}), respx.mock() as mock:
            mock.get(CDX_URL).mock(return_value=httpx.Response(200, text="[]"))
            rc = main(["download", "--target", "example.com"])
        assert rc == 0
        assert json.loads(capsys.readouterr().out)["total"] == 0
