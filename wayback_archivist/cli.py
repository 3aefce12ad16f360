"""Command-line interface for Wayback Archivist."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .cdx import CdxParseError, parse_timestamp
from .client import WaybackClient
from .config import Settings, build_client, get_settings
from .download import DownloadPipeline
from .models import (
    CollapseCriteria,
    Field,
    FieldFilter,
    MatchScope,
    OutputFormat,
    SearchOptions,
    SearchResult,
)
from .serialization import StdJsonSerializer
from .view import LoggingObserver, TableObserver

logger = logging.getLogger(__name__)


def parse_filter(value: str) -> FieldFilter:
    """Parse ``[!]field:pattern`` into a FieldFilter."""
    invert = value.startswith("!")
    body = value[1:] if invert else value
    name, sep, pattern = body.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Filter must look like field:pattern, got {value!r}")
    try:
        return FieldFilter(field=Field(name.lower()), pattern=pattern, invert=invert)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Unknown filter field: {name!r}") from exc


def parse_collapse(value: str) -> CollapseCriteria:
    """Parse ``field[:length]`` into a CollapseCriteria."""
    name, sep, length = value.partition(":")
    try:
        fld = Field(name.lower())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Unknown collapse field: {name!r}") from exc
    if not sep:
        return CollapseCriteria(field=fld)
    if not length.isdigit():
        raise argparse.ArgumentTypeError(f"Collapse length must be a number, got {length!r}")
    return CollapseCriteria(field=fld, length=int(length))


def parse_date(value: str) -> datetime:
    """Parse a 4 to 14 digit ``yyyyMMddHHmmss`` prefix."""
    try:
        return parse_timestamp(value)
    except CdxParseError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    p = argparse.ArgumentParser(
        prog="wayback-archivist",
        description="Query the Wayback Machine CDX index and download archived captures.",
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # --- search ---
    search = sub.add_parser("search", help="Query the CDX index and print captures as JSON")
    search.add_argument("--target", required=True, help="URL to look up")
    search.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.JSON.value,
        help="Response encoding to request (default: json)",
    )
    search.add_argument("--limit", type=int, default=None, help="Maximum results per page")
    search.add_argument("--offset", type=int, default=None, help="Results to skip")
    search.add_argument(
        "--scope",
        choices=[s.value for s in MatchScope],
        default=MatchScope.DEFAULT.value,
        help="URL match scope (default: server default)",
    )
    search.add_argument(
        "--filter", dest="filters", action="append", type=parse_filter, default=[],
        help="Regex filter, [!]field:pattern (repeatable)",
    )
    search.add_argument(
        "--collapse", action="append", type=parse_collapse, default=[],
        help="Collapse adjacent duplicates, field[:length] (repeatable)",
    )
    search.add_argument(
        "--fields", default=None, help="Comma-separated field projection, e.g. original,timestamp"
    )
    search.add_argument("--from", dest="from_date", type=parse_date, default=None,
                        help="Earliest capture, yyyyMMddHHmmss (prefix allowed)")
    search.add_argument("--to", dest="to_date", type=parse_date, default=None,
                        help="Latest capture, yyyyMMddHHmmss (prefix allowed)")
    search.add_argument("--show-resume-key", action="store_true",
                        help="Ask the server for a resumption key")
    search.add_argument("--resume-key", default=None, help="Resume a previous query")
    search.add_argument("--all-pages", action="store_true",
                        help="Follow resumption keys until the result set is exhausted")
    search.add_argument("--max-pages", type=int, default=None,
                        help="Stop after this many pages with --all-pages")

    # --- download ---
    download = sub.add_parser("download", help="Search and download matching captures")
    download.add_argument("--target", required=True, help="URL or domain to archive")
    download.add_argument("--dest", default=None, help="Destination directory (default: settings)")
    download.add_argument("--filetype", default=None,
                          help="MIME type or regular expression to filter for")
    download.add_argument("--page-size", type=int, default=None,
                          help="Captures per display page (default: 30)")
    download.add_argument("--quiet", action="store_true",
                          help="Do not draw the progress table")

    return p


def _configure_logging(verbose: bool) -> None:
    """Set up root logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _retry_decorator(settings: Settings):
    return retry(
        stop=stop_after_attempt(max(1, settings.search_max_attempts)),
        wait=wait_exponential(
            multiplier=settings.backoff_multiplier,
            min=settings.backoff_min,
            max=settings.backoff_max,
        ),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )


async def search_with_retry(
    wayback: WaybackClient,
    target: str,
    options: SearchOptions,
    settings: Settings,
) -> SearchResult:
    """Run one search, retrying transport errors per ``search_max_attempts``."""

    @_retry_decorator(settings)
    async def _do_search() -> SearchResult:
        return await wayback.search(target, options)

    return await _do_search()


def search_options_from_args(args: argparse.Namespace) -> SearchOptions:
    fields: List[str] = []
    if args.fields:
        fields = [f.strip() for f in args.fields.split(",") if f.strip()]
    return SearchOptions(
        fields=fields,
        format=OutputFormat(args.format),
        collapse=args.collapse,
        scope=MatchScope(args.scope),
        limit=args.limit,
        offset=args.offset,
        from_date=args.from_date,
        to_date=args.to_date,
        filters=args.filters,
        show_resumption_key=args.show_resume_key or args.all_pages,
        resumption_key=args.resume_key,
    )


def download_options(settings: Settings, filetype: Optional[str] = None) -> SearchOptions:
    """Options used by ``download``: every image/flash/pdf capture in the domain."""
    return SearchOptions(
        limit=settings.search_limit,
        format=OutputFormat.JSON,
        show_resumption_key=True,
        filters=[FieldFilter(field=Field.MIME_TYPE, pattern=filetype or settings.default_filetype)],
        scope=MatchScope.DOMAIN,
        collapse=[CollapseCriteria(field=Field.FILE_NAME)],
    )


async def _run_search(args: argparse.Namespace, settings: Settings) -> dict:
    options = search_options_from_args(args)
    async with build_client(settings) as http:
        wayback = WaybackClient(http, settings=settings)
        if args.all_pages:
            captures = await wayback.search_all(args.target, options, max_pages=args.max_pages)
            result = SearchResult(captures=captures)
        else:
            result = await search_with_retry(wayback, args.target, options, settings)
    return result.model_dump(mode="json")


async def _run_download(args: argparse.Namespace, settings: Settings) -> dict:
    options = download_options(settings, args.filetype)
    async with build_client(settings) as http:
        wayback = WaybackClient(http, settings=settings)
        result = await search_with_retry(wayback, args.target, options, settings)

        if not result.captures:
            logger.info("No results were returned for %s", args.target)
            return {"target": args.target, "total": 0}

        pipeline = DownloadPipeline(http, settings=settings, page_size=args.page_size)
        observer = LoggingObserver() if args.quiet else TableObserver(stream=sys.stderr)
        summary = await pipeline.run(result.captures, args.target, args.dest, observer=observer)

    return {"target": args.target, **summary.as_dict()}


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    settings = get_settings()
    out = StdJsonSerializer(indent=2)

    try:
        if args.cmd == "search":
            print(out.dumps(asyncio.run(_run_search(args, settings))))
            return 0

        if args.cmd == "download":
            print(out.dumps(asyncio.run(_run_download(args, settings))))
            return 0
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except httpx.HTTPError as exc:
        logger.error("Search failed: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
