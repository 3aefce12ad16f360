"""Wayback Archivist: search the Wayback Machine CDX index and download captures."""

from .cdx import CdxParseError, parse_cdx_text, parse_json_rows
from .client import OperationCancelled, WaybackClient
from .config import Settings, build_client, get_settings
from .download import DownloadPipeline, DownloadSummary, FetchOutcome, FetchResult
from .models import (
    Capture,
    CaptureStatus,
    CollapseCriteria,
    Field,
    FieldFilter,
    MatchScope,
    OutputFormat,
    SearchOptions,
    SearchResult,
)
from .query import build_query_string, build_search_url
from .storage import LocalStorage, Storage

__all__ = [
    "Settings",
    "get_settings",
    "build_client",
    "WaybackClient",
    "OperationCancelled",
    "DownloadPipeline",
    "DownloadSummary",
    "FetchOutcome",
    "FetchResult",
    "Capture",
    "CaptureStatus",
    "CollapseCriteria",
    "Field",
    "FieldFilter",
    "MatchScope",
    "OutputFormat",
    "SearchOptions",
    "SearchResult",
    "CdxParseError",
    "parse_cdx_text",
    "parse_json_rows",
    "build_query_string",
    "build_search_url",
    "LocalStorage",
    "Storage",
]
