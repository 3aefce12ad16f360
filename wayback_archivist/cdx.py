"""Parse CDX server responses into Capture records.

Two encodings are supported:

* CDX text: one capture per line, space separated columns.
* JSON: an array of string arrays whose first row names the columns.

Either may end with a lone resumption key when ``showResumeKey=true`` was
requested. Any malformed value aborts the whole response with
:class:`CdxParseError`; partial results are never returned.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import TIMESTAMP_FORMAT, Capture, SearchOptions, SearchResult
from .serialization import JsonSerializer, StdJsonSerializer

logger = logging.getLogger(__name__)

DEFAULT_CDX_COLUMNS: Tuple[str, ...] = (
    "urlkey",
    "timestamp",
    "original",
    "mimetype",
    "statuscode",
    "digest",
    "length",
)
OPTIONAL_CDX_COLUMNS: Tuple[str, ...] = ("dupecount", "skipcount")

TIMESTAMP_RE = re.compile(r"^\d{4,14}$", re.ASCII)
# Month and day default to 01, time of day to 00:00:00.
_TIMESTAMP_PAD = "0101000000"


class CdxParseError(ValueError):
    """Raised when a CDX server response cannot be decoded."""


def parse_timestamp(text: str) -> datetime:
    """Parse a ``yyyyMMddHHmmss`` timestamp.

    Shorter prefixes (at least the year) are accepted and padded, matching
    the way the CDX server treats partial timestamps.
    """
    if not TIMESTAMP_RE.match(text):
        raise CdxParseError(f"Invalid capture timestamp: {text!r}")
    padded = text + _TIMESTAMP_PAD[len(text) - 4:]
    try:
        return datetime.strptime(padded, TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise CdxParseError(f"Invalid capture timestamp: {text!r}") from exc


def _lenient_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _strict_int(name: str) -> Callable[[str], int]:
    def convert(text: str) -> int:
        try:
            return int(text)
        except ValueError as exc:
            raise CdxParseError(f"Non-numeric {name} value: {text!r}") from exc

    return convert


def _text(value: str) -> str:
    return value


# Wire key -> (Capture attribute, converter)
FIELD_TABLE: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "urlkey": ("url_key", _text),
    "timestamp": ("timestamp", parse_timestamp),
    "original": ("original", _text),
    "mimetype": ("mime_type", _text),
    "statuscode": ("status_code", _lenient_int),
    "digest": ("digest", _text),
    "redirect": ("redirect", _text),
    "robotflags": ("robot_flags", _text),
    "length": ("length", _strict_int("length")),
    "offset": ("offset", _strict_int("offset")),
    "filename": ("file_name", _text),
    "dupecount": ("dupe_count", _strict_int("dupecount")),
    "skipcount": ("skip_count", _strict_int("skipcount")),
}


def cdx_columns(options: Optional[SearchOptions]) -> List[str]:
    """Return the column order a CDX text response will use for ``options``.

    An explicit ``fl`` projection wins. Otherwise the seven default columns
    are followed by whichever count columns the options asked for. Those
    trailing columns are optional on each line. Without options, an 8th and
    9th column are read as dupecount and skipcount. Any further token (such
    as the end timestamp added by ``lastSkipTimestamp``) is ignored.
    """
    if options is None:
        return [*DEFAULT_CDX_COLUMNS, *OPTIONAL_CDX_COLUMNS]
    if options.fields:
        return [f.lower() for f in options.fields]
    columns = list(DEFAULT_CDX_COLUMNS)
    if options.show_dupe_count:
        columns.append("dupecount")
    if options.show_skip_count:
        columns.append("skipcount")
    return columns


def _required_columns(keys: Sequence[str]) -> int:
    """Columns every line must carry: the seven defaults when the layout
    starts with them, else every projected column."""
    if tuple(keys[:len(DEFAULT_CDX_COLUMNS)]) == DEFAULT_CDX_COLUMNS:
        return len(DEFAULT_CDX_COLUMNS)
    return len(keys)


def _build_capture(
    keys: Sequence[str], values: Sequence[str], unknown: set[str]
) -> Capture:
    """Map ``(key, value)`` pairs onto a new Capture via FIELD_TABLE."""
    data: Dict[str, Any] = {}
    for key, value in zip(keys, values):
        entry = FIELD_TABLE.get(key)
        if entry is None:
            unknown.add(key)
            continue
        attr, convert = entry
        data[attr] = convert(str(value))
    return Capture(**data)


def _warn_unknown(unknown: set[str]) -> None:
    if unknown:
        logger.warning(
            "Unknown field(s) returned with the result set: %s",
            ", ".join(sorted(unknown)),
        )


def parse_cdx_text(
    text: str,
    *,
    check_for_resumption: bool = False,
    columns: Optional[Sequence[str]] = None,
) -> SearchResult:
    """Parse a line-delimited CDX text body.

    Args:
        text: Raw response body.
        check_for_resumption: Treat a trailing single-token line as the
            resumption key.
        columns: Column order of each line. Defaults to the seven standard
            columns plus optional dupecount/skipcount. Columns past the
            seven standard ones may be missing from a line.

    Raises:
        CdxParseError: On a short line or a malformed value.
    """
    keys = list(columns) if columns is not None else cdx_columns(None)
    lines = [line for line in text.split("\n") if line.strip()]
    required = _required_columns(keys)

    captures: List[Capture] = []
    resumption_key: Optional[str] = None
    unknown: set[str] = set()

    for i, line in enumerate(lines):
        parts = line.split()

        if check_for_resumption and len(parts) == 1 and i + 1 == len(lines):
            resumption_key = parts[0]
            break

        if len(parts) < required:
            raise CdxParseError(
                f"CDX line {i + 1} has {len(parts)} columns, expected {required}: {line!r}"
            )
        captures.append(_build_capture(keys, parts, unknown))

    _warn_unknown(unknown)
    return SearchResult(captures=captures, resumption_key=resumption_key)


def parse_json_rows(
    text: str,
    *,
    check_for_resumption: bool = False,
    serializer: Optional[JsonSerializer] = None,
) -> SearchResult:
    """Parse a JSON array-of-arrays body whose first row is the header.

    Empty rows are skipped; the CDX server emits one between the last
    capture and the resumption key.

    Raises:
        CdxParseError: On invalid JSON, an unexpected shape, a row shorter
            than the header, or a malformed value.
    """
    serializer = serializer or StdJsonSerializer()
    if not text.strip():
        return SearchResult()

    try:
        rows = serializer.loads(text)
    except ValueError as exc:
        raise CdxParseError(f"Invalid JSON response: {exc}") from exc

    if rows is None:
        return SearchResult()
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        raise CdxParseError("JSON response is not an array of arrays")
    if len(rows) < 2:
        return SearchResult()

    keys = [str(k).lower() for k in rows[0]]
    captures: List[Capture] = []
    resumption_key: Optional[str] = None
    unknown: set[str] = set()

    for i in range(1, len(rows)):
        row = rows[i]
        if not row:
            continue

        if len(row) == 1 and check_for_resumption and i + 1 == len(rows):
            resumption_key = str(row[0])
            break

        if len(row) < len(keys):
            raise CdxParseError(
                f"JSON row {i} has {len(row)} values, header has {len(keys)}"
            )
        captures.append(_build_capture(keys, row, unknown))

    _warn_unknown(unknown)
    return SearchResult(captures=captures, resumption_key=resumption_key)
