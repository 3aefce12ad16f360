"""Pydantic models shared across the archivist."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the 14-digit compact form used by the archive."""
    return value.strftime(TIMESTAMP_FORMAT)


class OutputFormat(str, Enum):
    """Response encodings the CDX server can return."""

    CDX = "cdx"
    JSON = "json"


class MatchScope(str, Enum):
    """URL matching breadth for a query.

    ``DEFAULT`` omits the ``matchType`` parameter entirely and lets the
    server decide (exact, unless the target carries a wildcard).
    """

    DEFAULT = "default"
    EXACT = "exact"
    PREFIX = "prefix"
    HOST = "host"
    DOMAIN = "domain"


class Field(str, Enum):
    """Field names known to the CDX server, in wire form."""

    URL_KEY = "urlkey"
    TIMESTAMP = "timestamp"
    ORIGINAL = "original"
    MIME_TYPE = "mimetype"
    STATUS_CODE = "statuscode"
    DIGEST = "digest"
    REDIRECT = "redirect"
    ROBOT_FLAGS = "robotflags"
    LENGTH = "length"
    OFFSET = "offset"
    FILE_NAME = "filename"
    DUPE_COUNT = "dupecount"
    SKIP_COUNT = "skipcount"


class CaptureStatus(str, Enum):
    """Lifecycle of a capture while the download pipeline works on it."""

    WAITING = "Waiting"
    DOWNLOADING = "Downloading"
    EXISTS = "Exists"
    SAVING = "Saving"
    DONE = "Done"
    FAILED = "Failed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {CaptureStatus.EXISTS, CaptureStatus.DONE, CaptureStatus.FAILED, CaptureStatus.ERROR}
)


class FieldFilter(BaseModel):
    """Server-side regex filter on a single field."""

    model_config = ConfigDict(frozen=True)

    field: Field
    pattern: str
    invert: bool = False

    def to_param(self) -> str:
        prefix = "!" if self.invert else ""
        return f"{prefix}{self.field.value}:{self.pattern}"

    def __str__(self) -> str:
        return self.to_param()


class CollapseCriteria(BaseModel):
    """Collapse adjacent captures sharing a field value (or its first N chars).

    A ``timestamp`` collapse with ``length=4`` keeps one capture per year.
    """

    model_config = ConfigDict(frozen=True)

    field: Field
    length: Optional[int] = None

    def to_param(self) -> str:
        if self.length is None:
            return self.field.value
        return f"{self.field.value}:{self.length}"

    def __str__(self) -> str:
        return self.to_param()


class SearchOptions(BaseModel):
    """How a single CDX search should be performed.

    Instances are frozen. Moving to the next page of a large result set goes
    through :meth:`with_resumption_key`, which returns a copy.
    """

    model_config = ConfigDict(frozen=True)

    fields: List[str] = PydanticField(default_factory=list)
    format: OutputFormat = OutputFormat.CDX
    collapse: List[CollapseCriteria] = PydanticField(default_factory=list)
    scope: MatchScope = MatchScope.DEFAULT
    limit: Optional[int] = None
    offset: Optional[int] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    filters: List[FieldFilter] = PydanticField(default_factory=list)

    fast_latest: bool = False
    show_dupe_count: bool = False
    show_skip_count: bool = False
    last_skip_timestamp: bool = False
    gzip: bool = True

    show_resumption_key: bool = False
    resumption_key: Optional[str] = None

    def with_resumption_key(self, key: Optional[str]) -> "SearchOptions":
        """Return a copy of these options that resumes from ``key``."""
        return self.model_copy(update={"resumption_key": key})


class Capture(BaseModel):
    """One CDX record, plus the local download status."""

    url_key: Optional[str] = None
    timestamp: Optional[datetime] = None
    original: Optional[str] = None
    mime_type: Optional[str] = None
    status_code: int = 0
    digest: Optional[str] = None
    redirect: Optional[str] = None
    robot_flags: Optional[str] = None
    file_name: Optional[str] = None
    length: int = 0
    offset: int = 0
    dupe_count: Optional[int] = None
    skip_count: Optional[int] = None

    operation: CaptureStatus = CaptureStatus.WAITING

    @property
    def timestamp_key(self) -> str:
        """Return the capture instant as ``yyyyMMddHHmmss``."""
        if self.timestamp is None:
            raise ValueError(f"Capture of {self.original!r} has no timestamp")
        return format_timestamp(self.timestamp)


class SearchResult(BaseModel):
    """Captures returned by one search call and the key for the next page."""

    captures: List[Capture] = PydanticField(default_factory=list)
    resumption_key: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.resumption_key)

    def next_options(self, options: SearchOptions) -> SearchOptions:
        """Build the options for the page following this one."""
        return options.with_resumption_key(self.resumption_key)
