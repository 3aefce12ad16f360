"""Download archived captures to local storage, one at a time."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

import httpx

from .config import Settings, get_settings
from .models import Capture, CaptureStatus
from .storage import LocalStorage, PathLike, Storage

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[List[Capture]], None]


class FetchOutcome(str, Enum):
    """How a single replay fetch ended."""

    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass
class FetchResult:
    """Result of fetching one archived resource."""

    outcome: FetchOutcome
    status_code: Optional[int] = None
    content: bytes = b""
    error: Optional[str] = None


@dataclass
class DownloadSummary:
    """Terminal status counts for one pipeline run."""

    total: int = 0
    counts: Counter = field(default_factory=Counter)
    cancelled: bool = False

    def record(self, status: CaptureStatus) -> None:
        self.counts[status] += 1

    @property
    def processed(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> dict:
        out = {"total": self.total, "processed": self.processed, "cancelled": self.cancelled}
        for status in CaptureStatus:
            if status.is_terminal:
                out[status.value] = self.counts.get(status, 0)
        return out


def paginate(items: Sequence[T], page_size: int) -> Iterator[List[T]]:
    """Split ``items`` into consecutive pages, preserving order."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    for start in range(0, len(items), page_size):
        yield list(items[start:start + page_size])


def build_replay_url(capture: Capture, template: str) -> str:
    """Return the URL of the unmodified archived payload (``if_`` replay)."""
    return template.format(timestamp=capture.timestamp_key, url=capture.original)


def capture_file_name(capture: Capture, storage: Storage) -> str:
    """Return ``<yyyyMMddHHmmss>_<sanitized last path segment>``."""
    last_segment = (capture.original or "").split("/")[-1]
    return f"{capture.timestamp_key}_{storage.sanitize_file_name(last_segment)}"


async def fetch_capture(client: httpx.AsyncClient, url: str) -> FetchResult:
    """GET ``url``, classifying the result instead of raising.

    Any response other than 404 is treated as content to be saved.
    """
    try:
        resp = await client.get(url)
    except httpx.HTTPError as exc:
        return FetchResult(outcome=FetchOutcome.TRANSPORT_FAILURE, error=str(exc) or repr(exc))

    if resp.status_code == 404:
        return FetchResult(outcome=FetchOutcome.NOT_FOUND, status_code=404)

    if resp.status_code >= 400:
        logger.warning("HTTP %d for %s; saving body anyway", resp.status_code, url)
    return FetchResult(
        outcome=FetchOutcome.OK,
        status_code=resp.status_code,
        content=resp.content,
    )


class DownloadPipeline:
    """Sequential, best-effort downloader for a list of captures.

    Each capture moves through ``Waiting -> Downloading`` and ends in one of
    ``Exists``, ``Done``, ``Failed`` or ``Error``. A failure on one capture
    never stops the run. A file already present at the destination is left
    alone and no request is made for it, so re-running against the same
    destination is cheap. Only file presence is checked, not completeness.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        storage: Optional[Storage] = None,
        *,
        settings: Optional[Settings] = None,
        page_size: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.storage = storage or LocalStorage()
        self.settings = settings or get_settings()
        self.page_size = page_size if page_size is not None else self.settings.page_size
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else self.settings.download_delay_seconds
        )
        self.log = log or logger

    def _notify(self, observer: Optional[Observer], page: List[Capture]) -> None:
        if observer is not None:
            observer(page)

    def _transition(
        self,
        capture: Capture,
        status: CaptureStatus,
        page: List[Capture],
        observer: Optional[Observer],
    ) -> None:
        self.log.debug("%s -> %s: %s", capture.operation.value, status.value, capture.original)
        capture.operation = status
        self._notify(observer, page)

    async def _pause(self) -> None:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

    def destination_root(self, target: str, dest: Optional[PathLike] = None) -> Path:
        """Create (if needed) and return ``<dest>/<target>``."""
        root = self.storage.combine(dest if dest is not None else self.settings.dest_dir, target)
        return self.storage.ensure_dir(root)

    async def process_capture(
        self,
        capture: Capture,
        dest_root: PathLike,
        page: List[Capture],
        observer: Optional[Observer] = None,
    ) -> CaptureStatus:
        """Download one capture and return its terminal status."""
        try:
            self._transition(capture, CaptureStatus.DOWNLOADING, page, observer)

            path = self.storage.combine(dest_root, capture_file_name(capture, self.storage))
            if self.storage.exists(path):
                self._transition(capture, CaptureStatus.EXISTS, page, observer)
                return capture.operation

            url = build_replay_url(capture, self.settings.replay_url_template)
            result = await fetch_capture(self.client, url)

            if result.outcome == FetchOutcome.NOT_FOUND:
                self.log.warning("Not found in the archive: %s", url)
                self._transition(capture, CaptureStatus.FAILED, page, observer)
                return capture.operation

            if result.outcome == FetchOutcome.TRANSPORT_FAILURE:
                self.log.error("Download failed for %s: %s", url, result.error)
                self._transition(capture, CaptureStatus.ERROR, page, observer)
                return capture.operation

            self._transition(capture, CaptureStatus.SAVING, page, observer)
            self.storage.write_bytes(path, result.content)
            self._transition(capture, CaptureStatus.DONE, page, observer)

            await self._pause()
        except Exception:  # pylint: disable=broad-except
            self.log.exception("Unexpected error downloading %s", capture.original)
            self._transition(capture, CaptureStatus.ERROR, page, observer)
        return capture.operation

    async def run(
        self,
        captures: Sequence[Capture],
        target: str,
        dest: Optional[PathLike] = None,
        *,
        observer: Optional[Observer] = None,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> DownloadSummary:
        """Download every capture, page by page, in list order.

        Args:
            captures: Captures to download; their ``operation`` is updated.
            target: Search target; names the sub-directory under ``dest``.
            dest: Destination root. Defaults to ``settings.dest_dir``.
            observer: Called with the current page after every transition.
            should_abort: Checked before each capture. When it returns True
                the run stops and the remaining captures stay ``Waiting``.

        Returns:
            DownloadSummary with counts per terminal status.
        """
        summary = DownloadSummary(total=len(captures))
        dest_root = self.destination_root(target, dest)
        total_pages = (len(captures) + self.page_size - 1) // self.page_size

        for page_index, page in enumerate(paginate(captures, self.page_size)):
            self.log.info(
                "Downloading page %d/%d (%d captures) to %s",
                page_index + 1, total_pages, len(page), dest_root,
            )
            self._notify(observer, page)

            for capture in page:
                if should_abort is not None and should_abort():
                    summary.cancelled = True
                    self.log.warning(
                        "Download cancelled; %d capture(s) left waiting",
                        summary.total - summary.processed,
                    )
                    return summary
                status = await self.process_capture(capture, dest_root, page, observer)
                summary.record(status)

        self.log.info(
            "Finished %d capture(s): %s",
            summary.total,
            ", ".join(f"{s.value}={n}" for s, n in summary.counts.items()) or "nothing to do",
        )
        return summary
