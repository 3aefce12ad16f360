"""Plain-text rendering of capture progress."""

from __future__ import annotations

import logging
import sys
from collections import Counter
from typing import List, Optional, Sequence, TextIO

from .models import Capture, CaptureStatus

logger = logging.getLogger(__name__)

URL_WIDTH = 60
MIME_WIDTH = 30
LENGTH_WIDTH = 10
STATUS_WIDTH = 15

CLEAR_SCREEN = "\x1b[2J\x1b[H"
RESET = "\x1b[0m"

STATUS_COLORS = {
    CaptureStatus.WAITING: "\x1b[93m",
    CaptureStatus.DOWNLOADING: "\x1b[35m",
    CaptureStatus.EXISTS: "\x1b[33m",
    CaptureStatus.SAVING: "\x1b[32m",
    CaptureStatus.DONE: "\x1b[92m",
    CaptureStatus.ERROR: "\x1b[31m",
}
DEFAULT_COLOR = "\x1b[37m"


def _cell(value: object, width: int) -> str:
    text = "" if value is None else str(value)
    if len(text) > width - 1:
        text = text[: width - 2] + "~"
    return text.ljust(width)


def _status(capture: Capture, color: bool) -> str:
    if not capture.operation:
        return "--"
    text = capture.operation.value
    if not color:
        return text
    return STATUS_COLORS.get(capture.operation, DEFAULT_COLOR) + text + RESET


def render_capture_table(captures: Sequence[Capture], color: bool = False) -> str:
    """Render captures as a fixed-width table: Url, MimeType, Length, Status.

    With ``color`` the status cell is wrapped in an ANSI foreground color.
    """
    lines: List[str] = [
        "Captures",
        "",
        _cell("Url", URL_WIDTH)
        + _cell("MimeType", MIME_WIDTH)
        + _cell("Length", LENGTH_WIDTH)
        + "Status",
        "-" * (URL_WIDTH + MIME_WIDTH + LENGTH_WIDTH + STATUS_WIDTH),
    ]
    for c in captures:
        lines.append(
            _cell(c.url_key, URL_WIDTH)
            + _cell(c.mime_type, MIME_WIDTH)
            + _cell(c.length, LENGTH_WIDTH)
            + _status(c, color)
        )
    return "\n".join(lines)


class TableObserver:
    """Redraw the current page table on every status change.

    On a terminal the screen is cleared before each redraw and statuses
    are colored.
    """

    def __init__(self, stream: Optional[TextIO] = None, clear: Optional[bool] = None) -> None:
        self.stream = stream or sys.stdout
        if clear is None:
            clear = bool(getattr(self.stream, "isatty", lambda: False)())
        self.clear = clear

    def __call__(self, page: List[Capture]) -> None:
        if self.clear:
            self.stream.write(CLEAR_SCREEN)
        else:
            self.stream.write("\n")
        self.stream.write(render_capture_table(page, color=self.clear))
        self.stream.write("\n")
        self.stream.flush()


class LoggingObserver:
    """Log a status breakdown of the current page on every change."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def __call__(self, page: List[Capture]) -> None:
        counts = Counter(c.operation.value for c in page)
        self.log.debug(
            "Page status: %s", ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        )
