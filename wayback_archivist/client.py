"""Search the Wayback Machine CDX index."""

from __future__ import annotations

import asyncio
import logging
import time
from types import TracebackType
from typing import AsyncIterator, Callable, List, Optional, Type

import httpx

from .cdx import cdx_columns, parse_cdx_text, parse_json_rows
from .config import Settings, get_settings
from .models import Capture, OutputFormat, SearchOptions, SearchResult
from .query import build_search_url
from .serialization import JsonSerializer, StdJsonSerializer

logger = logging.getLogger(__name__)


class OperationCancelled(RuntimeError):
    """Raised when a cooperative abort is requested before a request is sent."""


class Stopwatch:
    """Log the wall time spent inside a ``with`` block, however it exits."""

    def __init__(self, log: logging.Logger, label: str) -> None:
        self.log = log
        self.label = label
        self.elapsed_ms = 0.0
        self._started = 0.0

    def __enter__(self) -> "Stopwatch":
        self._started = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        self.log.debug("%s finished in %dms", self.label, self.elapsed_ms)


class WaybackClient:
    """Client for the CDX search endpoint.

    Collaborators are passed in explicitly: the HTTP transport, the settings
    holding the endpoint URL, the JSON serializer and the logger. The client
    performs no retries; wrap :meth:`search` if a retry policy is wanted.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        settings: Optional[Settings] = None,
        serializer: Optional[JsonSerializer] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.serializer = serializer or StdJsonSerializer()
        self.log = log or logger

    def parse(self, text: str, options: SearchOptions) -> SearchResult:
        """Decode a response body with the parser matching ``options.format``."""
        if options.format == OutputFormat.JSON:
            return parse_json_rows(
                text,
                check_for_resumption=options.show_resumption_key,
                serializer=self.serializer,
            )
        return parse_cdx_text(
            text,
            check_for_resumption=options.show_resumption_key,
            columns=cdx_columns(options),
        )

    async def search(
        self,
        target: str,
        options: SearchOptions,
        *,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> SearchResult:
        """Search the archive for captures of ``target``.

        Cancelling the awaiting task abandons an in-flight request.
        ``should_abort`` is checked once, before the request is sent.

        Args:
            target: URL (or URL pattern) to look up; encoded here.
            options: Query options. Not modified.
            should_abort: Optional cooperative cancellation check.

        Returns:
            SearchResult with the parsed captures and, when requested and
            available, the resumption key for the next page.

        Raises:
            ValueError: If ``options`` is None.
            OperationCancelled: If ``should_abort`` returned True.
            httpx.HTTPError: On transport failure or a non-2xx response.
            CdxParseError: If the response body is malformed.
        """
        if options is None:
            raise ValueError("Options parameter cannot be None")

        with Stopwatch(self.log, f"CDX search for {target}") as sw:
            try:
                if should_abort is not None and should_abort():
                    raise OperationCancelled(f"Search for {target} cancelled")

                url = build_search_url(self.settings.cdx_search_url, target, options)
                sw.label = f"GET request to {url}"
                self.log.info("Sending Wayback Machine request to %s", url)

                resp = await self.client.get(url)
                resp.raise_for_status()

                self.log.debug("Parsing response received from Wayback Machine")
                result = self.parse(resp.text, options)
                self.log.info(
                    "Received %d results from the Wayback Machine request",
                    len(result.captures),
                )
                return result
            except asyncio.CancelledError:
                self.log.warning("Search for %s was cancelled", target)
                raise
            except Exception:
                self.log.exception("An error occurred while searching the Wayback Machine")
                raise

    async def iter_pages(
        self,
        target: str,
        options: SearchOptions,
        *,
        max_pages: Optional[int] = None,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[SearchResult]:
        """Yield successive result pages, following resumption keys.

        Resumption keys are always requested so that paging can continue;
        ``options.limit`` sets the page size on the server side.
        """
        if not options.show_resumption_key:
            options = options.model_copy(update={"show_resumption_key": True})

        pages = 0
        while True:
            result = await self.search(target, options, should_abort=should_abort)
            yield result
            pages += 1
            if not result.has_more:
                return
            if max_pages is not None and pages >= max_pages:
                self.log.info("Stopping after %d page(s); more results remain", pages)
                return
            options = result.next_options(options)

    async def search_all(
        self,
        target: str,
        options: SearchOptions,
        *,
        max_pages: Optional[int] = None,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> List[Capture]:
        """Collect every capture across all result pages."""
        captures: List[Capture] = []
        async for page in self.iter_pages(
            target, options, max_pages=max_pages, should_abort=should_abort
        ):
            captures.extend(page.captures)
        return captures
