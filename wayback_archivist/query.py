"""Translate SearchOptions into a CDX server query string."""

from __future__ import annotations

from typing import List
from urllib.parse import quote_plus

from .models import MatchScope, OutputFormat, SearchOptions, format_timestamp


def build_query_string(options: SearchOptions) -> str:
    """Build the query string for ``options``, without a leading ``?``.

    Only parameters whose option is set (or differs from the server default)
    are emitted. Parameter order is fixed so that identical options always
    produce identical URLs. Field names and patterns are passed through
    unvalidated; the server is authoritative on what they mean.
    """
    qs: List[str] = []

    if options.limit is not None:
        qs.append(f"limit={options.limit}")

    if options.fast_latest:
        qs.append("fastLatest=true")

    if options.show_dupe_count:
        qs.append("showDupeCount=true")

    if options.show_skip_count:
        qs.append("showSkipCount=true")

    if options.last_skip_timestamp:
        qs.append("lastSkipTimestamp=true")

    if options.offset is not None:
        qs.append(f"offset={options.offset}")

    if options.scope != MatchScope.DEFAULT:
        qs.append(f"matchType={options.scope.value}")

    if options.format == OutputFormat.JSON:
        qs.append("output=json")

    if not options.gzip:
        qs.append("gzip=false")

    if options.fields:
        qs.append(f"fl={','.join(options.fields)}")

    if options.from_date is not None:
        qs.append(f"from={format_timestamp(options.from_date)}")

    if options.to_date is not None:
        qs.append(f"to={format_timestamp(options.to_date)}")

    for item in options.filters:
        qs.append(f"filter={item.to_param()}")

    for item in options.collapse:
        qs.append(f"collapse={item.to_param()}")

    if options.show_resumption_key:
        qs.append("showResumeKey=true")

    if options.resumption_key:
        qs.append(f"resumeKey={options.resumption_key}")

    return "&".join(qs)


def build_search_url(base_url: str, target: str, options: SearchOptions) -> str:
    """Return ``<base>?url=<encoded target>&<query string>``."""
    url = f"{base_url}?url={quote_plus(target)}"
    qs = build_query_string(options)
    if qs:
        url = f"{url}&{qs}"
    return url
