"""Unit tests for query string construction."""

from datetime import datetime

from wayback_archivist.models import (
    CollapseCriteria,
    Field,
    FieldFilter,
    MatchScope,
    OutputFormat,
    SearchOptions,
)
from wayback_archivist.query import build_query_string, build_search_url

BASE = "http://web.archive.org/cdx/search/cdx"


class TestBuildQueryString:
    """Tests for build_query_string."""

    def test_empty_options(self) -> None:
        assert build_query_string(SearchOptions()) == ""

    def test_limit_only(self) -> None:
        assert build_query_string(SearchOptions(limit=50)) == "limit=50"

    def test_negative_limit(self) -> None:
        assert build_query_string(SearchOptions(limit=-5)) == "limit=-5"

    def test_default_scope_omits_match_type(self) -> None:
        qs = build_query_string(SearchOptions(scope=MatchScope.DEFAULT, limit=1))
        assert "matchType" not in qs

    def test_scope_lower_cased(self) -> None:
        assert build_query_string(SearchOptions(scope=MatchScope.DOMAIN)) == "matchType=domain"

    def test_cdx_format_omitted(self) -> None:
        assert "output" not in build_query_string(SearchOptions(format=OutputFormat.CDX))

    def test_json_format(self) -> None:
        assert build_query_string(SearchOptions(format=OutputFormat.JSON)) == "output=json"

    def test_gzip_disabled(self) -> None:
        assert build_query_string(SearchOptions(gzip=False)) == "gzip=false"

    def test_fields_comma_joined(self) -> None:
        qs = build_query_string(SearchOptions(fields=["original", "timestamp"]))
        assert qs == "fl=original,timestamp"

    def test_dates_use_24_hour_clock(self) -> None:
        qs = build_query_string(
            SearchOptions(
                from_date=datetime(2010, 1, 2, 3, 4, 5),
                to_date=datetime(2011, 6, 7, 20, 9, 10),
            )
        )
        assert qs == "from=20100102030405&to=20110607200910"

    def test_filters_in_list_order(self) -> None:
        qs = build_query_string(
            SearchOptions(
                filters=[
                    FieldFilter(field=Field.MIME_TYPE, pattern="image/png"),
                    FieldFilter(field=Field.STATUS_CODE, pattern="200", invert=True),
                ]
            )
        )
        assert qs == "filter=mimetype:image/png&filter=!statuscode:200"

    def test_collapse_entries(self) -> None:
        qs = build_query_string(
            SearchOptions(
                collapse=[
                    CollapseCriteria(field=Field.TIMESTAMP, length=8),
                    CollapseCriteria(field=Field.DIGEST),
                ]
            )
        )
        assert qs == "collapse=timestamp:8&collapse=digest"

    def test_empty_resumption_key_omitted(self) -> None:
        assert build_query_string(SearchOptions(resumption_key="")) == ""

    def test_resumption_key_round_trip(self) -> None:
        token = "com%2Cexample%29%2F+20200101000000"
        qs = build_query_string(SearchOptions(show_resumption_key=True, resumption_key=token))
        assert qs == f"showResumeKey=true&resumeKey={token}"

    def test_full_parameter_order(self) -> None:
        opts = SearchOptions(
            limit=10,
            fast_latest=True,
            show_dupe_count=True,
            show_skip_count=True,
            last_skip_timestamp=True,
            offset=20,
            scope=MatchScope.PREFIX,
            format=OutputFormat.JSON,
            gzip=False,
            fields=["urlkey"],
            from_date=datetime(2000, 1, 1),
            to_date=datetime(2001, 1, 1),
            filters=[FieldFilter(field=Field.MIME_TYPE, pattern="text/html")],
            collapse=[CollapseCriteria(field=Field.URL_KEY)],
            show_resumption_key=True,
            resumption_key="KEY",
        )
        assert build_query_string(opts).split("&") == [
            "limit=10",
            "fastLatest=true",
            "showDupeCount=true",
            "showSkipCount=true",
            "lastSkipTimestamp=true",
            "offset=20",
            "matchType=prefix",
            "output=json",
            "gzip=false",
            "fl=urlkey",
            "from=20000101000000",
            "to=20010101000000",
            "filter=mimetype:text/html",
            "collapse=urlkey",
            "showResumeKey=true",
            "resumeKey=KEY",
        ]


class TestBuildSearchUrl:
    """Tests for build_search_url."""

    def test_target_is_encoded(self) -> None:
        url = build_search_url(BASE, "http://example.com/a b", SearchOptions(limit=1))
        assert url == f"{BASE}?url=http%3A%2F%2Fexample.com%2Fa+b&limit=1"

    def test_no_trailing_ampersand(self) -> None:
        assert build_search_url(BASE, "example.com", SearchOptions()) == f"{BASE}?url=example.com"
