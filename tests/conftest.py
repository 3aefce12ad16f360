"""Shared test fixtures for Wayback Archivist tests."""

from datetime import datetime
from typing import Callable

import pytest

from wayback_archivist.config import Settings
from wayback_archivist.models import Capture


@pytest.fixture
def settings() -> Settings:
    """Settings with the inter-download delay disabled."""
    return Settings(download_delay_seconds=0.0, page_size=2)


@pytest.fixture
def cdx_body() -> str:
    """Two captures in the default seven column CDX text format."""
    return (
        "com,example)/ 20200101000000 http://example.com/ text/html 200 ABC123 1024\n"
        "com,example)/logo.png 20210315123045 http://example.com/logo.png image/png 200 DEF456 2048\n"
    )


@pytest.fixture
def cdx_body_with_key() -> str:
    """CDX text ending with a blank line and a resumption key."""
    return (
        "com,example)/ 20200101000000 http://example.com/ text/html 200 ABC123 1024\n"
        "\n"
        "com%2Cexample%29%2F+20200101000000\n"
    )


@pytest.fixture
def json_body() -> str:
    """JSON array-of-arrays with a header row and two captures."""
    return (
        '[["urlkey","timestamp","original","mimetype","statuscode","digest","length"],'
        '["com,example)/","20200101000000","http://example.com/","text/html","200","ABC123","1024"],'
        '["com,example)/a.gif","20190607080910","http://example.com/a.gif","image/gif","-","XYZ","77"]]'
    )


@pytest.fixture
def json_body_with_key() -> str:
    """JSON body with an empty separator row and a trailing resumption key."""
    return (
        '[["urlkey","timestamp","original"],'
        '["com,example)/","20200101000000","http://example.com/"],'
        "[],"
        '["com%2Cexample%29%2F+20200101000000"]]'
    )


@pytest.fixture
def make_capture() -> Callable[..., Capture]:
    """Factory for captures of http://example.com/<name>."""

    def _make(name: str = "a.png", ts: datetime = datetime(2020, 1, 1), **overrides) -> Capture:
        data = {
            "url_key": f"com,example)/{name}",
            "timestamp": ts,
            "original": f"http://example.com/{name}",
            "mime_type": "image/png",
            "status_code": 200,
            "digest": "ABC",
            "length": 10,
        }
        data.update(overrides)
        return Capture(**data)

    return _make
