"""Pluggable JSON (de)serialization."""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol


class JsonSerializer(Protocol):
    def loads(self, text: str) -> Any: ...

    def dumps(self, value: Any) -> str: ...


class StdJsonSerializer:
    """JsonSerializer backed by the standard ``json`` module."""

    def __init__(self, *, indent: Optional[int] = None) -> None:
        self.indent = indent

    def loads(self, text: str) -> Any:
        return json.loads(text)

    def dumps(self, value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, indent=self.indent)
