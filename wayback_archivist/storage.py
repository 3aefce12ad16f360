"""Narrow filesystem interface used by the download pipeline."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Characters that are invalid in a file name on at least one common platform.
INVALID_FILE_NAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_file_name(name: str, replacement: str = "_") -> str:
    """Replace every character that is invalid in a file name."""
    return INVALID_FILE_NAME_RE.sub(replacement, name)


class Storage(Protocol):
    def exists(self, path: PathLike) -> bool: ...

    def ensure_dir(self, path: PathLike) -> Path: ...

    def write_bytes(self, path: PathLike, data: bytes) -> None: ...

    def read_bytes(self, path: PathLike) -> bytes: ...

    def combine(self, *parts: PathLike) -> Path: ...

    def sanitize_file_name(self, name: str) -> str: ...


class LocalStorage:
    """Storage backed by the local filesystem.

    Writes go straight to the destination path. An interrupted write leaves
    a partial file behind that a later existence check will accept.
    """

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def ensure_dir(self, path: PathLike) -> Path:
        p = Path(path)
        p.mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured directory: %s", p)
        return p

    def write_bytes(self, path: PathLike, data: bytes) -> None:
        Path(path).write_bytes(data)
        logger.debug("Wrote %d bytes to %s", len(data), path)

    def read_bytes(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def combine(self, *parts: PathLike) -> Path:
        return Path(*parts)

    def sanitize_file_name(self, name: str) -> str:
        return sanitize_file_name(name)
