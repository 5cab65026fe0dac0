"""Filesystem primitives consumed while loading incremental state."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    """The four operations the loader needs.

    ``mod_time``, ``read_all`` and ``remove`` raise ``OSError`` on failure.
    """

    def exists(self, path: str) -> bool: ...

    def mod_time(self, path: str) -> int: ...

    def read_all(self, path: str) -> bytes: ...

    def remove(self, path: str) -> None: ...


class LocalFileSystem:
    """``FileSystem`` backed by the local disk."""

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def mod_time(self, path: str) -> int:
        """Return the modification time in nanoseconds."""
        return Path(path).stat().st_mtime_ns

    def read_all(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def remove(self, path: str) -> None:
        Path(path).unlink()
