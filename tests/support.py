"""Test doubles and builders shared across the test modules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from incranges.models import Job, OutputKind
from incranges.ranges import RangeSet, TextRange
from incranges.state.sidecar import IncrementalRecord, dump_record


class FakeFileSystem:
    """In-memory ``FileSystem`` with injectable failures."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, int] = {}
        self.stat_failures: set[str] = set()
        self.read_failures: set[str] = set()
        self.remove_failures: set[str] = set()
        self.removed: list[str] = []

    def put(self, path: str, data: bytes | str, mtime: int) -> None:
        self.files[path] = data.encode("utf-8") if isinstance(data, str) else data
        self.mtimes[path] = mtime

    def exists(self, path: str) -> bool:
        return path in self.files

    def mod_time(self, path: str) -> int:
        if path in self.stat_failures or path not in self.mtimes:
            raise FileNotFoundError(2, "No such file or directory", path)
        return self.mtimes[path]

    def read_all(self, path: str) -> bytes:
        if path in self.read_failures or path not in self.files:
            raise PermissionError(13, "Permission denied", path)
        return self.files[path]

    def remove(self, path: str) -> None:
        if path in self.remove_failures:
            raise PermissionError(13, "Permission denied", path)
        self.files.pop(path, None)
        self.mtimes.pop(path, None)
        self.removed.append(path)


def make_record(
    local: tuple[str, ...] = (),
    unparsed: Optional[dict[str, tuple[str, ...]]] = None,
) -> IncrementalRecord:
    return IncrementalRecord(
        local_scope_ranges=RangeSet.parse(local),
        unparsed_ranges_by_dependency={k: RangeSet.parse(v) for k, v in (unparsed or {}).items()},
    )


def compile_job(primary: str, name: Optional[str] = None) -> Job:
    return Job(
        name=name or Path(primary).name,
        primary=primary,
        outputs={
            OutputKind.COMPILED_SOURCE: f"{primary}.compiledsource",
            OutputKind.SOURCE_RANGES: f"{primary}.sourceranges",
        },
    )


def write_unit(
    tmp_path: Path,
    name: str,
    *,
    previous: str,
    current: str,
    record: IncrementalRecord,
    saved_copy_newer: bool = False,
) -> Job:
    """Lay out a primary, its saved copy and its side-car on disk."""
    primary = tmp_path / name
    job = compile_job(str(primary))
    compiled = Path(job.output_for(OutputKind.COMPILED_SOURCE))
    ranges = Path(job.output_for(OutputKind.SOURCE_RANGES))

    compiled.write_text(previous, encoding="utf-8")
    ranges.write_bytes(dump_record(record))
    primary.write_text(current, encoding="utf-8")

    older, newer = 1_000_000_000, 2_000_000_000
    if saved_copy_newer:
        os.utime(primary, ns=(older, older))
        os.utime(compiled, ns=(newer, newer))
    else:
        os.utime(compiled, ns=(older, older))
        os.utime(primary, ns=(newer, newer))
    return job


def r(text: str) -> TextRange:
    return TextRange.parse(text)


