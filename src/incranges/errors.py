"""Exception types raised while loading per-unit incremental data."""

from __future__ import annotations

from incranges.diagnostics import WarningKind


class IncrementalError(RuntimeError):
    """Base class for incremental-state failures scoped to a single unit."""


class LoadError(IncrementalError):
    """A side-car or source buffer could not be obtained or understood."""

    default_kind = WarningKind.UNABLE_TO_LOAD_SOURCE_RANGES

    def __init__(self, path: str, message: str, kind: WarningKind | None = None) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
        self.kind = kind or self.default_kind


class FormatError(LoadError):
    """The side-car buffer has a bad header or an undecodable body."""

    default_kind = WarningKind.BAD_SOURCE_RANGES_FORMAT


class StatError(LoadError):
    """The modification time of an input could not be obtained."""

    default_kind = WarningKind.CANNOT_STAT_INPUT
