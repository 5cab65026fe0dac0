"""Diagnostics sink passed through loading and scheduling.

Diagnostics are purely observational: nothing in the decision logic
reads them back.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from incranges.models import Job

logger = logging.getLogger(__name__)


class WarningKind(str, Enum):
    """Non-fatal problems encountered while loading a unit's state."""

    UNABLE_TO_LOAD_SOURCE_RANGES = "unable_to_load_source_ranges"
    BAD_SOURCE_RANGES_HEADER = "bad_source_ranges_header"
    BAD_SOURCE_RANGES_FORMAT = "bad_source_ranges_format"
    UNABLE_TO_LOAD_COMPILED_SOURCE = "unable_to_load_compiled_source"
    UNABLE_TO_LOAD_PRIMARY = "unable_to_load_primary"
    CANNOT_STAT_INPUT = "cannot_stat_input"
    CANNOT_REMOVE = "cannot_remove"


class Diagnostics(Protocol):
    def warn(self, kind: WarningKind, context: str) -> None: ...

    def note(self, job: Job, reason: str) -> None: ...


class LoggingDiagnostics:
    """Forward diagnostics to ``logging`` and keep a copy for callers.

    Notes are logged at INFO when *show_decisions* is set and at DEBUG
    otherwise.
    """

    def __init__(self, show_decisions: bool = False) -> None:
        self._show_decisions = show_decisions
        self._warnings: list[str] = []
        self._notes: list[tuple[str, str]] = []

    @property
    def show_decisions(self) -> bool:
        return self._show_decisions

    @property
    def warnings(self) -> list[str]:
        """Sorted, de-duplicated ``"<context>:<kind>"`` strings."""
        return sorted(set(self._warnings))

    @property
    def notes(self) -> list[tuple[str, str]]:
        return list(self._notes)

    def warn(self, kind: WarningKind, context: str) -> None:
        logger.warning("%s: %s", kind.value, context)
        self._warnings.append(f"{context}:{kind.value}")

    def note(self, job: Job, reason: str) -> None:
        level = logging.INFO if self._show_decisions else logging.DEBUG
        logger.log(level, "Queuing %s %s", job.name, reason)
        self._notes.append((job.name, reason))
