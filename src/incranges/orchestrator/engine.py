"""Two-phase incremental planning: load every unit's state, then decide.

Phase 1: Load. Per-unit side-car, freshness check and diff (blocking I/O).
Phase 2: Decide. Pure cross-unit scheduling over the completed snapshot.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO

from incranges.config import Settings
from incranges.diagnostics import LoggingDiagnostics
from incranges.models import Job
from incranges.orchestrator.scheduler import ScheduleDecision, decide
from incranges.state.comparator import Comparator, LineComparator
from incranges.state.fs import FileSystem, LocalFileSystem
from incranges.state.loader import UnitIncrementalState, load_all_states, load_all_states_concurrent

logger = logging.getLogger(__name__)


class IncrementalEngine:
    """Wires settings and collaborators into the load and decide phases."""

    def __init__(
        self,
        settings: Settings,
        *,
        fs: Optional[FileSystem] = None,
        comparator: Optional[Comparator] = None,
        diagnostics: Optional[LoggingDiagnostics] = None,
    ) -> None:
        self._settings = settings
        self._fs = fs or LocalFileSystem()
        self._comparator = comparator or LineComparator()
        self._diagnostics = diagnostics or LoggingDiagnostics(settings.show_incremental_decisions)

    @property
    def diagnostics(self) -> LoggingDiagnostics:
        return self._diagnostics

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def load_states(self, jobs: Iterable[Job]) -> dict[str, UnitIncrementalState]:
        return load_all_states(
            jobs,
            fs=self._fs,
            comparator=self._comparator,
            diagnostics=self._diagnostics,
            show_decisions=self._settings.show_incremental_decisions,
        )

    async def load_states_async(self, jobs: Iterable[Job]) -> dict[str, UnitIncrementalState]:
        return await load_all_states_concurrent(
            jobs,
            fs=self._fs,
            comparator=self._comparator,
            diagnostics=self._diagnostics,
            show_decisions=self._settings.show_incremental_decisions,
            max_workers=self._settings.max_load_workers,
        )

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def decide(self, states: dict[str, UnitIncrementalState], jobs: Iterable[Job]) -> ScheduleDecision:
        return decide(states, jobs, self._diagnostics.note)

    def schedule(self, jobs: Iterable[Job]) -> ScheduleDecision:
        """Run both phases over *jobs*."""
        job_list = list(jobs)
        states = self.load_states(job_list)
        logger.info("Loaded incremental state for %d of %d jobs", len(states), len(job_list))
        self.dump_all_info(states)
        return self.decide(states, job_list)

    async def schedule_async(self, jobs: Iterable[Job]) -> ScheduleDecision:
        job_list = list(jobs)
        states = await self.load_states_async(job_list)
        logger.info("Loaded incremental state for %d of %d jobs", len(states), len(job_list))
        self.dump_all_info(states)
        return self.decide(states, job_list)

    # ------------------------------------------------------------------
    # Dumps
    # ------------------------------------------------------------------

    def dump_all_info(self, states: dict[str, UnitIncrementalState], out: TextIO | None = None) -> None:
        """Print side-car contents and/or changed ranges per unit, as configured."""
        dump_ranges = self._settings.dump_source_ranges
        dump_diffs = self._settings.dump_compiled_source_diffs
        if not dump_ranges and not dump_diffs:
            return
        stream = out or sys.stderr
        for primary in sorted(states):
            name = Path(primary).name
            if dump_ranges:
                print(states[primary].record.dump(name), file=stream)
            if dump_diffs:
                print(states[primary].dump_changed_ranges(name), file=stream)
