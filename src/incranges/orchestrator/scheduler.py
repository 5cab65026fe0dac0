"""Decide which proposed jobs must run, from per-unit incremental state.

A compile job is skipped only when its own primary is unchanged and every
non-local change in every other primary falls inside regions this primary
did not read during its last compilation.  Missing information always
means the job runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

from incranges.models import Job
from incranges.ranges import find_first_outlier
from incranges.state.loader import UnitIncrementalState

logger = logging.getLogger(__name__)

NoteFn = Callable[[Job, str], None]

REASON_NOT_A_COMPILE = "(not a compile job)"
REASON_NO_RECORD = "(no prior incremental record)"
REASON_SELF_CHANGED = "(this unit's own source changed)"
REASON_LACKING_INFO = "to create source-range and compiled-source files for the next time"


@dataclass(slots=True)
class ScheduleDecision:
    """Jobs that must run, and compile jobs whose unit had no usable state."""

    needed: list[Job] = field(default_factory=list)
    lacking_info: list[Job] = field(default_factory=list)

    def needed_names(self) -> list[str]:
        return [job.name for job in self.needed]

    def lacking_info_names(self) -> list[str]:
        return [job.name for job in self.lacking_info]


def decide(
    states: Mapping[str, UnitIncrementalState],
    jobs: Iterable[Job],
    note: NoteFn,
) -> ScheduleDecision:
    """Split *jobs* into those that must run and those lacking incremental state.

    Parameters
    ----------
    states:
        Primary path -> state, for primaries that produced usable state.
        Read only.
    jobs:
        Every proposed job, compile or otherwise.
    note:
        Called with (job, reason) to explain each scheduling decision.

    Returns
    -------
    ScheduleDecision
        Both lists follow the order of *jobs*.
    """
    decision = ScheduleDecision()
    seen: set[int] = set()
    for job in jobs:
        if id(job) in seen:
            continue
        seen.add(id(job))

        if not job.primary:
            note(job, REASON_NOT_A_COMPILE)
            decision.needed.append(job)
            continue

        if should_schedule_compile_job(states, job, lambda why, _job=job: note(_job, why)):
            decision.needed.append(job)
        if job.primary not in states:
            decision.lacking_info.append(job)
            note(job, REASON_LACKING_INFO)

    logger.debug(
        "Scheduled %d of %d jobs (%d lacking incremental info)",
        len(decision.needed),
        len(seen),
        len(decision.lacking_info),
    )
    return decision


def should_schedule_compile_job(
    states: Mapping[str, UnitIncrementalState],
    job: Job,
    note: Callable[[str], None],
) -> bool:
    """Return True if *job* must run; *note* receives the first reason found."""
    if not job.primary:
        return True

    state = states.get(job.primary)
    if state is None:
        note(REASON_NO_RECORD)
        return True
    if state.changed_ranges:
        note(REASON_SELF_CHANGED)
        return True
    return did_primary_read_any_nonlocal_change(job.primary, state, states, note)


def did_primary_read_any_nonlocal_change(
    primary: str,
    state: UnitIncrementalState,
    states: Mapping[str, UnitIncrementalState],
    note: Callable[[str], None],
) -> bool:
    """Return True if some other unit's non-local change lies outside what *primary* left unread."""
    for dependency in sorted(states):
        if dependency == primary:
            continue
        dep_state = states[dependency]
        if not dep_state.nonlocal_changed_ranges:
            continue

        dep_name = Path(dependency).name
        unread = state.record.unparsed_ranges_for(dependency)
        if unread is None:
            note(f"({dep_name} changed non-locally and there is no record of what was read from it)")
            return True

        witness = find_first_outlier(dep_state.nonlocal_changed_ranges, unread)
        if witness is not None:
            note(f"(changed: {dep_name}:{witness})")
            return True
    return False
