"""Per-unit incremental state: what changed in each primary since last build.

Loading a unit combines its side-car record with a diff between the copy
of the source saved by the previous compilation and the source as it is
now.  Any failure leaves the unit with no usable state (``None``), which
the scheduler treats conservatively.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from incranges.diagnostics import Diagnostics, WarningKind
from incranges.errors import LoadError, StatError
from incranges.models import Job, OutputKind
from incranges.ranges import RangeSet, find_outliers
from incranges.state.comparator import Comparator
from incranges.state.fs import FileSystem
from incranges.state.sidecar import IncrementalRecord, load_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnitIncrementalState:
    """Immutable per-build view of one unit's changes."""

    record: IncrementalRecord = field(default_factory=IncrementalRecord)
    changed_ranges: RangeSet = field(default_factory=RangeSet)
    nonlocal_changed_ranges: RangeSet = field(default_factory=RangeSet)

    @classmethod
    def whole_unit_changed(cls) -> "UnitIncrementalState":
        """State for a unit whose true contents are unknown."""
        return cls(
            record=IncrementalRecord(),
            changed_ranges=RangeSet.whole_unit(),
            nonlocal_changed_ranges=RangeSet.whole_unit(),
        )

    @classmethod
    def from_changes(cls, record: IncrementalRecord, changed_ranges: RangeSet) -> "UnitIncrementalState":
        """Project *changed_ranges* onto the regions visible outside the unit.

        A change is non-local unless it lies wholly inside one of the
        record's local-scope ranges.
        """
        return cls(
            record=record,
            changed_ranges=changed_ranges,
            nonlocal_changed_ranges=find_outliers(changed_ranges, record.local_scope_ranges),
        )

    def dump_changed_ranges(self, unit_name: str) -> str:
        def _section(which: str, ranges: RangeSet) -> list[str]:
            return [
                f"*** {which} changed ranges in previously-compiled '{unit_name}' ***",
                *(str(r) for r in ranges),
                "",
            ]

        if not self.changed_ranges:
            return "\n".join(_section("no", RangeSet()))
        return "\n".join(_section("all", self.changed_ranges) + _section("nonlocal", self.nonlocal_changed_ranges))


def load_unit_state(
    primary: str,
    compiled_source_path: str,
    source_ranges_path: str,
    *,
    fs: FileSystem,
    comparator: Comparator,
    diagnostics: Diagnostics,
    show_decisions: bool = False,
) -> Optional[UnitIncrementalState]:
    """Build the incremental state of one primary, or None if unusable.

    Parameters
    ----------
    primary:
        Path of the unit's current source.
    compiled_source_path:
        Copy of the source saved when the unit was last compiled.
    source_ranges_path:
        The unit's side-car record.

    Returns
    -------
    Optional[UnitIncrementalState]
        The whole-unit-changed state if *primary* no longer exists, None if
        any input could not be loaded or was never declared, otherwise the
        diffed state.
    """
    if not primary:
        raise ValueError("a primary is required to load incremental state")

    if not fs.exists(primary):
        if show_decisions:
            logger.info("%s was removed.", primary)
        # Stale supplementary files must not be reused if the primary comes back.
        _remove_supplementary(fs, diagnostics, compiled_source_path, source_ranges_path)
        return UnitIncrementalState.whole_unit_changed()

    # Attempt both halves; each failure gets its own warning.
    errors: list[LoadError] = []
    record: Optional[IncrementalRecord] = None
    try:
        record = _load_source_ranges(fs, primary, source_ranges_path)
    except LoadError as exc:
        errors.append(exc)
    changed_ranges = _load_changed_ranges(fs, comparator, primary, compiled_source_path, errors)

    if errors:
        for exc in errors:
            diagnostics.warn(exc.kind, f"{exc.path} ({exc.message})")
        _remove_supplementary(fs, diagnostics, compiled_source_path, source_ranges_path)
        return None

    return UnitIncrementalState.from_changes(record, changed_ranges)


def _load_source_ranges(fs: FileSystem, primary: str, source_ranges_path: str) -> IncrementalRecord:
    if not source_ranges_path:
        raise LoadError(primary, "no source ranges output declared", WarningKind.UNABLE_TO_LOAD_SOURCE_RANGES)
    try:
        buffer = fs.read_all(source_ranges_path)
    except OSError as exc:
        raise LoadError(source_ranges_path, _reason(exc), WarningKind.UNABLE_TO_LOAD_SOURCE_RANGES) from exc
    return load_record(primary, buffer, buffer_name=source_ranges_path)


def _load_changed_ranges(
    fs: FileSystem,
    comparator: Comparator,
    primary: str,
    compiled_source_path: str,
    errors: list[LoadError],
) -> Optional[RangeSet]:
    """Diff the saved copy against *primary*; failures are appended to *errors*."""
    if not compiled_source_path:
        errors.append(
            LoadError(primary, "no compiled source output declared", WarningKind.UNABLE_TO_LOAD_COMPILED_SOURCE)
        )
        return None

    # Trusting the saved copy when it is newer assumes the clock that stamped
    # it and the clock that stamped the primary agree.
    newer = _is_file_newer_than(fs, compiled_source_path, primary, errors)
    if newer is None:
        return None
    if newer:
        return RangeSet()

    was_compiled = _read(fs, compiled_source_path, WarningKind.UNABLE_TO_LOAD_COMPILED_SOURCE, errors)
    about_to_compile = _read(fs, primary, WarningKind.UNABLE_TO_LOAD_PRIMARY, errors)
    if was_compiled is None or about_to_compile is None:
        return None

    # Mismatches are expressed in the coordinates of the previously compiled copy.
    return RangeSet(comparator.compare(_decode(was_compiled), _decode(about_to_compile)))


def _read(fs: FileSystem, path: str, kind: WarningKind, errors: list[LoadError]) -> Optional[bytes]:
    try:
        return fs.read_all(path)
    except OSError as exc:
        errors.append(LoadError(path, _reason(exc), kind))
        return None


def _is_file_newer_than(fs: FileSystem, lhs: str, rhs: str, errors: list[LoadError]) -> Optional[bool]:
    """Return True if *lhs* was modified strictly after *rhs*.

    Both files are stat'ed.  Each one that cannot be is recorded in
    *errors* as a ``StatError`` and None is returned.
    """
    times = []
    for path in (lhs, rhs):
        try:
            times.append(fs.mod_time(path))
        except OSError as exc:
            errors.append(StatError(path, _reason(exc)))
    if len(times) < 2:
        return None
    return times[0] > times[1]


def _remove_supplementary(fs: FileSystem, diagnostics: Diagnostics, *paths: str) -> None:
    for path in paths:
        if not path or not fs.exists(path):
            continue
        try:
            fs.remove(path)
        except OSError as exc:
            diagnostics.warn(WarningKind.CANNOT_REMOVE, f"{path} ({_reason(exc)})")


def _decode(buffer: bytes) -> str:
    # surrogateescape keeps distinct undecodable bytes distinct
    return buffer.decode("utf-8", errors="surrogateescape")


def _reason(exc: OSError) -> str:
    return exc.strerror or str(exc)


# ------------------------------------------------------------------
# All primaries
# ------------------------------------------------------------------

def _compile_jobs(jobs: Iterable[Job]) -> list[Job]:
    seen: set[str] = set()
    out: list[Job] = []
    for job in jobs:
        if not job.primary:
            continue
        if job.primary in seen:
            raise ValueError(f"primary compiled by more than one job: {job.primary}")
        seen.add(job.primary)
        out.append(job)
    return out


def load_all_states(
    jobs: Iterable[Job],
    *,
    fs: FileSystem,
    comparator: Comparator,
    diagnostics: Diagnostics,
    show_decisions: bool = False,
) -> dict[str, UnitIncrementalState]:
    """Load state for every compile job; units without usable state are omitted."""
    states: dict[str, UnitIncrementalState] = {}
    for job in _compile_jobs(jobs):
        state = load_unit_state(
            job.primary,
            job.output_for(OutputKind.COMPILED_SOURCE),
            job.output_for(OutputKind.SOURCE_RANGES),
            fs=fs,
            comparator=comparator,
            diagnostics=diagnostics,
            show_decisions=show_decisions,
        )
        if state is not None:
            states[job.primary] = state
    logger.debug("Loaded incremental state for %d primaries", len(states))
    return states


async def _load_one_guarded(
    job: Job,
    *,
    fs: FileSystem,
    comparator: Comparator,
    diagnostics: Diagnostics,
    show_decisions: bool,
    semaphore: asyncio.Semaphore,
) -> Optional[UnitIncrementalState]:
    async with semaphore:
        try:
            return await asyncio.to_thread(
                load_unit_state,
                job.primary,
                job.output_for(OutputKind.COMPILED_SOURCE),
                job.output_for(OutputKind.SOURCE_RANGES),
                fs=fs,
                comparator=comparator,
                diagnostics=diagnostics,
                show_decisions=show_decisions,
            )
        except Exception:
            logger.exception("Unexpected failure loading incremental state for %s", job.primary)
            return None


async def load_all_states_concurrent(
    jobs: Iterable[Job],
    *,
    fs: FileSystem,
    comparator: Comparator,
    diagnostics: Diagnostics,
    show_decisions: bool = False,
    max_workers: int = 4,
) -> dict[str, UnitIncrementalState]:
    """Load every compile job's state in worker threads with bounded parallelism.

    Returns only after every unit has either loaded or failed, so the
    result is a complete snapshot for scheduling.
    """
    compile_jobs = _compile_jobs(jobs)
    if not compile_jobs:
        return {}

    semaphore = asyncio.Semaphore(max(1, max_workers))
    results = await asyncio.gather(
        *(
            _load_one_guarded(
                job,
                fs=fs,
                comparator=comparator,
                diagnostics=diagnostics,
                show_decisions=show_decisions,
                semaphore=semaphore,
            )
            for job in compile_jobs
        )
    )
    return {job.primary: state for job, state in zip(compile_jobs, results) if state is not None}
