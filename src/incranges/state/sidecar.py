"""Side-car source-ranges record: parsing and serialization.

A side-car file is written by the compilation of a unit and read back by
the next build.  It starts with a fixed header line followed by a YAML
document::

    ### incranges source ranges file v0 ###
    local_scope_ranges:
    - 3:0-9:1
    unparsed_ranges_by_dependency:
      /src/other.c:
      - 12:0-40:1

``local_scope_ranges`` lists regions of the unit whose edits are invisible
to other units.  ``unparsed_ranges_by_dependency`` maps each dependency
to the regions of *its* text that this unit did not read.  A dependency
that is missing from the mapping was never recorded; one mapped to an
empty list was read in full.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from incranges.diagnostics import WarningKind
from incranges.errors import FormatError
from incranges.ranges import RangeSet, TextRange

logger = logging.getLogger(__name__)

SIDECAR_HEADER = "### incranges source ranges file v0 ###\n"


@dataclass(frozen=True, slots=True)
class IncrementalRecord:
    """Parsed contents of one unit's side-car file."""

    local_scope_ranges: RangeSet = field(default_factory=RangeSet)
    unparsed_ranges_by_dependency: dict[str, RangeSet] = field(default_factory=dict)

    def unparsed_ranges_for(self, dependency: str) -> RangeSet | None:
        """Return the unread regions of *dependency*, or None if never recorded."""
        return self.unparsed_ranges_by_dependency.get(dependency)

    def dump(self, unit_name: str) -> str:
        """Render the record for human inspection."""
        lines = [f"*** Source ranges file for '{unit_name}' ***"]
        lines.append("local scope ranges:")
        lines.extend(f"  {r}" for r in self.local_scope_ranges)
        lines.append("unparsed ranges by dependency:")
        for dependency in sorted(self.unparsed_ranges_by_dependency):
            lines.append(f"  {dependency}:")
            lines.extend(f"    {r}" for r in self.unparsed_ranges_by_dependency[dependency])
        return "\n".join(lines)


class _SideCarBody(BaseModel):
    """Schema of the YAML document following the header."""

    model_config = ConfigDict(extra="forbid")

    local_scope_ranges: list[str] = Field(default_factory=list)
    unparsed_ranges_by_dependency: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("local_scope_ranges", mode="before")
    @classmethod
    def _check_local(cls, value):
        return _checked_ranges(value)

    @field_validator("unparsed_ranges_by_dependency", mode="before")
    @classmethod
    def _check_unparsed(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("unparsed_ranges_by_dependency must be a mapping")
        return {str(k): _checked_ranges(v) for k, v in value.items()}


def _checked_ranges(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a list of ranges")
    for item in value:
        TextRange.parse(item)
    return value


def load_record(primary_path: str, buffer: bytes, *, buffer_name: str = "") -> IncrementalRecord:
    """Parse a side-car buffer into an ``IncrementalRecord``.

    Parameters
    ----------
    primary_path:
        The unit the record belongs to; only used in error messages.
    buffer:
        Raw side-car bytes, as read by the caller.
    buffer_name:
        Path of the side-car file, for diagnostics.

    Raises
    ------
    FormatError
        If the header is missing or the body does not decode into the
        expected two mappings.
    """
    name = buffer_name or primary_path
    if not buffer.startswith(SIDECAR_HEADER.encode("utf-8")):
        raise FormatError(name, "missing source ranges header", WarningKind.BAD_SOURCE_RANGES_HEADER)

    try:
        raw = yaml.safe_load(buffer.decode("utf-8"))
    except (UnicodeDecodeError, yaml.YAMLError) as exc:
        raise FormatError(name, f"undecodable body: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise FormatError(name, "body must be a mapping")

    try:
        body = _SideCarBody.model_validate(raw)
    except ValidationError as exc:
        raise FormatError(name, f"bad body for {primary_path}: {exc.errors()[0]['msg']}") from exc

    logger.debug(
        "Loaded source ranges for %s: %d local, %d dependencies",
        primary_path,
        len(body.local_scope_ranges),
        len(body.unparsed_ranges_by_dependency),
    )
    return IncrementalRecord(
        local_scope_ranges=RangeSet.parse(body.local_scope_ranges),
        unparsed_ranges_by_dependency={
            dep: RangeSet.parse(ranges) for dep, ranges in body.unparsed_ranges_by_dependency.items()
        },
    )


def dump_record(record: IncrementalRecord) -> bytes:
    """Serialize *record* in the side-car format understood by ``load_record``."""
    doc = {
        "local_scope_ranges": record.local_scope_ranges.to_strings(),
        "unparsed_ranges_by_dependency": {
            dep: record.unparsed_ranges_by_dependency[dep].to_strings()
            for dep in sorted(record.unparsed_ranges_by_dependency)
        },
    }
    return (SIDECAR_HEADER + yaml.safe_dump(doc, sort_keys=False)).encode("utf-8")
