"""Source positions, text ranges and the range-set algebra.

Ranges are expressed in (line, column) coordinates of a unit's source
text.  Lines are 1-based and columns are 0-based; only the whole-unit
sentinel sits at line 0.  A range is written ``L:C-L:C`` in every
textual form (side-car files, notes, dumps).

The *whole-unit* sentinel stands for "the entire unit changed".  It
contains every range and is contained only by another whole-unit range,
so checking it against any concrete reference set always yields an
outlier.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

_RANGE_RE = re.compile(r"^\s*(\d+):(\d+)-(\d+):(\d+)\s*$")

WHOLE_UNIT_TEXT = "<whole unit>"


@dataclass(frozen=True, order=True, slots=True)
class Position:
    """A (line, column) location; ordered by line, then column."""

    line: int
    column: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.column < 0:
            raise ValueError(f"negative source position: {self.line}:{self.column}")

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True, order=True, slots=True)
class TextRange:
    """A span of source text from *start* to *end* (inclusive bounds)."""

    start: Position
    end: Position
    whole_unit: bool = False

    def __post_init__(self) -> None:
        if not self.whole_unit and self.start.line < 1:
            raise ValueError(f"line numbers start at 1: {self.start}-{self.end}")
        if self.end < self.start:
            raise ValueError(f"range ends before it starts: {self.start}-{self.end}")

    @classmethod
    def of(cls, start_line: int, start_column: int, end_line: int, end_column: int) -> "TextRange":
        return cls(Position(start_line, start_column), Position(end_line, end_column))

    @classmethod
    def whole(cls) -> "TextRange":
        """Return the whole-unit sentinel."""
        return cls(Position(0, 0), Position(0, 0), whole_unit=True)

    @classmethod
    def parse(cls, text: str) -> "TextRange":
        """Parse the ``L:C-L:C`` form.

        Raises
        ------
        ValueError
            If *text* is not a well-formed range.
        """
        if not isinstance(text, str):
            raise ValueError(f"range must be a string, got {type(text).__name__}")
        m = _RANGE_RE.match(text)
        if m is None:
            raise ValueError(f"malformed range: {text!r}")
        return cls.of(*(int(g) for g in m.groups()))

    def contains(self, other: "TextRange") -> bool:
        return contains(self, other)

    def __str__(self) -> str:
        if self.whole_unit:
            return WHOLE_UNIT_TEXT
        return f"{self.start}-{self.end}"


def contains(outer: TextRange, inner: TextRange) -> bool:
    """Return True if *inner* lies wholly within *outer*."""
    if outer.whole_unit:
        return True
    if inner.whole_unit:
        return False
    return inner.start >= outer.start and inner.end <= outer.end


class RangeSet:
    """Immutable ordered set of ranges, ascending by start then end.

    An empty set means "no change".
    """

    __slots__ = ("_ranges",)

    def __init__(self, ranges: Iterable[TextRange] = ()) -> None:
        self._ranges: tuple[TextRange, ...] = tuple(sorted(set(ranges)))

    @classmethod
    def whole_unit(cls) -> "RangeSet":
        return cls((TextRange.whole(),))

    @classmethod
    def parse(cls, texts: Iterable[str]) -> "RangeSet":
        return cls(TextRange.parse(t) for t in texts)

    @property
    def is_whole_unit(self) -> bool:
        return any(r.whole_unit for r in self._ranges)

    def covers(self, candidate: TextRange) -> bool:
        """Return True if some member range contains *candidate*."""
        return any(contains(ref, candidate) for ref in self._ranges)

    def to_strings(self) -> list[str]:
        return [str(r) for r in self._ranges]

    def __iter__(self) -> Iterator[TextRange]:
        return iter(self._ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def __contains__(self, item: object) -> bool:
        return item in self._ranges

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RangeSet):
            return NotImplemented
        return self._ranges == other._ranges

    def __hash__(self) -> int:
        return hash(self._ranges)

    def __repr__(self) -> str:
        return f"RangeSet([{', '.join(str(r) for r in self._ranges)}])"


def find_outliers(candidates: Iterable[TextRange], references: RangeSet) -> RangeSet:
    """Return the candidates not contained by any range in *references*."""
    return RangeSet(c for c in candidates if not references.covers(c))


def find_first_outlier(candidates: Iterable[TextRange], references: RangeSet) -> Optional[TextRange]:
    """Return the first candidate (in iteration order) not covered by *references*."""
    for candidate in candidates:
        if not references.covers(candidate):
            return candidate
    return None
