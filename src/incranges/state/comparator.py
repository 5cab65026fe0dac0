"""Line-oriented implementation of the diff oracle.

``compare(old, new)`` returns the mismatched regions of *old* as ranges
in *old*'s coordinates, sorted and non-overlapping.  Only ``\\n`` ends a
line, so line numbers agree with the side-car writer's.  An insertion,
which occupies no text in *old*, is reported as the gap from the end of
the preceding line to the start of the next one.  Only a scope that
strictly encloses that gap can make the insertion local.
"""

from __future__ import annotations

import difflib
from typing import Protocol

from incranges.ranges import Position, TextRange


class Comparator(Protocol):
    def compare(self, old_text: str, new_text: str) -> list[TextRange]: ...


def split_lines(text: str) -> list[str]:
    """Split *text* after each ``\\n``, keeping line ends."""
    lines = text.split("\n")
    out = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        out.append(lines[-1])
    return out


def _line_length(line: str) -> int:
    return len(line.rstrip("\r\n"))


class LineComparator:
    """Diff two texts line by line with ``difflib.SequenceMatcher``."""

    def compare(self, old_text: str, new_text: str) -> list[TextRange]:
        if old_text == new_text:
            return []
        old_lines = split_lines(old_text)
        new_lines = split_lines(new_text)
        matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

        mismatches: list[TextRange] = []
        for tag, i1, i2, _j1, _j2 in matcher.get_opcodes():
            if tag == "equal":
                continue
            if i1 == i2:
                mismatches.append(self._insertion_gap(old_lines, i1))
                continue
            last = old_lines[i2 - 1]
            mismatches.append(TextRange(Position(i1 + 1, 0), Position(i2, _line_length(last))))
        return mismatches

    @staticmethod
    def _insertion_gap(old_lines: list[str], before: int) -> TextRange:
        if before == 0:
            return TextRange.of(1, 0, 1, 0)
        previous = old_lines[before - 1]
        return TextRange.of(before, _line_length(previous), before + 1, 0)
