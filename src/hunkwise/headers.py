"""Hunk header codec.

Converts between the ``(old_start, old_count, new_start, new_count)``
quadruple and the ``@@ -l,s +l,s @@ optional section heading`` text form.
Each range may omit the comma and count, in which case the count is 1.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")


class HunkHeaderError(ValueError):
    pass


def format_range(start: int, count: int) -> str:
    """Render one side of a hunk range, omitting a count of exactly one."""

    return f"{start}" if count == 1 else f"{start},{count}"


@dataclass(frozen=True, slots=True)
class HunkHeader:
    """Line ranges covered by a hunk on the old and new side."""

    old_start_line: int
    old_line_count: int
    new_start_line: int
    new_line_count: int
    section_heading: str = ""

    def __post_init__(self) -> None:
        for name in ("old_start_line", "old_line_count", "new_start_line", "new_line_count"):
            if getattr(self, name) < 0:
                raise HunkHeaderError(f"{name} must be non-negative")

    @classmethod
    def parse(cls, text: str) -> HunkHeader:
        match = HUNK_HEADER_RE.match(text)
        if match is None:
            raise HunkHeaderError(f"Invalid hunk header format: {text!r}")
        old_start, old_count, new_start, new_count, heading = match.groups()
        return cls(
            old_start_line=int(old_start),
            old_line_count=int(old_count) if old_count is not None else 1,
            new_start_line=int(new_start),
            new_line_count=int(new_count) if new_count is not None else 1,
            section_heading=heading[1:] if heading.startswith(" ") else heading,
        )

    @property
    def old_end_line(self) -> int:
        """First old line number after this hunk."""

        return self.old_start_line + self.old_line_count

    @property
    def new_end_line(self) -> int:
        """First new line number after this hunk."""

        return self.new_start_line + self.new_line_count

    def to_diff_line_representation(self) -> str:
        heading = f" {self.section_heading}" if self.section_heading else ""
        return (
            f"@@ -{format_range(self.old_start_line, self.old_line_count)}"
            f" +{format_range(self.new_start_line, self.new_line_count)} @@{heading}"
        )

    def __str__(self) -> str:
        return self.to_diff_line_representation()
