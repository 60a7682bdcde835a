"""Data model shared by the parser, selection, patch and expansion modules."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from typing import Iterator

from .headers import HunkHeader

HIDDEN_BIDI_CHARS_RE = re.compile("[\u202a-\u202e\u2066-\u2069]")


class DiffLineType(enum.Enum):
    HUNK = "hunk"
    CONTEXT = "context"
    ADD = "add"
    DELETE = "delete"


class DiffHunkExpansionType(enum.Enum):
    """Directions in which the gap above a hunk can be expanded."""

    # Only the first hunk, when there is content above it.
    UP = "up"
    # Only the bottom dummy hunk.
    DOWN = "down"
    # Gap to the previous hunk is larger than one expansion step.
    BOTH = "both"
    # Gap to the previous hunk fits in one expansion step.
    SHORT = "short"
    NONE = "none"


class LineEnding(enum.Enum):
    CR = "CR"
    LF = "LF"
    CRLF = "CRLF"


@dataclass(frozen=True, slots=True)
class LineEndingsChange:
    from_ending: LineEnding
    to_ending: LineEnding


class FileStatus(enum.Enum):
    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    CONFLICTED = "conflicted"
    UNTRACKED = "untracked"


@dataclass(frozen=True, slots=True)
class FileChange:
    """A changed file as reported by ``git status``."""

    path: str
    status: FileStatus
    old_path: str | None = None


@dataclass(frozen=True, slots=True)
class DiffLine:
    """One line of a unified diff, including its one-character marker."""

    text: str
    type: DiffLineType
    old_line_number: int | None
    new_line_number: int | None
    no_trailing_newline: bool = False

    @property
    def content(self) -> str:
        """The line text without its leading ``+``/``-``/`` `` marker."""

        if self.type is DiffLineType.HUNK:
            return self.text
        return self.text[1:]

    def with_no_trailing_newline(self, no_trailing_newline: bool) -> DiffLine:
        return replace(self, no_trailing_newline=no_trailing_newline)

    def is_include_able_line(self) -> bool:
        return self.type in (DiffLineType.ADD, DiffLineType.DELETE)


@dataclass(frozen=True, slots=True)
class DiffHunk:
    """A hunk and the flat ``[unified_diff_start, unified_diff_end)`` range of its lines."""

    header: HunkHeader
    lines: tuple[DiffLine, ...]
    unified_diff_start: int
    unified_diff_end: int
    expansion_type: DiffHunkExpansionType = DiffHunkExpansionType.NONE

    def __post_init__(self) -> None:
        if not self.lines or self.lines[0].type is not DiffLineType.HUNK:
            raise ValueError("A hunk must start with a hunk header line")
        if self.unified_diff_end - self.unified_diff_start != len(self.lines):
            raise ValueError(
                f"Hunk range [{self.unified_diff_start}, {self.unified_diff_end}) "
                f"does not match its {len(self.lines)} lines"
            )

    def indexed_lines(self) -> Iterator[tuple[int, DiffLine]]:
        """Yield ``(absolute_index, line)`` pairs for every line in the hunk."""

        return enumerate(self.lines, start=self.unified_diff_start)

    def with_offset(self, offset: int, expansion_type: DiffHunkExpansionType | None = None) -> DiffHunk:
        return replace(
            self,
            unified_diff_start=self.unified_diff_start + offset,
            unified_diff_end=self.unified_diff_end + offset,
            expansion_type=self.expansion_type if expansion_type is None else expansion_type,
        )


@dataclass(frozen=True, slots=True)
class Diff:
    """A parsed file diff. Replaced, never mutated, when its content changes."""

    text: str
    hunks: tuple[DiffHunk, ...] = ()
    header: str = ""
    contents: str = ""
    is_binary: bool = False
    line_endings_change: LineEndingsChange | None = None
    max_line_number: int = 0
    has_hidden_bidi_chars: bool = False

    def lines(self) -> Iterator[tuple[int, DiffLine]]:
        for hunk in self.hunks:
            yield from hunk.indexed_lines()

    def selectable_lines(self) -> frozenset[int]:
        """Flat indices of every added or deleted line."""

        return frozenset(index for index, line in self.lines() if line.is_include_able_line())

    def hunk_for_line(self, index: int) -> DiffHunk | None:
        for hunk in self.hunks:
            if hunk.unified_diff_start <= index < hunk.unified_diff_end:
                return hunk
        return None

    def line_at(self, index: int) -> DiffLine | None:
        hunk = self.hunk_for_line(index)
        if hunk is None:
            return None
        return hunk.lines[index - hunk.unified_diff_start]


def get_largest_line_number(hunks: tuple[DiffHunk, ...] | list[DiffHunk]) -> int:
    largest = 0
    for hunk in hunks:
        for line in hunk.lines:
            for number in (line.old_line_number, line.new_line_number):
                if number is not None and number > largest:
                    largest = number
    return largest


def get_diff_text_from_hunks(hunks: tuple[DiffHunk, ...] | list[DiffHunk]) -> str:
    return "\n".join(line.text for hunk in hunks for line in hunk.lines)
