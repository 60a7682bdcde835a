"""Unified diff parsing helpers.

Parses the output of ``git diff``/``git log -p`` (GNU unified format) into a
:class:`~hunkwise.models.Diff` whose lines carry flat, file-wide indices::

    diff --git a/file.txt b/file.txt
    index e1d4871..3bd3ee0 100644
    --- a/file.txt
    +++ b/file.txt
    @@ -18,6 +18,7 @@ optional section heading
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace

from .config import MAX_CHARACTERS_PER_LINE, MAX_DIFF_BUFFER_SIZE, MAX_REASONABLE_DIFF_SIZE
from .expansion import get_hunk_header_expansion_type
from .headers import HUNK_HEADER_RE, HunkHeader, HunkHeaderError
from .models import (
    HIDDEN_BIDI_CHARS_RE,
    Diff,
    DiffHunk,
    DiffLine,
    DiffLineType,
    LineEnding,
    LineEndingsChange,
    get_diff_text_from_hunks,
    get_largest_line_number,
)

logger = logging.getLogger(__name__)

DIFF_PREFIX_ADD = "+"
DIFF_PREFIX_DELETE = "-"
DIFF_PREFIX_CONTEXT = " "
DIFF_PREFIX_NO_NEWLINE = "\\"
DIFF_LINE_PREFIXES = frozenset(
    {DIFF_PREFIX_ADD, DIFF_PREFIX_DELETE, DIFF_PREFIX_CONTEXT, DIFF_PREFIX_NO_NEWLINE}
)

# git refuses shorter markers too, see apply.c
NO_NEWLINE_MARKER_MIN_LENGTH = 12
NO_NEWLINE_MARKER = "\\ No newline at end of file"


LINE_ENDINGS_CHANGE_RE = re.compile(r"', (CRLF|CR|LF) will be replaced by (CRLF|CR|LF) the .*")


class DiffParseError(ValueError):
    pass


@dataclass(slots=True)
class _ScanningForMarker:
    pass


@dataclass(slots=True)
class _InHunkBody:
    header: HunkHeader
    lines: list[DiffLine]
    old_cursor: int
    new_cursor: int


@dataclass(slots=True)
class _DiffHeaderInfo:
    body_start: int
    is_binary: bool
    text: str = ""


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _parse_diff_header(lines: list[str]) -> _DiffHeaderInfo | None:
    """Locate the end of the file header.

    Returns ``None`` when neither a ``+++`` line nor a hunk header exists,
    which is what an empty new file produces.
    """

    for idx, line in enumerate(lines):
        if line.startswith("Binary files ") and line.endswith("differ"):
            return _DiffHeaderInfo(idx + 1, True, "\n".join(lines[: idx + 1]))
        if line.startswith("+++"):
            return _DiffHeaderInfo(idx + 1, False, "\n".join(lines[: idx + 1]))
        if HUNK_HEADER_RE.match(line):
            return _DiffHeaderInfo(idx, False, "\n".join(lines[:idx]))
    return None


def _start_hunk(line: str) -> _InHunkBody:
    try:
        header = HunkHeader.parse(line)
    except HunkHeaderError as exc:
        raise DiffParseError(f"Expected hunk header, got {line!r}") from exc
    return _InHunkBody(
        header=header,
        lines=[DiffLine(line, DiffLineType.HUNK, None, None)],
        old_cursor=header.old_start_line,
        new_cursor=header.new_start_line,
    )


def _consume_body_line(state: _InHunkBody, line: str) -> None:
    prefix = line[0]
    if prefix == DIFF_PREFIX_NO_NEWLINE:
        if len(line) < NO_NEWLINE_MARKER_MIN_LENGTH:
            raise DiffParseError(
                f'Expected "no newline at end of file" marker to be at least '
                f"{NO_NEWLINE_MARKER_MIN_LENGTH} characters long"
            )
        if len(state.lines) == 1:
            raise DiffParseError("No newline marker found before any diff line")
        state.lines[-1] = state.lines[-1].with_no_trailing_newline(True)
        return

    if prefix == DIFF_PREFIX_ADD:
        state.lines.append(DiffLine(line, DiffLineType.ADD, None, state.new_cursor))
        state.new_cursor += 1
    elif prefix == DIFF_PREFIX_DELETE:
        state.lines.append(DiffLine(line, DiffLineType.DELETE, state.old_cursor, None))
        state.old_cursor += 1
    elif prefix == DIFF_PREFIX_CONTEXT:
        state.lines.append(DiffLine(line, DiffLineType.CONTEXT, state.old_cursor, state.new_cursor))
        state.old_cursor += 1
        state.new_cursor += 1
    else:  # pragma: no cover - guarded by DIFF_LINE_PREFIXES
        raise AssertionError(f"Unknown diff line prefix: {prefix!r}")


def _finish_hunk(state: _InHunkBody, hunks: list[DiffHunk]) -> DiffHunk:
    if len(state.lines) == 1:
        raise DiffParseError(f"Malformed diff, empty hunk: {state.lines[0].text!r}")
    start = hunks[-1].unified_diff_end if hunks else 0
    previous = hunks[-1] if hunks else None
    return DiffHunk(
        header=state.header,
        lines=tuple(state.lines),
        unified_diff_start=start,
        unified_diff_end=start + len(state.lines),
        expansion_type=get_hunk_header_expansion_type(len(hunks), state.header, previous),
    )


def parse_diff(text: str) -> Diff:
    """Parse a single file's unified diff.

    A hunk marker is only recognised at the start of a line once the previous
    hunk body has ended, so ``@@`` inside added or removed content is content.
    Malformed input raises :class:`DiffParseError`.
    """

    lines = _split_lines(text)
    header_info = _parse_diff_header(lines)

    if header_info is None:
        logger.debug("diff has no file header, treating as empty")
        return Diff(text=text, header="\n".join(lines))

    if header_info.is_binary:
        logger.debug("binary diff detected")
        return Diff(text=text, header=header_info.text, is_binary=True)

    hunks: list[DiffHunk] = []
    state: _ScanningForMarker | _InHunkBody = _ScanningForMarker()

    for line in lines[header_info.body_start :]:
        if isinstance(state, _InHunkBody):
            if line[:1] in DIFF_LINE_PREFIXES:
                _consume_body_line(state, line)
                continue
            hunks.append(_finish_hunk(state, hunks))
        state = _start_hunk(line)

    if isinstance(state, _InHunkBody):
        hunks.append(_finish_hunk(state, hunks))

    has_bidi = any(HIDDEN_BIDI_CHARS_RE.search(line.text) for hunk in hunks for line in hunk.lines)
    logger.debug("parsed diff with %d hunks", len(hunks))
    return Diff(
        text=text,
        hunks=tuple(hunks),
        header=header_info.text,
        contents=get_diff_text_from_hunks(hunks),
        max_line_number=get_largest_line_number(hunks),
        has_hidden_bidi_chars=has_bidi,
    )


def diff_from_raw_output(output: bytes | str, line_endings_change: LineEndingsChange | None = None) -> Diff:
    """Parse the last NUL-delimited record of ``git diff --patch-with-raw -z`` output."""

    text = output.decode("utf-8") if isinstance(output, bytes) else output
    diff = parse_diff(text.split("\0")[-1])
    if line_endings_change is not None:
        diff = replace(diff, line_endings_change=line_endings_change)
    return diff


def parse_line_endings_warning(error: bytes | str) -> LineEndingsChange | None:
    """Extract the line endings conversion git reports on stderr, if any."""

    if not error:
        return None
    text = error.decode("utf-8", errors="replace") if isinstance(error, bytes) else error
    match = LINE_ENDINGS_CHANGE_RE.search(text)
    if match is None:
        return None
    return LineEndingsChange(LineEnding(match.group(1)), LineEnding(match.group(2)))


def is_valid_buffer(buffer: bytes | str, limit: int = MAX_DIFF_BUFFER_SIZE) -> bool:
    return len(buffer) <= limit


def is_buffer_too_large(buffer: bytes | str, limit: int = MAX_REASONABLE_DIFF_SIZE) -> bool:
    return len(buffer) >= limit


def is_diff_too_large(diff: Diff, max_characters_per_line: int = MAX_CHARACTERS_PER_LINE) -> bool:
    return any(len(line.text) > max_characters_per_line for _, line in diff.lines())
