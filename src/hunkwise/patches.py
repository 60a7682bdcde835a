"""Build unified-diff patches from a diff and a line selection.

The patches produced here carry exact hunk counts and no surplus context, so
they are meant for ``git apply --unidiff-zero --whitespace=nowarn``.
"""

from __future__ import annotations

import logging

from .diffs import NO_NEWLINE_MARKER
from .expansion import is_dummy_hunk
from .headers import HunkHeader
from .models import Diff, DiffLineType, FileChange, FileStatus
from .selection import DiffSelection

logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"


class PatchFormatError(RuntimeError):
    pass


def format_hunk_header(
    old_start_line: int,
    old_line_count: int,
    new_start_line: int,
    new_line_count: int,
    section_heading: str = "",
) -> str:
    """Render a hunk header line, including its trailing newline."""

    header = HunkHeader(old_start_line, old_line_count, new_start_line, new_line_count, section_heading)
    return f"{header.to_diff_line_representation()}\n"


def format_patch_header(from_path: str | None, to_path: str | None) -> str:
    """Render the ``---``/``+++`` file header; ``None`` stands for a missing side."""

    before = f"a/{from_path}" if from_path else DEV_NULL
    after = f"b/{to_path}" if to_path else DEV_NULL
    return f"--- {before}\n+++ {after}\n"


def format_patch_header_for_file(file: FileChange) -> str:
    status = file.status
    if status in (FileStatus.NEW, FileStatus.UNTRACKED):
        return format_patch_header(None, file.path)
    if status in (FileStatus.RENAMED, FileStatus.COPIED):
        if not file.old_path:
            raise PatchFormatError(f"{status.value} file {file.path} has no original path")
        return format_patch_header(file.old_path, file.path)
    if status in (FileStatus.MODIFIED, FileStatus.DELETED, FileStatus.CONFLICTED):
        return format_patch_header(file.path, file.path)
    raise AssertionError(f"Unknown file status {status!r}")


def _resulting_start_line(start: int, count: int, resulting_count: int, offset: int) -> int:
    """Start line on the resulting side of a hunk.

    An empty range names the line *before* the hunk, so ``-0,0 +1`` adds the
    first line of a file and ``-1 +0,0`` removes it.
    """

    first_line = (start if count > 0 else start + 1) + offset
    return first_line if resulting_count > 0 else first_line - 1


# (prefix, content, no_trailing_newline) for one emitted hunk line
_PatchLine = tuple[str, str, bool]


def _render_hunk_body(lines: list[_PatchLine]) -> str:
    """Render hunk lines, marking a missing newline only at the end of a side.

    A marker applies to the line before it on every side that line belongs
    to, so it may only follow the last line of that side. A context line that
    ends one side without a newline but is followed by more lines on the other
    side is split into a removal and an addition.
    """

    last_old = max((index for index, (prefix, _, _) in enumerate(lines) if prefix != "+"), default=-1)
    last_new = max((index for index, (prefix, _, _) in enumerate(lines) if prefix != "-"), default=-1)

    rendered: list[str] = []
    for index, (prefix, content, no_trailing_newline) in enumerate(lines):
        old_marker = no_trailing_newline and index == last_old
        new_marker = no_trailing_newline and index == last_new
        if prefix == " " and old_marker != new_marker:
            rendered.append(f"-{content}")
            if old_marker:
                rendered.append(NO_NEWLINE_MARKER)
            rendered.append(f"+{content}")
            if new_marker:
                rendered.append(NO_NEWLINE_MARKER)
            continue
        rendered.append(f"{prefix}{content}")
        if old_marker or new_marker:
            rendered.append(NO_NEWLINE_MARKER)
    return "".join(f"{text}\n" for text in rendered)


def format_patch(file: FileChange, diff: Diff, selection: DiffSelection) -> str:
    """Create a patch that applies exactly the selected lines of *diff* to the old file.

    Unselected additions are left out and unselected deletions become context,
    as if those changes had never been made. Hunks left with nothing but
    context are dropped and every remaining header is recomputed.
    """

    if diff.is_binary:
        raise PatchFormatError(f"Cannot create a patch for binary file {file.path}")

    new_file = file.status in (FileStatus.NEW, FileStatus.UNTRACKED)
    patch = ""
    offset = 0

    for hunk in diff.hunks:
        if is_dummy_hunk(hunk):
            continue

        body: list[_PatchLine] = []
        old_count = 0
        new_count = 0
        any_changes = False

        for index, line in hunk.indexed_lines():
            if line.type is DiffLineType.HUNK:
                continue

            if line.type is DiffLineType.CONTEXT:
                body.append((" ", line.content, line.no_trailing_newline))
                old_count += 1
                new_count += 1
            elif selection.is_selected(index):
                if line.type is DiffLineType.ADD:
                    body.append(("+", line.content, line.no_trailing_newline))
                    new_count += 1
                else:
                    body.append(("-", line.content, line.no_trailing_newline))
                    old_count += 1
                any_changes = True
            elif new_file or line.type is DiffLineType.ADD:
                # an unselected addition never happened as far as this patch is concerned
                continue
            else:
                # an unselected deletion is still part of the old file
                body.append((" ", line.content, line.no_trailing_newline))
                old_count += 1
                new_count += 1

        if not any_changes:
            logger.debug("dropping hunk %s with no selected changes", hunk.header)
            continue

        old_start = hunk.header.old_start_line
        patch += format_hunk_header(
            old_start,
            old_count,
            _resulting_start_line(old_start, old_count, new_count, offset),
            new_count,
            hunk.header.section_heading,
        )
        patch += _render_hunk_body(body)
        offset += new_count - old_count

    if not patch:
        # the caller passed an empty diff or a selection without changes
        raise PatchFormatError(f"Could not generate a patch for {file.path}, no changes")

    return format_patch_header_for_file(file) + patch


def format_patch_to_discard_changes(file_path: str, diff: Diff, selection: DiffSelection) -> str | None:
    """Create a patch that removes the selected lines of *diff* from the working copy.

    Selected additions are removed and selected deletions restored while
    unselected changes stay as they are. The patch applies to the new side of
    *diff*. Returns ``None`` when nothing is selected.
    """

    if diff.is_binary:
        raise PatchFormatError(f"Cannot discard lines of binary file {file_path}")

    patch = ""
    offset = 0

    for hunk in diff.hunks:
        if is_dummy_hunk(hunk):
            continue

        body: list[_PatchLine] = []
        working_count = 0
        result_count = 0
        any_changes = False

        for index, line in hunk.indexed_lines():
            if line.type is DiffLineType.HUNK:
                continue

            if line.type is DiffLineType.CONTEXT:
                body.append((" ", line.content, line.no_trailing_newline))
                working_count += 1
                result_count += 1
            elif selection.is_selected(index):
                if line.type is DiffLineType.ADD:
                    body.append(("-", line.content, line.no_trailing_newline))
                    working_count += 1
                else:
                    body.append(("+", line.content, line.no_trailing_newline))
                    result_count += 1
                any_changes = True
            elif line.type is DiffLineType.ADD:
                # an unselected addition stays in the working copy
                body.append((" ", line.content, line.no_trailing_newline))
                working_count += 1
                result_count += 1
            else:
                # an unselected deletion is not in the working copy at all
                continue

        if not any_changes:
            continue

        working_start = hunk.header.new_start_line
        patch += format_hunk_header(
            working_start,
            working_count,
            _resulting_start_line(working_start, working_count, result_count, offset),
            result_count,
            hunk.header.section_heading,
        )
        patch += _render_hunk_body(body)
        offset += result_count - working_count

    if not patch:
        return None

    return format_patch_header(file_path, file_path) + patch
