"""Hunk expansion: reveal hidden context around hunks and merge hunks that meet."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Literal, Sequence

from .config import DEFAULT_DIFF_EXPANSION_STEP
from .headers import HunkHeader
from .models import (
    HIDDEN_BIDI_CHARS_RE,
    Diff,
    DiffHunk,
    DiffHunkExpansionType,
    DiffLine,
    DiffLineType,
    get_diff_text_from_hunks,
    get_largest_line_number,
)

logger = logging.getLogger(__name__)

ExpansionKind = Literal["up", "down"]


def is_dummy_hunk(hunk: DiffHunk) -> bool:
    """True for the synthetic bottom hunk that only exists to allow expanding down."""

    return len(hunk.lines) == 1 and hunk.lines[0].type is DiffLineType.HUNK


def without_dummy_hunk(diff: Diff) -> Diff:
    if not diff.hunks or not is_dummy_hunk(diff.hunks[-1]):
        return diff
    return _with_hunks(diff, diff.hunks[:-1])


def _with_hunks(diff: Diff, hunks: Sequence[DiffHunk], **changes: object) -> Diff:
    contents = get_diff_text_from_hunks(hunks)
    text = f"{diff.header}\n{contents}" if diff.header else contents
    return replace(
        diff,
        text=text,
        contents=contents,
        hunks=tuple(hunks),
        max_line_number=get_largest_line_number(hunks),
        **changes,
    )


def merge_diff_hunks(hunk1: DiffHunk, hunk2: DiffHunk) -> DiffHunk:
    """Merge two consecutive hunks into one, keeping a single header line."""

    header = HunkHeader(
        hunk1.header.old_start_line,
        hunk1.header.old_line_count + hunk2.header.old_line_count,
        hunk1.header.new_start_line,
        hunk1.header.new_line_count + hunk2.header.new_line_count,
        hunk1.header.section_heading,
    )
    lines = (
        DiffLine(header.to_diff_line_representation(), DiffLineType.HUNK, None, None),
        *hunk1.lines[1:],
        *hunk2.lines[1:],
    )
    # The first hunk's expansion type still describes the gap above the merged hunk.
    return DiffHunk(
        header=header,
        lines=lines,
        unified_diff_start=hunk1.unified_diff_start,
        unified_diff_end=hunk1.unified_diff_start + len(lines),
        expansion_type=hunk1.expansion_type,
    )


def get_hunk_header_expansion_type(
    hunk_index: int,
    header: HunkHeader,
    previous_hunk: DiffHunk | None,
    step: int = DEFAULT_DIFF_EXPANSION_STEP,
) -> DiffHunkExpansionType:
    """Work out how the gap above the hunk described by *header* can be expanded.

    Only the top hunk expands up exclusively and only the bottom dummy hunk
    expands down exclusively. Hunks in between expand both ways unless the gap
    to the previous hunk fits in a single step.
    """

    if hunk_index == 0:
        if header.old_start_line > 1 and header.new_start_line > 1:
            return DiffHunkExpansionType.UP
        return DiffHunkExpansionType.NONE

    if previous_hunk is None:
        return DiffHunkExpansionType.BOTH

    distance_to_previous = header.old_start_line - previous_hunk.header.old_end_line
    if distance_to_previous <= step:
        return DiffHunkExpansionType.SHORT
    return DiffHunkExpansionType.BOTH


def expand_text_diff_hunk(
    diff: Diff,
    hunk: DiffHunk,
    kind: ExpansionKind,
    new_content_lines: Sequence[str],
    step: int = DEFAULT_DIFF_EXPANSION_STEP,
) -> Diff | None:
    """Return a new diff where *hunk* shows up to *step* more context lines.

    The expansion never overlaps the adjacent hunk; when it reaches it the two
    hunks are merged. Returns ``None`` when there is nothing to reveal.
    """

    try:
        hunk_index = diff.hunks.index(hunk)
    except ValueError:
        logger.debug("hunk %s is not part of the diff", hunk.header)
        return None

    expanding_up = kind == "up"
    if expanding_up and hunk_index > 0:
        adjacent_index: int | None = hunk_index - 1
    elif not expanding_up and hunk_index < len(diff.hunks) - 1:
        adjacent_index = hunk_index + 1
    else:
        adjacent_index = None
    adjacent_hunk = diff.hunks[adjacent_index] if adjacent_index is not None else None

    header = hunk.header
    if expanding_up:
        start, end = header.new_start_line - step, header.new_start_line
    else:
        start, end = header.new_end_line, header.new_end_line + step

    should_merge = False
    if adjacent_hunk is not None:
        if expanding_up:
            up_limit = adjacent_hunk.header.new_end_line
            start = max(start, up_limit)
            should_merge = start == up_limit
        elif not (is_dummy_hunk(adjacent_hunk) and adjacent_index == len(diff.hunks) - 1):
            # The bottom dummy hunk spans all undiscovered content and never limits expansion.
            down_limit = adjacent_hunk.header.new_start_line
            end = min(end, down_limit)
            should_merge = end == down_limit

    revealed = list(new_content_lines[max(start - 1, 0) : min(end - 1, len(new_content_lines))])
    count = len(revealed)
    if count == 0:
        logger.debug("nothing to expand %s for hunk %s", kind, header)
        return None

    # Numbering assumes non-empty ranges. A side with a zero count names the
    # line before the hunk, so its revealed numbers would be one short. With
    # default context git only emits such ranges for whole files.
    context_lines = []
    for offset, content in enumerate(revealed):
        if expanding_up:
            old_number = header.old_start_line - (count - offset)
            new_number = header.new_start_line - (count - offset)
        else:
            old_number = header.old_end_line + offset
            new_number = header.new_end_line + offset
        context_lines.append(DiffLine(f" {content}", DiffLineType.CONTEXT, old_number, new_number))

    new_header = HunkHeader(
        header.old_start_line - count if expanding_up else header.old_start_line,
        header.old_line_count + count,
        header.new_start_line - count if expanding_up else header.new_start_line,
        header.new_line_count + count,
        header.section_heading,
    )
    header_line = replace(hunk.lines[0], text=new_header.to_diff_line_representation())
    body = hunk.lines[1:]
    if expanding_up:
        updated_lines = (header_line, *context_lines, *body)
    else:
        updated_lines = (header_line, *body, *context_lines)
    added_diff_lines = len(updated_lines) - len(hunk.lines)

    previous_hunk = diff.hunks[hunk_index - 1] if hunk_index > 0 else None
    updated_hunk = DiffHunk(
        header=new_header,
        lines=updated_lines,
        unified_diff_start=hunk.unified_diff_start,
        unified_diff_end=hunk.unified_diff_start + len(updated_lines),
        expansion_type=get_hunk_header_expansion_type(hunk_index, new_header, previous_hunk, step),
    )

    if should_merge and adjacent_hunk is not None:
        if expanding_up:
            updated_hunk = merge_diff_hunks(adjacent_hunk, updated_hunk)
            previous_end, following_start = hunk_index - 1, hunk_index + 1
        else:
            updated_hunk = merge_diff_hunks(updated_hunk, adjacent_hunk)
            previous_end, following_start = hunk_index, hunk_index + 2
        # one of the two header lines is gone
        added_diff_lines -= 1
    else:
        previous_end, following_start = hunk_index, hunk_index + 1

    previous_hunks = list(diff.hunks[:previous_end])
    following_hunks: list[DiffHunk] = []
    if new_header.new_end_line - 1 < len(new_content_lines):
        for position, following in enumerate(diff.hunks[following_start:]):
            is_last_dummy = following_start + position == len(diff.hunks) - 1 and is_dummy_hunk(following)
            expansion_type = None
            if position == 0 and not is_last_dummy:
                expansion_type = get_hunk_header_expansion_type(
                    len(previous_hunks) + 1, following.header, updated_hunk, step
                )
            following_hunks.append(following.with_offset(added_diff_lines, expansion_type))

    has_bidi = diff.has_hidden_bidi_chars or any(HIDDEN_BIDI_CHARS_RE.search(line) for line in revealed)
    return _with_hunks(
        diff,
        [*previous_hunks, updated_hunk, *following_hunks],
        has_hidden_bidi_chars=has_bidi,
    )


def expand_whole_text_diff(diff: Diff, new_content_lines: Sequence[str]) -> Diff | None:
    """Expand the first hunk until it covers the whole file."""

    result = diff
    while len(result.hunks) > 1 or (
        len(result.hunks) == 1 and result.hunks[0].expansion_type is DiffHunkExpansionType.UP
    ):
        first = result.hunks[0]
        kind: ExpansionKind = "up" if first.expansion_type is DiffHunkExpansionType.UP else "down"
        expanded = expand_text_diff_hunk(result, first, kind, new_content_lines, max(len(new_content_lines), 1))
        if expanded is None:
            return None
        result = expanded
    return result


def get_text_diff_with_bottom_dummy_hunk(
    diff: Diff,
    hunks: Sequence[DiffHunk],
    number_of_old_lines: int,
    number_of_new_lines: int,
) -> Diff | None:
    """Append a dummy hunk when the last hunk does not reach the end of the file.

    Returns ``None`` when no dummy hunk is needed.
    """

    if not hunks:
        return None
    last = hunks[-1]
    # new_end_line is the first line after the hunk
    if last.header.new_end_line > number_of_new_lines:
        return None

    dummy_old_start = last.header.old_end_line
    dummy_new_start = last.header.new_end_line
    dummy_header = HunkHeader(
        dummy_old_start,
        max(number_of_old_lines - dummy_old_start + 1, 0),
        dummy_new_start,
        number_of_new_lines - dummy_new_start + 1,
    )
    dummy_hunk = DiffHunk(
        header=dummy_header,
        lines=(DiffLine("", DiffLineType.HUNK, None, None),),
        unified_diff_start=last.unified_diff_end,
        unified_diff_end=last.unified_diff_end + 1,
        expansion_type=DiffHunkExpansionType.DOWN,
    )
    return _with_hunks(diff, [*hunks, dummy_hunk])
