from __future__ import annotations

import difflib
from pathlib import Path

import pytest

from hunkwise.apply import (
    ApplyError,
    apply_patch,
    apply_patch_to_file,
    discard_changes_from_selection,
    write_if_changed,
)
from hunkwise.diffs import parse_diff
from hunkwise.models import Diff, DiffLineType, FileChange, FileStatus
from hunkwise.patches import format_patch
from hunkwise.selection import DiffSelection, DiffSelectionType

OLD_LINES = [f"line {i}" for i in range(1, 31)]
NEW_LINES = list(OLD_LINES)
NEW_LINES[4] = "line five"
NEW_LINES.insert(20, "inserted")
NEW_LINES.remove("line 28")

OLD_TEXT = "".join(f"{line}\n" for line in OLD_LINES)
NEW_TEXT = "".join(f"{line}\n" for line in NEW_LINES)
MODIFIED = FileChange("file.txt", FileStatus.MODIFIED)


def _unified_diff(old: str, new: str) -> Diff:
    text = "".join(
        difflib.unified_diff(
            old.splitlines(keepends=True),
            new.splitlines(keepends=True),
            "a/file.txt",
            "b/file.txt",
        )
    )
    return parse_diff(text)


def _select_where(diff: Diff, line_type: DiffLineType, content: str) -> DiffSelection:
    selection = DiffSelection.from_initial_selection(DiffSelectionType.NONE).with_selectable_lines(
        diff.selectable_lines()
    )
    for index, line in diff.lines():
        if line.type is line_type and line.content == content:
            selection = selection.with_line_selection(index, True)
    return selection


def test_full_commit_patch_turns_old_into_new() -> None:
    diff = _unified_diff(OLD_TEXT, NEW_TEXT)
    patch = format_patch(MODIFIED, diff, DiffSelection.from_initial_selection(DiffSelectionType.ALL))
    assert apply_patch(OLD_TEXT, patch) == NEW_TEXT


def test_partial_commit_patch_applies_only_selected_lines() -> None:
    diff = _unified_diff(OLD_TEXT, NEW_TEXT)
    patch = format_patch(MODIFIED, diff, _select_where(diff, DiffLineType.ADD, "inserted"))

    expected = list(OLD_LINES)
    expected.insert(expected.index("line 20") + 1, "inserted")
    assert apply_patch(OLD_TEXT, patch) == "".join(f"{line}\n" for line in expected)


def test_discard_everything_restores_old_text() -> None:
    diff = _unified_diff(OLD_TEXT, NEW_TEXT)
    selection = DiffSelection.from_initial_selection(DiffSelectionType.ALL)
    assert discard_changes_from_selection(NEW_TEXT, "file.txt", diff, selection) == OLD_TEXT


def test_discard_single_deletion() -> None:
    diff = _unified_diff(OLD_TEXT, NEW_TEXT)
    selection = _select_where(diff, DiffLineType.DELETE, "line 28")

    expected = list(NEW_LINES)
    expected.insert(expected.index("line 27") + 1, "line 28")
    assert discard_changes_from_selection(NEW_TEXT, "file.txt", diff, selection) == "".join(
        f"{line}\n" for line in expected
    )


def test_discard_with_nothing_selected_returns_source() -> None:
    diff = _unified_diff(OLD_TEXT, NEW_TEXT)
    selection = DiffSelection.from_initial_selection(DiffSelectionType.NONE)
    assert discard_changes_from_selection(NEW_TEXT, "file.txt", diff, selection) is NEW_TEXT


def test_discard_restores_missing_trailing_newline() -> None:
    diff = parse_diff(
        "--- a/file.txt\n"
        "+++ b/file.txt\n"
        "@@ -1,2 +1,2 @@\n"
        " a\n"
        "-b\n"
        "\\ No newline at end of file\n"
        "+c\n"
        "\\ No newline at end of file\n"
    )
    selection = DiffSelection.from_initial_selection(DiffSelectionType.ALL)
    assert discard_changes_from_selection("a\nc", "file.txt", diff, selection) == "a\nb"


def test_apply_patch_adds_trailing_newline() -> None:
    patch = "--- a/f\n+++ b/f\n@@ -1 +1 @@\n-old\n\\ No newline at end of file\n+old\n"
    assert apply_patch("old", patch) == "old\n"


def test_apply_patch_to_new_file() -> None:
    patch = "--- /dev/null\n+++ b/f\n@@ -0,0 +1,2 @@\n+a\n+b\n"
    assert apply_patch("", patch) == "a\nb\n"


def test_apply_patch_removing_last_lines() -> None:
    patch = "--- a/f\n+++ b/f\n@@ -2,2 +1,0 @@\n-b\n-c\n"
    assert apply_patch("a\nb\nc\n", patch) == "a\n"


@pytest.mark.parametrize(
    "patch",
    [
        "@@ -1 +1 @@\n-nope\n+new\n",
        "@@ -5 +5 @@\n-a\n+b\n",
        "@@ -1,2 +1 @@\n-a\n",
        "@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n",
        "@@ -1 +1 @@\n?a\n+b\n",
        "@@ -1,2 +1,2 @@\n a\n\\ No newline at end of file\n b\n",
    ],
)
def test_apply_patch_rejects_mismatches(patch: str) -> None:
    with pytest.raises(ApplyError):
        apply_patch("a\nb\n", patch)


def test_apply_patch_to_file_reports_failure(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("a\n", encoding="utf-8")

    outcome = apply_patch_to_file(target, "@@ -1 +1 @@\n-a\n+b\n")
    assert outcome.success
    assert outcome.new_source == "b\n"

    outcome = apply_patch_to_file(target, "@@ -1 +1 @@\n-x\n+b\n")
    assert not outcome.success
    assert outcome.new_source is None
    assert "does not match" in (outcome.error or "")


def test_write_if_changed(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    assert write_if_changed(target, "a\n")
    assert not write_if_changed(target, "a\n")
    assert write_if_changed(target, "b\n")
    assert target.read_text(encoding="utf-8") == "b\n"


# "a" without a trailing newline becoming "a\nb\n"; lines 1, 2 and 3 are -a, +a and +b
NEWLINE_ADDED = parse_diff(
    "--- a/file.txt\n"
    "+++ b/file.txt\n"
    "@@ -1 +1,2 @@\n"
    "-a\n"
    "\\ No newline at end of file\n"
    "+a\n"
    "+b\n"
)


def _select_indices(diff: Diff, indices: tuple[int, ...]) -> DiffSelection:
    selection = DiffSelection.from_initial_selection(DiffSelectionType.NONE).with_selectable_lines(
        diff.selectable_lines()
    )
    for index in indices:
        selection = selection.with_line_selection(index, True)
    return selection


@pytest.mark.parametrize(
    ("indices", "expected"),
    [
        ((1,), ""),
        ((2,), "a\na\n"),
        ((3,), "a\nb\n"),
        ((1, 2), "a\n"),
        ((1, 3), "b\n"),
        ((2, 3), "a\na\nb\n"),
        ((1, 2, 3), "a\nb\n"),
    ],
)
def test_partial_commit_next_to_missing_newline(indices: tuple[int, ...], expected: str) -> None:
    patch = format_patch(MODIFIED, NEWLINE_ADDED, _select_indices(NEWLINE_ADDED, indices))
    assert apply_patch("a", patch) == expected


@pytest.mark.parametrize(
    ("indices", "expected"),
    [
        ((1,), "a\na\nb\n"),
        ((2,), "b\n"),
        ((3,), "a\n"),
        ((1, 2), "a\nb\n"),
        ((1, 3), "a\na\n"),
        ((2, 3), ""),
        ((1, 2, 3), "a"),
    ],
)
def test_partial_discard_next_to_missing_newline(indices: tuple[int, ...], expected: str) -> None:
    selection = _select_indices(NEWLINE_ADDED, indices)
    assert discard_changes_from_selection("a\nb\n", "file.txt", NEWLINE_ADDED, selection) == expected


def test_apply_patch_rejects_line_after_marker_on_same_side() -> None:
    with pytest.raises(ApplyError, match="missing newline marker"):
        apply_patch("a", "@@ -1 +1,2 @@\n a\n\\ No newline at end of file\n+b\n")
    with pytest.raises(ApplyError, match="missing newline marker"):
        apply_patch("a\nb\n", "@@ -1,2 +1 @@\n+a\n\\ No newline at end of file\n+x\n-a\n-b\n")


def test_marker_does_not_close_the_other_side() -> None:
    patch = "@@ -1,2 +1 @@\n+a\n\\ No newline at end of file\n-a\n-b\n"
    assert apply_patch("a\nb\n", patch) == "a"
