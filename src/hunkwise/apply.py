"""Apply zero-context patches to text in memory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .headers import HUNK_HEADER_RE, HunkHeader, HunkHeaderError
from .models import Diff
from .patches import format_patch_to_discard_changes
from .selection import DiffSelection

logger = logging.getLogger(__name__)


class ApplyError(RuntimeError):
    pass


@dataclass(slots=True)
class ApplyOutcome:
    success: bool
    new_source: str | None
    error: str | None = None


@dataclass(slots=True)
class _PatchHunk:
    header: HunkHeader
    old_lines: list[str] = field(default_factory=list)
    new_lines: list[str] = field(default_factory=list)
    old_no_newline: bool = False
    new_no_newline: bool = False


def _split_source(source: str) -> tuple[list[str], bool]:
    """Split text into lines and report whether it ends with a newline."""

    if not source:
        return [], True
    lines = source.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


def parse_patch(patch: str) -> list[_PatchHunk]:
    """Read the hunks of a single-file patch, skipping its file header."""

    hunks: list[_PatchHunk] = []
    current: _PatchHunk | None = None
    last_kind = ""

    patch_lines = patch.split("\n")
    if patch_lines and patch_lines[-1] == "":
        patch_lines.pop()

    for line in patch_lines:
        if HUNK_HEADER_RE.match(line):
            try:
                current = _PatchHunk(HunkHeader.parse(line))
            except HunkHeaderError as exc:
                raise ApplyError(str(exc)) from exc
            hunks.append(current)
            last_kind = ""
            continue
        if current is None:
            # file header: diff --git, index, ---, +++
            continue

        prefix, text = line[:1], line[1:]
        # git joins a line that follows a missing-newline marker on its side
        if (prefix in (" ", "-") and current.old_no_newline) or (prefix in (" ", "+") and current.new_no_newline):
            raise ApplyError(f"Line {line!r} follows a missing newline marker in hunk {current.header}")
        if prefix == " ":
            current.old_lines.append(text)
            current.new_lines.append(text)
        elif prefix == "-":
            current.old_lines.append(text)
        elif prefix == "+":
            current.new_lines.append(text)
        elif prefix == "\\":
            if last_kind in (" ", "-"):
                current.old_no_newline = True
            if last_kind in (" ", "+"):
                current.new_no_newline = True
            if not last_kind:
                raise ApplyError("No newline marker found before any patch line")
        else:
            raise ApplyError(f"Unexpected line in patch: {line!r}")
        last_kind = prefix

    for hunk in hunks:
        header = hunk.header
        if len(hunk.old_lines) != header.old_line_count or len(hunk.new_lines) != header.new_line_count:
            raise ApplyError(
                f"Hunk {header} has {len(hunk.old_lines)} old and {len(hunk.new_lines)} new lines"
            )
    return hunks


def apply_patch(source: str, patch: str) -> str:
    """Apply *patch* to *source* the way ``git apply --unidiff-zero`` would.

    Hunks are placed by their old start line alone. Every context and removed
    line is compared with the source and any mismatch raises
    :class:`ApplyError`.
    """

    lines, ends_with_newline = _split_source(source)
    result: list[str] = []
    cursor = 0

    for hunk in parse_patch(patch):
        header = hunk.header
        # an empty old range names the line after which to insert
        position = header.old_start_line if header.old_line_count == 0 else header.old_start_line - 1
        if position < cursor:
            raise ApplyError(f"Hunk {header} overlaps the previous hunk")
        end = position + header.old_line_count
        if end > len(lines):
            raise ApplyError(f"Hunk {header} is out of range for {len(lines)} lines")

        actual = lines[position:end]
        if actual != hunk.old_lines:
            raise ApplyError(f"Hunk {header} does not match the source text")

        reaches_end = end == len(lines)
        if header.old_line_count and reaches_end and hunk.old_no_newline == ends_with_newline:
            raise ApplyError(f"Hunk {header} does not match the end of the source text")
        if hunk.old_no_newline and not reaches_end:
            raise ApplyError(f"Hunk {header} marks a missing newline before the end of the text")

        result.extend(lines[cursor:position])
        result.extend(hunk.new_lines)
        cursor = end

        if reaches_end:
            # the last line of the result now comes from the patch or from a
            # source line that was followed by another one
            ends_with_newline = not hunk.new_no_newline if hunk.new_lines else True

    result.extend(lines[cursor:])
    if not result:
        return ""
    return "\n".join(result) + ("\n" if ends_with_newline else "")


def discard_changes_from_selection(
    source: str,
    file_path: str,
    diff: Diff,
    selection: DiffSelection,
) -> str:
    """Undo the selected lines of *diff* in *source*, the working-copy text."""

    patch = format_patch_to_discard_changes(file_path, diff, selection)
    if patch is None:
        logger.debug("nothing selected to discard in %s", file_path)
        return source
    return apply_patch(source, patch)


def apply_patch_to_file(file_path: Path, patch: str) -> ApplyOutcome:
    """Apply patch to the text of *file_path* without writing it."""

    source = file_path.read_text(encoding="utf-8") if file_path.exists() else ""
    try:
        updated = apply_patch(source, patch)
    except ApplyError as exc:
        logger.warning("apply failure", exc_info=exc)
        return ApplyOutcome(success=False, new_source=None, error=str(exc))
    return ApplyOutcome(success=True, new_source=updated)


def write_if_changed(path: Path, new_source: str) -> bool:
    if path.exists() and path.read_text(encoding="utf-8") == new_source:
        return False
    path.write_text(new_source, encoding="utf-8")
    logger.info("updated %s", path)
    return True
