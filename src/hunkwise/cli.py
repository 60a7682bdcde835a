"""Command line interface for hunkwise."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, NonNegativeInt, ValidationError

from .apply import ApplyError, apply_patch_to_file, discard_changes_from_selection, write_if_changed
from .config import HunkwiseSettings, load_config
from .diffs import DiffParseError, diff_from_raw_output, is_buffer_too_large, is_diff_too_large, is_valid_buffer
from .expansion import expand_text_diff_hunk, expand_whole_text_diff, get_text_diff_with_bottom_dummy_hunk
from .models import Diff, FileChange, FileStatus
from .patches import PatchFormatError, format_patch, format_patch_to_discard_changes
from .selection import DiffSelection, DiffSelectionType

logger = logging.getLogger(__name__)

LineRange = tuple[NonNegativeInt, NonNegativeInt]


class SelectionSpec(BaseModel):
    """Selection file contents: a default plus ``[start, length]`` ranges."""

    default: Literal["all", "none"] = "all"
    include: list[LineRange] = Field(default_factory=list)
    exclude: list[LineRange] = Field(default_factory=list)

    def to_selection(self, diff: Diff) -> DiffSelection:
        initial = DiffSelectionType.ALL if self.default == "all" else DiffSelectionType.NONE
        selection = DiffSelection.from_initial_selection(initial).with_selectable_lines(diff.selectable_lines())
        for start, length in self.include:
            selection = selection.with_range_selection(start, length, True)
        for start, length in self.exclude:
            selection = selection.with_range_selection(start, length, False)
        return selection


def load_selection(path: str | None) -> SelectionSpec:
    if not path:
        return SelectionSpec()
    with Path(path).open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Selection file {path} must contain a mapping")
    return SelectionSpec.model_validate(data)


def _read_diff(path: str, settings: HunkwiseSettings) -> Diff:
    data = sys.stdin.buffer.read() if path == "-" else Path(path).read_bytes()
    if not is_valid_buffer(data, settings.max_diff_buffer_size):
        raise ValueError(f"Diff is larger than {settings.max_diff_buffer_size} bytes")
    if is_buffer_too_large(data, settings.max_reasonable_diff_size):
        logger.warning("diff is %d bytes, this may take a while", len(data))
    diff = diff_from_raw_output(data)
    if is_diff_too_large(diff, settings.max_characters_per_line):
        logger.warning("diff has lines longer than %d characters", settings.max_characters_per_line)
    return diff


def _read_content_lines(path: str) -> list[str]:
    text = Path(path).read_text(encoding="utf-8")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def summarize_diff(diff: Diff) -> dict[str, Any]:
    return {
        "header": diff.header,
        "is_binary": diff.is_binary,
        "max_line_number": diff.max_line_number,
        "has_hidden_bidi_chars": diff.has_hidden_bidi_chars,
        "hunks": [
            {
                "header": hunk.header.to_diff_line_representation(),
                "start": hunk.unified_diff_start,
                "end": hunk.unified_diff_end,
                "expansion_type": hunk.expansion_type.value,
                "lines": [
                    {
                        "index": index,
                        "type": line.type.value,
                        "old": line.old_line_number,
                        "new": line.new_line_number,
                        "text": line.text,
                        "no_trailing_newline": line.no_trailing_newline,
                    }
                    for index, line in hunk.indexed_lines()
                ],
            }
            for hunk in diff.hunks
        ],
    }


def cmd_parse(args: argparse.Namespace) -> None:
    diff = _read_diff(args.diff, args.settings)
    print(json.dumps(summarize_diff(diff), indent=2))


def cmd_patch(args: argparse.Namespace) -> None:
    diff = _read_diff(args.diff, args.settings)
    selection = load_selection(args.selection).to_selection(diff)
    file = FileChange(args.path, FileStatus(args.status), args.old_path)
    sys.stdout.write(format_patch(file, diff, selection))


def cmd_discard(args: argparse.Namespace) -> None:
    diff = _read_diff(args.diff, args.settings)
    selection = load_selection(args.selection).to_selection(diff)
    if not args.source:
        patch = format_patch_to_discard_changes(args.path, diff, selection)
        if patch is None:
            logger.info("nothing selected, no patch written")
            return
        sys.stdout.write(patch)
        return

    source_path = Path(args.source)
    if args.write:
        patch = format_patch_to_discard_changes(args.path, diff, selection)
        if patch is None:
            logger.info("nothing selected, %s left untouched", source_path)
            return
        outcome = apply_patch_to_file(source_path, patch)
        if not outcome.success or outcome.new_source is None:
            raise ApplyError(outcome.error or f"Could not discard changes in {source_path}")
        write_if_changed(source_path, outcome.new_source)
        return

    source = source_path.read_text(encoding="utf-8")
    sys.stdout.write(discard_changes_from_selection(source, args.path, diff, selection))


def cmd_expand(args: argparse.Namespace) -> None:
    diff = _read_diff(args.diff, args.settings)
    content_lines = _read_content_lines(args.content)
    step = args.step or args.settings.expansion_step

    net_added = sum(h.header.new_line_count - h.header.old_line_count for h in diff.hunks)
    with_dummy = get_text_diff_with_bottom_dummy_hunk(
        diff, diff.hunks, len(content_lines) - net_added, len(content_lines)
    )
    if with_dummy is not None:
        diff = with_dummy

    if args.whole:
        expanded = expand_whole_text_diff(diff, content_lines)
    else:
        if not 0 <= args.hunk < len(diff.hunks):
            raise ValueError(f"Diff has no hunk {args.hunk}")
        expanded = expand_text_diff_hunk(diff, diff.hunks[args.hunk], args.direction, content_lines, step)
    if expanded is None:
        logger.info("nothing to expand")
        expanded = diff
    print(json.dumps(summarize_diff(expanded), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hunkwise", description="Partial commit and discard patches from unified diffs")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Print the parsed diff as JSON")
    p_parse.add_argument("diff", help="Diff file, - for stdin")
    p_parse.set_defaults(func=cmd_parse)

    p_patch = sub.add_parser("patch", help="Print a patch for the selected lines")
    p_patch.add_argument("diff", help="Diff file, - for stdin")
    p_patch.add_argument("--path", required=True, help="Repository relative file path")
    p_patch.add_argument("--status", choices=[status.value for status in FileStatus], default="modified")
    p_patch.add_argument("--old-path", help="Original path of a renamed or copied file")
    p_patch.add_argument("--selection", help="YAML or JSON selection file")
    p_patch.set_defaults(func=cmd_patch)

    p_discard = sub.add_parser("discard", help="Discard the selected lines from the working copy")
    p_discard.add_argument("diff", help="Diff file, - for stdin")
    p_discard.add_argument("--path", required=True, help="Repository relative file path")
    p_discard.add_argument("--selection", help="YAML or JSON selection file")
    p_discard.add_argument("--source", help="Working copy file to apply the discard to")
    p_discard.add_argument("--write", action="store_true", help="Write the result back to --source")
    p_discard.set_defaults(func=cmd_discard)

    p_expand = sub.add_parser("expand", help="Expand a hunk with context from the file")
    p_expand.add_argument("diff", help="Diff file, - for stdin")
    p_expand.add_argument("--content", required=True, help="New version of the file")
    p_expand.add_argument("--hunk", type=int, default=0)
    p_expand.add_argument("--direction", choices=["up", "down"], default="down")
    p_expand.add_argument("--step", type=int)
    p_expand.add_argument("--whole", action="store_true", help="Expand to the whole file")
    p_expand.set_defaults(func=cmd_expand)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.settings = HunkwiseSettings.from_config(load_config(args.config))
    level = logging.DEBUG if args.verbose else getattr(logging, args.settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    try:
        args.func(args)
    except (DiffParseError, PatchFormatError, ApplyError, ValidationError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
