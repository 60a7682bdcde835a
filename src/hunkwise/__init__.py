"""hunkwise public package exports."""

from .apply import ApplyError, apply_patch, discard_changes_from_selection
from .config import HunkwiseSettings, load_config, load_settings
from .diffs import DiffParseError, diff_from_raw_output, parse_diff
from .expansion import expand_text_diff_hunk, expand_whole_text_diff, get_text_diff_with_bottom_dummy_hunk
from .headers import HunkHeader, HunkHeaderError
from .models import Diff, DiffHunk, DiffHunkExpansionType, DiffLine, DiffLineType, FileChange, FileStatus
from .patches import PatchFormatError, format_patch, format_patch_to_discard_changes
from .selection import DiffSelection, DiffSelectionType

__all__ = [
    "ApplyError",
    "Diff",
    "DiffHunk",
    "DiffHunkExpansionType",
    "DiffLine",
    "DiffLineType",
    "DiffParseError",
    "DiffSelection",
    "DiffSelectionType",
    "FileChange",
    "FileStatus",
    "HunkHeader",
    "HunkHeaderError",
    "HunkwiseSettings",
    "PatchFormatError",
    "apply_patch",
    "diff_from_raw_output",
    "discard_changes_from_selection",
    "expand_text_diff_hunk",
    "expand_whole_text_diff",
    "format_patch",
    "format_patch_to_discard_changes",
    "get_text_diff_with_bottom_dummy_hunk",
    "load_config",
    "load_settings",
    "parse_diff",
]
