import pytest

from hunkwise.diffs import (
    DiffParseError,
    diff_from_raw_output,
    is_buffer_too_large,
    is_diff_too_large,
    is_valid_buffer,
    parse_diff,
    parse_line_endings_warning,
)
from hunkwise.headers import HunkHeader
from hunkwise.models import DiffHunkExpansionType, DiffLineType, LineEnding, LineEndingsChange


def _diff(*lines):
    return "\n".join(lines) + "\n"


MODIFIED_FILE = _diff(
    "diff --git a/file.txt b/file.txt",
    "index e1d4871..3bd3ee0 100644",
    "--- a/file.txt",
    "+++ b/file.txt",
    "@@ -18,4 +18,5 @@ def parse():",
    " a",
    " b",
    "+c",
    " d",
    " e",
    "@@ -71,5 +72,3 @@ def other():",
    " f",
    "-g",
    " h",
    "-i",
    " j",
)


def test_parse_diff_modified_file():
    diff = parse_diff(MODIFIED_FILE)
    assert diff.header.splitlines()[-1] == "+++ b/file.txt"
    assert len(diff.hunks) == 2
    assert not diff.is_binary

    first, second = diff.hunks
    assert first.header == HunkHeader(18, 4, 18, 5, "def parse():")
    assert (first.unified_diff_start, first.unified_diff_end) == (0, 6)
    assert (second.unified_diff_start, second.unified_diff_end) == (6, 12)

    header_line = first.lines[0]
    assert header_line.type is DiffLineType.HUNK
    assert header_line.old_line_number is None and header_line.new_line_number is None

    added = first.lines[3]
    assert added.text == "+c"
    assert added.type is DiffLineType.ADD
    assert (added.old_line_number, added.new_line_number) == (None, 20)
    assert (first.lines[4].old_line_number, first.lines[4].new_line_number) == (20, 21)

    deleted = second.lines[2]
    assert deleted.type is DiffLineType.DELETE
    assert (deleted.old_line_number, deleted.new_line_number) == (72, None)
    last = second.lines[-1]
    assert (last.old_line_number, last.new_line_number) == (75, 74)

    assert diff.max_line_number == 75
    assert diff.selectable_lines() == frozenset({3, 8, 10})


def test_parse_diff_records_expansion_types():
    diff = parse_diff(MODIFIED_FILE)
    assert diff.hunks[0].expansion_type is DiffHunkExpansionType.UP
    assert diff.hunks[1].expansion_type is DiffHunkExpansionType.BOTH


def test_hunk_ranges_are_contiguous_and_lookup_works():
    diff = parse_diff(MODIFIED_FILE)
    indices = [index for index, _ in diff.lines()]
    assert indices == list(range(12))
    assert diff.hunk_for_line(5) is diff.hunks[0]
    assert diff.hunk_for_line(6) is diff.hunks[1]
    assert diff.hunk_for_line(12) is None
    assert diff.line_at(8).text == "-g"


def test_contents_contain_only_hunk_lines():
    diff = parse_diff(MODIFIED_FILE)
    assert diff.contents.splitlines()[0] == "@@ -18,4 +18,5 @@ def parse():"
    assert diff.contents.splitlines()[-1] == " j"
    assert diff.text == MODIFIED_FILE


def test_parse_new_file():
    diff = parse_diff(
        _diff(
            "diff --git a/testste b/testste",
            "new file mode 100644",
            "index 0000000..f13588b",
            "--- /dev/null",
            "+++ b/testste",
            "@@ -0,0 +1 @@",
            "+asdfasdf",
        )
    )
    assert len(diff.hunks) == 1
    hunk = diff.hunks[0]
    assert (hunk.unified_diff_start, hunk.unified_diff_end) == (0, 2)
    assert hunk.expansion_type is DiffHunkExpansionType.NONE
    line = hunk.lines[1]
    assert line.text == "+asdfasdf"
    assert line.type is DiffLineType.ADD
    assert (line.old_line_number, line.new_line_number) == (None, 1)


def test_hunk_marker_inside_content_is_content():
    diff = parse_diff(
        _diff(
            "--- a/file.txt",
            "+++ b/file.txt",
            "@@ -1,3 +1,2 @@",
            "-foo @@",
            "+@@ foo",
            "-@@ -1 +1 @@",
            " bar",
        )
    )
    assert len(diff.hunks) == 1
    assert [line.type for line in diff.hunks[0].lines] == [
        DiffLineType.HUNK,
        DiffLineType.DELETE,
        DiffLineType.ADD,
        DiffLineType.DELETE,
        DiffLineType.CONTEXT,
    ]


def test_no_newline_marker_flags_previous_line():
    diff = parse_diff(
        _diff(
            "--- a/file.txt",
            "+++ b/file.txt",
            "@@ -1 +1 @@",
            "-old",
            "\\ No newline at end of file",
            "+new",
            "\\ No newline at end of file",
        )
    )
    lines = diff.hunks[0].lines
    assert len(lines) == 3
    assert lines[1].no_trailing_newline
    assert lines[2].no_trailing_newline
    assert diff.contents == "@@ -1 +1 @@\n-old\n+new"


def test_no_newline_marker_only_on_old_side():
    diff = parse_diff(
        _diff(
            "--- a/file.txt",
            "+++ b/file.txt",
            "@@ -1 +1 @@",
            "-old",
            "\\ No newline at end of file",
            "+old",
        )
    )
    lines = diff.hunks[0].lines
    assert lines[1].no_trailing_newline
    assert not lines[2].no_trailing_newline


def test_short_no_newline_marker_is_rejected():
    with pytest.raises(DiffParseError):
        parse_diff(_diff("--- a/f", "+++ b/f", "@@ -1 +1 @@", "-old", "\\ short", "+new"))


def test_binary_diff():
    diff = parse_diff(
        _diff(
            "diff --git a/img.png b/img.png",
            "index 1234567..89abcde 100644",
            "Binary files a/img.png and b/img.png differ",
        )
    )
    assert diff.is_binary
    assert diff.hunks == ()


def test_empty_new_file_has_no_hunks():
    diff = parse_diff("diff --git a/empty b/empty\nnew file mode 100644\nindex 0000000..e69de29\n")
    assert diff.hunks == ()
    assert not diff.is_binary
    assert diff.max_line_number == 0


def test_deleted_single_line():
    diff = parse_diff(_diff("--- a/file.txt", "+++ /dev/null", "@@ -1 +0,0 @@", "-line"))
    hunk = diff.hunks[0]
    assert hunk.header == HunkHeader(1, 1, 0, 0)
    assert hunk.lines[1].old_line_number == 1


def test_headerless_input_is_accepted():
    diff = parse_diff(_diff("@@ -3 +3 @@", "-x", "+y"))
    assert diff.header == ""
    assert len(diff.hunks) == 1


@pytest.mark.parametrize(
    "body",
    [
        ("@@ -1 +1 @@", "-a", "+b", "garbage"),
        ("@@ -1 +1 @@", "@@ -2 +2 @@", "-a"),
        ("@@ -1 +1 @@", "-a", "", "+b"),
        ("@@ -1 +1 @@", "\\ No newline at end of file", "-a"),
    ],
)
def test_malformed_diffs_raise(body):
    with pytest.raises(DiffParseError):
        parse_diff(_diff("--- a/f", "+++ b/f", *body))


def test_invalid_hunk_header_after_file_header_raises():
    with pytest.raises(DiffParseError):
        parse_diff(_diff("--- a/f", "+++ b/f", "@@ -x +1 @@", "+a"))


def test_hidden_bidi_characters_are_detected():
    clean = parse_diff(_diff("@@ -1 +1 @@", "-a", "+b"))
    assert not clean.has_hidden_bidi_chars
    tricky = parse_diff(_diff("@@ -1 +1 @@", "-a", "+b\u202eb"))
    assert tricky.has_hidden_bidi_chars


def test_diff_from_raw_output_uses_last_record():
    raw = b":100644 100644 e1d4871 3bd3ee0 M\0file.txt\0" + MODIFIED_FILE.encode("utf-8")
    change = LineEndingsChange(LineEnding.LF, LineEnding.CRLF)
    diff = diff_from_raw_output(raw, change)
    assert len(diff.hunks) == 2
    assert diff.line_endings_change == change


def test_parse_line_endings_warning():
    stderr = "warning: in the working copy of 'file.txt', LF will be replaced by CRLF the next time Git touches it"
    assert parse_line_endings_warning(stderr) == LineEndingsChange(LineEnding.LF, LineEnding.CRLF)
    assert parse_line_endings_warning(b"") is None
    assert parse_line_endings_warning("fatal: something else") is None


def test_size_guards():
    diff = parse_diff(_diff("@@ -1 +1 @@", "-a", "+" + "b" * 30))
    assert is_diff_too_large(diff, max_characters_per_line=20)
    assert not is_diff_too_large(diff)
    assert is_valid_buffer(b"x" * 10, limit=10)
    assert not is_valid_buffer(b"x" * 11, limit=10)
    assert is_buffer_too_large("x" * 10, limit=10)
    assert not is_buffer_too_large("x" * 9, limit=10)
