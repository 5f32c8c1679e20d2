"""Tests for unified diff rendering, parsing, and strict hunk application."""

from __future__ import annotations

import pytest

from codeguard.errors import ConflictError, PatchFormatError
from codeguard.patch.unified import (
    NO_NEWLINE_MARKER,
    apply_hunks,
    parse_unified,
    render_unified,
    split_lines,
)


def _roundtrip(old: str, new: str) -> str:
    return apply_hunks(old, parse_unified(render_unified("f.txt", old, new)))


def test_split_lines_keeps_terminators() -> None:
    assert split_lines("") == []
    assert split_lines("a\nb") == ["a\n", "b"]
    assert split_lines("a\r\nb\r\n") == ["a\r\n", "b\r\n"]


def test_identical_content_renders_empty_patch() -> None:
    assert render_unified("f.txt", "same\n", "same\n") == ""
    assert parse_unified("") == []


def test_render_uses_path_headers() -> None:
    text = render_unified("src/a.py", "x\n", "y\n")
    assert text.splitlines()[0] == "--- src/a.py\toriginal"
    assert text.splitlines()[1] == "+++ src/a.py\tmodified"
    assert "-x" in text.splitlines()
    assert "+y" in text.splitlines()


@pytest.mark.parametrize(
    ("old", "new"),
    [
        ("Hello\nWorld\n", "Hello\nUniverse\n"),
        ("", "created\nfile\n"),
        ("gone\n", ""),
        ("no newline", "no newline\nnow has one\n"),
        ("ends\n", "ends without"),
        ("crlf\r\nline\r\n", "crlf\r\nchanged\r\n"),
        ("".join(f"{i}\n" for i in range(40)), "".join(f"{i}\n" for i in range(40) if i not in (3, 30))),
    ],
)
def test_render_then_apply_reproduces_new_content(old: str, new: str) -> None:
    assert _roundtrip(old, new) == new


def test_missing_final_newline_emits_marker() -> None:
    text = render_unified("f.txt", "a\nb", "a\nc")
    assert NO_NEWLINE_MARKER in text
    hunk = parse_unified(text)[0]
    assert hunk.old_block[-1] == "b"
    assert hunk.new_block[-1] == "c"


def test_hunk_counts() -> None:
    old = "".join(f"line {i}\n" for i in range(1, 21))
    new = old.replace("line 2\n", "line two\n").replace("line 18\n", "line 18\nextra\n")
    hunks = parse_unified(render_unified("f.txt", old, new))

    assert len(hunks) == 2
    assert (hunks[0].additions, hunks[0].deletions) == (1, 1)
    assert (hunks[1].additions, hunks[1].deletions) == (1, 0)
    assert hunks[0].old_start == 1


def test_apply_tolerates_shifted_position() -> None:
    old = "".join(f"line {i}\n" for i in range(1, 11))
    new = old.replace("line 8\n", "line eight\n")
    hunks = parse_unified(render_unified("f.txt", old, new))

    shifted = "header 1\nheader 2\n" + old
    assert apply_hunks(shifted, hunks) == "header 1\nheader 2\n" + new


def test_apply_conflicts_when_context_changed() -> None:
    hunks = parse_unified(render_unified("f.txt", "Hello\nWorld\n", "Hello\nUniverse\n"))
    with pytest.raises(ConflictError, match="hunk 1"):
        apply_hunks("Hello\nMars\n", hunks)


def test_creation_patch_requires_empty_target() -> None:
    hunks = parse_unified(render_unified("f.txt", "", "new\n"))
    with pytest.raises(ConflictError, match="no longer empty"):
        apply_hunks("someone wrote this\n", hunks)


def test_parse_rejects_bad_prefix() -> None:
    text = "--- f\n+++ f\n@@ -1,2 +1,2 @@\n a\n*b\n+c\n"
    with pytest.raises(PatchFormatError, match="Invalid hunk line prefix"):
        parse_unified(text)


def test_parse_rejects_truncated_hunk() -> None:
    text = "--- f\n+++ f\n@@ -1,3 +1,3 @@\n a\n-b\n"
    with pytest.raises(PatchFormatError, match="Truncated"):
        parse_unified(text)


def test_parse_rejects_garbage_between_hunks() -> None:
    text = render_unified("f.txt", "a\n", "b\n") + "garbage\n"
    with pytest.raises(PatchFormatError, match="outside hunk"):
        parse_unified(text)
