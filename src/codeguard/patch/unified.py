"""Unified diff rendering, parsing, and strict application.

Lines are split on ``\\n`` only and keep their terminators, so ``\\r\\n``
endings and a missing final newline survive a render/apply cycle byte for
byte. Application never fuzzes context: a hunk applies only where its
context and removed lines match exactly, otherwise ``ConflictError``.
"""

from __future__ import annotations

import difflib
import re

from codeguard.errors import ConflictError, PatchFormatError
from codeguard.patch.types import Hunk

NO_NEWLINE_MARKER = "\\ No newline at end of file"

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def split_lines(text: str) -> list[str]:
    """Split text on ``\\n`` keeping terminators; the last line may lack one."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def render_unified(path: str, old: str, new: str, context: int = 3) -> str:
    """Render a unified patch from ``old`` to ``new``; empty when identical."""
    rendered: list[str] = []
    for line in difflib.unified_diff(
        split_lines(old),
        split_lines(new),
        fromfile=path,
        tofile=path,
        fromfiledate="original",
        tofiledate="modified",
        n=context,
    ):
        if line.endswith("\n"):
            rendered.append(line)
        else:
            rendered.append(f"{line}\n{NO_NEWLINE_MARKER}\n")
    return "".join(rendered)


def parse_unified(patch_text: str) -> list[Hunk]:
    """Parse the hunks of a single-file unified patch."""
    lines = split_lines(patch_text)
    hunks: list[Hunk] = []
    i = 0
    while i < len(lines):
        header = _HUNK_HEADER_RE.match(lines[i])
        if header is None:
            if hunks and lines[i].strip():
                raise PatchFormatError(f"Unexpected line outside hunk: {lines[i].rstrip()}")
            i += 1
            continue

        old_start = int(header.group(1))
        old_count = int(header.group(2)) if header.group(2) is not None else 1
        new_start = int(header.group(3))
        new_count = int(header.group(4)) if header.group(4) is not None else 1
        i += 1

        old_block: list[str] = []
        new_block: list[str] = []
        additions = deletions = 0
        last: list[list[str]] = []
        old_left, new_left = old_count, new_count

        while i < len(lines) and (old_left > 0 or new_left > 0 or lines[i].startswith("\\")):
            raw = lines[i]
            i += 1
            if raw.startswith("\\"):
                # Strip the terminator from the line(s) the marker refers to.
                for block in last:
                    if block and block[-1].endswith("\n"):
                        block[-1] = block[-1][:-1]
                continue
            prefix, body = raw[:1], raw[1:]
            if prefix == "\n":
                prefix, body = " ", "\n"
            if prefix == " ":
                old_block.append(body)
                new_block.append(body)
                last = [old_block, new_block]
                old_left -= 1
                new_left -= 1
            elif prefix == "-":
                old_block.append(body)
                last = [old_block]
                deletions += 1
                old_left -= 1
            elif prefix == "+":
                new_block.append(body)
                last = [new_block]
                additions += 1
                new_left -= 1
            else:
                raise PatchFormatError(f"Invalid hunk line prefix: {raw.rstrip()}")
            if old_left < 0 or new_left < 0:
                raise PatchFormatError("Hunk body does not match its header line counts")

        if old_left > 0 or new_left > 0:
            raise PatchFormatError("Truncated hunk body")

        hunks.append(
            Hunk(
                old_start=old_start,
                old_lines=old_count,
                new_start=new_start,
                new_lines=new_count,
                old_block=tuple(old_block),
                new_block=tuple(new_block),
                additions=additions,
                deletions=deletions,
            )
        )
    return hunks


def apply_hunks(content: str, hunks: list[Hunk]) -> str:
    """Apply hunks to ``content`` or raise ``ConflictError``; never partial."""
    source = split_lines(content)
    result: list[str] = []
    cursor = 0
    offset = 0

    for number, hunk in enumerate(hunks, 1):
        old_block = list(hunk.old_block)
        if not old_block:
            # Only a creation patch has no context; it requires an empty target.
            if source:
                raise ConflictError(f"hunk {number}: target is no longer empty")
            result.extend(hunk.new_block)
            continue

        expected = hunk.old_start - 1 + offset
        position = _locate(source, old_block, expected, cursor)
        if position is None:
            raise ConflictError(f"hunk {number}: context does not match current content")

        offset = position - (hunk.old_start - 1)
        result.extend(source[cursor:position])
        result.extend(hunk.new_block)
        cursor = position + len(old_block)

    result.extend(source[cursor:])
    return "".join(result)


def _locate(source: list[str], block: list[str], expected: int, floor: int) -> int | None:
    """Find ``block`` in ``source`` at or after ``floor``, nearest to ``expected``."""
    last_start = len(source) - len(block)
    if last_start < floor:
        return None
    expected = min(max(expected, floor), last_start)
    size = len(block)
    for distance in range(0, max(expected - floor, last_start - expected) + 1):
        for candidate in (expected - distance, expected + distance):
            if floor <= candidate <= last_start and source[candidate:candidate + size] == block:
                return candidate
    return None
