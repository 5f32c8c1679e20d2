"""Patch engine types."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Diff:
    """Proposed mutation of one file. Purely in-memory until applied."""

    file_path: str
    old_content: str
    new_content: str
    unified_patch_text: str

    @property
    def has_changes(self) -> bool:
        return self.old_content != self.new_content


@dataclass(frozen=True)
class Hunk:
    """One ``@@`` block. Line blocks keep their line terminators."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    old_block: tuple[str, ...]
    new_block: tuple[str, ...]
    additions: int
    deletions: int


@dataclass(frozen=True)
class ApplyOptions:
    backup: bool = True
    dry_run: bool = False


@dataclass(frozen=True)
class ApplyResult:
    success: bool
    file_path: str
    backup_path: Path | None = None
    error: str | None = None
