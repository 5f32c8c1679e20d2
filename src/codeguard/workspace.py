"""Workspace-scoped path resolution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from codeguard.errors import WorkspaceViolation
from codeguard.policy.globs import normalize_path


@dataclass(frozen=True)
class Workspace:
    root: Path

    @classmethod
    def from_path(cls, root: str | Path) -> Workspace:
        return cls(root=Path(root).expanduser().resolve())

    def resolve_rel(self, rel: str | Path) -> Path:
        """Resolve a user-provided relative path within the workspace."""
        rp = Path(rel)
        if rp.is_absolute():
            raise WorkspaceViolation(f"Absolute paths are not allowed: {rel}")
        candidate = (self.root / rp).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise WorkspaceViolation(f"Path escapes workspace: {rel}") from exc
        return candidate

    def relative(self, rel: str | Path) -> str:
        """Canonical POSIX form of a workspace-relative path, as the gate sees it."""
        return normalize_path(self.resolve_rel(rel).relative_to(self.root).as_posix())
