"""Tests for workspace-relative path resolution."""

from pathlib import Path

import pytest

from codeguard.errors import WorkspaceViolation
from codeguard.workspace import Workspace


def test_resolve_rel_inside_workspace(workspace: Path) -> None:
    ws = Workspace.from_path(workspace)
    assert ws.resolve_rel("src/../a.txt") == workspace.resolve() / "a.txt"
    assert ws.relative("./src//pkg/mod.py") == "src/pkg/mod.py"


@pytest.mark.parametrize(
    ("rel", "message"),
    [("/etc/passwd", "Absolute paths are not allowed"), ("../sibling", "Path escapes workspace")],
)
def test_resolve_rel_refuses_escape(workspace: Path, rel: str, message: str) -> None:
    with pytest.raises(WorkspaceViolation, match=message):
        Workspace.from_path(workspace).resolve_rel(rel)


def test_symlink_escape_is_refused(workspace: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (workspace / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(WorkspaceViolation):
        Workspace.from_path(workspace).resolve_rel("link/file.txt")
