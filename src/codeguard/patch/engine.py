"""Diff computation and fail-closed patch application with backup and rollback."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from codeguard.errors import ConflictError, PatchFormatError, WorkspaceViolation
from codeguard.patch.types import ApplyOptions, ApplyResult, Diff
from codeguard.patch.unified import apply_hunks, parse_unified, render_unified
from codeguard.policy.gate import AccessGate
from codeguard.policy.types import ActionDescriptor, ConfirmCallback, RiskLevel
from codeguard.security.audit import AuditLogger, AuditStatus
from codeguard.utils.hashing import sha256_text
from codeguard.workspace import Workspace

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"
CONFLICT_ERROR = "Patch cannot be applied (conflicts detected)"


def read_current(path: Path) -> str:
    """Read current file content; a missing file reads as empty."""
    if not path.exists():
        return ""
    return path.read_bytes().decode("utf-8")


def _write_atomic(path: Path, content: str) -> None:
    tmp_path = path.with_name(f".{path.name}.codeguard-tmp")
    try:
        tmp_path.write_bytes(content.encode("utf-8"))
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class PatchEngine:
    """Computes diffs and applies them to files inside one workspace."""

    def __init__(
        self,
        workspace_root: Path,
        gate: AccessGate,
        audit: AuditLogger | None = None,
        confirm: ConfirmCallback | None = None,
    ):
        self.workspace = Workspace.from_path(workspace_root)
        self.gate = gate
        self.audit = audit
        self.confirm = confirm

    def diff(self, path: str, old: str, new: str) -> Diff:
        return Diff(
            file_path=path,
            old_content=old,
            new_content=new,
            unified_patch_text=render_unified(path, old, new),
        )

    def diff_from_disk(self, path: str, new: str) -> Diff:
        """Diff against current content; a missing file diffs as creation.

        Raises:
            WorkspaceViolation: If ``path`` is absolute or escapes the workspace
        """
        return self.diff(path, read_current(self.workspace.resolve_rel(path)), new)

    def preview(self, diff: Diff) -> list[str]:
        """Human-readable description of the hunks; no disk access."""
        if not diff.has_changes:
            return ["No changes to apply"]

        lines = [f"File: {diff.file_path}", ""]
        hunks = parse_unified(diff.unified_patch_text)
        lines.append(f"Changes: {len(hunks)} hunk(s)")
        for idx, hunk in enumerate(hunks, 1):
            lines.append(
                f"Hunk {idx}: @@ {hunk.old_start},{hunk.old_lines} → "
                f"{hunk.new_start},{hunk.new_lines} @@"
            )
            lines.append(f"  +{hunk.additions} -{hunk.deletions}")
        return lines

    def apply(self, diff: Diff, options: ApplyOptions | None = None) -> ApplyResult:
        """Apply one diff to disk. Never raises for policy, conflict, or I/O failures."""
        options = options or ApplyOptions()

        try:
            rel_path = self.workspace.relative(diff.file_path)
        except WorkspaceViolation as exc:
            return self._deny(diff.file_path, str(exc))

        action = ActionDescriptor(
            name="applyPatch",
            risk_level=RiskLevel.WRITE,
            scope=(rel_path,),
            requires_confirmation=True,
            description=f"Apply patch to: {diff.file_path}",
        )
        decision = self.gate.evaluate(action)
        if not decision.allowed:
            return self._deny(diff.file_path, decision.reason or "denied")

        diff_hash = sha256_text(diff.unified_patch_text)

        if not diff.has_changes:
            self._record(diff.file_path, AuditStatus.SUCCESS, diff_hash, {"changed": False})
            return ApplyResult(success=True, file_path=diff.file_path)

        full_path = self.workspace.resolve_rel(rel_path)

        if options.dry_run:
            return self._dry_run(diff, full_path, diff_hash)

        if decision.requires_confirmation and self.confirm is not None:
            confirmed = bool(self.confirm(action, decision))
            if self.audit is not None:
                self.audit.record_confirmation(action.name, confirmed, {"file": diff.file_path})
            if not confirmed:
                return ApplyResult(success=False, file_path=diff.file_path, error="Declined by user")

        backup_path: Path | None = None
        if options.backup and full_path.exists():
            backup_path = full_path.with_name(full_path.name + BACKUP_SUFFIX)
            try:
                shutil.copy2(full_path, backup_path)
            except OSError as exc:
                error = f"Failed to create backup: {exc}"
                self._record(diff.file_path, AuditStatus.FAILURE, diff_hash, {"error": error})
                return ApplyResult(success=False, file_path=diff.file_path, error=error)
            logger.debug("Backup created: %s", backup_path)

        try:
            patched = apply_hunks(read_current(full_path), parse_unified(diff.unified_patch_text))
        except (ConflictError, PatchFormatError) as exc:
            logger.debug("Conflict applying %s: %s", diff.file_path, exc)
            return self._fail(diff.file_path, full_path, backup_path, CONFLICT_ERROR, diff_hash)
        except (OSError, UnicodeDecodeError) as exc:
            return self._fail(diff.file_path, full_path, backup_path, str(exc), diff_hash)

        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            _write_atomic(full_path, patched)
        except OSError as exc:
            return self._fail(diff.file_path, full_path, backup_path, str(exc), diff_hash)

        logger.info("Patch applied: %s", diff.file_path)
        self._record(
            diff.file_path,
            AuditStatus.SUCCESS,
            diff_hash,
            {"backup": str(backup_path) if backup_path else None},
        )
        return ApplyResult(success=True, file_path=diff.file_path, backup_path=backup_path)

    def apply_all(self, diffs: Sequence[Diff], options: ApplyOptions | None = None) -> list[ApplyResult]:
        """Apply diffs in order; stop at the first failure unless dry-running."""
        options = options or ApplyOptions()
        results: list[ApplyResult] = []
        for diff in diffs:
            result = self.apply(diff, options)
            results.append(result)
            if not result.success and not options.dry_run:
                logger.error("Failed to apply patch: %s", result.error)
                break
        return results

    def _dry_run(self, diff: Diff, full_path: Path, diff_hash: str) -> ApplyResult:
        try:
            apply_hunks(read_current(full_path), parse_unified(diff.unified_patch_text))
        except (ConflictError, PatchFormatError):
            error: str | None = CONFLICT_ERROR
        except (OSError, UnicodeDecodeError) as exc:
            error = str(exc)
        else:
            error = None

        status = AuditStatus.SUCCESS if error is None else AuditStatus.FAILURE
        self._record(diff.file_path, status, diff_hash, {"dry_run": True, "error": error})
        return ApplyResult(success=error is None, file_path=diff.file_path, error=error)

    def _deny(self, file_path: str, reason: str) -> ApplyResult:
        if self.audit is not None:
            self.audit.record_policy_violation("write", reason, {"file": file_path})
        return ApplyResult(success=False, file_path=file_path, error=f"Policy denied: {reason}")

    def _fail(
        self,
        file_path: str,
        full_path: Path,
        backup_path: Path | None,
        error: str,
        diff_hash: str,
    ) -> ApplyResult:
        if backup_path is not None and backup_path.exists():
            try:
                shutil.copy2(backup_path, full_path)
            except OSError as exc:
                logger.error("Failed to restore %s from %s: %s", full_path, backup_path, exc)
        self._record(file_path, AuditStatus.FAILURE, diff_hash, {"error": error})
        return ApplyResult(success=False, file_path=file_path, backup_path=backup_path, error=error)

    def _record(self, file_path: str, status: AuditStatus, diff_hash: str, metadata: dict) -> None:
        if self.audit is not None:
            self.audit.record_file_write(file_path, status, diff_hash, metadata)
