"""Mutation pipeline: gate → secret scan → action → audit, for one workspace."""

from __future__ import annotations

import logging
from pathlib import Path

from codeguard.config import GuardConfig
from codeguard.errors import PolicyDenied, WorkspaceViolation
from codeguard.patch.engine import PatchEngine
from codeguard.patch.types import ApplyOptions, ApplyResult
from codeguard.policy.gate import AccessGate
from codeguard.policy.types import ActionDescriptor, ConfirmCallback, GateDecision, RiskLevel
from codeguard.sandbox.runner import CommandSandbox
from codeguard.sandbox.types import ExecOptions, ExecResult, OutputSink
from codeguard.security.audit import AuditLogger, AuditStatus
from codeguard.security.scanner import SecretScanner
from codeguard.workspace import Workspace

logger = logging.getLogger(__name__)

DEFAULT_MAX_READ_BYTES = 10 * 1024 * 1024


class MutationPipeline:
    """Wires the five components together for callers such as an agent loop or the CLI."""

    def __init__(
        self,
        workspace_root: Path,
        config: GuardConfig | None = None,
        audit: AuditLogger | None = None,
        confirm: ConfirmCallback | None = None,
    ):
        self.config = config or GuardConfig()
        self.workspace = Workspace.from_path(workspace_root)
        if audit is None and self.config.privacy.audit_log:
            audit = AuditLogger.for_workspace(self.workspace.root)
        self.audit = audit if self.config.privacy.audit_log else None
        self.gate = AccessGate(self.config.policy)
        self.scanner = SecretScanner(extra_placeholders=self.config.privacy.extra_placeholders)
        self.patches = PatchEngine(self.workspace.root, self.gate, self.audit, confirm)
        self.sandbox = CommandSandbox(self.workspace.root, self.gate, self.audit, confirm)

    def read_file(self, path: str, max_bytes: int = DEFAULT_MAX_READ_BYTES) -> str:
        """Read a workspace file through the read gate.

        Raises:
            PolicyDenied: If the path is denylisted or escapes the workspace
            FileNotFoundError: If the path does not exist
            ValueError: If the path is not a regular file or exceeds ``max_bytes``
        """
        try:
            rel_path = self.workspace.relative(path)
        except WorkspaceViolation as exc:
            decision = GateDecision.deny(str(exc))
        else:
            decision = self.gate.evaluate(
                ActionDescriptor(
                    name="readFile",
                    risk_level=RiskLevel.READ,
                    scope=(rel_path,),
                    description=f"Read file: {path}",
                )
            )
        if not decision.allowed:
            self._violation("read", decision.reason or "denied", {"file": path})
            raise PolicyDenied(decision)

        full_path = self.workspace.resolve_rel(rel_path)
        try:
            if not full_path.exists():
                raise FileNotFoundError(f"File not found: {path}")
            if not full_path.is_file():
                raise ValueError(f"Not a regular file: {path}")
            size = full_path.stat().st_size
            if size > max_bytes:
                raise ValueError(f"File too large: {path} ({size} bytes, max {max_bytes} bytes)")
            content = full_path.read_bytes().decode("utf-8", errors="replace")
        except (OSError, ValueError) as exc:
            self._tool("readFile", AuditStatus.FAILURE, {"file": path, "error": str(exc)})
            raise

        self._tool("readFile", AuditStatus.SUCCESS, {"file": path, "bytes": len(content.encode("utf-8"))})
        return content

    def write_file(
        self,
        path: str,
        content: str,
        *,
        backup: bool = True,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Write ``content`` to ``path`` after the exclusion veto and secret scan."""
        if self.scanner.should_exclude(path):
            reason = f"Path '{path}' is excluded from writes (sensitive file)"
            self._violation("write", reason, {"file": path})
            return ApplyResult(success=False, file_path=path, error=f"Policy denied: {reason}")

        scan = self.scanner.redact(content)
        if scan.has_secrets:
            self.scanner.log_results(scan, path)
            if self.config.privacy.redact_secrets:
                content = scan.redacted_text or ""
            elif self.config.privacy.strict_mode:
                reason = f"Secrets detected in content for '{path}': {', '.join(scan.types)}"
                self._violation("write", reason, {"file": path})
                return ApplyResult(success=False, file_path=path, error=f"Policy denied: {reason}")

        try:
            diff = self.patches.diff_from_disk(path, content)
        except WorkspaceViolation as exc:
            self._violation("write", str(exc), {"file": path})
            return ApplyResult(success=False, file_path=path, error=f"Policy denied: {exc}")
        except (OSError, UnicodeDecodeError) as exc:
            self._tool("writeFile", AuditStatus.FAILURE, {"file": path, "error": str(exc)})
            return ApplyResult(success=False, file_path=path, error=str(exc))

        return self.patches.apply(diff, ApplyOptions(backup=backup, dry_run=dry_run))

    def run_command(
        self,
        command: str,
        options: ExecOptions | None = None,
        sink: OutputSink | None = None,
    ) -> ExecResult:
        if sink is not None:
            return self.sandbox.execute_stream(command, sink, options)
        return self.sandbox.execute(command, options)

    def run_preset(self, name: str, options: ExecOptions | None = None) -> ExecResult:
        return self.sandbox.execute_preset(name, self.config.presets, options)

    def _violation(self, action: str, reason: str, metadata: dict) -> None:
        if self.audit is not None:
            self.audit.record_policy_violation(action, reason, metadata)

    def _tool(self, name: str, status: AuditStatus, metadata: dict) -> None:
        if self.audit is not None:
            self.audit.record_tool(name, status, metadata)
