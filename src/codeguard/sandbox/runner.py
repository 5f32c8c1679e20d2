"""Allowlisted command execution with env scrubbing, timeout, and bounded capture.

"Sandbox" here is policy, not isolation: the gate's exec allowlist, a
scrubbed environment, and a deadline after which the whole process group is
terminated.
"""

from __future__ import annotations

import codecs
import logging
import os
import re
import signal
import subprocess
import threading
import time
from collections.abc import Mapping
from pathlib import Path
from typing import IO

from codeguard.errors import WorkspaceViolation
from codeguard.policy.gate import AccessGate
from codeguard.policy.types import ActionDescriptor, ConfirmCallback, RiskLevel
from codeguard.sandbox.types import CommandPreset, ExecOptions, ExecResult, OutputSink
from codeguard.security.audit import AuditLogger, AuditStatus
from codeguard.workspace import Workspace

logger = logging.getLogger(__name__)

SAFE_ENV_NAMES: frozenset[str] = frozenset(
    {"PATH", "HOME", "USER", "SHELL", "LANG", "PWD", "NODE_ENV", "NODE_OPTIONS"}
)
SAFE_ENV_PREFIXES: tuple[str, ...] = ("NPM_CONFIG_", "LC_")

SENSITIVE_ENV_MARKERS: tuple[str, ...] = ("SECRET", "PASSWORD", "TOKEN", "API_KEY", "PRIVATE")

DANGEROUS_PATTERNS: tuple[str, ...] = (
    "rm -rf /",
    "mkfs",
    "dd if=",
    "> /dev/",
    "chmod -r 777",
    "chown -r",
)

_FORK_BOMB_RE = re.compile(r":\(\)\s*\{.*:\|:.*&.*\}\s*;?\s*:")

KILL_GRACE_SECONDS = 2.0
READ_CHUNK_BYTES = 8192


def scrub_environment(env: Mapping[str, str]) -> dict[str, str]:
    """Drop credential-looking variables unless they are on the safe list."""
    scrubbed: dict[str, str] = {}
    for key, value in env.items():
        if key in SAFE_ENV_NAMES or key.startswith(SAFE_ENV_PREFIXES):
            scrubbed[key] = value
        elif any(marker in key.upper() for marker in SENSITIVE_ENV_MARKERS):
            logger.debug("Scrubbed environment variable: %s", key)
        else:
            scrubbed[key] = value
    return scrubbed


def is_safe_command(command: str) -> bool:
    """Coarse veto for literal destructive patterns; not a replacement for the allowlist."""
    lower = command.lower()
    if any(pattern in lower for pattern in DANGEROUS_PATTERNS):
        return False
    return _FORK_BOMB_RE.search(command) is None


class _StreamCapture:
    """Drains one pipe, forwarding text to a sink and keeping a bounded copy."""

    def __init__(self, name: str, limit: int, sink: OutputSink | None):
        self.name = name
        self.limit = limit
        self.sink = sink
        self.buffer = bytearray()
        self.truncated = False
        self._lock = threading.Lock()

    def pump(self, stream: IO[bytes]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = stream.read1(READ_CHUNK_BYTES)  # type: ignore[attr-defined]
                if not chunk:
                    break
                with self._lock:
                    room = self.limit - len(self.buffer)
                    if room > 0:
                        self.buffer.extend(chunk[:room])
                    if len(chunk) > room:
                        self.truncated = True
                self._deliver(decoder.decode(chunk))
            self._deliver(decoder.decode(b"", final=True))
        finally:
            stream.close()

    def _deliver(self, text: str) -> None:
        if not text or self.sink is None:
            return
        try:
            self.sink(self.name, text)
        except Exception:
            logger.exception("Output sink failed for %s", self.name)

    def text(self) -> str:
        with self._lock:
            return self.buffer.decode("utf-8", errors="replace")


def _kill_group(proc: subprocess.Popen[bytes]) -> None:
    """SIGKILL whatever is left in the child's session after the shell exits."""
    if not hasattr(os, "killpg"):
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        logger.debug("Process group %d already gone", proc.pid)


def _terminate_group(proc: subprocess.Popen[bytes]) -> None:
    """SIGTERM the child's process group, then SIGKILL after a grace period."""
    if not hasattr(os, "killpg"):
        proc.kill()
        return
    for sig, grace in ((signal.SIGTERM, KILL_GRACE_SECONDS), (signal.SIGKILL, None)):
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            return
        if grace is None:
            return
        try:
            proc.wait(timeout=grace)
            return
        except subprocess.TimeoutExpired:
            continue


class CommandSandbox:
    """Runs shell commands that the access gate has allowed."""

    def __init__(
        self,
        workspace_root: Path,
        gate: AccessGate,
        audit: AuditLogger | None = None,
        confirm: ConfirmCallback | None = None,
        safety_check: bool = True,
    ):
        self.workspace = Workspace.from_path(workspace_root)
        self.gate = gate
        self.audit = audit
        self.confirm = confirm
        self.safety_check = safety_check

    def execute(self, command: str, options: ExecOptions | None = None) -> ExecResult:
        return self._execute(command, options or ExecOptions(), sink=None)

    def execute_stream(
        self,
        command: str,
        sink: OutputSink,
        options: ExecOptions | None = None,
    ) -> ExecResult:
        """Like ``execute`` but delivers output chunks to ``sink`` as they arrive."""
        return self._execute(command, options or ExecOptions(), sink=sink)

    def execute_preset(
        self,
        preset_name: str,
        presets: Mapping[str, CommandPreset],
        options: ExecOptions | None = None,
    ) -> ExecResult:
        preset = presets.get(preset_name)
        if preset is None:
            return ExecResult(
                success=False,
                stdout="",
                stderr="",
                exit_code=-1,
                command=preset_name,
                error=f"Preset not found: {preset_name}",
            )

        logger.info("Running preset: %s - %s", preset_name, preset.description)
        base = options or ExecOptions()
        merged = ExecOptions(
            cwd=preset.cwd if preset.cwd is not None else base.cwd,
            env={**base.env, **preset.env},
            timeout=base.timeout,
            max_output_bytes=base.max_output_bytes,
        )
        return self.execute(preset.command, merged)

    def _execute(self, command: str, options: ExecOptions, sink: OutputSink | None) -> ExecResult:
        denied = self._authorize(command)
        if denied is not None:
            return denied

        try:
            cwd = self._resolve_cwd(options.cwd)
        except WorkspaceViolation as exc:
            return self._finish(command, ExecResult(False, "", "", -1, command, error=str(exc)))

        env = scrub_environment({**os.environ, **options.env})
        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            return self._finish(command, ExecResult(False, "", "", -1, command, error=str(exc)))

        captures = [
            _StreamCapture("stdout", options.max_output_bytes, sink),
            _StreamCapture("stderr", options.max_output_bytes, sink),
        ]
        readers = [
            threading.Thread(target=capture.pump, args=(stream,), daemon=True)
            for capture, stream in zip(captures, (proc.stdout, proc.stderr))
        ]
        for reader in readers:
            reader.start()

        timed_out = False
        try:
            proc.wait(timeout=options.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            logger.warning("Command timed out after %ss, terminating: %s", options.timeout, command)
            _terminate_group(proc)
            proc.wait()
        # Background children of the shell would otherwise hold the pipes open.
        _kill_group(proc)

        deadline = time.monotonic() + KILL_GRACE_SECONDS
        for reader in readers:
            reader.join(timeout=max(0.0, deadline - time.monotonic()))
        if any(reader.is_alive() for reader in readers):
            logger.warning("Output readers still draining after exit: %s", command)

        stdout, stderr = captures
        exit_code = proc.returncode
        if timed_out:
            error: str | None = f"Command timed out after {options.timeout}s"
        elif exit_code != 0:
            error = f"Command failed with exit code {exit_code}"
        else:
            error = None

        result = ExecResult(
            success=error is None,
            stdout=stdout.text(),
            stderr=stderr.text(),
            exit_code=exit_code,
            command=command,
            error=error,
            timed_out=timed_out,
            truncated=stdout.truncated or stderr.truncated,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        if result.truncated:
            logger.warning("Output exceeded %d bytes and was truncated: %s", options.max_output_bytes, command)
        return self._finish(command, result)

    def _authorize(self, command: str) -> ExecResult | None:
        action = ActionDescriptor(
            name="executeCommand",
            risk_level=RiskLevel.EXEC,
            requires_confirmation=True,
            description=f"Execute: {command}",
        )
        decision = self.gate.evaluate(action, {"command": command})
        reason: str | None = None
        if not decision.allowed:
            reason = decision.reason or "denied"
        elif self.safety_check and not is_safe_command(command):
            reason = f"Command '{command}' matches a destructive pattern"

        if reason is not None:
            if self.audit is not None:
                self.audit.record_policy_violation("exec", reason, {"command": command})
            return ExecResult(False, "", "", -1, command, error=f"Policy denied: {reason}")

        if decision.requires_confirmation and self.confirm is not None:
            confirmed = bool(self.confirm(action, decision))
            if self.audit is not None:
                self.audit.record_confirmation(action.name, confirmed, {"command": command})
            if not confirmed:
                return ExecResult(False, "", "", -1, command, error="Declined by user")
        return None

    def _resolve_cwd(self, cwd: Path | str | None) -> Path:
        if cwd is None:
            return self.workspace.root
        path = Path(cwd)
        if path.is_absolute():
            path = path.resolve()
            try:
                path.relative_to(self.workspace.root)
            except ValueError as exc:
                raise WorkspaceViolation(f"Path escapes workspace: {cwd}") from exc
            return path
        return self.workspace.resolve_rel(path)

    def _finish(self, command: str, result: ExecResult) -> ExecResult:
        if self.audit is not None:
            self.audit.record_exec(
                command,
                AuditStatus.SUCCESS if result.success else AuditStatus.FAILURE,
                result.exit_code,
                {
                    "error": result.error,
                    "timed_out": result.timed_out or None,
                    "truncated": result.truncated or None,
                    "duration_seconds": result.duration_seconds,
                },
            )
        return result
