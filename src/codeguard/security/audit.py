"""Append-only audit log, one JSON line per decision or outcome.

Files are partitioned by UTC calendar day:
``<workspace>/.codeguard/audit/audit-<YYYY-MM-DD>.log``. Existing lines are
never rewritten. A failed append is logged and swallowed so auditing never
blocks or reverses the action being audited.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from codeguard import APP_DIR_NAME
from codeguard.schemas import validate_data
from codeguard.utils.hashing import canonical_dumps

logger = logging.getLogger(__name__)

AUDIT_SCHEMA = "audit_entry"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def audit_entry(
    *,
    action: str,
    status: AuditStatus | str,
    user_confirmed: bool | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an entry without a timestamp; ``None`` metadata values are dropped."""
    entry: dict[str, Any] = {"action": action, "status": AuditStatus(status).value}
    if user_confirmed is not None:
        entry["user_confirmed"] = user_confirmed
    if metadata:
        cleaned = {k: v for k, v in metadata.items() if v is not None}
        if cleaned:
            entry["metadata"] = cleaned
    return entry


class AuditLogger:
    """Writes audit entries for one workspace."""

    def __init__(
        self,
        audit_dir: Path,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.audit_dir = audit_dir
        self._clock = clock

    @classmethod
    def for_workspace(cls, workspace_root: Path, **kwargs: Any) -> AuditLogger:
        return cls(workspace_root.resolve() / APP_DIR_NAME / "audit", **kwargs)

    def path_for_day(self, day: date) -> Path:
        return self.audit_dir / f"audit-{day.isoformat()}.log"

    @property
    def log_path(self) -> Path:
        """Log file for the current day."""
        return self.path_for_day(self._clock().date())

    def record(self, entry: Mapping[str, Any]) -> None:
        """Stamp the entry with the current time and append it as one line."""
        now = self._clock()
        full_entry = {**entry, "timestamp": now.isoformat()}
        path = self.path_for_day(now.date())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(canonical_dumps(full_entry) + "\n")
        except OSError as exc:
            logger.error("Failed to write audit log %s: %s", path, exc)
            return
        logger.debug("Audit: %s - %s", full_entry.get("action"), full_entry.get("status"))

    def record_tool(
        self,
        tool_name: str,
        status: AuditStatus | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(audit_entry(action=f"tool:{tool_name}", status=status, metadata=metadata))

    def record_confirmation(
        self,
        action: str,
        confirmed: bool,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(
            audit_entry(
                action=f"confirm:{action}",
                status=AuditStatus.SUCCESS if confirmed else AuditStatus.DENIED,
                user_confirmed=confirmed,
                metadata=metadata,
            )
        )

    def record_file_write(
        self,
        file_path: str,
        status: AuditStatus | str,
        diff_hash: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(
            audit_entry(
                action="file:write",
                status=status,
                metadata={**(metadata or {}), "file": file_path, "diff_hash": diff_hash},
            )
        )

    def record_exec(
        self,
        command: str,
        status: AuditStatus | str,
        exit_code: int | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(
            audit_entry(
                action="exec:command",
                status=status,
                metadata={**(metadata or {}), "command": command, "exit_code": exit_code},
            )
        )

    def record_policy_violation(
        self,
        action: str,
        reason: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(
            audit_entry(
                action=f"policy:violation:{action}",
                status=AuditStatus.DENIED,
                metadata={**(metadata or {}), "reason": reason},
            )
        )

    def record_agent_action(
        self,
        action: str,
        status: AuditStatus | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.record(audit_entry(action=f"agent:{action}", status=status, metadata=metadata))

    def read_entries(self, day: date | None = None) -> list[dict[str, Any]]:
        """Return the parsed entries for one day (today by default)."""
        path = self.path_for_day(day) if day else self.log_path
        if not path.exists():
            return []
        entries: list[dict[str, Any]] = []
        for raw_line in path.read_text(encoding="utf-8").splitlines():
            if raw_line.strip():
                entries.append(json.loads(raw_line))
        return entries


def verify_log(path: Path) -> list[str]:
    """Validate every line of an audit file; return line-numbered problems."""
    problems: list[str] = []
    for line_no, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        if not raw_line.strip():
            problems.append(f"line {line_no}: empty line")
            continue
        try:
            data = json.loads(raw_line)
        except json.JSONDecodeError as exc:
            problems.append(f"line {line_no}: invalid JSON ({exc.msg})")
            continue
        ok, errors = validate_data(data, AUDIT_SCHEMA, strict=False)
        if not ok:
            problems.extend(f"line {line_no}: {error}" for error in errors)
    return problems
