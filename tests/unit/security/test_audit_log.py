"""Tests for the append-only audit log."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from codeguard.security.audit import AuditLogger, AuditStatus, audit_entry, verify_log


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_log_path_is_partitioned_by_day(workspace: Path, audit: AuditLogger) -> None:
    assert audit.log_path == workspace.resolve() / ".codeguard" / "audit" / "audit-2026-03-14.log"
    assert audit.path_for_day(date(2025, 12, 31)).name == "audit-2025-12-31.log"


def test_record_appends_one_canonical_line(audit: AuditLogger) -> None:
    audit.record_tool("readFile", AuditStatus.SUCCESS, {"file": "a.txt", "bytes": 3})
    audit.record_tool("readFile", "failure", {"file": "b.txt", "error": None})

    raw = audit.log_path.read_text(encoding="utf-8").splitlines()
    assert len(raw) == 2
    first = json.loads(raw[0])
    assert first == {
        "action": "tool:readFile",
        "metadata": {"bytes": 3, "file": "a.txt"},
        "status": "success",
        "timestamp": "2026-03-14T09:26:53+00:00",
    }
    assert raw[0] == json.dumps(first, sort_keys=True, separators=(",", ":"))
    assert json.loads(raw[1])["metadata"] == {"file": "b.txt"}


def test_existing_lines_are_never_rewritten(audit: AuditLogger) -> None:
    audit.record_agent_action("plan", AuditStatus.SUCCESS)
    before = audit.log_path.read_text(encoding="utf-8")

    audit.record_agent_action("act", AuditStatus.FAILURE)
    after = audit.log_path.read_text(encoding="utf-8")

    assert after.startswith(before)
    assert [e["action"] for e in _lines(audit.log_path)] == ["agent:plan", "agent:act"]


def test_recorder_families(audit: AuditLogger) -> None:
    audit.record_confirmation("applyPatch", True, {"file": "a.txt"})
    audit.record_confirmation("executeCommand", False)
    audit.record_file_write("a.txt", AuditStatus.SUCCESS, "abc123", {"backup": None})
    audit.record_exec("npm test", AuditStatus.FAILURE, 1, {"error": "boom"})
    audit.record_policy_violation("exec", "Command 'rm' is not in exec allowlist", {"command": "rm"})

    entries = audit.read_entries()
    assert [e["action"] for e in entries] == [
        "confirm:applyPatch",
        "confirm:executeCommand",
        "file:write",
        "exec:command",
        "policy:violation:exec",
    ]
    assert entries[0]["status"] == "success" and entries[0]["user_confirmed"] is True
    assert entries[1]["status"] == "denied" and entries[1]["user_confirmed"] is False
    assert entries[2]["metadata"] == {"file": "a.txt", "diff_hash": "abc123"}
    assert entries[3]["metadata"] == {"command": "npm test", "exit_code": 1, "error": "boom"}
    assert entries[4]["status"] == "denied"
    assert entries[4]["metadata"]["reason"] == "Command 'rm' is not in exec allowlist"


def test_write_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "audit"
    blocker.write_text("not a directory", encoding="utf-8")
    logger = AuditLogger(blocker / "nested")

    logger.record_tool("readFile", AuditStatus.SUCCESS)

    assert blocker.read_text(encoding="utf-8") == "not a directory"


def test_read_entries_for_missing_day_is_empty(audit: AuditLogger) -> None:
    assert audit.read_entries(date(2000, 1, 1)) == []


def test_audit_entry_rejects_unknown_status() -> None:
    with pytest.raises(ValueError):
        audit_entry(action="tool:x", status="maybe")


def test_verify_log_accepts_recorded_entries(audit: AuditLogger) -> None:
    audit.record_tool("readFile", AuditStatus.SUCCESS)
    audit.record_policy_violation("write", "denied")
    assert verify_log(audit.log_path) == []


def test_verify_log_reports_line_numbered_problems(tmp_path: Path) -> None:
    path = tmp_path / "audit-2026-01-01.log"
    path.write_text(
        "\n".join(
            [
                '{"action":"tool:x","status":"success","timestamp":"t"}',
                "{not json",
                '{"action":"nocolon","status":"success","timestamp":"t"}',
                '{"action":"tool:x","status":"ok","timestamp":"t","extra":1}',
                "",
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    problems = verify_log(path)

    assert any(p.startswith("line 2: invalid JSON") for p in problems)
    assert any(p.startswith("line 3: action:") for p in problems)
    assert any(p.startswith("line 4: status:") for p in problems)
    assert any(p.startswith("line 4:") and "extra" in p for p in problems)
    assert "line 5: empty line" in problems
    assert not any(p.startswith("line 1:") for p in problems)
