"""Pytest configuration and fixtures for codeguard tests."""
from datetime import UTC, datetime
from pathlib import Path

import pytest

from codeguard.policy.types import PolicyConfig
from codeguard.security.audit import AuditLogger

FIXED_NOW = datetime(2026, 3, 14, 9, 26, 53, tzinfo=UTC)


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    coverage_files = list(Path.cwd().glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'codeguard' (the package) not 'src/codeguard' (filesystem path).",
            returncode=1
        )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Empty workspace root."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def policy() -> PolicyConfig:
    """Permissive-but-guarded policy used by most component tests."""
    return PolicyConfig(
        exec_allowlist=("echo", "printf", "sleep", "sh", "pwd", "yes", "head", "npm test"),
        path_allowlist=("**",),
        path_denylist=(".env*", "secrets/**", "*.pem", "*.key"),
        require_confirmation=False,
    )


@pytest.fixture
def audit(workspace: Path) -> AuditLogger:
    """Audit logger pinned to a fixed clock so the day file is predictable."""
    return AuditLogger.for_workspace(workspace, clock=lambda: FIXED_NOW)
