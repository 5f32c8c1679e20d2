"""Exception taxonomy for codeguard.

Core contracts return structured results for policy, conflict, I/O and timeout
failures; these exceptions are raised internally and converted at the
contract boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codeguard.policy.types import GateDecision


class CodeguardError(RuntimeError):
    """Base class for codeguard failures."""


class PolicyDenied(CodeguardError):
    """Raised when the access gate refuses an action and no result envelope exists."""

    def __init__(self, decision: GateDecision):
        super().__init__(f"Policy denied: {decision.reason}")
        self.decision = decision


class WorkspaceViolation(ValueError):
    """Raised when a path is absolute or escapes the workspace root."""


class ConflictError(CodeguardError):
    """Raised when a patch hunk cannot be reconciled with current content."""


class PatchFormatError(CodeguardError):
    """Raised when unified patch text is malformed."""


class ConfigError(CodeguardError):
    """Raised when the config file is malformed or structurally invalid."""
