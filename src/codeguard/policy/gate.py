"""Fail-closed access gate for every side-effecting action.

The gate is a pure evaluator: it reads the injected ``PolicyConfig`` and
returns a ``GateDecision``. Callers own auditing.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable, Mapping
from typing import Any

from codeguard.policy.globs import glob_match, path_matches_any
from codeguard.policy.types import ActionDescriptor, GateDecision, PolicyConfig, RiskLevel

logger = logging.getLogger(__name__)

NETWORK_DENIED_REASON = "Network operations are disabled in local-first mode"

SHELL_PUNCTUATION = "();<>|&"
_SEPARATOR_CHARS = frozenset(";|()")


def split_command_chain(command: str) -> list[list[str]] | None:
    """Split a shell line into the token lists of the simple commands it chains.

    Returns ``None`` when the line cannot be checked statically: command
    substitution (backticks, ``$(``) or unbalanced quotes.
    """
    if "`" in command or "$(" in command:
        return None
    lexer = shlex.shlex(command.replace("\n", ";"), posix=True, punctuation_chars=SHELL_PUNCTUATION)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        tokens = list(lexer)
    except ValueError:
        return None

    segments: list[list[str]] = [[]]
    for token in tokens:
        if _is_separator(token):
            segments.append([])
        else:
            segments[-1].append(token)
    return [segment for segment in segments if segment]


def _is_separator(token: str) -> bool:
    if token in ("&", "&&"):
        return True
    # Redirections like ">&" or "&>" are punctuation runs but not separators.
    return all(ch in SHELL_PUNCTUATION for ch in token) and any(ch in _SEPARATOR_CHARS for ch in token)


class AccessGate:
    """Risk-classified access control over an injected policy."""

    def __init__(self, policy: PolicyConfig):
        self.policy = policy
        self._dispatch: dict[RiskLevel, Callable[[ActionDescriptor, Mapping[str, Any]], GateDecision]] = {
            RiskLevel.READ: self._check_read,
            RiskLevel.WRITE: self._check_write,
            RiskLevel.EXEC: self._check_exec,
            RiskLevel.NETWORK: self._check_network,
        }

    def evaluate(
        self,
        action: ActionDescriptor,
        context: Mapping[str, Any] | None = None,
    ) -> GateDecision:
        """Evaluate one action descriptor and return exactly one decision."""
        handler = self._dispatch.get(action.risk_level)  # type: ignore[arg-type]
        if handler is None:
            decision = GateDecision.deny(f"Unknown risk level: {action.risk_level}")
        else:
            decision = handler(action, context or {})
        logger.debug(
            "gate %s (%s): allowed=%s reason=%s",
            action.name,
            getattr(action.risk_level, "value", action.risk_level),
            decision.allowed,
            decision.reason,
        )
        return decision

    def _check_read(self, action: ActionDescriptor, context: Mapping[str, Any]) -> GateDecision:
        for path in action.scope:
            if self.is_path_denied(path):
                return GateDecision.deny(f"Path '{path}' is in denylist")
        return GateDecision.allow(requires_confirmation=False)

    def _check_write(self, action: ActionDescriptor, context: Mapping[str, Any]) -> GateDecision:
        if not action.scope:
            return GateDecision.deny("Write operation requires explicit scope")

        # Conjunction over scope: one bad path fails the whole action.
        for path in action.scope:
            if self.is_path_denied(path):
                return GateDecision.deny(f"Cannot write to '{path}': path is in denylist")
            if not self.is_path_allowed(path):
                return GateDecision.deny(f"Cannot write to '{path}': path is not in allowlist")

        return GateDecision.allow(requires_confirmation=self.policy.require_confirmation)

    def _check_exec(self, action: ActionDescriptor, context: Mapping[str, Any]) -> GateDecision:
        command = context.get("command")
        if not isinstance(command, str) or not command.strip():
            return GateDecision.deny("Exec operation requires command in context")

        if not self.is_command_allowed(command):
            return GateDecision.deny(f"Command '{command}' is not in exec allowlist")

        return GateDecision.allow(requires_confirmation=self.policy.require_confirmation)

    def _check_network(self, action: ActionDescriptor, context: Mapping[str, Any]) -> GateDecision:
        return GateDecision.deny(NETWORK_DENIED_REASON)

    def is_path_denied(self, path: str) -> bool:
        """Check if path matches any denylist glob."""
        return path_matches_any(path, self.policy.path_denylist)

    def is_path_allowed(self, path: str) -> bool:
        """Check if path matches an allowlist glob; an empty allowlist allows nothing."""
        if not self.policy.path_allowlist:
            return False
        return path_matches_any(path, self.policy.path_allowlist)

    def is_command_allowed(self, command: str) -> bool:
        """Match every chained simple command against the exec allowlist.

        Commands run through a shell, so `npm test; curl x` is two commands and
        each one must pass on its own. Lines with command substitution or
        unbalanced quotes are never allowed.
        """
        segments = split_command_chain(command)
        if not segments:
            return False
        return all(self._segment_allowed(tokens) for tokens in segments)

    def _segment_allowed(self, tokens: list[str]) -> bool:
        base_command = tokens[0]
        joined = " ".join(tokens)

        for pattern in self.policy.exec_allowlist:
            if not pattern.strip():
                continue
            if "*" in pattern:
                if glob_match(base_command, pattern):
                    return True
            elif base_command == pattern or joined.startswith(pattern):
                return True
        return False
