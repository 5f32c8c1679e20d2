"""Allowlisted command execution."""

from codeguard.sandbox.runner import CommandSandbox, is_safe_command, scrub_environment
from codeguard.sandbox.types import CommandPreset, ExecOptions, ExecResult

__all__ = [
    "CommandPreset",
    "CommandSandbox",
    "ExecOptions",
    "ExecResult",
    "is_safe_command",
    "scrub_environment",
]
