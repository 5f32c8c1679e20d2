"""Command sandbox types."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024

# Called as sink(stream_name, text) with stream_name "stdout" or "stderr".
OutputSink = Callable[[str, str], None]


@dataclass(frozen=True)
class ExecOptions:
    cwd: Path | str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one sandboxed command."""

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    command: str
    error: str | None = None
    timed_out: bool = False
    truncated: bool = False
    duration_seconds: float | None = None


@dataclass(frozen=True)
class CommandPreset:
    """Named command from the config's ``commands.presets`` section."""

    description: str
    command: str
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
