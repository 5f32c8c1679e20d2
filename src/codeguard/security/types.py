"""Secret scanner types."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class SecretPattern:
    """Named detection heuristic."""

    type: str
    regex: re.Pattern[str]
    description: str


@dataclass(frozen=True)
class SecretMatch:
    """Single detection. ``line`` is 1-based, ``column`` 0-based."""

    type: str
    value: str
    line: int
    column: int
    pattern: str

    @property
    def end(self) -> int:
        return self.column + len(self.value)


@dataclass(frozen=True)
class ScanResult:
    """Aggregated scan outcome; ``redacted_text`` is set only by ``redact``."""

    has_secrets: bool
    matches: tuple[SecretMatch, ...] = ()
    redacted_text: str | None = None

    @property
    def types(self) -> list[str]:
        """Distinct match types in first-seen order."""
        seen: list[str] = []
        for match in self.matches:
            if match.type not in seen:
                seen.append(match.type)
        return seen
