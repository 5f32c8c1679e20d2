"""Secret and PII detection for content headed to disk or the network."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from codeguard.policy.globs import normalize_path
from codeguard.security.types import ScanResult, SecretMatch, SecretPattern

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: tuple[SecretPattern, ...] = (
    SecretPattern("api_key", re.compile(r"\b[A-Za-z0-9_-]{32,}\b"), "Possible API key"),
    SecretPattern("aws_access_key", re.compile(r"AKIA[0-9A-Z]{16}"), "AWS Access Key"),
    SecretPattern("aws_secret_key", re.compile(r"[A-Za-z0-9/+=]{40}"), "AWS Secret Key"),
    SecretPattern("private_key", re.compile(r"-----BEGIN\s+(?:RSA\s+)?PRIVATE KEY-----"), "Private Key"),
    SecretPattern(
        "token",
        re.compile(r"\b(?:token|auth|bearer)[\s:=]+['\"]?[A-Za-z0-9_\-.]+['\"]?", re.IGNORECASE),
        "Authentication Token",
    ),
    SecretPattern(
        "password",
        re.compile(r"\b(?:password|passwd|pwd)[\s:=]+['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "Password",
    ),
    SecretPattern("github_token", re.compile(r"\bgh[pousr]_[A-Za-z0-9_]{36,}\b"), "GitHub Token"),
    SecretPattern(
        "secret",
        re.compile(r"\b(?:secret|apikey|api_key)[\s:=]+['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "Secret",
    ),
    SecretPattern(
        "email",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "Email address (PII)",
    ),
    SecretPattern(
        "credit_card",
        re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"),
        "Credit Card number",
    ),
)

KNOWN_PLACEHOLDERS: tuple[str, ...] = (
    "example.com",
    "test@test.com",
    "user@example.com",
    "1234567890123456",
    "password123",
    "your_api_key_here",
    "YOUR_SECRET_HERE",
)

PLACEHOLDER_MARKERS: tuple[str, ...] = ("example", "placeholder", "your_", "xxx")

MIN_API_KEY_LENGTH = 20

EXCLUDED_PATH_MARKERS: tuple[str, ...] = (
    ".env",
    "secrets/",
    ".pem",
    ".key",
    "credentials",
    "id_rsa",
    "id_dsa",
    "id_ecdsa",
    "id_ed25519",
)


class SecretScanner:
    """Line-oriented secret scanner with a placeholder filter.

    ``extra_placeholders`` extends the built-in placeholder list for
    project-specific fixtures; the built-in list cannot be shrunk.
    """

    def __init__(
        self,
        patterns: Iterable[SecretPattern] = DEFAULT_PATTERNS,
        extra_placeholders: Iterable[str] = (),
    ):
        self.patterns = tuple(patterns)
        self.placeholders = tuple(
            p.lower() for p in (*KNOWN_PLACEHOLDERS, *extra_placeholders) if p
        )

    def scan(self, text: str) -> ScanResult:
        matches: list[SecretMatch] = []
        for line_index, line in enumerate(text.split("\n")):
            for pattern in self.patterns:
                for found in pattern.regex.finditer(line):
                    value = found.group(0)
                    if not value or self.is_false_positive(value, pattern.type):
                        continue
                    matches.append(
                        SecretMatch(
                            type=pattern.type,
                            value=value,
                            line=line_index + 1,
                            column=found.start(),
                            pattern=pattern.description,
                        )
                    )
        return ScanResult(has_secrets=bool(matches), matches=tuple(matches))

    def redact(self, text: str) -> ScanResult:
        """Scan and replace every retained match with ``[REDACTED_<TYPE>]``.

        Replacement runs bottom-to-top, right-to-left so earlier edits never
        shift the columns of later ones. Overlapping matches on a line are
        collapsed into one span labelled by the earliest-starting match.
        """
        result = self.scan(text)
        if not result.has_secrets:
            return ScanResult(has_secrets=False, matches=(), redacted_text=text)

        lines = text.split("\n")
        by_line: dict[int, list[SecretMatch]] = {}
        for match in result.matches:
            by_line.setdefault(match.line, []).append(match)

        for line_no in sorted(by_line, reverse=True):
            spans = _merge_spans(by_line[line_no])
            line = lines[line_no - 1]
            for start, end, kind in reversed(spans):
                line = line[:start] + f"[REDACTED_{kind.upper()}]" + line[end:]
            lines[line_no - 1] = line

        return ScanResult(
            has_secrets=True,
            matches=result.matches,
            redacted_text="\n".join(lines),
        )

    def is_false_positive(self, value: str, match_type: str) -> bool:
        lower = value.lower()
        if any(placeholder in lower for placeholder in self.placeholders):
            return True
        if any(marker in lower for marker in PLACEHOLDER_MARKERS):
            return True
        if match_type == "api_key" and len(value) < MIN_API_KEY_LENGTH:
            return True
        return False

    def should_exclude(self, path: str) -> bool:
        """Path-level veto for files that must never be scanned-and-persisted."""
        normalized = normalize_path(path)
        return any(marker in normalized for marker in EXCLUDED_PATH_MARKERS)

    def log_results(self, result: ScanResult, context: str | None = None) -> None:
        if not result.has_secrets:
            return
        where = f" in {context}" if context else ""
        logger.warning("Secrets detected%s", where)
        for match in result.matches:
            logger.warning("  %s at line %d", match.pattern, match.line)


def _merge_spans(matches: list[SecretMatch]) -> list[tuple[int, int, str]]:
    """Collapse overlapping match spans on one line, ordered left to right."""
    spans: list[tuple[int, int, str]] = []
    for match in sorted(matches, key=lambda m: (m.column, -m.end)):
        if spans and match.column < spans[-1][1]:
            start, end, kind = spans[-1]
            spans[-1] = (start, max(end, match.end), kind)
        else:
            spans.append((match.column, match.end, match.type))
    return spans
