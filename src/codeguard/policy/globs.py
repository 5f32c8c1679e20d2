"""Self-contained glob matching for path and command patterns.

Semantics:
    ``*``   any run of characters except ``/``
    ``?``   one character except ``/``
    ``**``  any number of whole path segments (``a/**/b``, ``secrets/**``)
    ``[..]`` character class, ``[!..]`` negated

Patterns without a ``/`` also match against the final path component, so
``*.pem`` covers ``certs/server.pem`` the way a gitignore entry would.
Shell expansion is never involved.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable


def normalize_path(path: str) -> str:
    """Normalize a workspace-relative path to POSIX form without a ``./`` prefix."""
    normalized = path.strip().replace("\\", "/")
    normalized = re.sub(r"/{2,}", "/", normalized)
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _clean_pattern(pattern: str) -> str:
    return normalize_path(pattern.strip().strip("`"))


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into an anchored regular expression."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("/**", i) and i + 3 == n:
            parts.append("(?:/.*)?")
            break
        if pattern.startswith("**", i):
            i += 2
            if i < n and pattern[i] == "/":
                parts.append("(?:.*/)?")
                i += 1
            else:
                parts.append(".*")
            continue
        c = pattern[i]
        if c == "*":
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def glob_match(text: str, pattern: str) -> bool:
    """Match ``text`` against ``pattern`` as a whole string."""
    return compile_glob(pattern).fullmatch(text) is not None


def path_matches(path: str, pattern: str) -> bool:
    """Match a workspace-relative path against one glob pattern."""
    normalized = normalize_path(path)
    clean = _clean_pattern(pattern)
    if not clean:
        return False
    if glob_match(normalized, clean):
        return True
    if "/" not in clean:
        basename = normalized.rstrip("/").rsplit("/", 1)[-1]
        return glob_match(basename, clean)
    return False


def path_matches_any(path: str, patterns: Iterable[str]) -> bool:
    """Check if path matches any pattern."""
    return any(path_matches(path, pattern) for pattern in patterns)
