"""Diff computation and patch application."""

from codeguard.patch.engine import PatchEngine
from codeguard.patch.types import ApplyOptions, ApplyResult, Diff

__all__ = ["ApplyOptions", "ApplyResult", "Diff", "PatchEngine"]
