"""Types for the access gate."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class RiskLevel(str, Enum):
    """Risk classification that selects the gate's evaluation branch."""

    READ = "read"
    WRITE = "write"
    EXEC = "exec"
    NETWORK = "network"


@dataclass(frozen=True)
class ActionDescriptor:
    """An intended operation submitted to the access gate.

    ``risk_level`` is coerced to :class:`RiskLevel` when it names a known
    level. Unknown values are kept verbatim so the gate can deny them.
    """

    name: str
    risk_level: RiskLevel | str
    scope: tuple[str, ...] = ()
    requires_confirmation: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "scope", tuple(self.scope))
        if not isinstance(self.risk_level, RiskLevel):
            try:
                object.__setattr__(self, "risk_level", RiskLevel(str(self.risk_level)))
            except ValueError:
                pass


@dataclass(frozen=True)
class PolicyConfig:
    """Process-wide policy, injected into the gate by reference."""

    exec_allowlist: tuple[str, ...] = ()
    path_allowlist: tuple[str, ...] = ()
    path_denylist: tuple[str, ...] = ()
    require_confirmation: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "exec_allowlist", tuple(self.exec_allowlist))
        object.__setattr__(self, "path_allowlist", tuple(self.path_allowlist))
        object.__setattr__(self, "path_denylist", tuple(self.path_denylist))


@dataclass(frozen=True)
class GateDecision:
    """Allow/deny verdict for one action descriptor."""

    allowed: bool
    requires_confirmation: bool
    reason: str | None = None

    @classmethod
    def allow(cls, *, requires_confirmation: bool) -> GateDecision:
        return cls(allowed=True, requires_confirmation=requires_confirmation)

    @classmethod
    def deny(cls, reason: str) -> GateDecision:
        return cls(allowed=False, requires_confirmation=True, reason=reason)


# Asked whenever an allowed decision requires confirmation; False declines.
ConfirmCallback = Callable[[ActionDescriptor, GateDecision], bool]
