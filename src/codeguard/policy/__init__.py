"""Access gate for codeguard actions."""

from codeguard.policy.gate import AccessGate
from codeguard.policy.types import ActionDescriptor, ConfirmCallback, GateDecision, PolicyConfig, RiskLevel

__all__ = [
    "AccessGate",
    "ActionDescriptor",
    "ConfirmCallback",
    "GateDecision",
    "PolicyConfig",
    "RiskLevel",
]
