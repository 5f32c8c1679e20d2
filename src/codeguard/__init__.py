"""Codeguard: policy-gated mutation pipeline for local-first coding agents.

Every side-effecting action (path read, file write, shell command, network
egress) is evaluated by an access gate, optionally scanned for secrets,
performed by the patch engine or command sandbox, and recorded in an
append-only audit log.
"""

__version__ = "0.1.0"

APP_DIR_NAME = ".codeguard"

__all__ = ["APP_DIR_NAME", "__version__"]
