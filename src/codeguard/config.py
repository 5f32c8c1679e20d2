"""Workspace configuration loader.

Reads ``.codeguard/config.yml``. Keys under ``policies`` and ``privacy``
override the defaults one by one; a ``commands.presets`` mapping replaces the
default presets as a whole.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from codeguard import APP_DIR_NAME, __version__
from codeguard.errors import ConfigError
from codeguard.policy.types import PolicyConfig
from codeguard.sandbox.types import CommandPreset

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"

DEFAULT_POLICY: dict[str, Any] = {
    "exec_allowlist": [
        "pytest*",
        "npm test",
        "npm run test",
        "go test",
        "cargo test",
        "make test",
        "jest*",
        "vitest*",
    ],
    "path_allowlist": ["**"],
    "path_denylist": [".env*", "secrets/**", "*.pem", "*.key", "credentials*"],
    "require_confirmation": True,
}

DEFAULT_PRIVACY: dict[str, Any] = {
    "strict_mode": True,
    "redact_secrets": True,
    "audit_log": True,
    "extra_placeholders": [],
}

DEFAULT_PRESETS: dict[str, dict[str, Any]] = {
    "test": {"description": "Run project tests", "command": "npm test"},
    "lint": {"description": "Run linter", "command": "npm run lint"},
    "build": {"description": "Build project", "command": "npm run build"},
}


@dataclass(frozen=True)
class PrivacyConfig:
    strict_mode: bool = True
    redact_secrets: bool = True
    audit_log: bool = True
    extra_placeholders: tuple[str, ...] = ()


@dataclass(frozen=True)
class GuardConfig:
    """Everything the mutation pipeline needs from the config file."""

    version: str = __version__
    policy: PolicyConfig = field(default_factory=lambda: _policy_from_dict({}))
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    presets: dict[str, CommandPreset] = field(default_factory=lambda: _presets_from_dict({}))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GuardConfig:
        """Parse and validate a config dict, overlaying defaults per section."""
        privacy = {**DEFAULT_PRIVACY, **_section(data, "privacy")}
        commands = _section(data, "commands")
        return cls(
            version=str(data.get("version", __version__)),
            policy=_policy_from_dict(_section(data, "policies")),
            privacy=PrivacyConfig(
                strict_mode=_as_bool(privacy, "strict_mode"),
                redact_secrets=_as_bool(privacy, "redact_secrets"),
                audit_log=_as_bool(privacy, "audit_log"),
                extra_placeholders=tuple(_as_str_list(privacy, "extra_placeholders")),
            ),
            presets=_presets_from_dict(_section(commands, "presets")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "policies": {
                "exec_allowlist": list(self.policy.exec_allowlist),
                "path_allowlist": list(self.policy.path_allowlist),
                "path_denylist": list(self.policy.path_denylist),
                "require_confirmation": self.policy.require_confirmation,
            },
            "commands": {
                "presets": {
                    name: {
                        k: v
                        for k, v in {
                            "description": preset.description,
                            "command": preset.command,
                            "cwd": preset.cwd,
                            "env": dict(preset.env) or None,
                        }.items()
                        if v is not None
                    }
                    for name, preset in self.presets.items()
                }
            },
            "privacy": {
                "strict_mode": self.privacy.strict_mode,
                "redact_secrets": self.privacy.redact_secrets,
                "audit_log": self.privacy.audit_log,
                "extra_placeholders": list(self.privacy.extra_placeholders),
            },
        }


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping")
    return value


def _as_bool(data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ConfigError(f"Config key '{key}' must be true or false")
    return value


def _as_str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Config key '{key}' must be a list of strings")
    return value


def _policy_from_dict(data: dict[str, Any]) -> PolicyConfig:
    merged = {**DEFAULT_POLICY, **data}
    return PolicyConfig(
        exec_allowlist=tuple(_as_str_list(merged, "exec_allowlist")),
        path_allowlist=tuple(_as_str_list(merged, "path_allowlist")),
        path_denylist=tuple(_as_str_list(merged, "path_denylist")),
        require_confirmation=_as_bool(merged, "require_confirmation"),
    )


def _presets_from_dict(data: dict[str, Any]) -> dict[str, CommandPreset]:
    presets: dict[str, CommandPreset] = {}
    for name, raw in (data or DEFAULT_PRESETS).items():
        if not isinstance(raw, dict) or not isinstance(raw.get("command"), str):
            raise ConfigError(f"Command preset '{name}' must define a 'command' string")
        env = raw.get("env") or {}
        if not isinstance(env, dict):
            raise ConfigError(f"Command preset '{name}' env must be a mapping")
        presets[name] = CommandPreset(
            description=str(raw.get("description", "")),
            command=raw["command"],
            cwd=raw.get("cwd"),
            env={str(k): str(v) for k, v in env.items()},
        )
    return presets


def config_path(workspace_root: Path) -> Path:
    return workspace_root / APP_DIR_NAME / CONFIG_FILENAME


def load_config(workspace_root: Path) -> GuardConfig:
    """Load ``.codeguard/config.yml`` or fall back to defaults.

    Raises:
        ConfigError: If the file is malformed YAML or structurally invalid
    """
    path = config_path(workspace_root)
    if not path.exists():
        logger.warning("Config file not found: %s (using defaults)", path)
        return GuardConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML config at {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} must be a mapping")
    return GuardConfig.from_dict(data)


def write_default_config(workspace_root: Path, *, force: bool = False) -> Path:
    """Write the default config; refuse to overwrite unless ``force``."""
    path = config_path(workspace_root)
    if path.exists() and not force:
        raise ConfigError(f"Config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(GuardConfig().to_dict(), f, sort_keys=False)
    return path
