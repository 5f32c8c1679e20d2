"""JSON Schema validation against schemas shipped as package data."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib.resources import files
from typing import Any

from jsonschema.validators import Draft202012Validator

SCHEMA_SUFFIX = ".schema.json"


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict[str, Any]:
    """Load a schema by canonical name (with or without the ``.schema.json`` suffix).

    Raises:
        KeyError: If no such schema ships with the package
    """
    canonical = schema_name.removesuffix(SCHEMA_SUFFIX)
    resource = files("codeguard.schemas") / f"{canonical}{SCHEMA_SUFFIX}"
    if not resource.is_file():
        raise KeyError(f"Schema not found in package data: {canonical}")
    return json.loads(resource.read_text(encoding="utf-8"))


def validate_data(
    data: Any,
    schema_name: str,
    strict: bool = True,
) -> tuple[bool, list[str]]:
    """Validate data against a packaged schema.

    Args:
        data: Data to validate
        schema_name: Name of schema to validate against
        strict: If True, raise on validation errors; if False, return error list

    Returns:
        Tuple of (is_valid, error_messages)

    Raises:
        KeyError: If schema not found in package data
        ValueError: If validation fails and strict=True
    """
    validator = Draft202012Validator(load_schema(schema_name))
    errors = list(validator.iter_errors(data))

    if not errors:
        return True, []

    messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]
    if strict:
        raise ValueError(
            f"Schema validation failed for '{schema_name}':\n"
            + "\n".join(f"  - {msg}" for msg in messages)
        )
    return False, messages
