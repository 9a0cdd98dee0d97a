from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
from typing import Any

from jsonschema import Draft202012Validator, ValidationError

SMARTCTL_SCHEMA = "smartctl-output.schema.json"
STATUS_SCHEMA = "device-status.schema.json"


def load_schema(name: str) -> dict[str, Any]:
    schema_path = resources.files("smart_tap").joinpath(f"schemas/{name}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _error_path(error: ValidationError) -> list[str]:
    # Paths mix object keys and array indexes.
    return [str(part) for part in error.path]


@lru_cache(maxsize=None)
def get_validator(name: str) -> Draft202012Validator:
    return Draft202012Validator(schema=load_schema(name))


def validate_smartctl_output(data: Any) -> list[str]:
    """Check that decoded ``--json`` output carries the smartctl envelope."""
    errors = sorted(get_validator(SMARTCTL_SCHEMA).iter_errors(data), key=_error_path)
    return [error.message for error in errors]


def validate_snapshot(payload: dict[str, Any]) -> list[str]:
    errors = sorted(get_validator(STATUS_SCHEMA).iter_errors(payload), key=_error_path)
    return [error.message for error in errors]
