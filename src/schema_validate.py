"""JSON Schema validation helpers for configuration documents.

Wraps jsonschema Draft7 validation and reports the first error with the
offending JSON path.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from common.errors import ConfigError


class SchemaError(ConfigError):
    """Raised when data fails to validate against a provided schema."""


def validate(schema: Dict[str, Any], data: Any, label: str = "configuration") -> None:
    """Validate ``data`` strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data:   Payload to validate.
        label:  Name used in the error message.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        msg = f"Invalid {label} at '{path}': {first.message}"
        raise SchemaError(msg)
