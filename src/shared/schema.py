"""JSON Schema validation utilities."""

from typing import Any

from jsonschema import Draft7Validator


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def object_schema(
    properties: dict[str, dict[str, Any]],
    required: list[str] | None = None
) -> dict[str, Any]:
    """
    Build an object JSON Schema for tool input.

    Args:
        properties: Property name to property schema
        required: Names of required properties

    Returns:
        JSON Schema dictionary
    """
    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }
    if required:
        schema["required"] = required
    return schema
