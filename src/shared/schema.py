"""Input schemas for tools.

Schemas are checked and compiled once, when a tool registers, so a
malformed schema fails at startup instead of on the first call.
"""

from typing import Any

from jsonschema import Draft7Validator, ValidationError


def compile_validator(schema: dict[str, Any]) -> Draft7Validator:
    """
    Check a tool input schema and build its validator.

    Raises:
        jsonschema.SchemaError: If the schema itself is invalid
    """
    Draft7Validator.check_schema(schema)
    return Draft7Validator(schema)


def _describe(error: ValidationError) -> str:
    if not error.path:
        return error.message
    return f"{'.'.join(str(p) for p in error.path)}: {error.message}"


def argument_errors(validator: Draft7Validator, arguments: Any) -> list[str]:
    """Readable validation errors, ordered by argument path."""
    errors = sorted(validator.iter_errors(arguments), key=lambda e: [str(p) for p in e.path])
    return [_describe(e) for e in errors]


def object_schema(
    properties: dict[str, dict[str, Any]],
    required: list[str] | None = None,
    **extra: Any
) -> dict[str, Any]:
    """
    Object input schema in the shape MCP clients expect.

    ``extra`` carries further top-level keywords such as ``anyOf``.
    """
    return {
        "type": "object",
        "properties": properties,
        "required": list(required or []),
        **extra,
    }
