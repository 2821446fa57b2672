"""Argument validation against JSON schemas.

Tool arguments and approval payloads arrive as untyped JSON; both are checked
with jsonschema before any tool code sees them.
"""

from __future__ import annotations

from typing import Any

from inbox_a2a.core.errors import ValidationError

# Parameters every tool accepts in addition to its declared schema.
# ``approved``/``action_data`` carry an approval commit into the tool.
APPROVAL_PARAMS = {"approved", "action_data"}


def _describe(error: Any) -> str:
    """Render a jsonschema error with the path of the offending value."""
    path = ".".join(str(p) for p in error.absolute_path)
    if path:
        return f"{path}: {error.message}"
    return error.message


def validate_tool_arguments(
    arguments: dict[str, Any],
    schema: dict[str, Any],
    logger: Any = None,
) -> dict[str, Any]:
    """Validate tool arguments against JSON schema.

    Unknown parameters are dropped (with a warning when a logger is given)
    rather than rejected.

    Args:
        arguments: Arguments supplied by the caller.
        schema: The JSON schema for the tool's parameters.
        logger: Optional logger for warnings about unknown params.

    Returns:
        Dict containing only known parameters plus approval parameters.

    Raises:
        ValidationError: If required params are missing or types don't match.
    """
    import jsonschema

    try:
        jsonschema.validate(arguments, schema)
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Invalid argument: {_describe(e)}") from e

    schema_props = set(schema.get("properties", {}).keys())
    extras = set(arguments.keys()) - schema_props - APPROVAL_PARAMS
    if extras and logger:
        logger.warning("Unknown tool arguments (ignored): %s", sorted(extras))

    return {
        k: v for k, v in arguments.items()
        if k in schema_props or k in APPROVAL_PARAMS
    }


def validate_payload(payload: Any, schema: dict[str, Any], label: str) -> None:
    """Check an arbitrary JSON value against a schema.

    Raises:
        ValidationError: With ``label`` prefixed to the first violation.
    """
    import jsonschema

    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Invalid {label}: {_describe(e)}") from e
