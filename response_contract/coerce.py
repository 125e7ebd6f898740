"""
String-to-primitive coercion for header values and form fields.

Headers and urlencoded fields arrive as strings; schemas declare integers,
numbers and booleans. These helpers turn the string into the declared type.

Usage:
    from response_contract.coerce import coerce_primitive

    value = coerce_primitive("42", {"type": "integer"})  # -> 42
"""

from typing import Any, Mapping, Optional

from .errors import DecodeError


def to_int(value: str, *, field: str = None) -> int:
    """
    Convert string to int.

    Raises:
        DecodeError: If value cannot be converted to int
    """
    try:
        return int(value)
    except (ValueError, TypeError):
        raise DecodeError(
            f"Expected integer, got {type(value).__name__}: {value!r}",
            field=field,
        )


def to_float(value: str, *, field: str = None) -> float:
    """
    Convert string to float.

    Raises:
        DecodeError: If value cannot be converted to float
    """
    try:
        return float(value)
    except (ValueError, TypeError):
        raise DecodeError(
            f"Expected number, got {type(value).__name__}: {value!r}",
            field=field,
        )


def to_bool(value: str, *, field: str = None) -> bool:
    """
    Convert string to bool.

    Accepts (case-insensitive):
        True: 'true', '1', 'yes', 'on'
        False: 'false', '0', 'no', 'off'

    Raises:
        DecodeError: If value is not a recognized boolean string
    """
    if isinstance(value, bool):
        return value
    lower = str(value).lower()
    if lower in ("true", "1", "yes", "on"):
        return True
    if lower in ("false", "0", "no", "off"):
        return False
    raise DecodeError(f"Expected boolean, got: {value!r}", field=field)


def schema_type(schema: Optional[Mapping[str, Any]]) -> str:
    """The declared "type" of a schema, or "" when absent or a list."""
    if not schema:
        return ""
    declared = schema.get("type")
    return declared if isinstance(declared, str) else ""


def coerce_primitive(value: Any, schema: Optional[Mapping[str, Any]], *, field: str = None) -> Any:
    """
    Coerce a string to the primitive type its schema declares.

    Non-string values and schemas without a primitive type pass through.

    Raises:
        DecodeError: If the string does not parse as the declared type
    """
    if not isinstance(value, str):
        return value
    declared = schema_type(schema)
    if declared == "integer":
        return to_int(value, field=field)
    if declared == "number":
        return to_float(value, field=field)
    if declared == "boolean":
        return to_bool(value, field=field)
    return value
