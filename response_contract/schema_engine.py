"""
Schema matching for decoded values - OpenAPI 3.0 dialect on jsonschema.

OpenAPI 3.0 schemas are Draft 4 plus a few keywords of their own:
- nullable: true admits None regardless of "type"
- writeOnly properties must not appear in responses and are exempt from
  "required" there; readOnly properties get the same treatment in requests
- $ref is resolved lazily against the contract document, so recursive
  schemas validate without being inlined
"""

import logging
from typing import Any, Callable, List, Mapping, Optional

from jsonschema import Draft4Validator, validators
from jsonschema.exceptions import ValidationError as JsonSchemaError

from .errors import ContractModelError, SchemaViolation, SchemaViolationDetail
from .model import SchemaRef, resolve_pointer

logger = logging.getLogger('response_contract.schema')

Formatter = Callable[[SchemaViolationDetail], str]

_BASE = Draft4Validator
_base_type = _BASE.VALIDATORS["type"]
_base_required = _BASE.VALIDATORS["required"]
_base_properties = _BASE.VALIDATORS["properties"]


def default_formatter(detail: SchemaViolationDetail) -> str:
    """Error at "/path": reason (the location is omitted for the root)."""
    if detail.pointer:
        return f'Error at "{detail.pointer}": {detail.reason}'
    return detail.reason


def _validator_class(document: Optional[Mapping[str, Any]], as_response: bool):
    hidden = "writeOnly" if as_response else "readOnly"
    direction = "response" if as_response else "request"

    def resolve(subschema):
        seen = set()
        while isinstance(subschema, Mapping) and "$ref" in subschema:
            ref = subschema["$ref"]
            if ref in seen:
                break
            seen.add(ref)
            try:
                subschema = resolve_pointer(document, ref)
            except ContractModelError:
                return {}
        return subschema if isinstance(subschema, Mapping) else {}

    def nullable_type(validator, types, instance, schema):
        if instance is None and schema.get("nullable") is True:
            return
        yield from _base_type(validator, types, instance, schema)

    def directional_required(validator, required, instance, schema):
        if not validator.is_type(instance, "object"):
            return
        properties = schema.get("properties") or {}
        visible = [
            name for name in required
            if not resolve(properties.get(name, {})).get(hidden)
        ]
        yield from _base_required(validator, visible, instance, schema)

    def directional_properties(validator, properties, instance, schema):
        if not validator.is_type(instance, "object"):
            return
        for name, subschema in properties.items():
            if name in instance and resolve(subschema).get(hidden):
                yield JsonSchemaError(
                    f"{name!r} is {hidden} and must not be present in a {direction}",
                    path=[name],
                )
        yield from _base_properties(validator, properties, instance, schema)

    def lazy_ref(validator, ref, instance, schema):
        try:
            target = resolve_pointer(document, ref)
        except ContractModelError as err:
            yield JsonSchemaError(str(err))
            return
        yield from validator.descend(instance, target)

    return validators.extend(
        _BASE,
        {
            "type": nullable_type,
            "required": directional_required,
            "properties": directional_properties,
            "$ref": lazy_ref,
        },
    )


def _to_detail(error: JsonSchemaError) -> SchemaViolationDetail:
    return SchemaViolationDetail(
        path=list(error.absolute_path),
        reason=error.message,
        keyword=str(error.validator) if error.validator else "",
    )


def collect_violations(
    value: Any,
    schema: Mapping[str, Any],
    *,
    as_response: bool = True,
    multi_error: bool = False,
    document: Optional[Mapping[str, Any]] = None,
) -> List[SchemaViolationDetail]:
    """
    Match a value against a schema mapping.

    Returns:
        Leaf violations - at most one unless multi_error is set
    """
    cls = _validator_class(document, as_response)
    validator = cls(dict(schema), format_checker=_BASE.FORMAT_CHECKER)
    errors = validator.iter_errors(value)
    if not multi_error:
        first = next(iter(errors), None)
        return [_to_detail(first)] if first is not None else []
    return [_to_detail(error) for error in errors]


def visit_value(
    value: Any,
    schema_ref: Optional[SchemaRef],
    *,
    as_response: bool = True,
    multi_error: bool = False,
    formatter: Optional[Formatter] = None,
    document: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Match a decoded value against a declared schema.

    Args:
        value: The decoded value
        schema_ref: Declared schema; None or an empty value matches anything
        as_response: Direction marker (response vs request)
        multi_error: Report every violation instead of the first
        formatter: Turns a violation into a message (default_formatter if None)
        document: Contract document for local $refs

    Raises:
        SchemaViolation: If the value does not match
    """
    if schema_ref is None or not schema_ref.value:
        return
    details = collect_violations(
        value,
        schema_ref.value,
        as_response=as_response,
        multi_error=multi_error,
        document=document,
    )
    if not details:
        return
    fmt = formatter or default_formatter
    messages = [fmt(detail) for detail in details]
    logger.debug(f"Schema mismatch: {len(details)} violation(s)")
    raise SchemaViolation(details, messages)

