"""
Response validation pipeline.

Validates an observed response against the contract operation that produced
it. Stages run in order and any of them can end the pipeline:

1. Eligibility    - HEAD requests and redirect/not-modified statuses skip
2. Resolution     - status -> declared response (exact, range, default)
3. Headers        - declared headers, sorted by name, first failure wins
4. Negotiation    - Content-Type -> declared media type
5. Body           - read, restore, decode, schema-check

The only side effect is on the response body stream: it is read once and
replaced by a snapshot of the same bytes before the pipeline returns. If
validation is cancelled mid-read, the replacement yields the bytes already
read followed by the unread rest of the original stream.
"""

import logging
from contextlib import closing
from typing import Any, Optional

from .coerce import coerce_primitive
from .decoders import decode_body
from .errors import DecodeError, FailureKind, ResponseValidationError, SchemaViolation
from .media_types import match_media_type
from .model import ContractOperation, MediaType, ResponseDefinition
from .observed import ObservedResponse, ResumedBody
from .options import DEFAULT_OPTIONS, ValidationOptions
from .schema_engine import visit_value

logger = logging.getLogger('response_contract.validate')

# Never validated, whatever the contract says
SKIP_METHODS = frozenset({"HEAD"})
SKIP_STATUSES = frozenset({301, 304, 307, 308})

READ_CHUNK_SIZE = 64 * 1024


def is_exempt(method: str, status: int) -> bool:
    """True when a response needs no validation at all."""
    return method.upper() in SKIP_METHODS or status in SKIP_STATUSES


def _fail(
    kind: FailureKind,
    message: str,
    response: ObservedResponse,
    operation: ContractOperation,
    cause: Optional[BaseException] = None,
) -> ResponseValidationError:
    return ResponseValidationError(
        kind=kind,
        message=message,
        cause=cause,
        response=response,
        operation=operation,
    )


def _check_cancelled(cancel, stage: str, response, operation) -> None:
    if cancel is not None and cancel.is_set():
        raise _fail(FailureKind.CANCELLED, f"validation cancelled before {stage}", response, operation)


# =============================================================================
# STAGES
# =============================================================================

def _resolve_definition(
    response: ObservedResponse,
    operation: ContractOperation,
    options: ValidationOptions,
) -> Optional[ResponseDefinition]:
    """Declared response for the observed status, or None if nothing to check."""
    responses = operation.responses
    if len(responses) == 0:
        return None

    entry = responses.lookup(response.status)
    if entry is None:
        # Undocumented statuses are assumed intentional unless asked otherwise
        if not options.include_undocumented_status_as_error:
            logger.debug(f"Status {response.status} not documented, skipping")
            return None
        raise _fail(FailureKind.UNDOCUMENTED_STATUS, "status is not supported", response, operation)

    if entry.value is None:
        message = "response has not been resolved"
        if entry.ref:
            message = f"{message} ({entry.ref})"
        raise _fail(FailureKind.UNRESOLVED_RESPONSE, message, response, operation)
    return entry.value


def _validate_headers(
    response: ObservedResponse,
    operation: ContractOperation,
    definition: ResponseDefinition,
    options: ValidationOptions,
) -> None:
    for header in definition.sorted_headers():
        raw = response.headers.get(header.name)
        if not raw:
            if header.required:
                raise _fail(
                    FailureKind.MISSING_HEADER,
                    f'response header "{header.name}" missing',
                    response,
                    operation,
                )
            continue

        if header.schema_ref is None:
            continue
        try:
            value: Any = coerce_primitive(raw, header.schema_ref.value, field=header.name)
        except DecodeError:
            # Let the schema engine report the type mismatch
            value = raw
        try:
            # Header violations are single-cause even in multi-error mode
            visit_value(
                value,
                header.schema_ref,
                as_response=True,
                multi_error=False,
                formatter=options.error_message_formatter,
                document=operation.document,
            )
        except SchemaViolation as err:
            raise _fail(
                FailureKind.HEADER_SCHEMA_MISMATCH,
                f'response header "{header.name}" doesn\'t match the schema',
                response,
                operation,
                cause=err,
            ) from err


def _negotiate_content(
    response: ObservedResponse,
    operation: ContractOperation,
    definition: ResponseDefinition,
    options: ValidationOptions,
) -> Optional[MediaType]:
    """Matched media type, or None when there is no body to check."""
    if options.exclude_body_validation or not definition.content:
        return None

    raw = response.content_type
    media_type = match_media_type(definition.content, raw)
    if media_type is None:
        raise _fail(
            FailureKind.UNSUPPORTED_CONTENT_TYPE,
            f'response header Content-Type has unexpected value: "{raw}"',
            response,
            operation,
        )
    if media_type.schema_ref is None:
        return None
    return media_type


def _read_into(stream, buffer: bytearray, cancel) -> bool:
    """Read stream to exhaustion into buffer. Returns False if cancelled."""
    while True:
        if cancel is not None and cancel.is_set():
            return False
        chunk = stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return True
        buffer.extend(chunk)


def _validate_body(
    response: ObservedResponse,
    operation: ContractOperation,
    media_type: MediaType,
    options: ValidationOptions,
    cancel,
) -> None:
    # Detach first so nobody sees a half-read stream
    body = response.take_body()
    captured = bytearray()
    if body is None:
        response.set_body_bytes(b"")
    else:
        try:
            completed = _read_into(body, captured, cancel)
        except Exception as err:
            response.set_body_bytes(bytes(captured))
            body.close()
            raise _fail(
                FailureKind.BODY_READ_FAILURE,
                "failed to read response body",
                response,
                operation,
                cause=err,
            ) from err
        if not completed:
            # The restored body owns the unread remainder and its close
            response.set_body(ResumedBody(bytes(captured), body))
            raise _fail(FailureKind.CANCELLED, "validation cancelled while reading body", response, operation)
        with closing(body):
            response.set_body_bytes(bytes(captured))

    data = bytes(captured)
    try:
        value = decode_body(
            data,
            response.headers,
            media_type.schema_ref,
            media_type.encoding_for,
            document=operation.document,
        )
    except DecodeError as err:
        raise _fail(
            FailureKind.BODY_DECODE_FAILURE,
            "failed to decode response body",
            response,
            operation,
            cause=err,
        ) from err

    _check_cancelled(cancel, "body schema check", response, operation)
    try:
        visit_value(
            value,
            media_type.schema_ref,
            as_response=True,
            multi_error=options.multi_error,
            formatter=options.error_message_formatter,
            document=operation.document,
        )
    except SchemaViolation as err:
        schema_id = media_type.schema_ref.identifier
        if schema_id:
            schema_id = " " + schema_id
        raise _fail(
            FailureKind.BODY_SCHEMA_MISMATCH,
            f"response body doesn't match schema{schema_id}",
            response,
            operation,
            cause=err,
        ) from err


# =============================================================================
# ENTRY POINTS
# =============================================================================

def validate_response(
    response: ObservedResponse,
    operation: ContractOperation,
    options: Optional[ValidationOptions] = None,
    cancel=None,
) -> None:
    """
    Validate an observed response against its contract operation.

    Args:
        response: The response under test; its body is restored afterwards
        operation: The resolved contract operation
        options: Policy switches (DEFAULT_OPTIONS if None)
        cancel: Optional object with is_set() (e.g. threading.Event)

    Raises:
        ResponseValidationError: If the response does not conform
    """
    if is_exempt(response.method, response.status):
        logger.debug(f"Skipping validation for {response.method} {response.status}")
        return
    if options is None:
        options = DEFAULT_OPTIONS

    _check_cancelled(cancel, "response resolution", response, operation)
    definition = _resolve_definition(response, operation, options)
    if definition is None:
        return

    _check_cancelled(cancel, "header validation", response, operation)
    _validate_headers(response, operation, definition, options)

    _check_cancelled(cancel, "content negotiation", response, operation)
    media_type = _negotiate_content(response, operation, definition, options)
    if media_type is None:
        return

    _check_cancelled(cancel, "body validation", response, operation)
    _validate_body(response, operation, media_type, options, cancel)


def check_response(
    response: ObservedResponse,
    operation: ContractOperation,
    options: Optional[ValidationOptions] = None,
    cancel=None,
) -> Optional[ResponseValidationError]:
    """
    Like validate_response, but return the failure instead of raising it.

    Returns:
        The ResponseValidationError, or None if the response conforms
    """
    try:
        validate_response(response, operation, options, cancel)
    except ResponseValidationError as err:
        return err
    return None
