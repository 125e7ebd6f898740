"""
Response contract enforcement package.

Validates HTTP responses against OpenAPI 3 operations: status resolution,
declared headers, media-type negotiation and body schemas.
"""

from .errors import (
    FailureKind,
    ResponseValidationError,
    SchemaViolation,
    SchemaViolationDetail,
    DecodeError,
    ContractModelError,
)
from .options import (
    SchemaMode,
    ValidationOptions,
    DEFAULT_OPTIONS,
    options_from_env,
)
from .model import (
    SchemaRef,
    Encoding,
    MediaType,
    HeaderDefinition,
    ResponseDefinition,
    ResponseRef,
    ResponseTable,
    StatusKey,
    ContractOperation,
    build_operation,
)
from .observed import ObservedResponse
from .decoders import (
    decode_body,
    register_body_decoder,
    unregister_body_decoder,
    registered_body_decoder,
)
from .validate import validate_response, check_response
from .flask_integration import response_contract, init_response_validation

__all__ = [
    'FailureKind',
    'ResponseValidationError',
    'SchemaViolation',
    'SchemaViolationDetail',
    'DecodeError',
    'ContractModelError',
    'SchemaMode',
    'ValidationOptions',
    'DEFAULT_OPTIONS',
    'options_from_env',
    'SchemaRef',
    'Encoding',
    'MediaType',
    'HeaderDefinition',
    'ResponseDefinition',
    'ResponseRef',
    'ResponseTable',
    'StatusKey',
    'ContractOperation',
    'build_operation',
    'ObservedResponse',
    'decode_body',
    'register_body_decoder',
    'unregister_body_decoder',
    'registered_body_decoder',
    'validate_response',
    'check_response',
    'response_contract',
    'init_response_validation',
]
