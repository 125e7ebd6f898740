"""
Flask integration - validates outgoing responses against their contract.

Usage:
    @bp.route("/pets/<int:pet_id>", methods=["GET"])
    @response_contract(get_pet_operation)
    def get_pet(pet_id):
        ...

or, for a whole app:

    init_response_validation(app, operation_for=lookup_operation)

In WARN mode violations are logged and the response goes out untouched.
In STRICT mode the response is replaced by a 500 error envelope:
{
    "error": {
        "code": "RESPONSE_SCHEMA_MISMATCH",
        "message": "Response does not match contract",
        "details": {...}
    }
}
"""

import functools
import logging
from typing import Callable, Optional

from flask import Flask, Response, jsonify, make_response, request

from .errors import ResponseValidationError
from .model import ContractOperation
from .observed import ObservedResponse
from .options import SchemaMode, ValidationOptions, get_default_mode
from .validate import check_response

logger = logging.getLogger('response_contract.flask')

OperationResolver = Callable[[object], Optional[ContractOperation]]


def _enforce(
    response: Response,
    operation: ContractOperation,
    options: Optional[ValidationOptions],
    mode: SchemaMode,
    endpoint: str,
) -> Response:
    if response.direct_passthrough:
        # File responses (send_file) cannot be buffered without consuming them
        logger.debug(f"Skipping validation for passthrough response from {endpoint}")
        return response
    observed = ObservedResponse.from_flask(response, method=request.method)
    error = check_response(observed, operation, options)
    if error is None:
        return response

    if mode == SchemaMode.STRICT:
        _log_violation(endpoint, error, logging.ERROR)
        return _make_error_response(error)
    _log_violation(endpoint, error, logging.WARNING)
    return response


def response_contract(
    operation: ContractOperation,
    options: Optional[ValidationOptions] = None,
    mode: Optional[SchemaMode] = None,
):
    """
    Decorator that validates a route handler's response against operation.

    Args:
        operation: The contract operation the handler implements
        options: Validation options (DEFAULT_OPTIONS if None)
        mode: WARN or STRICT (CONTRACT_MODE env var if None)
    """
    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> Response:
            response = make_response(fn(*args, **kwargs))
            effective_mode = mode or get_default_mode()
            return _enforce(response, operation, options, effective_mode, fn.__name__)

        return wrapper
    return decorator


def init_response_validation(
    app: Flask,
    operation_for: OperationResolver,
    options: Optional[ValidationOptions] = None,
    mode: Optional[SchemaMode] = None,
) -> None:
    """
    Validate every response of app in an after_request hook.

    Args:
        app: Flask application instance
        operation_for: request -> ContractOperation, or None to skip
        options: Validation options (DEFAULT_OPTIONS if None)
        mode: WARN or STRICT (CONTRACT_MODE env var if None)
    """

    @app.after_request
    def _validate_response(response):
        operation = operation_for(request)
        if operation is None:
            logger.debug(f"No contract for endpoint '{request.endpoint}', passing through")
            return response
        effective_mode = mode or get_default_mode()
        return _enforce(response, operation, options, effective_mode, request.endpoint or request.path)


def _make_error_response(error: ResponseValidationError) -> Response:
    """Build standardized error response."""
    response = jsonify({
        "error": {
            "code": "RESPONSE_SCHEMA_MISMATCH",
            "message": "Response does not match contract",
            "details": error.to_dict(),
        }
    })
    response.status_code = 500
    return response


def _log_violation(endpoint: str, error: ResponseValidationError, level: int) -> None:
    """Log contract violation for observability."""
    logger.log(
        level,
        f"Contract violation: endpoint={endpoint} kind={error.kind.value} "
        f"message={error}",
        extra={
            "event": "response_contract_violation",
            "endpoint": endpoint,
            "kind": error.kind.value,
            "details": error.to_dict(),
        },
    )
