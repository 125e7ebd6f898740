"""
Validation options and enforcement mode.

ValidationOptions is immutable and shared by reference across concurrent
validation calls. DEFAULT_OPTIONS is used whenever a caller passes none.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import SchemaViolationDetail


class SchemaMode(Enum):
    """Contract enforcement mode for the Flask integration."""
    WARN = "warn"      # Log violations, don't fail (production default)
    STRICT = "strict"  # Fail on violations (dev/staging)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() == "true"


def get_default_mode() -> SchemaMode:
    """Get schema mode from environment."""
    mode = os.environ.get('CONTRACT_MODE', 'warn').lower()
    return SchemaMode.STRICT if mode == 'strict' else SchemaMode.WARN


@dataclass(frozen=True)
class ValidationOptions:
    """Policy switches for response validation."""
    include_undocumented_status_as_error: bool = False
    exclude_body_validation: bool = False
    multi_error: bool = False          # Only affects body schema violations
    error_message_formatter: Optional[Callable[[SchemaViolationDetail], str]] = None


DEFAULT_OPTIONS = ValidationOptions()


def options_from_env() -> ValidationOptions:
    """
    Build ValidationOptions from environment variables.

    Env vars (all default to false):
      - RESPONSE_CONTRACT_INCLUDE_UNDOCUMENTED_STATUS
      - RESPONSE_CONTRACT_EXCLUDE_BODY
      - RESPONSE_CONTRACT_MULTI_ERROR
    """
    return ValidationOptions(
        include_undocumented_status_as_error=_env_flag("RESPONSE_CONTRACT_INCLUDE_UNDOCUMENTED_STATUS"),
        exclude_body_validation=_env_flag("RESPONSE_CONTRACT_EXCLUDE_BODY"),
        multi_error=_env_flag("RESPONSE_CONTRACT_MULTI_ERROR"),
    )
