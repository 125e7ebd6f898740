"""
Failure types raised by response validation.

Every failure the pipeline can produce is a ResponseValidationError with a
FailureKind. Collaborator errors (schema engine, body decoder, contract
model) have their own exception classes and are chained as the cause.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureKind(Enum):
    """Why a response failed validation."""
    UNDOCUMENTED_STATUS = "undocumented_status"
    UNRESOLVED_RESPONSE = "unresolved_response"
    MISSING_HEADER = "missing_header"
    HEADER_SCHEMA_MISMATCH = "header_schema_mismatch"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"
    BODY_READ_FAILURE = "body_read_failure"
    BODY_DECODE_FAILURE = "body_decode_failure"
    BODY_SCHEMA_MISMATCH = "body_schema_mismatch"
    CANCELLED = "cancelled"


@dataclass
class ResponseValidationError(Exception):
    """Raised when a response does not conform to its contract operation."""
    kind: FailureKind
    message: str
    cause: Optional[BaseException] = None
    response: Any = field(default=None, repr=False, compare=False)
    operation: Any = field(default=None, repr=False, compare=False)

    def __str__(self):
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        details: Dict[str, Any] = {"kind": self.kind.value}
        violations = getattr(self.cause, "violations", None)
        if violations:
            details["violations"] = [v.to_dict() for v in violations]
        elif self.cause is not None:
            details["cause"] = str(self.cause)
        return {
            "message": self.message,
            "details": details,
        }


@dataclass
class SchemaViolationDetail:
    """A single leaf violation reported by the schema engine."""
    path: List[Any]
    reason: str
    keyword: str = ""

    @property
    def pointer(self) -> str:
        """JSON pointer to the offending value ("" for the root)."""
        if not self.path:
            return ""
        return "/" + "/".join(
            str(p).replace("~", "~0").replace("/", "~1") for p in self.path
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.pointer,
            "error": self.keyword or "schema",
            "message": self.reason,
        }


class SchemaViolation(Exception):
    """Raised by the schema engine when a value does not match its schema."""

    def __init__(self, violations: List[SchemaViolationDetail], messages: List[str]):
        super().__init__("\n".join(messages))
        self.violations = violations
        self.messages = messages


class DecodeError(ValueError):
    """Raised when a response body cannot be decoded."""

    def __init__(self, message: str, content_type: str = None, field: str = None):
        super().__init__(message)
        self.content_type = content_type
        self.field = field


class ContractModelError(ValueError):
    """Raised when an operation mapping cannot be turned into a contract model."""
