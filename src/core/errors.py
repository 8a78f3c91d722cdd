"""Error taxonomy and classification utilities for the deduplication engine."""

from enum import Enum

from pydantic import BaseModel


class DedupError(Exception):
    """Base class for all deduplication engine errors."""


class DataError(DedupError):
    """Malformed or insufficient task data (e.g. a missing embedding)."""


class ScopeMismatchError(DedupError):
    """Two tasks from different scopes reached a comparison.

    The retriever filters by scope, so this means a caller bypassed the
    filter. It is a logic fault and is never recovered from.
    """


class StoreError(DedupError):
    """Failure reported by the vector store or the review ledger."""


class ExecutionError(DedupError):
    """A single resolved decision could not be applied to the vector store."""


class ValidationError(DedupError):
    """An invalid review status or status transition was requested."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Task data errors
    ERR_MISSING_EMBEDDING = "ERR_MISSING_EMBEDDING"
    ERR_INVALID_TASK_DATA = "ERR_INVALID_TASK_DATA"
    ERR_SCOPE_MISMATCH = "ERR_SCOPE_MISMATCH"

    # Review workflow errors
    ERR_INVALID_REVIEW_STATUS = "ERR_INVALID_REVIEW_STATUS"
    ERR_PAIR_NOT_FOUND = "ERR_PAIR_NOT_FOUND"
    ERR_EXECUTION_FAILED = "ERR_EXECUTION_FAILED"

    # Collaborator errors
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error detail attached to a failed batch item."""

    code: str
    message: str
    severity: ErrorSeverity


def classify_error(exception: Exception) -> ErrorResponse:
    """Classify an exception raised while processing one batch item.

    Checks the engine's own taxonomy first, then falls back to the
    built-in exceptions the collaborators raise.

    Args:
        exception: The exception to classify

    Returns:
        ErrorResponse with code, message, and severity
    """
    message = str(exception) or exception.__class__.__name__

    if isinstance(exception, ScopeMismatchError):
        return ErrorResponse(code=ErrorCode.ERR_SCOPE_MISMATCH, message=message, severity=ErrorSeverity.CRITICAL)

    if isinstance(exception, DataError):
        code = ErrorCode.ERR_MISSING_EMBEDDING if "embedding" in message.lower() else ErrorCode.ERR_INVALID_TASK_DATA
        return ErrorResponse(code=code, message=message, severity=ErrorSeverity.MEDIUM)

    if isinstance(exception, ValidationError):
        return ErrorResponse(code=ErrorCode.ERR_INVALID_REVIEW_STATUS, message=message, severity=ErrorSeverity.LOW)

    if isinstance(exception, KeyError):
        return ErrorResponse(code=ErrorCode.ERR_PAIR_NOT_FOUND, message=message, severity=ErrorSeverity.LOW)

    if isinstance(exception, ExecutionError):
        return ErrorResponse(code=ErrorCode.ERR_EXECUTION_FAILED, message=message, severity=ErrorSeverity.HIGH)

    if isinstance(exception, StoreError | ConnectionError | TimeoutError):
        return ErrorResponse(code=ErrorCode.ERR_STORE_UNAVAILABLE, message=message, severity=ErrorSeverity.HIGH)

    return ErrorResponse(code=ErrorCode.ERR_UNKNOWN, message=message, severity=ErrorSeverity.MEDIUM)
