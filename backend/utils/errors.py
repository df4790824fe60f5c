"""
Centralized Error Handling Utilities

Provides the query pipeline exception hierarchy, user-facing messages and a
consistent error response format.
"""

from typing import Optional, Dict, Any
from enum import Enum
import structlog
from fastapi import status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for consistent API responses"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Result shaping
    EMPTY_RESULT = "EMPTY_RESULT"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_RESULT_SHAPE = "INVALID_RESULT_SHAPE"

    # Upstream services
    LLM_SERVICE_ERROR = "LLM_SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    DATABASE_CONNECTION_ERROR = "DATABASE_CONNECTION_ERROR"


# User-friendly error messages (do not expose internal details)
USER_FRIENDLY_MESSAGES = {
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again later.",
    ErrorCode.VALIDATION_ERROR: "The request contains invalid data. Please check your input.",
    ErrorCode.NOT_FOUND: "The requested resource was not found.",

    ErrorCode.EMPTY_RESULT: "No data returned from the query.",
    ErrorCode.INVALID_VALUE: "The query returned a value that cannot be charted.",
    ErrorCode.INVALID_RESULT_SHAPE: "The query results cannot be charted.",

    ErrorCode.LLM_SERVICE_ERROR: "Error processing query",
    ErrorCode.DATABASE_ERROR: "Database query error",
    ErrorCode.DATABASE_CONNECTION_ERROR: "Database query error",
}


class QueryPipelineError(Exception):
    """Base class for failures that end a query submission"""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or USER_FRIENDLY_MESSAGES[self.code]
        self.details = details
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.message


class ShapingError(QueryPipelineError):
    """Query results cannot be turned into a chart dataset"""

    code = ErrorCode.INVALID_RESULT_SHAPE
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class EmptyResultError(ShapingError):
    code = ErrorCode.EMPTY_RESULT


class InvalidResultShapeError(ShapingError):
    code = ErrorCode.INVALID_RESULT_SHAPE


class InvalidValueError(ShapingError):
    """A value field entry is neither a number, null, nor a numeric string"""

    code = ErrorCode.INVALID_VALUE

    def __init__(self, field: str, value: Any, row_index: int):
        self.field = field
        self.value = value
        self.row_index = row_index
        super().__init__(
            f"Value {value!r} in field '{field}' (row {row_index + 1}) is not numeric.",
            details={"field": field, "row": row_index},
        )


class SessionNotFoundError(QueryPipelineError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Query session '{session_id}' was not found.")


class UpstreamError(QueryPipelineError):
    """
    A downstream service (completion API or database) failed.

    The user only ever sees the generic message for the code; the underlying
    cause is kept on the exception for logging.
    """

    def __init__(self, log_message: str, cause: Optional[BaseException] = None):
        self.log_message = log_message
        self.cause = cause
        super().__init__()


class CompletionServiceError(UpstreamError):
    code = ErrorCode.LLM_SERVICE_ERROR


class DatabaseQueryError(UpstreamError):
    code = ErrorCode.DATABASE_ERROR


class DatabaseUnavailableError(UpstreamError):
    code = ErrorCode.DATABASE_CONNECTION_ERROR
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def create_error_response(
    code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        code: Error code enum
        message: Optional custom message (defaults to user-friendly message)
        details: Optional additional details (be careful not to expose sensitive info)

    Returns:
        Standardized error response dict: ``{"error": <message>, "code": <code>}``
    """
    return {
        "error": message or USER_FRIENDLY_MESSAGES.get(code, USER_FRIENDLY_MESSAGES[ErrorCode.INTERNAL_ERROR]),
        "code": code.value,
        **({"details": details} if details else {}),
    }


def error_response(exc: QueryPipelineError) -> JSONResponse:
    """
    Convert a pipeline exception into a JSON error response.

    Upstream failures are logged with their cause and answered with the
    generic message only.
    """
    if isinstance(exc, UpstreamError):
        logger.error(
            exc.log_message,
            code=exc.code.value,
            error=str(exc.cause) if exc.cause else None,
            exc_info=exc.cause,
        )
    else:
        logger.info("Query could not be charted", code=exc.code.value, reason=exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.code, exc.user_message, exc.details),
    )
