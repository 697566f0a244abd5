"""API error taxonomy and store-error classification."""

from enum import Enum

from pydantic import BaseModel

from llamaio.core.config import constants


class ErrorCategory(Enum):
    """Categories of errors surfaced to API clients."""

    VALIDATION = "validation"
    REFERENCE_NOT_FOUND = "reference_not_found"
    NOT_FOUND = "not_found"
    DUPLICATE_VALUE = "duplicate_value"
    INTERNAL = "internal"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Request errors
    ERR_INVALID_REQUEST = "ERR_INVALID_REQUEST"
    ERR_INVALID_QUERY_PARAMETER = "ERR_INVALID_QUERY_PARAMETER"

    # Reference errors
    ERR_ASSIGNED_USER_NOT_FOUND = "ERR_ASSIGNED_USER_NOT_FOUND"

    # Record errors
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_USER_NOT_FOUND = "ERR_USER_NOT_FOUND"
    ERR_ROUTE_NOT_FOUND = "ERR_ROUTE_NOT_FOUND"
    ERR_EMAIL_ALREADY_EXISTS = "ERR_EMAIL_ALREADY_EXISTS"

    # Generic errors
    ERR_INTERNAL = "ERR_INTERNAL"


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response envelope."""

    status_code: int = constants.HTTP_SERVER_ERROR
    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, *, code: str = ErrorCode.ERR_INTERNAL) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidRequestError(ApiError):
    """Missing or malformed fields, or malformed query parameters."""

    status_code = constants.HTTP_BAD_REQUEST
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, code: str = ErrorCode.ERR_INVALID_REQUEST) -> None:
        super().__init__(message, code=code)


class ReferenceNotFoundError(ApiError):
    """A referenced record (e.g. the assigned user) does not exist."""

    status_code = constants.HTTP_BAD_REQUEST
    category = ErrorCategory.REFERENCE_NOT_FOUND

    def __init__(self, message: str, *, code: str = ErrorCode.ERR_ASSIGNED_USER_NOT_FOUND) -> None:
        super().__init__(message, code=code)


class NotFoundError(ApiError):
    """No record for the requested id, or the id is malformed."""

    status_code = constants.HTTP_NOT_FOUND
    category = ErrorCategory.NOT_FOUND

    def __init__(self, message: str, *, code: str = ErrorCode.ERR_ROUTE_NOT_FOUND) -> None:
        super().__init__(message, code=code)


class DuplicateValueError(ApiError):
    """A unique field already holds the submitted value."""

    status_code = constants.HTTP_BAD_REQUEST
    category = ErrorCategory.DUPLICATE_VALUE

    def __init__(self, message: str, *, code: str = ErrorCode.ERR_EMAIL_ALREADY_EXISTS) -> None:
        super().__init__(message, code=code)


class ErrorResponse(BaseModel):
    """Structured error details kept for server-side logging."""

    code: str
    message: str
    status_code: int
    category: ErrorCategory


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an exception into the response it should produce.

    ApiError subclasses keep their own status and message. Everything else is an
    internal error whose details are never sent to the client.

    Args:
        exception: The exception raised while handling a request

    Returns:
        ErrorResponse with code, client-facing message, status and category
    """
    if isinstance(exception, ApiError):
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            status_code=exception.status_code,
            category=exception.category,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_INTERNAL,
        message="Internal server error",
        status_code=constants.HTTP_SERVER_ERROR,
        category=ErrorCategory.INTERNAL,
    )
