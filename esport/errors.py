"""
esport/errors.py
Centralized error taxonomy

Every failure reaches the client as

    {"success": false, "error": <label>, "message": <text>,
     "code": <ErrorCode>, "details": {...}}

with details omitted when empty.

Services raise these; the HTTP layer turns them into responses.
"""

import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode:
    """Machine-readable codes carried in the "code" field"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FIELD = "MISSING_FIELD"
    WEAK_PASSWORD = "WEAK_PASSWORD"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_INVALID = "AUTH_INVALID"
    BAD_CREDENTIALS = "BAD_CREDENTIALS"
    BAD_SIGNATURE = "BAD_SIGNATURE"

    FORBIDDEN = "FORBIDDEN"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"

    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    COMPETITION_NOT_FOUND = "COMPETITION_NOT_FOUND"
    RESULT_NOT_FOUND = "RESULT_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    SUBSCRIBER_NOT_FOUND = "SUBSCRIBER_NOT_FOUND"

    CONFLICT = "CONFLICT"
    USER_EXISTS = "USER_EXISTS"

    INVALID_STATE = "INVALID_STATE"
    STATE_TRANSITION_INVALID = "STATE_TRANSITION_INVALID"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    RATE_LIMITED = "RATE_LIMITED"

    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """OpenAPI shape of the error envelope"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Error that maps onto one HTTP status and envelope"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal Error"
    default_code: str = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Envelope as a JSONResponse with this error's status."""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(APIError):
    """400 - Missing or malformed input"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation Error"
    default_code = ErrorCode.VALIDATION_ERROR


class UnauthorizedError(APIError):
    """401 - Authentication missing, expired or wrong"""
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    default_code = ErrorCode.AUTH_REQUIRED

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None):
        super().__init__(message, code)


class NotAuthorizedError(APIError):
    """403 - Authenticated, but not allowed to act on this resource"""
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"
    default_code = ErrorCode.FORBIDDEN


class NotFoundError(APIError):
    """404 - Resource does not exist"""
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"
    default_code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None, code: Optional[str] = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(message, code)


class ConflictError(APIError):
    """409 - Duplicate resource"""
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"
    default_code = ErrorCode.CONFLICT


class InvalidStateError(APIError):
    """400 - Invalid state transition"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid State"
    default_code = ErrorCode.INVALID_STATE


class StorageError(APIError):
    """500 - Underlying persistence failure"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Storage Error"
    default_code = ErrorCode.STORAGE_ERROR

    @classmethod
    def from_exception(cls, exc: Exception, context: str = "") -> "StorageError":
        """Log a persistence failure and build a user-safe error carrying its log id."""
        log_id = new_log_id()
        logger.error(f"[{log_id}] Storage failure{' in ' + context if context else ''}: "
                     f"{type(exc).__name__}: {exc}")
        return cls("A storage error occurred. Please try again later.", details={"log_id": log_id})


def new_log_id() -> str:
    return str(uuid.uuid4())[:8]


ERROR_MAPPING = {
    400: ("Bad Request", ErrorCode.INVALID_INPUT),
    401: ("Unauthorized", ErrorCode.AUTH_REQUIRED),
    403: ("Forbidden", ErrorCode.FORBIDDEN),
    404: ("Not Found", ErrorCode.NOT_FOUND),
    409: ("Conflict", ErrorCode.CONFLICT),
    422: ("Validation Error", ErrorCode.VALIDATION_ERROR),
    429: ("Too Many Requests", ErrorCode.RATE_LIMITED),
    500: ("Internal Error", ErrorCode.INTERNAL_ERROR),
}


def get_error_summary() -> Dict[str, Any]:
    """Envelope layout, status labels and codes, served at /api/errors/health."""
    return {
        "service": "api-error-handler",
        "envelope": {
            "success": "false",
            "error": "label of the error class",
            "message": "text safe to show to a user",
            "code": "one of error_codes",
            "details": "optional object"
        },
        "status_codes": {
            str(code): label for code, (label, _) in ERROR_MAPPING.items()
        },
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if attr.isupper()
        ]
    }
