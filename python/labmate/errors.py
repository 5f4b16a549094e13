"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_CHAT_NOT_FOUND = "E_CHAT_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_PROMPT_TOO_LARGE = "E_PROMPT_TOO_LARGE"

    # Timeout (408)
    E_TIMEOUT = "E_TIMEOUT"

    # Upstream completion provider (502)
    E_UPSTREAM_UNAVAILABLE = "E_UPSTREAM_UNAVAILABLE"
    E_UPSTREAM_INVALID_RESPONSE = "E_UPSTREAM_INVALID_RESPONSE"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_CONFIGURATION = "E_CONFIGURATION"  # 500
    E_PERSISTENCE = "E_PERSISTENCE"  # 500
    E_INTERNAL = "E_INTERNAL"  # 500


ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_CHAT_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_PROMPT_TOO_LARGE: 400,
    ApiErrorCode.E_TIMEOUT: 408,
    ApiErrorCode.E_UPSTREAM_UNAVAILABLE: 502,
    ApiErrorCode.E_UPSTREAM_INVALID_RESPONSE: 502,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_CONFIGURATION: 500,
    ApiErrorCode.E_PERSISTENCE: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable summary, rendered as the "error" field
        details: Optional detail string, rendered as the "details" field
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str, details: str | None = None):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST,
        message: str = "Invalid request",
        details: str | None = None,
    ):
        super().__init__(code, message, details)


class PersistenceError(ApiError):
    """A write to the persistence store failed and was rolled back."""

    def __init__(self, details: str):
        super().__init__(ApiErrorCode.E_PERSISTENCE, "Internal server error", details)
