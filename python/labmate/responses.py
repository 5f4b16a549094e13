"""API response envelope helpers and exception handlers.

Success responses for resource endpoints use { "data": ... }. The relay
endpoint returns its own flat body { "response": ..., "chatId": ... }.

Every error uses a single flat shape:
    { "error": "<summary>", "details": "<detail>", "code": "E_...", "request_id": "..." }
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from labmate.errors import ApiError, ApiErrorCode
from labmate.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(data: Any) -> dict[str, Any]:
    """Wrap response data in the success envelope."""
    return {"data": data}


def error_response(
    code: ApiErrorCode,
    message: str,
    details: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create an error response body.

    Args:
        code: The error code enum value.
        message: Human-readable error summary.
        details: Detail string; defaults to the summary when not given.
        request_id: Optional request ID (auto-populated from context if None).

    Returns:
        Dict with error, details, code and (when known) request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {
        "error": message,
        "details": details if details is not None else message,
        "code": code.value,
    }
    if request_id:
        body["request_id"] = request_id

    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle Starlette HTTPException (404 for unknown routes, 405, ...)."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
