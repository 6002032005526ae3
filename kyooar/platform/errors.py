"""
Consistent error handling for the Kyooar console.

Two families live here:

- AppError and subclasses: errors the console itself returns to a browser,
  rendered by ErrorHandlerMiddleware with a correlation ID and never a stack
  trace.
- ApiError and friends: failures reported by the Kyooar API. A call either
  fails at the HTTP level (non-2xx) or returns a domain error envelope
  ``{"success": false, "error": {"code", "message", "details"}}`` with a 2xx
  status. Both become an ApiError.

EMAIL_NOT_VERIFIED is special: it arrives as 403 but must not end the session.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(AppError):
    """Validation error (400)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ApiError(Exception):
    """A failed Kyooar API call."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def is_email_not_verified(self) -> bool:
        return self.code == EMAIL_NOT_VERIFIED

    @property
    def is_auth_failure(self) -> bool:
        """401/403 that should end the session."""
        return self.status_code in (401, 403) and not self.is_email_not_verified

    @classmethod
    def from_body(cls, body: Any, status_code: Optional[int] = None, fallback: str = DEFAULT_ERROR_MESSAGE) -> "ApiError":
        """Build from a response body, reading ``error`` or ``message`` when present."""
        code = None
        message = None
        details: dict = {}
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message")
                details = error.get("details") or {}
                if not isinstance(details, dict):
                    details = {"details": details}
            elif isinstance(error, str):
                message = error
            if not message and isinstance(body.get("message"), str):
                message = body["message"]
        return cls(message or fallback, code=code, status_code=status_code, details=details)

    def __repr__(self) -> str:
        return f"ApiError(code={self.code!r}, status_code={self.status_code!r}, message={self.message!r})"


class SessionExpiredError(ApiError):
    """Raised after a 401/403 ended the session; navigation goes to login."""

    def __init__(self, original: ApiError, redirect_to: str = "/login"):
        super().__init__(
            original.message,
            code=original.code,
            status_code=original.status_code,
            details=original.details,
        )
        self.redirect_to = redirect_to


class ApiRequestError(Exception):
    """Normalized error raised by API wrapper functions; carries a display message."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def code(self) -> Optional[str]:
        return getattr(self.cause, "code", None)


class NavigationRedirect(Exception):
    """Aborts a page load; rendered as a redirect response."""

    def __init__(self, location: str, status_code: int = status.HTTP_303_SEE_OTHER):
        super().__init__(location)
        self.location = location
        self.status_code = status_code


def handle_api_error(error: Any) -> str:
    """Best display message for any error raised around an API call."""
    if isinstance(error, ApiError) and error.message:
        return error.message

    response = getattr(error, "response", None)
    if response is not None:
        try:
            body = response.json()
        except Exception:
            body = None
        if isinstance(body, dict):
            error_block = body.get("error")
            if isinstance(error_block, dict) and error_block.get("message"):
                return str(error_block["message"])
            if body.get("message"):
                return str(body["message"])

    message = str(error) if error is not None else ""
    return message or DEFAULT_ERROR_MESSAGE


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())


def get_correlation_id(request: Request) -> str:
    """
    Get correlation ID from request or generate new one.

    Checks X-Correlation-ID header first, then request state.
    """
    correlation_id = request.headers.get("X-Correlation-ID")
    if correlation_id:
        return correlation_id

    if hasattr(request.state, "correlation_id"):
        return request.state.correlation_id

    return generate_correlation_id()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches all exceptions and returns consistent error responses.

    IMPORTANT: Stack traces are NEVER returned to clients.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = get_correlation_id(request)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except AppError as e:
            logger.warning(
                "Application error",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": e.code,
                    "status_code": e.status_code,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers={"X-Correlation-ID": correlation_id},
            )

        except ApiError as e:
            # Upstream failures the page did not handle itself
            logger.warning(
                "Upstream API error",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": e.code,
                    "upstream_status": e.status_code,
                    "path": request.url.path,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={
                    "error": {
                        "code": e.code or "UPSTREAM_ERROR",
                        "message": e.message,
                        "details": {},
                    }
                },
                headers={"X-Correlation-ID": correlation_id},
            )

        except HTTPException as e:
            logger.warning(
                "HTTP exception",
                extra={
                    "correlation_id": correlation_id,
                    "status_code": e.status_code,
                    "detail": e.detail,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content={
                    "error": {
                        "code": "HTTP_ERROR",
                        "message": str(e.detail),
                        "details": {},
                    }
                },
                headers={"X-Correlation-ID": correlation_id},
            )

        except Exception as e:
            logger.exception(
                "Unhandled exception",
                extra={
                    "correlation_id": correlation_id,
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": DEFAULT_ERROR_MESSAGE,
                        "details": {"correlation_id": correlation_id},
                    }
                },
                headers={"X-Correlation-ID": correlation_id},
            )
