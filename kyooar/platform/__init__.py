"""Kyooar API access: HTTP client, result types and error handling."""

from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import (
    ApiError,
    ApiRequestError,
    AppError,
    NavigationRedirect,
    SessionExpiredError,
    handle_api_error,
)
from kyooar.platform.result import Err, Ok, Result

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiRequestError",
    "AppError",
    "Err",
    "NavigationRedirect",
    "Ok",
    "Result",
    "SessionExpiredError",
    "handle_api_error",
]
