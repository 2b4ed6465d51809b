"""Error taxonomy and FastAPI exception handlers.

Every failure the service reports is an :class:`AppError` carrying an
:class:`ErrorCategory`.  Low-level exceptions (database, HTTP, provider SDK,
JSON decoding) are folded into the taxonomy by :func:`categorize_error`, and
the handlers at the bottom of this module turn them into a fixed status code
plus a ``{"error": message}`` body.
"""

import json
import logging
from enum import Enum

import httpx
import openai
from fastapi import Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from pageturner.core.constants import MESSAGES

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    AUTH = "auth"
    BOOK = "book"
    SEARCH = "search"
    API = "api"
    DATA = "data"
    NETWORK = "network"
    UNKNOWN = "unknown"


CATEGORY_STATUS = {
    ErrorCategory.AUTH: 401,
    ErrorCategory.BOOK: 404,
    ErrorCategory.SEARCH: 400,
    ErrorCategory.API: 502,
    ErrorCategory.NETWORK: 504,
    ErrorCategory.DATA: 500,
    ErrorCategory.UNKNOWN: 500,
}


class AppError(Exception):
    """Base exception for PageTurner."""

    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str = MESSAGES["general"], code: str | None = None):
        self.message = message
        self.code = code or f"{self.category.value}/error"
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return CATEGORY_STATUS[self.category]


class AuthError(AppError):
    category = ErrorCategory.AUTH


class BookError(AppError):
    category = ErrorCategory.BOOK


class SearchError(AppError):
    category = ErrorCategory.SEARCH


class ProviderAPIError(AppError):
    """Generative provider rejected or failed the request."""

    category = ErrorCategory.API


class DataError(AppError):
    category = ErrorCategory.DATA


class NetworkError(AppError):
    """Outbound call could not complete (connection failure or timeout)."""

    category = ErrorCategory.NETWORK


class BookParseError(DataError):
    """Provider output did not contain a usable JSON array of books."""

    def __init__(self, message: str = "Provider output did not contain a JSON array of books"):
        super().__init__(message, code="data/parse-error")


def categorize_error(exc: BaseException) -> AppError:
    """Fold any exception into the :class:`AppError` taxonomy."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, (TimeoutError, httpx.TimeoutException, openai.APITimeoutError)):
        return NetworkError("Request timeout", code="network/timeout")
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError)):
        return NetworkError("Network connection unavailable", code="network/no-connection")
    if isinstance(exc, openai.RateLimitError):
        return ProviderAPIError(MESSAGES["provider_error"], code="api/rate-limit")
    if isinstance(exc, (openai.APIError, httpx.HTTPStatusError)):
        return ProviderAPIError(MESSAGES["provider_error"], code="api/openai-error")
    if isinstance(exc, json.JSONDecodeError):
        return BookParseError()
    if isinstance(exc, SQLAlchemyError):
        return DataError("Database operation failed", code="data/store-error")
    return AppError(str(exc) or MESSAGES["general"], code="unknown/error")


# ---------------------------------------------------------------------------
# FastAPI handlers
# ---------------------------------------------------------------------------
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Translate an :class:`AppError` into its category's status code."""
    logger.warning(
        "%s %s failed [%s]: %s", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Re-shape FastAPI's ``{"detail": ...}`` into ``{"error": ...}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the traceback and hide the details."""
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "An internal error occurred"})
