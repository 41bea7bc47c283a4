"""Application-level exceptions and FastAPI exception handlers.

Every error leaves the API as ``{"error": "<CODE>"}``.
"""

import logging
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from src.insurance_api.db import ForeignKeyConstraintError, StorageError

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, code: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        self.code = code
        self.status_code = status_code
        super().__init__(code)


class BadRequestError(AppException):
    def __init__(self, code: str = "MISSING_FIELDS"):
        super().__init__(code, status_code=status.HTTP_400_BAD_REQUEST)


class UnauthorizedError(AppException):
    def __init__(self, code: str = "INVALID"):
        super().__init__(code, status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppException):
    def __init__(self, code: str = "ADMIN_ONLY"):
        super().__init__(code, status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppException):
    def __init__(self, code: str = "NOT_FOUND"):
        super().__init__(code, status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppException):
    def __init__(self, code: str):
        super().__init__(code, status_code=status.HTTP_409_CONFLICT)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

_HTTP_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def error_response(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return error_response(exc.status_code, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return error_response(status.HTTP_400_BAD_REQUEST, "INVALID_FIELDS")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_CODES.get(exc.status_code, "SERVER_ERROR" if exc.status_code >= 500 else "BAD_REQUEST")
        return JSONResponse(status_code=exc.status_code, content={"error": code}, headers=exc.headers)

    @app.exception_handler(ForeignKeyConstraintError)
    async def foreign_key_handler(request: Request, exc: ForeignKeyConstraintError) -> JSONResponse:
        logger.info("Foreign key violation on %s %s (%s)", request.method, request.url.path, exc.constraint)
        return error_response(status.HTTP_400_BAD_REQUEST, "INVALID_REFERENCE")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "SERVER_ERROR")

    @app.exception_handler(ResponseValidationError)
    async def response_validation_handler(request: Request, exc: ResponseValidationError) -> JSONResponse:
        logger.error("Response for %s %s failed validation: %s", request.method, request.url.path, exc.errors())
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "SERVER_ERROR")


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Renders any exception no handler claimed as a 500 ``SERVER_ERROR``.

    Must be added before ``CORSMiddleware`` so it sits inside it and the
    error response still carries the CORS headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "SERVER_ERROR")
