"""
app/core/errors.py

Purpose: HTTP error rendering

- Maps SlideBotError subclasses to their status code and ErrorResponse
- Normalizes Starlette HTTP and request validation errors
- Hides internal error text outside development
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import AuthenticationError, SlideBotError
from app.core.logging import get_logger
from app.schemas.response import ErrorResponse

logger = get_logger(__name__)


def _error_response(status_code: int, error: str, code: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details).model_dump()
    )


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def add_exception_handlers(app: FastAPI):
    """
    Registers exception handlers with the FastAPI app.
    """
    @app.exception_handler(SlideBotError)
    async def slidebot_exception_handler(request: Request, exc: SlideBotError):
        if isinstance(exc, AuthenticationError):
            logger.warning(f"Rejected request to {request.url.path} from {_client_host(request)}")
        elif exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", exc_info=exc)

        return _error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handles standard HTTP exceptions (404, etc.)
        """
        return _error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """
        Handles Pydantic validation errors.
        """
        return _error_response(422, "Input validation failed", "VALIDATION_ERROR", exc.errors())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all for unhandled exceptions.
        """
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path} "
            f"from {_client_host(request)}: {exc}",
            exc_info=exc
        )

        message = str(exc) if settings.is_development else "An internal error occurred. Please try again later."
        return _error_response(500, message, "INTERNAL_ERROR")
