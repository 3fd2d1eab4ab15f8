"""
Custom exceptions and error handlers.
"""
import re
from typing import Any, Dict, Optional
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from .logging import get_logger

logger = get_logger(__name__)


class FlaneurException(Exception):
    """Base exception for the Flâneur pipelines."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationException(FlaneurException):
    """Authentication error exception."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            error_code="authentication_error",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ConfigurationException(FlaneurException):
    """A required external-service credential is missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="configuration_error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class QuotaExhaustedError(FlaneurException):
    """The generation service kept answering with quota errors."""

    def __init__(self, message: str = "Generation quota exhausted"):
        super().__init__(
            message=message,
            error_code="quota_exhausted",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )


class GenerationParseError(FlaneurException):
    """The generation service answered with nothing usable."""

    def __init__(self, message: str = "Could not parse generation response"):
        super().__init__(
            message=message,
            error_code="generation_parse_error",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


class WriteConflictError(FlaneurException):
    """A unique constraint rejected a write: the row already exists."""

    def __init__(self, message: str = "Row already exists"):
        super().__init__(
            message=message,
            error_code="write_conflict",
            status_code=status.HTTP_409_CONFLICT,
        )


_QUOTA_PATTERN = re.compile(r"resource_exhausted|\b429\b|quota|rate limit", re.IGNORECASE)
_CONFLICT_PATTERN = re.compile(
    r"duplicate key|unique constraint|already exists|_slug_key|_brief_id_key",
    re.IGNORECASE,
)


def is_quota_error(exc: BaseException) -> bool:
    """Return True when an error signals rate limiting or quota exhaustion."""
    if isinstance(exc, QuotaExhaustedError):
        return True
    return bool(_QUOTA_PATTERN.search(str(exc)))


def is_write_conflict(exc: BaseException) -> bool:
    """Return True when an error is a unique-constraint violation."""
    if isinstance(exc, WriteConflictError):
        return True
    if getattr(exc, "code", None) == "23505":
        return True
    message = getattr(exc, "message", None) or str(exc)
    return bool(_CONFLICT_PATTERN.search(str(message)))


async def flaneur_exception_handler(request: Request, exc: FlaneurException) -> JSONResponse:
    """Handle Flâneur custom exceptions."""
    logger.error(
        "Flaneur exception occurred",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "error": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            }
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle FastAPI validation errors."""
    logger.error(
        "Validation error occurred",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "error": "validation_error",
                "message": "Invalid input data",
                "details": exc.errors(),
            }
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    logger.error(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )

    error_code_map = {
        401: "authentication_error",
        404: "not_found",
        500: "server_error",
    }

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "error": error_code_map.get(exc.status_code, "http_error"),
                "message": exc.detail,
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        "Unexpected exception occurred",
        exception_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "error": "server_error",
                "message": "An unexpected error occurred",
            }
        }
    )
