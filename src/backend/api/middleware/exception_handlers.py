"""
Global exception handlers for Support Desk API.

Provides centralized error handling with consistent response formatting,
proper logging, and request context integration. Also owns the mapping from
raw model-provider failures to the user-facing error taxonomy.
"""

from __future__ import annotations

import traceback

from dataclasses import dataclass
from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import (
    APIConnectionError as OpenAIConnectionError,
    APIError as OpenAIAPIError,
    AuthenticationError as OpenAIAuthError,
    NotFoundError as OpenAINotFoundError,
    PermissionDeniedError as OpenAIPermissionError,
    RateLimitError as OpenAIRateLimitError,
)
from pydantic import ValidationError

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import ERROR_CONVERSATION_NOT_FOUND, MODEL_RATE_LIMIT_RETRY_AFTER, get_settings
from models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger
from utils.metrics import llm_errors_total


class AppException(Exception):
    """Base application exception with error code support.

    Use this for business logic errors that should return a specific
    error code and message to the client.

    Example:
        raise AppException(
            code=ErrorCode.NOT_FOUND,
            message="Conversation not found",
            details={"conversation_id": conversation_id}
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return get_status_code(self.code)


class AuthenticationError(AppException):
    """Authentication-related errors."""

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message, details=details)


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.NOT_FOUND, message=message, details=details)


class ConversationNotFoundError(ResourceNotFoundError):
    """Conversation missing or owned by someone else."""

    def __init__(self, conversation_id: str):
        super().__init__(ERROR_CONVERSATION_NOT_FOUND, details={"conversation_id": conversation_id})


class ValidationException(AppException):
    """Validation errors with field-level details."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[ErrorDetail] | None = None,
    ):
        super().__init__(
            code=ErrorCode.VALIDATION,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


# ============================================================================
# Model-provider error classification
# ============================================================================


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """A provider failure mapped onto the user-facing taxonomy."""

    error_type: ErrorCode
    message: str

    @property
    def status_code(self) -> int:
        return get_status_code(self.error_type)


#: Ordered classification table: first matching pattern group wins.
_LLM_ERROR_PATTERNS: tuple[tuple[ErrorCode, tuple[str, ...], str], ...] = (
    (
        ErrorCode.RATE_LIMIT,
        ("429", "rate limit", "quota", "too many requests", "resource exhausted", "rate_limit_exceeded"),
        "The AI service is currently rate-limited. Please wait a moment and try again.",
    ),
    (
        ErrorCode.API_KEY_INVALID,
        ("401", "403", "api key", "authentication", "unauthorized", "invalid key", "permission denied"),
        "AI service authentication failed. Please check the API key configuration.",
    ),
    (
        ErrorCode.MODEL_UNAVAILABLE,
        (
            "model not found",
            "model_not_found",
            "not available",
            "does not exist",
            "connection refused",
            "econnrefused",
            "fetch failed",
        ),
        "The AI model is currently unavailable. Please try again later or switch providers.",
    ),
    (
        ErrorCode.CONTEXT_OVERFLOW,
        ("token", "context length", "too long"),
        "The conversation is too long for the AI model. Try starting a new conversation.",
    ),
)

_INTERNAL_MESSAGE = "An unexpected error occurred while processing your message. Please try again."

#: Typed OpenAI errors map directly without text inspection.
_TYPED_LLM_ERRORS: tuple[tuple[type[Exception], ErrorCode], ...] = (
    (OpenAIRateLimitError, ErrorCode.RATE_LIMIT),
    (OpenAIAuthError, ErrorCode.API_KEY_INVALID),
    (OpenAIPermissionError, ErrorCode.API_KEY_INVALID),
    (OpenAIConnectionError, ErrorCode.MODEL_UNAVAILABLE),
    (OpenAINotFoundError, ErrorCode.MODEL_UNAVAILABLE),
)


def classify_llm_error(error: BaseException | str) -> ClassifiedError:
    """Map a model-provider failure onto a user-facing error kind and message.

    Typed OpenAI exceptions are matched first; everything else falls back to
    case-insensitive substring checks over the error text in taxonomy order.
    """
    messages = {code: message for code, _, message in _LLM_ERROR_PATTERNS}

    if isinstance(error, BaseException):
        for exc_type, code in _TYPED_LLM_ERRORS:
            if isinstance(error, exc_type):
                return ClassifiedError(code, messages[code])
        text = str(error)
    else:
        text = error

    lowered = text.lower()
    for code, patterns, message in _LLM_ERROR_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return ClassifiedError(code, message)

    return ClassifiedError(ErrorCode.INTERNAL, _INTERNAL_MESSAGE)


class ModelServiceError(AppException):
    """A model-provider failure raised before any response bytes were sent."""

    def __init__(self, classified: ClassifiedError, cause: Exception | None = None):
        super().__init__(code=classified.error_type, message=classified.message, cause=cause)

    @classmethod
    def from_exception(cls, exc: Exception) -> ModelServiceError:
        classified = classify_llm_error(exc)
        llm_errors_total.labels(error_type=classified.error_type.value).inc()
        return cls(classified, cause=exc)


# ============================================================================
# Response helpers
# ============================================================================


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    """Create a standardized error response.

    Args:
        code: Application error code
        message: Human-readable error message
        request: FastAPI request object for path extraction
        details: List of detailed error information
        debug_info: Debug information (only included in development)
    """
    return ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path if request else None,
        details=details,
        debug=debug_info,
    )


def _log_error(
    error: Exception,
    code: ErrorCode,
    status_code: int,
) -> None:
    """Log error with appropriate level and context."""
    ctx = get_request_context()
    log_context = ctx.to_log_context() if ctx else {}
    log_context["error_code"] = code.value
    log_context["status_code"] = status_code

    if status_code >= 500:
        logger.error(f"Server error: {code.value} - {error}", exc_info=True, **log_context)
    elif status_code >= 400:
        logger.warning(f"Client error: {code.value} - {error}", **log_context)


def _validation_details(errors: list[dict[str, Any]]) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in errors
    ]


def _retry_after_headers(code: ErrorCode) -> dict[str, str] | None:
    """Advisory Retry-After for provider rate limits."""
    if code is ErrorCode.RATE_LIMIT:
        return {"Retry-After": str(MODEL_RATE_LIMIT_RETRY_AFTER)}
    return None


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions."""
    status_code = exc.status_code

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "cause": str(exc.cause) if exc.cause else None,
        }

    details = None
    if exc.details:
        if "errors" in exc.details:
            details = [ErrorDetail(**e) for e in exc.details["errors"]]
        else:
            details = [ErrorDetail(message=str(v), field=k) for k, v in exc.details.items()]

    error_response = _create_error_response(
        code=exc.code,
        message=exc.message,
        request=request,
        details=details,
        debug_info=debug_info,
    )

    _log_error(exc, exc.code, status_code)

    return JSONResponse(
        status_code=status_code,
        content=error_response.to_dict(include_debug=settings.debug),
        headers=_retry_after_headers(exc.code),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    status_to_code = {
        400: ErrorCode.VALIDATION,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.UNAUTHORIZED,
        404: ErrorCode.NOT_FOUND,
        413: ErrorCode.CONTEXT_OVERFLOW,
        422: ErrorCode.VALIDATION,
        429: ErrorCode.RATE_LIMIT,
        503: ErrorCode.MODEL_UNAVAILABLE,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    error_response = _create_error_response(code=code, message=message, request=request)

    _log_error(exc, code, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.to_dict(),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request parsing errors as 400 validation failures."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION,
        message="Request validation failed",
        request=request,
        details=_validation_details(list(exc.errors())),
    )

    _log_error(exc, ErrorCode.VALIDATION, 400)

    return JSONResponse(status_code=400, content=error_response.to_dict())


async def pydantic_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic ValidationError from model validation."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION,
        message="Data validation failed",
        request=request,
        details=_validation_details(list(exc.errors())),
    )

    _log_error(exc, ErrorCode.VALIDATION, 400)

    return JSONResponse(status_code=400, content=error_response.to_dict())


async def openai_exception_handler(request: Request, exc: OpenAIAPIError) -> JSONResponse:
    """Handle model-provider errors that escaped the chat pipeline."""
    classified = classify_llm_error(exc)
    llm_errors_total.labels(error_type=classified.error_type.value).inc()

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "provider_error_type": type(exc).__name__,
            "provider_error_code": getattr(exc, "code", None),
        }

    error_response = _create_error_response(
        code=classified.error_type,
        message=classified.message,
        request=request,
        debug_info=debug_info,
    )

    _log_error(exc, classified.error_type, classified.status_code)

    return JSONResponse(
        status_code=classified.status_code,
        content=error_response.to_dict(include_debug=settings.debug),
        headers=_retry_after_headers(classified.error_type),
    )


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """Handle PostgreSQL database errors."""
    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "pg_error_code": getattr(exc, "sqlstate", None),
            "pg_error_class": type(exc).__name__,
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL,
        message="Database operation failed",
        request=request,
        debug_info=debug_info,
    )

    _log_error(exc, ErrorCode.INTERNAL, 500)

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with graceful degradation."""
    settings = get_settings()

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        request_id=get_request_id(),
        path=request.url.path,
    )

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL,
        message="An unexpected error occurred",
        request=request,
        debug_info=debug_info,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Call this in your main.py after creating the FastAPI app:
        register_exception_handlers(app)
    """
    # Note: type: ignore needed because Starlette's type signature expects Exception,
    # but covariant exception types in handlers are safe and work correctly at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(ValidationError, pydantic_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(OpenAIAPIError, openai_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)

    # Catch-all for unexpected exceptions
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "AuthenticationError",
    "ClassifiedError",
    "ConversationNotFoundError",
    "ModelServiceError",
    "ResourceNotFoundError",
    "ValidationException",
    "app_exception_handler",
    "asyncpg_exception_handler",
    "classify_llm_error",
    "generic_exception_handler",
    "http_exception_handler",
    "openai_exception_handler",
    "pydantic_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
