"""
Global exception handlers for FastAPI.

Maps domain exceptions to HTTP responses, eliminating try/except
boilerplate from routers. Register with register_exception_handlers(app).
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)


def error_response(status_code: int, detail: str, code: Optional[str] = None) -> JSONResponse:
    """Build a standardized error JSON response."""
    content: dict = {"detail": detail}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


def _describe_validation_error(exc: RequestValidationError) -> str:
    """Flatten the first pydantic error into 'field: message'."""
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the FastAPI app."""
    # Check-in exceptions
    from feelsy.models.feel import (
        CheckInNotFoundError,
        DuplicateCheckInError,
        FeelStoreError,
        FeelValidationError,
    )

    # Social exceptions
    from feelsy.models.social import (
        InvalidVibeTypeError,
        ReceiverNotFoundError,
        SelfVibeError,
    )

    # User exceptions
    from feelsy.services.user_service import UserNotFoundError

    # --- Validation handlers ---

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        # An unknown vibe kind is reported the same way whether pydantic or the service caught it
        if any("vibe_type" in error.get("loc", ()) for error in exc.errors()):
            return error_response(400, _describe_validation_error(exc), "INVALID_VIBE_TYPE")
        return error_response(400, _describe_validation_error(exc), "VALIDATION_ERROR")

    @app.exception_handler(InvalidVibeTypeError)
    async def _invalid_vibe_type(request: Request, exc: InvalidVibeTypeError) -> JSONResponse:
        return error_response(400, str(exc), "INVALID_VIBE_TYPE")

    @app.exception_handler(FeelValidationError)
    async def _feel_validation(request: Request, exc: FeelValidationError) -> JSONResponse:
        return error_response(400, str(exc), "VALIDATION_ERROR")

    # --- Check-in handlers ---

    @app.exception_handler(DuplicateCheckInError)
    async def _duplicate_check_in(request: Request, exc: DuplicateCheckInError) -> JSONResponse:
        return error_response(400, "You have already checked in today.", "DUPLICATE_CHECK_IN")

    @app.exception_handler(CheckInNotFoundError)
    async def _check_in_not_found(request: Request, exc: CheckInNotFoundError) -> JSONResponse:
        return error_response(404, "No check-in for today yet.", "CHECK_IN_NOT_FOUND")

    # --- Social handlers ---

    @app.exception_handler(SelfVibeError)
    async def _self_vibe(request: Request, exc: SelfVibeError) -> JSONResponse:
        return error_response(400, "Cannot send vibes to yourself.", "SELF_VIBE")

    @app.exception_handler(ReceiverNotFoundError)
    async def _receiver_not_found(request: Request, exc: ReceiverNotFoundError) -> JSONResponse:
        return error_response(400, "Receiver does not exist.", "INVALID_RECEIVER")

    # --- User handlers ---

    @app.exception_handler(UserNotFoundError)
    async def _user_not_found(request: Request, exc: UserNotFoundError) -> JSONResponse:
        return error_response(404, "User not found.", "USER_NOT_FOUND")

    # --- Infrastructure handlers ---

    @app.exception_handler(FeelStoreError)
    async def _store_error(request: Request, exc: FeelStoreError) -> JSONResponse:
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
        return error_response(500, "Storage error.", "STORE_ERROR")

    @app.exception_handler(APIError)
    async def _postgrest_error(request: Request, exc: APIError) -> JSONResponse:
        logger.error(
            "Database error on %s %s: code=%s message=%s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
        return error_response(500, "Storage error.", "STORE_ERROR")

    # --- Catch-all ---

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error.", "INTERNAL_ERROR")
