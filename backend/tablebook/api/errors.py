"""
Exception handlers.

Domain errors become {"code", "message", "detail"} JSON with the status the
error carries; reservation validation errors add "field" and "rule".
Anything unexpected is logged with its traceback and answered with a
generic 500.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tablebook.core.exceptions import AuthError, ReservationValidationError, TableBookingError
from tablebook.core.logging import get_logger

logger = get_logger(__name__)


def create_error_response(
    message: str,
    code: str,
    status_code: int,
    detail: Optional[str] = None,
    **extra,
) -> JSONResponse:
    content = {
        "code": code,
        "message": message,
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **extra,
    }
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI app."""

    @app.exception_handler(ReservationValidationError)
    async def reservation_validation_handler(request: Request, exc: ReservationValidationError):
        return create_error_response(
            exc.message,
            exc.code,
            exc.status_code,
            field=exc.field,
            rule=exc.rule.value,
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        # exc.kind stays internal; only the message and code reach the client
        return create_error_response(exc.message, exc.code, exc.status_code)

    @app.exception_handler(TableBookingError)
    async def table_booking_error_handler(request: Request, exc: TableBookingError):
        if exc.status_code >= 500:
            logger.error("request_error", code=exc.code, detail=exc.detail)
            # infrastructure details stay in the log
            return create_error_response(exc.message, exc.code, exc.status_code)
        return create_error_response(exc.message, exc.code, exc.status_code, exc.detail)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", error_type=type(exc).__name__)
        return create_error_response(
            "Internal Server Error",
            "INTERNAL_ERROR",
            500,
            "An unexpected error occurred",
        )
