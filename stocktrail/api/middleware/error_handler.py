"""
Error Handling for StockTrail

Centralized error handling:
- Structured error responses
- Logging of errors
- Exception translation
"""

import traceback
from datetime import datetime
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from stocktrail.errors import StockTrailException


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: Optional[str] = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "code": code,
            "detail": detail,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


def _format_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(StockTrailException)
    async def stocktrail_exception_handler(request: Request, exc: StockTrailException):
        if exc.status_code >= 500:
            logger.error(f"StockTrail error: {exc.code} - {exc.message} ({exc.detail})")
            # Store details stay in the server log
            detail = None
        else:
            logger.warning(f"StockTrail error: {exc.code} - {exc.message}")
            detail = exc.detail
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=detail,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        detail = _format_validation_errors(exc.errors())
        logger.warning(f"Request validation error on {request.url.path}: {detail}")
        return create_error_response(
            error="Missing or invalid fields",
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )

    @app.exception_handler(PydanticValidationError)
    async def validation_exception_handler(request: Request, exc: PydanticValidationError):
        logger.warning(f"Validation error: {str(exc)}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=400,
            detail=_format_validation_errors(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=500,
            detail="An unexpected error occurred",
        )
