"""
API error type and handlers.

Every error response has the shape {"error": "...", "details": {...}}.
Services raise ApiError (an HTTPException) exactly where they would raise
HTTPException; the handlers below only change how it is rendered.
"""

from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medbook.core.logging import get_logger

logger = get_logger(__name__)


class ApiError(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        details: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.details = details


def bad_request(message: str, details: Optional[dict] = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, message, details)


def forbidden(message: str = "Access denied") -> ApiError:
    return ApiError(status.HTTP_403_FORBIDDEN, message)


def not_found(message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, message)


def conflict(message: str, details: Optional[dict] = None) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, message, details)


def _error_body(message: Any, details: Optional[dict]) -> dict:
    body = {"error": message}
    if details:
        body["details"] = details
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    details = getattr(exc, "details", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, details),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", errors=errors)
    return JSONResponse(
        status_code=422,
        content=_error_body("Invalid request", {"errors": errors}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
