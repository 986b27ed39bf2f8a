"""Error taxonomy for the calendar API and the handlers that render it.

Every error leaves the service as a flat ``{"error": "<message>"}`` object; the
HTTP status is the only structured signal clients get.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CalendarError(Exception):
    """Base class for errors that map onto a client-facing status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server Error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(CalendarError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class MissingField(InvalidArgument):
    default_message = "Missing required fields: title, start, end"


class InvalidBody(CalendarError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid JSON body"


class NotFound(CalendarError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not Found"


class Conflict(CalendarError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def calendar_error_handler(request: Request, exc: CalendarError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Method is part of the route match; a wrong method is just an unknown route.
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return error_response(status.HTTP_404_NOT_FOUND, "Not Found")
    return error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Server Error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CalendarError, calendar_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = [
    "CalendarError",
    "Conflict",
    "InvalidArgument",
    "InvalidBody",
    "MissingField",
    "NotFound",
    "register_error_handlers",
]
