from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

_LOG = logging.getLogger("app.errors")


class AppError(HTTPException):
    """Operational error: safe to show to the caller as-is."""

    def __init__(self, message: str, status_code: int, headers: dict[str, str] | None = None):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.is_operational = True


def _status_word(status_code: int) -> str:
    return "fail" if 400 <= int(status_code) < 500 else "error"


def _envelope(status_code: int, message: str, exc: Exception | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": _status_word(status_code), "message": message}
    if exc is not None and settings.is_development:
        body["error"] = type(exc).__name__
    return body


def _validation_message(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = str(err.get("msg") or "invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return f"Invalid input data. {'. '.join(parts)}".strip()


def _duplicate_message(exc: IntegrityError) -> str:
    text = str(getattr(exc, "orig", exc) or "")
    lowered = text.lower()
    if "unique" in lowered or "duplicate" in lowered:
        return "Duplicate field value. Please use another value."
    return "Invalid input data. The record violates a database constraint."


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail or "")
        if exc.status_code == 404 and not isinstance(exc, AppError) and message == "Not Found":
            message = f"Can't find {request.url.path} on this server!"
        return JSONResponse(
            _envelope(exc.status_code, message),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(_envelope(400, _validation_message(exc), exc), status_code=400)

    @app.exception_handler(IntegrityError)
    async def _integrity_error(request: Request, exc: IntegrityError):
        _LOG.info("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(_envelope(400, _duplicate_message(exc), exc), status_code=400)

    @app.exception_handler(StaleDataError)
    async def _stale_data(request: Request, exc: StaleDataError):
        return JSONResponse(
            _envelope(409, "The document was modified concurrently. Reload it and try again.", exc),
            status_code=409,
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        _LOG.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(_envelope(500, "Something went very wrong!", exc), status_code=500)
