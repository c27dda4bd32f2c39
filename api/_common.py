# api/_common.py
# ViewBridge - request helpers and error mapping shared by the routers
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from _logging import log as _root_log
from services import Bridge
from vb_platform.errors import StoreUnavailable, ViewBridgeError

__all__ = ["bridge", "install_error_handlers"]

_log = _root_log.child("API")


def bridge(request: Request) -> Bridge:
    return request.app.state.bridge


def _error_response(status: int, payload: dict[str, Any]) -> JSONResponse:
    return JSONResponse(payload, status_code=status)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ViewBridgeError)
    async def _vb_error(request: Request, exc: ViewBridgeError) -> JSONResponse:
        if isinstance(exc, StoreUnavailable):
            _log.error(f"{request.method} {request.url.path}: {exc}")
        else:
            _log.debug(f"{request.method} {request.url.path}: {exc}")
        return _error_response(exc.status_code, exc.payload())

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, {"success": False, "error": "Invalid input", "details": jsonable_encoder(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        msg = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
        return JSONResponse(
            {"success": False, "error": msg},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
