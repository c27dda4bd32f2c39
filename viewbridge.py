# /viewbridge.py
# ViewBridge - view counter and CMS mirror service
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Mapping, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from _logging import log
from api import register as register_api
from services import Bridge, build_bridge
from vb_platform.config_base import config_path, load_config, section

__all__ = ["create_app", "app", "main"]

_http_log = log.child("HTTP")


def create_app(cfg: Optional[Mapping[str, Any]] = None, bridge: Optional[Bridge] = None) -> FastAPI:
    cfg = dict(cfg) if cfg is not None else load_config()
    log.configure(section(cfg, "runtime"))
    b = bridge if bridge is not None else build_bridge(cfg)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        log.child("BOOT").info("bridge ready")
        try:
            yield
        finally:
            app.state.bridge.close()
            log.child("BOOT").info("bridge closed")

    app = FastAPI(title="ViewBridge", lifespan=_lifespan)
    app.state.bridge = b

    origins = section(cfg, "cors").get("allow_origins") or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def access_logger(request: Request, call_next):
        t0 = time.time()
        response = await call_next(request)
        status = getattr(response, "status_code", 0) or 0
        dt_ms = int((time.time() - t0) * 1000)
        msg = f'"{request.method} {request.url.path}" {status} ({dt_ms} ms)'
        if status >= 500:
            _http_log.error(msg)
        elif status >= 400:
            _http_log.warn(msg)
        else:
            _http_log.debug(msg)
        return response

    @app.middleware("http")
    async def no_cache_for_api(request: Request, call_next):
        resp = await call_next(request)
        if request.url.path.startswith("/api/"):
            resp.headers["Cache-Control"] = "no-store"
        return resp

    register_api(app)
    return app


app = create_app()


# Entry point
def main(host: str = "0.0.0.0", port: int = 8787) -> None:
    cfg = load_config()
    debug = bool(section(cfg, "runtime").get("debug"))
    print("\nViewBridge running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Bind:    {host}:{port}")
    print(f"  Config:  {config_path()} (JSON)\n")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug,
    )

if __name__ == "__main__":
    main()
