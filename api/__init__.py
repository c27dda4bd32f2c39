from __future__ import annotations

from fastapi import FastAPI

from ._common import install_error_handlers
from .countsAPI import router as counts_router
from .siteAPI import router as site_router
from .syncAPI import router as sync_router

__all__ = [
    "counts_router",
    "sync_router",
    "site_router",
    "register",
]

def register(app: FastAPI) -> None:
    app.include_router(counts_router)
    app.include_router(sync_router)
    app.include_router(site_router)
    install_error_handlers(app)
