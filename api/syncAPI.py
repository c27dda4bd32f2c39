# api/syncAPI.py
# ViewBridge - reconciliation endpoints (manual or webhook triggered)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Header, Request

from ._common import bridge

__all__ = ["router"]

router = APIRouter(prefix="/api", tags=["synchronization"])


def _trigger(payload: dict | None, signature: str | None) -> dict[str, Any]:
    t = dict(payload or {}) if isinstance(payload, dict) else {}
    if signature:
        t["signature"] = signature
    return t


@router.post("/sync-pull")
@router.post("/sync-from-webflow")
def api_sync_pull(
    request: Request,
    payload: Optional[dict] = Body(None),
    x_webflow_signature: Optional[str] = Header(None),
) -> dict[str, Any]:
    return bridge(request).require_reconciler().pull(_trigger(payload, x_webflow_signature))


@router.post("/sync-push")
@router.post("/sync-to-webflow")
def api_sync_push(
    request: Request,
    payload: Optional[dict] = Body(None),
    x_webflow_signature: Optional[str] = Header(None),
) -> dict[str, Any]:
    return bridge(request).require_reconciler().push(_trigger(payload, x_webflow_signature))


@router.post("/update-counts")
def api_update_counts(request: Request, payload: Optional[dict] = Body(None)) -> dict[str, Any]:
    return bridge(request).require_reconciler().update_counts(_trigger(payload, None))


@router.post("/fix-titles")
def api_fix_titles(request: Request, payload: Optional[dict] = Body(None)) -> dict[str, Any]:
    return bridge(request).require_reconciler().fix_titles(_trigger(payload, None))


@router.post("/publish")
def api_publish(request: Request) -> dict[str, Any]:
    return bridge(request).require_reconciler().publish()
