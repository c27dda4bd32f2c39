# api/siteAPI.py
# ViewBridge - collection metadata and health probes
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request

from services import diagnostics

from ._common import bridge

__all__ = ["router"]

router = APIRouter(prefix="/api", tags=["site"])


@router.get("/site-id")
def api_site_id(request: Request) -> dict[str, Any]:
    info = diagnostics.site_info(bridge(request).require_collection())
    info["message"] = f"Set webflow.site_id (WEBFLOW_SITE_ID) to: {info.get('site_id')}"
    return info


@router.get("/schema")
def api_schema(request: Request) -> dict[str, Any]:
    return diagnostics.collection_schema(bridge(request).require_collection())


@router.get("/debug/slugs")
def api_debug_slugs(request: Request, sample: int = Query(20, ge=1, le=500)) -> dict[str, Any]:
    return diagnostics.slug_report(bridge(request).require_records(), sample=sample)


@router.get("/health/config")
def api_health_config(request: Request) -> dict[str, Any]:
    return diagnostics.config_report(bridge(request).cfg)


@router.get("/health/auth")
def api_health_auth(request: Request) -> dict[str, Any]:
    b = bridge(request)
    return diagnostics.auth_report(b.records, b.collection)
