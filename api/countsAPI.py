# api/countsAPI.py
# ViewBridge - view count endpoints used by the page widget
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Query, Request
from pydantic import BaseModel

from vb_platform.errors import InvalidInput

from ._common import bridge

__all__ = ["router"]

router = APIRouter(prefix="/api", tags=["counts"])


class IncrementIn(BaseModel):
    slug: Optional[str] = None


@router.get("/count")
@router.get("/get-count")
def api_get_count(request: Request, slug: str = Query("")) -> dict[str, Any]:
    if not slug.strip():
        raise InvalidInput("Slug is required")
    return bridge(request).require_counter().get_count(slug)


@router.get("/counts")
@router.get("/get-all-counts")
def api_get_all_counts(request: Request) -> dict[str, Any]:
    posts = bridge(request).require_counter().get_all_counts()
    return {"posts": posts, "total": len(posts)}


@router.post("/increment")
@router.post("/increment-count")
def api_increment(request: Request, payload: Optional[IncrementIn] = Body(None)) -> dict[str, Any]:
    slug = (payload.slug if payload else None) or ""
    if not slug.strip():
        raise InvalidInput("Slug is required")
    return bridge(request).require_counter().increment(slug)
