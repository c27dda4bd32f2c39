# services/diagnostics.py
# ViewBridge - read-only checks against configuration and both stores
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import re
import time
from typing import Any, Mapping

from vb_platform._types import CollectionStore, RecordStore
from vb_platform.config_base import ENV_OVERRIDES, is_configured
from vb_platform.errors import ViewBridgeError

__all__ = ["config_report", "slug_report", "collection_schema", "site_info", "auth_report"]

_SLUG_OK = re.compile(r"^[a-z0-9-]+$")
_SECRET_KEYS = {"api_key", "api_token"}


def _mask(v: Any) -> str:
    s = str(v or "")
    if not s:
        return "NOT SET"
    return f"{s[:6]}..." if len(s) > 6 else "***"


def config_report(cfg: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for section, key in ENV_OVERRIDES.values():
        v = (cfg.get(section) or {}).get(key)
        out[f"{section}.{key}"] = _mask(v) if key in _SECRET_KEYS else (str(v) if v else "NOT SET")
    return {
        "settings": out,
        "airtable_configured": is_configured(dict(cfg), "airtable"),
        "webflow_configured": is_configured(dict(cfg), "webflow"),
    }


def slug_report(records: RecordStore, *, sample: int = 20) -> dict[str, Any]:
    rows = [
        {
            "slug": r.slug,
            "title": r.title,
            "total_views": r.total_views,
            "slug_length": len(r.slug),
            "has_special_chars": not bool(_SLUG_OK.match(r.slug or "")),
        }
        for r in records.list_all()
    ]
    rows.sort(key=lambda x: x["total_views"], reverse=True)
    return {
        "total_records": len(rows),
        "sample_slugs": rows[:sample],
        "all_slugs": [x["slug"] for x in rows],
        "stats": {
            "with_views": sum(1 for x in rows if x["total_views"] > 0),
            "zero_views": sum(1 for x in rows if x["total_views"] == 0),
            "with_special_chars": sum(1 for x in rows if x["has_special_chars"]),
        },
    }


def collection_schema(collection: CollectionStore) -> dict[str, Any]:
    data = collection.get_collection()
    fields = data.get("fields") or []
    slugs = {str(f.get("slug") or "") for f in fields if isinstance(f, Mapping)}
    return {
        "collection_name": data.get("displayName"),
        "collection_id": data.get("id"),
        "fields": fields,
        "views_field": collection.views_field,
        "views_field_present": collection.views_field in slugs,
    }


def site_info(collection: CollectionStore) -> dict[str, Any]:
    data = collection.get_collection()
    return {
        "site_id": data.get("siteId"),
        "collection_name": data.get("displayName"),
        "collection_slug": data.get("slug"),
    }


def _probe(fn: Any) -> dict[str, Any]:
    t0 = time.perf_counter()
    try:
        data = fn()
        ok, err = True, None
    except ViewBridgeError as e:
        data, ok, err = None, False, e.payload()
    out: dict[str, Any] = {"ok": ok, "latency_ms": int((time.perf_counter() - t0) * 1000)}
    if ok:
        out["data"] = data
    else:
        out["error"] = err
    return out


def auth_report(records: RecordStore | None, collection: CollectionStore | None) -> dict[str, Any]:
    tests: dict[str, Any] = {}
    if records is not None and hasattr(records, "whoami"):
        tests["airtable"] = _probe(records.whoami)  # type: ignore[attr-defined]
    else:
        tests["airtable"] = {"ok": False, "error": "not configured"}
    if collection is not None:
        if hasattr(collection, "authorized_by"):
            tests["webflow_auth"] = _probe(collection.authorized_by)  # type: ignore[attr-defined]
        tests["webflow_collection"] = _probe(lambda: site_info(collection))
    else:
        tests["webflow_collection"] = {"ok": False, "error": "not configured"}
    return {"ok": all(bool(t.get("ok")) for t in tests.values()), "tests": tests}
