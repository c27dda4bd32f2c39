# vb_platform/config_base.py
# ViewBridge - configuration loading and persistence
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Where config.json lives
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """$CONFIG_BASE, else /config inside the container image (/app present), else the project root."""
    override = (os.getenv("CONFIG_BASE") or "").strip()
    if override:
        return Path(override)
    return Path("/config") if Path("/app").is_dir() else Path(__file__).resolve().parent.parent


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Record store (counters) ---------------------------------------------
    "airtable": {
        "api_key": "",                                  # Personal access token
        "base_id": "",                                  # appXXXXXXXXXXXXXX
        "table": "",                                    # Table name or id holding one row per slug
        "old_views_field": "old_views",                 # Legacy baseline column written on create ("Views" on older tables)
        "timeout": 10.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for 429/5xx
        "page_size": 100,                               # List page size (max 100)
    },

    # --- Collection store (CMS) ----------------------------------------------
    "webflow": {
        "api_token": "",                                # Site API token
        "collection_id": "",                            # Blog posts collection
        "site_id": "",                                  # Optional; resolved from the collection when empty
        "views_field": "total-views",                   # Number field mirroring total_views
        "publish_to_subdomain": True,                   # Publish to the *.webflow.io staging domain as well
        "custom_domains": [],                           # Custom domain ids to publish to (empty = none)
        "timeout": 10.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for 429/5xx
        "page_size": 100,                               # List page size (max 100)
    },

    # --- Counter service -----------------------------------------------------
    "counter": {
        "mirror_to_collection": True,                   # Push total_views to the CMS after each increment (best-effort)
        "lookup_title_on_create": False,                # Ask the CMS for a title when auto-creating a record
        "mirror_workers": 4,                            # Background mirror threads
    },

    # --- Reconciliation ------------------------------------------------------
    "sync": {
        "debounce_seconds": 5.0,                        # Repeat triggers inside this window reuse the last result
        "batch_size": 10,                               # Records per Airtable write (API maximum is 10)
        "batch_pause_ms": 200,                          # Pause between record batches
        "item_pause_ms": 200,                           # Pause between CMS item writes
        "publish_after_push": True,                     # Publish once per pass when items changed
    },

    # --- HTTP surface --------------------------------------------------------
    "cors": {
        "allow_origins": ["*"],
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,                                 # Verbose logging
        "log_level": "info",                            # silent | error | warn | info | debug
        "log_json": "",                                 # Optional JSON-lines log file path
    },
}

# Environment variables that win over config.json (deployment secrets).
ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "AIRTABLE_API_KEY": ("airtable", "api_key"),
    "AIRTABLE_BASE_ID": ("airtable", "base_id"),
    "AIRTABLE_TABLE_NAME": ("airtable", "table"),
    "WEBFLOW_API_TOKEN": ("webflow", "api_token"),
    "WEBFLOW_COLLECTION_ID": ("webflow", "collection_id"),
    "WEBFLOW_SITE_ID": ("webflow", "site_id"),
}


# ------------------------------------------------------------
# File IO and merging
# ------------------------------------------------------------
def config_path() -> Path:
    return CONFIG_BASE() / "config.json"


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp_name, p)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, val in (override or {}).items():
        cur = merged.get(key)
        merged[key] = _deep_merge(cur, val) if isinstance(cur, dict) and isinstance(val, dict) else val
    return merged


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env, (section, key) in ENV_OVERRIDES.items():
        v = (os.getenv(env) or "").strip()
        if v:
            cfg.setdefault(section, {})[key] = v
    lvl = (os.getenv("VB_LOG_LEVEL") or "").strip().lower()
    if lvl:
        cfg.setdefault("runtime", {})["log_level"] = lvl
    return cfg


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """Read config.json over the defaults, then apply environment overrides."""
    stored: Dict[str, Any] = {}
    try:
        raw = config_path().read_text(encoding="utf-8")
    except FileNotFoundError:
        raw = ""
    if raw.strip():
        try:
            loaded = json.loads(raw)
        except ValueError:
            loaded = None
        stored = loaded if isinstance(loaded, dict) else {}
    return _apply_env(_deep_merge(DEFAULT_CFG, stored))


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(config_path(), dict(cfg or {}))


def section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    blk = cfg.get(name)
    return blk if isinstance(blk, dict) else {}


def is_configured(cfg: Dict[str, Any], name: str) -> bool:
    blk = section(cfg, name)
    if name == "airtable":
        return all(str(blk.get(k) or "").strip() for k in ("api_key", "base_id", "table"))
    if name == "webflow":
        return all(str(blk.get(k) or "").strip() for k in ("api_token", "collection_id"))
    return bool(blk)
