# /providers/_log.py
# ViewBridge - one-line adapter logging (store:feature tag + key=value fields)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

from _logging import LEVELS, log as _root_log

__all__ = ["log", "format_fields"]

_SECRET_KEYS = frozenset({"api_key", "api_token", "token", "authorization"})

_ALIASES = {"warning": "warn", "trace": "debug", "success": "info"}


def _store_floor(store: str) -> int:
    """VB_<STORE>_LOG_LEVEL raises the floor for one adapter (e.g. silence AIRTABLE debug)."""
    raw = (os.getenv(f"VB_{store}_LOG_LEVEL") or "").strip().lower()
    return LEVELS.get(_ALIASES.get(raw, raw), 0) if raw else 0


def _value(key: str, v: Any) -> str:
    if key.lower() in _SECRET_KEYS:
        return "***"
    s = " ".join(str(v).split())
    if not s or any(ch.isspace() for ch in s) or any(ch in s for ch in ('"', "=", ":")):
        return json.dumps(s, ensure_ascii=False)
    return s


def format_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{k}={_value(k, v)}" for k, v in sorted(fields.items()) if v is not None)


def log(store: str, feature: str, level: str, msg: str, **fields: Any) -> None:
    store_s = str(store or "HTTP").strip().upper()
    lvl = str(level or "info").strip().lower()
    severity = _ALIASES.get(lvl, lvl)
    if LEVELS.get(severity, LEVELS["info"]) < _store_floor(store_s):
        return

    tail = format_fields(fields)
    text = " ".join(str(msg).split())
    if tail:
        text = f"{text} {tail}"
    clean = {k: ("***" if k.lower() in _SECRET_KEYS else v) for k, v in fields.items() if v is not None}
    _root_log.child(f"{store_s}:{str(feature).strip().lower()}").emit(
        "SUCCESS" if lvl == "success" else severity,
        text,
        extra=clean or None,
    )
