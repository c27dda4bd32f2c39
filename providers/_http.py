# /providers/_http.py
# ViewBridge - shared HTTP plumbing for the store adapters
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import requests

from vb_platform.errors import StoreUnavailable

from ._log import log

__all__ = [
    "StoreSession",
    "build_session",
    "parse_rate_limit",
    "safe_json",
    "request_with_retries",
    "checked",
]

FeatureLabelFn = Callable[[str, str], str]


def default_feature_label(method: str, url: str) -> str:
    segs = [s for s in (urlparse(url).path or "/").split("/") if s]
    head = "/".join(segs[:3]) or "unknown"
    return f"{method.lower()}:{head.lower()}"


class StoreSession(requests.Session):
    """requests.Session that logs one debug line per call when VB_API_HITS is set."""

    def __init__(
        self,
        store: str,
        headers: Mapping[str, str] | None = None,
        feature_label: FeatureLabelFn | None = None,
        log_hits: bool | None = None,
    ):
        super().__init__()
        self._store = store
        self._label = feature_label or default_feature_label
        self._log_hits = bool(os.getenv("VB_API_HITS")) if log_hits is None else bool(log_hits)
        if headers:
            self.headers.update(dict(headers))

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        status: int | None = None
        try:
            resp = super().request(method, url, **kwargs)
            status = resp.status_code
            return resp
        finally:
            if self._log_hits:
                log(self._store, "api", "debug", "hit", feature=self._label(method.upper(), url), status=status)


def build_session(
    store: str,
    headers: Mapping[str, str] | None = None,
    *,
    feature_label: FeatureLabelFn | None = None,
    log_hits: bool | None = None,
) -> StoreSession:
    return StoreSession(store, headers, feature_label, log_hits)


_RATE_HEADERS = {
    "limit": ("X-RateLimit-Limit", "RateLimit-Limit"),
    "remaining": ("X-RateLimit-Remaining", "RateLimit-Remaining"),
    "reset": ("X-RateLimit-Reset", "RateLimit-Reset"),
}


def parse_rate_limit(h: Mapping[str, Any]) -> dict[str, int | None]:
    out: dict[str, int | None] = {}
    for name, keys in _RATE_HEADERS.items():
        raw = next((h.get(k) for k in keys if h.get(k) is not None), None)
        out[name] = int(raw) if str(raw or "").strip().isdigit() else None
    return out


def safe_json(resp: requests.Response) -> Any:
    """Decoded body; ``{}`` for an empty body and ``{"raw": ...}`` when it is not JSON."""
    text = resp.text or ""
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text[:500]}


def request_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    *,
    store: str = "",
    timeout: float = 10.0,
    max_retries: int = 3,
    retry_on: tuple[int, ...] = (429, 500, 502, 503, 504),
    backoff_base: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> requests.Response:
    """Retry 429/5xx and transport errors with exponential backoff; raise StoreUnavailable when exhausted."""
    attempts = max(1, int(max_retries))
    last_exc: Exception | None = None
    for i in range(attempts):
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            last_exc = e
            if i < attempts - 1:
                log(store or "HTTP", "retry", "warn", "transport error", method=method, url=url, error=str(e), attempt=i + 1)
                sleep(backoff_base * (2**i))
                continue
            break
        if resp.status_code in retry_on and i < attempts - 1:
            wait = backoff_base * (2**i)
            if resp.status_code == 429:
                ra = resp.headers.get("Retry-After")
                try:
                    if ra:
                        wait = max(wait, float(ra))
                except ValueError:
                    pass
                log(store or "HTTP", "retry", "warn", "rate limited", url=url, wait=wait, **parse_rate_limit(resp.headers))
            sleep(wait)
            continue
        return resp

    kind = "timed out" if isinstance(last_exc, requests.Timeout) else "failed"
    raise StoreUnavailable(
        f"{store or 'upstream'} request {kind}: {method} {url}",
        store=store,
        details=str(last_exc) if last_exc else None,
    )


def checked(resp: requests.Response, *, store: str, what: str, error_cls: type[StoreUnavailable] = StoreUnavailable) -> Any:
    """Decode a 2xx body or raise ``error_cls`` with the upstream body attached."""
    body = safe_json(resp)
    if 200 <= resp.status_code < 300:
        return body
    log(store, what, "error", "upstream error", status=resp.status_code, body=json.dumps(body, default=str)[:300])
    raise error_cls(f"{store} {what} failed ({resp.status_code})", store=store, status=resp.status_code, details=body)
