# /providers/_mod_WEBFLOW.py
# ViewBridge - Webflow CMS collection store
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from vb_platform.errors import StoreUnavailable
from vb_platform.models import CollectionItem

from ._http import build_session, checked, request_with_retries
from ._log import log

__VERSION__ = "1.0.0"
__all__ = ["WebflowConfig", "WebflowError", "WebflowCollection"]

STORE = "WEBFLOW"


class WebflowError(StoreUnavailable):
    pass


@dataclass
class WebflowConfig:
    api_token: str
    collection_id: str
    site_id: str = ""
    views_field: str = "total-views"
    publish_to_subdomain: bool = True
    custom_domains: list[str] = field(default_factory=list)
    timeout: float = 10.0
    max_retries: int = 3
    page_size: int = 100
    api_base: str = "https://api.webflow.com/v2"

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> WebflowConfig:
        w = dict(cfg.get("webflow") or {})
        return cls(
            api_token=str(w.get("api_token") or "").strip(),
            collection_id=str(w.get("collection_id") or "").strip(),
            site_id=str(w.get("site_id") or "").strip(),
            views_field=str(w.get("views_field") or "total-views").strip(),
            publish_to_subdomain=bool(w.get("publish_to_subdomain", True)),
            custom_domains=[str(x) for x in (w.get("custom_domains") or []) if str(x).strip()],
            timeout=float(w.get("timeout", 10.0)),
            max_retries=int(w.get("max_retries", 3)),
            page_size=max(1, min(100, int(w.get("page_size", 100)))),
        )


class WebflowCollection:
    """Collection store over one Webflow CMS collection (Data API v2)."""

    def __init__(self, cfg: WebflowConfig, *, session: Any = None):
        if not (cfg.api_token and cfg.collection_id):
            raise WebflowError("Missing Webflow api_token or collection_id", store=STORE)
        self.cfg = cfg
        self.session = session or build_session(
            STORE,
            {
                "Authorization": f"Bearer {cfg.api_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )
        self._site_id = cfg.site_id
        self._site_lock = threading.Lock()

    @property
    def views_field(self) -> str:
        return self.cfg.views_field

    @property
    def collection_url(self) -> str:
        return f"{self.cfg.api_base}/collections/{self.cfg.collection_id}"

    def _call(self, method: str, what: str, url: str, **kw: Any) -> Any:
        resp = request_with_retries(
            self.session,
            method,
            url,
            store=STORE,
            timeout=self.cfg.timeout,
            max_retries=self.cfg.max_retries,
            **kw,
        )
        return checked(resp, store=STORE, what=what, error_cls=WebflowError)

    def _item(self, body: Any) -> CollectionItem:
        return CollectionItem.from_api(body or {}, views_field=self.cfg.views_field)

    # --- collection ----------------------------------------------------------
    def get_collection(self) -> dict[str, Any]:
        return self._call("GET", "collection", self.collection_url) or {}

    def site_id(self) -> str:
        with self._site_lock:
            if self._site_id:
                return self._site_id
        sid = str(self.get_collection().get("siteId") or "").strip()
        if not sid:
            raise WebflowError("Site ID not found in collection data", store=STORE)
        with self._site_lock:
            self._site_id = sid
        return sid

    # --- items ---------------------------------------------------------------
    def list_items(self) -> list[CollectionItem]:
        out: list[CollectionItem] = []
        offset = 0
        while True:
            body = self._call(
                "GET",
                "items",
                f"{self.collection_url}/items",
                params={"offset": offset, "limit": self.cfg.page_size},
            ) or {}
            page = [x for x in (body.get("items") or []) if isinstance(x, Mapping)]
            out.extend(self._item(x) for x in page)
            total = (body.get("pagination") or {}).get("total")
            offset += len(page)
            if not page or total is None or offset >= int(total):
                break
        log(STORE, "items", "debug", "listed items", count=len(out))
        return out

    def find_item(self, slug: str) -> CollectionItem | None:
        body = self._call("GET", "items", f"{self.collection_url}/items", params={"slug": slug}) or {}
        for raw in body.get("items") or []:
            if isinstance(raw, Mapping):
                return self._item(raw)
        return None

    def create_item(self, fields: Mapping[str, Any]) -> CollectionItem:
        body = self._call(
            "POST",
            "items:create",
            f"{self.collection_url}/items",
            json={"isArchived": False, "isDraft": False, "fieldData": dict(fields)},
        )
        return self._item(body)

    def update_item(self, item_id: str, fields: Mapping[str, Any]) -> CollectionItem:
        body = self._call(
            "PATCH",
            "items:update",
            f"{self.collection_url}/items/{item_id}",
            json={"fieldData": dict(fields)},
        )
        return self._item(body)

    # --- site ----------------------------------------------------------------
    def publish_site(self, site_id: str | None = None) -> dict[str, Any]:
        sid = site_id or self.site_id()
        payload: dict[str, Any] = {"publishToWebflowSubdomain": bool(self.cfg.publish_to_subdomain)}
        if self.cfg.custom_domains:
            payload["customDomains"] = list(self.cfg.custom_domains)
        body = self._call("POST", "publish", f"{self.cfg.api_base}/sites/{sid}/publish", json=payload)
        log(STORE, "publish", "info", "site published", site_id=sid)
        return body or {}

    def authorized_by(self) -> dict[str, Any]:
        return self._call("GET", "auth", f"{self.cfg.api_base}/token/authorized_by") or {}
