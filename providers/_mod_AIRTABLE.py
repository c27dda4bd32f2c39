# /providers/_mod_AIRTABLE.py
# ViewBridge - Airtable record store (one row per slug)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import quote

from vb_platform.errors import StoreUnavailable
from vb_platform.models import CounterRecord

from ._http import build_session, checked, request_with_retries
from ._log import log

__VERSION__ = "1.0.0"
__all__ = ["AirtableConfig", "AirtableError", "AirtableRecords", "MAX_BATCH"]

STORE = "AIRTABLE"
# Airtable rejects create/update calls with more than 10 records.
MAX_BATCH = 10


class AirtableError(StoreUnavailable):
    pass


@dataclass
class AirtableConfig:
    api_key: str
    base_id: str
    table: str
    old_views_field: str = "old_views"
    timeout: float = 10.0
    max_retries: int = 3
    page_size: int = 100
    api_base: str = "https://api.airtable.com/v0"

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> AirtableConfig:
        a = dict(cfg.get("airtable") or {})
        return cls(
            api_key=str(a.get("api_key") or "").strip(),
            base_id=str(a.get("base_id") or "").strip(),
            table=str(a.get("table") or "").strip(),
            old_views_field=str(a.get("old_views_field") or "old_views").strip(),
            timeout=float(a.get("timeout", 10.0)),
            max_retries=int(a.get("max_retries", 3)),
            page_size=max(1, min(100, int(a.get("page_size", 100)))),
        )


def _formula_literal(value: str) -> str:
    return "'" + str(value).replace("\\", "\\\\").replace("'", "\\'") + "'"


class AirtableRecords:
    """Record store over one Airtable table, keyed by the ``slug`` field."""

    def __init__(self, cfg: AirtableConfig, *, session: Any = None):
        if not (cfg.api_key and cfg.base_id and cfg.table):
            raise AirtableError("Missing Airtable api_key, base_id or table", store=STORE)
        self.cfg = cfg
        self.session = session or build_session(
            STORE,
            {
                "Authorization": f"Bearer {cfg.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    @property
    def url(self) -> str:
        return f"{self.cfg.api_base}/{self.cfg.base_id}/{quote(self.cfg.table, safe='')}"

    def _call(self, method: str, what: str, url: str | None = None, **kw: Any) -> Any:
        resp = request_with_retries(
            self.session,
            method,
            url or self.url,
            store=STORE,
            timeout=self.cfg.timeout,
            max_retries=self.cfg.max_retries,
            **kw,
        )
        return checked(resp, store=STORE, what=what, error_cls=AirtableError)

    @staticmethod
    def _records(body: Any) -> list[CounterRecord]:
        rows = (body or {}).get("records") or []
        return [CounterRecord.from_fields(r.get("id", ""), r.get("fields") or {}) for r in rows if isinstance(r, Mapping)]

    # --- reads ---------------------------------------------------------------
    def find(self, slug: str) -> CounterRecord | None:
        body = self._call(
            "GET",
            "find",
            params={"filterByFormula": f"{{slug}} = {_formula_literal(slug)}", "maxRecords": 1},
        )
        recs = self._records(body)
        return recs[0] if recs else None

    def list_all(self) -> list[CounterRecord]:
        out: list[CounterRecord] = []
        offset: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": self.cfg.page_size}
            if offset:
                params["offset"] = offset
            body = self._call("GET", "list", params=params)
            out.extend(self._records(body))
            offset = (body or {}).get("offset")
            if not offset:
                break
        log(STORE, "list", "debug", "listed records", count=len(out))
        return out

    # --- writes --------------------------------------------------------------
    def new_fields(self, slug: str, *, title: str = "", view_count: int = 0, old_views: int = 0) -> dict[str, Any]:
        return {
            "slug": slug,
            "title": title or slug,
            "view_count": int(view_count),
            self.cfg.old_views_field: int(old_views),
        }

    def create(self, fields_list: Iterable[Mapping[str, Any]]) -> list[CounterRecord]:
        rows = [{"fields": dict(f)} for f in fields_list]
        if len(rows) > MAX_BATCH:
            raise ValueError(f"Airtable create accepts at most {MAX_BATCH} records, got {len(rows)}")
        if not rows:
            return []
        body = self._call("POST", "create", json={"records": rows})
        created = self._records(body)
        log(STORE, "create", "info", "created records", count=len(created))
        return created

    def update(self, record_id: str, fields: Mapping[str, Any]) -> CounterRecord:
        out = self.update_many([(record_id, fields)])
        if not out:
            raise AirtableError(f"Airtable update returned no record for {record_id}", store=STORE)
        return out[0]

    def update_many(self, changes: Iterable[tuple[str, Mapping[str, Any]]]) -> list[CounterRecord]:
        rows = [{"id": rid, "fields": dict(f)} for rid, f in changes]
        if len(rows) > MAX_BATCH:
            raise ValueError(f"Airtable update accepts at most {MAX_BATCH} records, got {len(rows)}")
        if not rows:
            return []
        body = self._call("PATCH", "update", json={"records": rows})
        return self._records(body)

    # --- diagnostics ---------------------------------------------------------
    def whoami(self) -> dict[str, Any]:
        return self._call("GET", "whoami", url=f"{self.cfg.api_base}/meta/whoami") or {}
