# services/__init__.py
# ViewBridge - service wiring for one process
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Mapping

from _logging import log as _root_log
from vb_platform._types import CollectionStore, RecordStore
from vb_platform.config_base import is_configured, section
from vb_platform.errors import StoreUnavailable
from vb_platform.inflight import InFlight

from . import counter, diagnostics, reconcile
from .counter import CounterService
from .reconcile import Reconciler

__all__ = [
    "counter",
    "reconcile",
    "diagnostics",
    "Bridge",
    "build_bridge",
]


class Bridge:
    """Services and de-duplication state owned by one process (one per app)."""

    def __init__(
        self,
        cfg: Mapping[str, Any],
        *,
        records: RecordStore | None = None,
        collection: CollectionStore | None = None,
    ):
        self.cfg = dict(cfg or {})
        self.records = records
        self.collection = collection
        ccfg = section(self.cfg, "counter")
        scfg = section(self.cfg, "sync")

        self.increments = InFlight("increment")
        self.syncs = InFlight("sync", debounce_s=float(scfg.get("debounce_seconds", 5.0)))

        self.counter: CounterService | None = None
        if records is not None:
            self.counter = CounterService(
                records,
                collection,
                inflight=self.increments,
                mirror=bool(ccfg.get("mirror_to_collection", True)),
                lookup_title=bool(ccfg.get("lookup_title_on_create", False)),
                mirror_workers=int(ccfg.get("mirror_workers", 4)),
            )

        self.reconciler: Reconciler | None = None
        if records is not None and collection is not None:
            self.reconciler = Reconciler(
                records,
                collection,
                inflight=self.syncs,
                batch_size=int(scfg.get("batch_size", 10)),
                batch_pause_ms=int(scfg.get("batch_pause_ms", 200)),
                item_pause_ms=int(scfg.get("item_pause_ms", 200)),
                publish_after_push=bool(scfg.get("publish_after_push", True)),
            )

    def require_counter(self) -> CounterService:
        if self.counter is None:
            raise StoreUnavailable("Record store is not configured", store="AIRTABLE")
        return self.counter

    def require_reconciler(self) -> Reconciler:
        if self.reconciler is None:
            raise StoreUnavailable("Record store and collection must both be configured")
        return self.reconciler

    def require_records(self) -> RecordStore:
        if self.records is None:
            raise StoreUnavailable("Record store is not configured", store="AIRTABLE")
        return self.records

    def require_collection(self) -> CollectionStore:
        if self.collection is None:
            raise StoreUnavailable("Collection is not configured", store="WEBFLOW")
        return self.collection

    def close(self) -> None:
        if self.counter is not None:
            self.counter.close(wait=False)


def build_bridge(cfg: Mapping[str, Any]) -> Bridge:
    from providers._mod_AIRTABLE import AirtableConfig, AirtableRecords
    from providers._mod_WEBFLOW import WebflowCollection, WebflowConfig

    c = dict(cfg or {})
    records = AirtableRecords(AirtableConfig.from_cfg(c)) if is_configured(c, "airtable") else None
    collection = WebflowCollection(WebflowConfig.from_cfg(c)) if is_configured(c, "webflow") else None
    if records is None:
        _root_log.child("BOOT").warn("Airtable is not configured; counter endpoints will answer 500")
    if collection is None:
        _root_log.child("BOOT").warn("Webflow is not configured; mirroring and sync are disabled")
    return Bridge(c, records=records, collection=collection)
