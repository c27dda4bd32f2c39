# services/reconcile.py
# ViewBridge - reconciliation between the record store and the CMS collection
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
"""
Two-way reconciliation passes.

pull          collection -> records   create counters for collection slugs we do not track yet
push          records -> collection   create missing items, update drifted ``total-views``, publish once
update_counts records -> collection   update drifted items only, never create
fix_titles    collection -> records   fill empty record titles from item names

Every pass runs under a debounced ``InFlight`` keyed by its name, so a burst of
webhook triggers inside the debounce window shares one execution and one
result. Per-item failures are collected in ``errors``; a failure to list either
store aborts the pass and propagates as ``StoreUnavailable``.
"""
from __future__ import annotations

import copy
import time
from typing import Any, Callable, Iterable, Mapping

from _logging import Logger, log as _root_log
from vb_platform._types import CollectionStore, RecordStore
from vb_platform.errors import InvalidInput, StoreUnavailable, ViewBridgeError
from vb_platform.inflight import InFlight
from vb_platform.models import CollectionItem, CounterRecord, base_slug

__all__ = ["Reconciler", "MAX_RECORD_BATCH"]

# Record store write limit per call.
MAX_RECORD_BATCH = 10


def _chunks(seq: list[Any], n: int) -> Iterable[list[Any]]:
    for i in range(0, len(seq), n):
        yield seq[i : i + n]


def _err(e: BaseException) -> Any:
    details = getattr(e, "details", None)
    return details if details is not None else str(e)


class Reconciler:
    def __init__(
        self,
        records: RecordStore,
        collection: CollectionStore | None = None,
        *,
        inflight: InFlight | None = None,
        debounce_s: float = 5.0,
        batch_size: int = MAX_RECORD_BATCH,
        batch_pause_ms: int = 200,
        item_pause_ms: int = 200,
        publish_after_push: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        logger: Logger | None = None,
    ):
        self.records = records
        self.collection = collection
        self.inflight = inflight or InFlight("sync", debounce_s=debounce_s)
        self.batch_size = max(1, min(MAX_RECORD_BATCH, int(batch_size)))
        self.batch_pause = max(0, int(batch_pause_ms)) / 1000.0
        self.item_pause = max(0, int(item_pause_ms)) / 1000.0
        self.publish_after_push = bool(publish_after_push)
        self._sleep = sleep
        self.log = logger or _root_log.child("SYNC")

    @property
    def coll(self) -> CollectionStore:
        # init_slugs works without a collection; every other pass needs one
        if self.collection is None:
            raise StoreUnavailable("Collection is not configured", store="WEBFLOW")
        return self.collection

    # --- entry points (deduplicated) -----------------------------------------
    def pull(self, trigger: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return self._guarded("pull", trigger, self._pull)

    def push(self, trigger: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return self._guarded("push", trigger, self._push)

    def update_counts(self, trigger: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return self._guarded("update-counts", trigger, self._update_counts)

    def fix_titles(self, trigger: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return self._guarded("fix-titles", trigger, self._fix_titles)

    def _guarded(self, op: str, trigger: Mapping[str, Any] | None, fn: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        t = dict(trigger or {})
        if t.get("triggerType"):
            self.log.info(f"{op}: trigger type {t['triggerType']}")
        if t.get("signature"):
            self.log.warn(f"{op}: webhook signature present, verification is not enabled")

        def _run() -> dict[str, Any]:
            self.log.info(f"{op}: starting")
            t0 = time.monotonic()
            try:
                out = fn()
            except Exception as e:
                self.log.error(f"{op}: fatal: {e}")
                raise
            out["duration_ms"] = int((time.monotonic() - t0) * 1000)
            self.log.info(f"{op}: {out.get('message', 'done')}")
            return out

        # the debounce cache hands this outcome to every caller in the window
        return copy.deepcopy(self.inflight.run(op, _run))

    # --- fetch helpers -------------------------------------------------------
    def _fetch_both(self) -> tuple[list[CounterRecord], list[CollectionItem]]:
        items = self.coll.list_items()
        self.log.info(f"found {len(items)} items in collection")
        recs = self.records.list_all()
        self.log.info(f"found {len(recs)} records")
        return recs, items

    def _pace(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    # --- pull ----------------------------------------------------------------
    def _pull(self) -> dict[str, Any]:
        recs, items = self._fetch_both()
        known = {r.slug for r in recs if r.slug}

        missing: dict[str, CollectionItem] = {}
        for it in items:
            if it.slug and it.slug not in known and it.slug not in missing:
                missing[it.slug] = it

        stats = {"total_collection": len(items), "total_records": len(recs), "missing": len(missing)}
        if not missing:
            return {
                "success": True,
                "message": "All collection items already exist in the record store",
                "created": [],
                "errors": [],
                "stats": {**stats, "created_count": 0, "error_count": 0},
            }

        created: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        batches = list(_chunks(list(missing.values()), self.batch_size))
        for n, batch in enumerate(batches, start=1):
            try:
                self.log.debug(f"pull: creating batch {n}/{len(batches)} ({len(batch)} records)")
                rows = [self.records.new_fields(it.slug, title=it.name or it.slug) for it in batch]
                made = self.records.create(rows)
                for it, rec in zip(batch, made):
                    created.append({"slug": it.slug, "title": it.name or it.slug, "record_id": rec.id, "item_id": it.id})
            except ViewBridgeError as e:
                self.log.error(f"pull: batch {n} failed: {e}")
                errors.extend({"slug": it.slug, "action": "create", "error": _err(e)} for it in batch)
            if n < len(batches):
                self._pace(self.batch_pause)

        return {
            "success": True,
            "message": f"Sync completed: {len(created)} created, {len(errors)} errors",
            "created": created,
            "errors": errors,
            "stats": {**stats, "created_count": len(created), "error_count": len(errors)},
        }

    # --- push ----------------------------------------------------------------
    @staticmethod
    def _item_index(items: Iterable[CollectionItem]) -> tuple[dict[str, CollectionItem], dict[str, CollectionItem]]:
        """(exact slug -> item, base slug -> item); first item wins in both."""
        exact: dict[str, CollectionItem] = {}
        by_base: dict[str, CollectionItem] = {}
        for it in items:
            if it.slug:
                exact.setdefault(it.slug, it)
                by_base.setdefault(base_slug(it.slug), it)
        return exact, by_base

    def _push(self) -> dict[str, Any]:
        recs, items = self._fetch_both()
        exact, by_base = self._item_index(items)
        views_field = self.coll.views_field

        to_create: list[CounterRecord] = []
        to_update: list[tuple[CounterRecord, CollectionItem]] = []
        unchanged = 0
        for rec in recs:
            if not rec.slug:
                continue
            it = exact.get(rec.slug) or by_base.get(rec.slug)
            if it is None:
                to_create.append(rec)
            elif it.total_views != rec.total_views:
                to_update.append((rec, it))
            else:
                unchanged += 1
        self.log.info(f"push: to create {len(to_create)}, to update {len(to_update)}, unchanged {unchanged}")

        created: list[dict[str, Any]] = []
        updated: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []

        for rec in to_create:
            try:
                item = self.coll.create_item(
                    {"name": rec.display_title, "slug": rec.slug, views_field: rec.total_views}
                )
                created.append({"slug": rec.slug, "title": rec.display_title, "item_id": item.id})
            except ViewBridgeError as e:
                self.log.error(f"push: create {rec.slug!r} failed: {e}")
                errors.append({"slug": rec.slug, "action": "create", "error": _err(e)})
            self._pace(self.item_pause)

        for rec, it in to_update:
            res = self._update_item(rec, it, errors)
            if res:
                updated.append(res)

        published = self._publish_if(bool(created or updated))
        stats = {
            "total_records": len(recs),
            "total_collection": len(items),
            "to_create": len(to_create),
            "to_update": len(to_update),
            "unchanged": unchanged,
            "created_count": len(created),
            "updated_count": len(updated),
            "error_count": len(errors),
        }
        return {
            "success": True,
            "message": f"Sync completed: {len(created)} created, {len(updated)} updated, {len(errors)} errors",
            "published": published,
            "created": created,
            "updated": updated,
            "errors": errors,
            "stats": stats,
        }

    def _update_item(self, rec: CounterRecord, it: CollectionItem, errors: list[dict[str, Any]]) -> dict[str, Any] | None:
        try:
            self.coll.update_item(it.id, {self.coll.views_field: rec.total_views})
            return {"slug": rec.slug, "item_id": it.id, "updated_from": it.total_views, "updated_to": rec.total_views}
        except ViewBridgeError as e:
            self.log.error(f"update {rec.slug!r} failed: {e}")
            errors.append({"slug": rec.slug, "action": "update", "error": _err(e)})
            return None
        finally:
            self._pace(self.item_pause)

    def _publish_if(self, changed: bool) -> str:
        if not changed or not self.publish_after_push:
            return "skipped"
        try:
            self.coll.publish_site()
        except ViewBridgeError as e:
            self.log.error(f"publish failed: {e}")
            return f"failed: {e}"
        return "success"

    # --- update counts -------------------------------------------------------
    def _update_counts(self) -> dict[str, Any]:
        recs, items = self._fetch_both()
        by_slug = {r.slug: r for r in recs if r.slug}

        updated: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        not_in_records: list[str] = []
        unchanged = 0
        for it in items:
            if not it.slug:
                continue
            rec = by_slug.get(it.slug) or by_slug.get(base_slug(it.slug))
            if rec is None:
                not_in_records.append(it.slug)
                continue
            if it.total_views == rec.total_views:
                unchanged += 1
                continue
            res = self._update_item(rec, it, errors)
            if res:
                updated.append(res)

        published = self._publish_if(bool(updated))
        return {
            "success": True,
            "message": f"Counts updated: {len(updated)} updated, {len(errors)} errors",
            "published": published,
            "updated": updated,
            "errors": errors,
            "not_in_records": not_in_records,
            "stats": {
                "total_records": len(by_slug),
                "total_collection": len(items),
                "unchanged": unchanged,
                "updated_count": len(updated),
                "error_count": len(errors),
                "not_in_records_count": len(not_in_records),
            },
        }

    # --- fix titles ----------------------------------------------------------
    def _fix_titles(self) -> dict[str, Any]:
        recs, items = self._fetch_both()
        titles = {it.slug: it.name for it in items if it.slug and it.name}

        todo: list[tuple[CounterRecord, str]] = []
        for rec in recs:
            if not rec.slug or (rec.title or "").strip():
                continue
            name = titles.get(rec.slug)
            if name:
                todo.append((rec, name))
            else:
                self.log.debug(f"fix-titles: no collection title for {rec.slug!r}")

        updated: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        batches = list(_chunks(todo, self.batch_size))
        for n, batch in enumerate(batches, start=1):
            try:
                self.records.update_many([(rec.id, {"title": name}) for rec, name in batch])
                updated.extend({"slug": rec.slug, "title": name, "record_id": rec.id} for rec, name in batch)
            except ViewBridgeError as e:
                self.log.error(f"fix-titles: batch {n} failed: {e}")
                errors.extend({"slug": rec.slug, "action": "update", "error": _err(e)} for rec, _ in batch)
            if n < len(batches):
                self._pace(self.batch_pause)

        return {
            "success": True,
            "message": f"Title fix completed: {len(updated)} updated, {len(errors)} errors",
            "updated": updated,
            "errors": errors,
            "stats": {
                "total_checked": len(recs),
                "needed_fix": len(todo),
                "updated_count": len(updated),
                "error_count": len(errors),
            },
        }

    # --- seeding & publishing ------------------------------------------------
    def init_slugs(self, slugs: Iterable[str]) -> dict[str, Any]:
        wanted: list[str] = []
        for s in slugs:
            s = str(s or "").strip()
            if s and s not in wanted:
                wanted.append(s)
        if not wanted:
            raise InvalidInput("No slugs supplied")

        existing = {r.slug for r in self.records.list_all() if r.slug}
        new = [s for s in wanted if s not in existing]
        created: list[str] = []
        errors: list[dict[str, Any]] = []
        batches = list(_chunks(new, self.batch_size))
        for n, batch in enumerate(batches, start=1):
            try:
                self.records.create([self.records.new_fields(s, title=s) for s in batch])
                created.extend(batch)
                self.log.info(f"init: created {len(created)}/{len(new)} records")
            except ViewBridgeError as e:
                self.log.error(f"init: batch {n} failed: {e}")
                errors.extend({"slug": s, "action": "create", "error": _err(e)} for s in batch)
            if n < len(batches):
                self._pace(self.batch_pause)

        return {
            "success": True,
            "message": f"Init completed: {len(created)} created, {len(errors)} errors",
            "created": created,
            "errors": errors,
            "stats": {
                "requested": len(wanted),
                "existing": len(wanted) - len(new),
                "created_count": len(created),
                "error_count": len(errors),
                "total_records": len(existing) + len(created),
            },
        }

    def publish(self) -> dict[str, Any]:
        sid = self.coll.site_id()
        data = self.coll.publish_site(sid)
        self.log.success(f"site {sid} published")
        return {"success": True, "message": "Site published successfully", "site_id": sid, "data": data}
