# services/counter.py
# ViewBridge - per-slug view counters
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from _logging import Logger, log as _root_log
from vb_platform._types import CollectionStore, RecordStore
from vb_platform.errors import InvalidInput, NotFound, ViewBridgeError
from vb_platform.inflight import InFlight

__all__ = ["CounterService"]


def _clean_slug(slug: Any) -> str:
    s = str(slug or "").strip()
    if not s:
        raise InvalidInput("Slug is required")
    return s


class CounterService:
    """
    Read and increment per-slug view counts in the record store.

    Increments for one slug go through ``inflight``: while a read-then-write
    for that slug is running, further requests wait for it and get the same
    count back instead of writing again.
    After a successful write the new total is mirrored into the collection on
    a background thread; that mirror never affects the increment result.
    """

    def __init__(
        self,
        records: RecordStore,
        collection: CollectionStore | None = None,
        *,
        inflight: InFlight | None = None,
        mirror: bool = True,
        lookup_title: bool = False,
        mirror_workers: int = 4,
        logger: Logger | None = None,
    ):
        self.records = records
        self.collection = collection
        self.inflight = inflight or InFlight("increment")
        self.mirror_enabled = bool(mirror and collection is not None)
        self.lookup_title = bool(lookup_title and collection is not None)
        self.log = logger or _root_log.child("COUNTER")
        self.mirror_log = self.log.child("MIRROR")
        self._bg = ThreadPoolExecutor(max_workers=max(1, int(mirror_workers)), thread_name_prefix="vb-mirror")

    # --- reads ---------------------------------------------------------------
    def get_count(self, slug: str) -> dict[str, Any]:
        s = _clean_slug(slug)
        rec = self.records.find(s)
        if rec is None:
            raise NotFound("Blog post not found", details={"slug": s, "view_count": 0})
        return {
            "slug": s,
            "view_count": rec.view_count,
            "total_views": rec.total_views,
            "title": rec.title or "",
            "record_id": rec.id,
        }

    def get_all_counts(self) -> list[dict[str, Any]]:
        rows = [r.summary() for r in self.records.list_all() if r.slug]
        rows.sort(key=lambda r: r["total_views"], reverse=True)
        return rows

    # --- increment -----------------------------------------------------------
    def increment(self, slug: str) -> dict[str, Any]:
        s = _clean_slug(slug)
        return dict(self.inflight.run(s, lambda: self._increment(s)))

    def _increment(self, slug: str) -> dict[str, Any]:
        rec = self.records.find(slug)
        if rec is None:
            title = self._title_for(slug)
            self.log.info(f"auto-create record for {slug!r} (title={title!r})")
            created = self.records.create([self.records.new_fields(slug, title=title, view_count=1, old_views=0)])
            if not created:
                raise ViewBridgeError(f"Record store returned nothing for new slug {slug!r}")
            rec = created[0]
            auto_created = True
        else:
            before = rec.view_count
            rec = self.records.update(rec.id, {"view_count": before + 1})
            self.log.debug(f"{slug}: view_count {before} -> {rec.view_count}")
            auto_created = False

        self.schedule_mirror(slug, rec.total_views)
        return {
            "slug": slug,
            "view_count": rec.view_count,
            "total_views": rec.total_views,
            "record_id": rec.id,
            "auto_created": auto_created,
            "message": "View count incremented successfully",
        }

    def _title_for(self, slug: str) -> str:
        if not self.lookup_title or self.collection is None:
            return slug
        try:
            item = self.collection.find_item(slug)
        except ViewBridgeError as e:
            self.log.warn(f"title lookup failed for {slug!r}: {e}")
            return slug
        return (item.name or slug) if item else slug

    # --- background mirror ---------------------------------------------------
    def schedule_mirror(self, slug: str, total_views: int) -> Future | None:
        if not self.mirror_enabled:
            return None
        try:
            return self._bg.submit(self._mirror, slug, total_views)
        except RuntimeError as e:
            # executor already shut down
            self.mirror_log.warn(f"mirror not scheduled for {slug!r}: {e}")
            return None

    def _mirror(self, slug: str, total_views: int) -> bool:
        coll = self.collection
        if coll is None:
            return False
        try:
            item = coll.find_item(slug)
            if item is None:
                self.mirror_log.info(f"{slug!r} not in collection, skipped")
                return False
            if item.total_views == total_views:
                return True
            coll.update_item(item.id, {coll.views_field: total_views})
            self.mirror_log.success(f"{slug}: {item.total_views} -> {total_views}")
            return True
        except Exception as e:
            self.mirror_log.error(f"mirror failed for {slug!r}: {e}")
            return False

    def close(self, wait: bool = True) -> None:
        self._bg.shutdown(wait=wait)
