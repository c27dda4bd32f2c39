# ViewBridge test scripts
from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from vb_platform.errors import StoreUnavailable
from vb_platform.models import CollectionItem, CounterRecord


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    for env in (
        "AIRTABLE_API_KEY",
        "AIRTABLE_BASE_ID",
        "AIRTABLE_TABLE_NAME",
        "WEBFLOW_API_TOKEN",
        "WEBFLOW_COLLECTION_ID",
        "WEBFLOW_SITE_ID",
        "VB_LOG_LEVEL",
    ):
        monkeypatch.delenv(env, raising=False)
    return tmp_path


@dataclass
class FakeRecords:
    """In-memory record store; ``delay`` widens the read-then-write window."""

    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
    delay: float = 0.0
    fail_list: bool = False
    fail_create_for: set[str] = field(default_factory=set)
    create_calls: list[list[dict[str, Any]]] = field(default_factory=list)
    update_calls: list[list[tuple[str, dict[str, Any]]]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _seq: int = 0

    def seed(self, slug: str, *, view_count: int = 0, old_views: int = 0, title: str | None = None) -> str:
        with self._lock:
            self._seq += 1
            rid = f"rec{self._seq}"
            self.rows[rid] = {
                "slug": slug,
                "title": slug if title is None else title,
                "view_count": view_count,
                "old_views": old_views,
            }
            return rid

    def by_slug(self, slug: str) -> CounterRecord | None:
        for rid, f in self.rows.items():
            if f.get("slug") == slug:
                return CounterRecord.from_fields(rid, f)
        return None

    def find(self, slug: str) -> CounterRecord | None:
        with self._lock:
            rec = self.by_slug(slug)
        if self.delay:
            time.sleep(self.delay)
        return rec

    def list_all(self) -> list[CounterRecord]:
        if self.fail_list:
            raise StoreUnavailable("list failed", store="FAKE", status=503)
        with self._lock:
            return [CounterRecord.from_fields(rid, f) for rid, f in self.rows.items()]

    def new_fields(self, slug: str, *, title: str = "", view_count: int = 0, old_views: int = 0) -> dict[str, Any]:
        return {"slug": slug, "title": title or slug, "view_count": view_count, "old_views": old_views}

    def create(self, fields_list: Iterable[Mapping[str, Any]]) -> list[CounterRecord]:
        batch = [dict(f) for f in fields_list]
        assert len(batch) <= 10
        self.create_calls.append(batch)
        if any(f.get("slug") in self.fail_create_for for f in batch):
            raise StoreUnavailable("create failed", store="FAKE", status=422, details={"error": "INVALID"})
        out: list[CounterRecord] = []
        for f in batch:
            rid = self.seed(f["slug"], view_count=f["view_count"], old_views=f["old_views"], title=f["title"])
            out.append(CounterRecord.from_fields(rid, self.rows[rid]))
        return out

    def update(self, record_id: str, fields: Mapping[str, Any]) -> CounterRecord:
        return self.update_many([(record_id, fields)])[0]

    def update_many(self, changes: Iterable[tuple[str, Mapping[str, Any]]]) -> list[CounterRecord]:
        batch = [(rid, dict(f)) for rid, f in changes]
        assert len(batch) <= 10
        self.update_calls.append(batch)
        out: list[CounterRecord] = []
        with self._lock:
            for rid, f in batch:
                self.rows[rid].update(f)
                out.append(CounterRecord.from_fields(rid, self.rows[rid]))
        return out


@dataclass
class FakeCollection:
    items: dict[str, dict[str, Any]] = field(default_factory=dict)
    views_field: str = "total-views"
    site: str = "site123"
    fail_list: bool = False
    fail_write_for: set[str] = field(default_factory=set)
    fail_publish: bool = False
    list_calls: int = 0
    created: list[dict[str, Any]] = field(default_factory=list)
    updates: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    publish_calls: list[str | None] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _seq: int = 0

    def seed(self, slug: str, *, total: int = 0, name: str | None = None) -> str:
        self._seq += 1
        iid = f"item{self._seq}"
        self.items[iid] = {"slug": slug, "name": slug if name is None else name, self.views_field: total}
        return iid

    def _item(self, iid: str) -> CollectionItem:
        return CollectionItem.from_api({"id": iid, "fieldData": self.items[iid]}, views_field=self.views_field)

    def get_collection(self) -> dict[str, Any]:
        return {
            "id": "coll1",
            "siteId": self.site,
            "displayName": "Blog Posts",
            "slug": "blog",
            "fields": [{"slug": "name"}, {"slug": "slug"}, {"slug": self.views_field}],
        }

    def site_id(self) -> str:
        return self.site

    def list_items(self) -> list[CollectionItem]:
        self.list_calls += 1
        if self.fail_list:
            raise StoreUnavailable("items failed", store="FAKE", status=500)
        return [self._item(iid) for iid in self.items]

    def find_item(self, slug: str) -> CollectionItem | None:
        for iid, f in self.items.items():
            if f.get("slug") == slug:
                return self._item(iid)
        return None

    def create_item(self, fields: Mapping[str, Any]) -> CollectionItem:
        f = dict(fields)
        if f.get("slug") in self.fail_write_for:
            raise StoreUnavailable("create item failed", store="FAKE", status=400, details={"msg": "bad"})
        self.created.append(f)
        iid = self.seed(f["slug"], total=f.get(self.views_field, 0), name=f.get("name"))
        return self._item(iid)

    def update_item(self, item_id: str, fields: Mapping[str, Any]) -> CollectionItem:
        f = dict(fields)
        if self.items[item_id].get("slug") in self.fail_write_for:
            raise StoreUnavailable("update item failed", store="FAKE", status=400)
        with self._lock:
            self.updates.append((item_id, f))
            self.items[item_id].update(f)
        return self._item(item_id)

    def publish_site(self, site_id: str | None = None) -> dict[str, Any]:
        self.publish_calls.append(site_id)
        if self.fail_publish:
            raise StoreUnavailable("publish failed", store="FAKE", status=429)
        return {"queued": True}


@pytest.fixture()
def records() -> FakeRecords:
    return FakeRecords()


@pytest.fixture()
def collection() -> FakeCollection:
    return FakeCollection()
