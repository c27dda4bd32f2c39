# vb_platform/_types.py
# ViewBridge - store protocols consumed by the services
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from .models import CollectionItem, CounterRecord


class RecordStore(Protocol):
    def find(self, slug: str) -> CounterRecord | None: ...
    def list_all(self) -> list[CounterRecord]: ...
    def new_fields(
        self,
        slug: str,
        *,
        title: str = "",
        view_count: int = 0,
        old_views: int = 0,
    ) -> dict[str, Any]: ...
    def create(self, fields_list: Iterable[Mapping[str, Any]]) -> list[CounterRecord]: ...
    def update(self, record_id: str, fields: Mapping[str, Any]) -> CounterRecord: ...
    def update_many(self, changes: Iterable[tuple[str, Mapping[str, Any]]]) -> list[CounterRecord]: ...


class CollectionStore(Protocol):
    @property
    def views_field(self) -> str: ...
    def get_collection(self) -> dict[str, Any]: ...
    def site_id(self) -> str: ...
    def list_items(self) -> list[CollectionItem]: ...
    def find_item(self, slug: str) -> CollectionItem | None: ...
    def create_item(self, fields: Mapping[str, Any]) -> CollectionItem: ...
    def update_item(self, item_id: str, fields: Mapping[str, Any]) -> CollectionItem: ...
    def publish_site(self, site_id: str | None = None) -> dict[str, Any]: ...
