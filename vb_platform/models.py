# vb_platform/models.py
# ViewBridge - counter records and collection items
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "CounterRecord",
    "CollectionItem",
    "OLD_VIEWS_ALIASES",
    "base_slug",
    "as_count",
]

# "old_views" is canonical; "Views" is the legacy column name some tables still carry.
OLD_VIEWS_ALIASES: tuple[str, ...] = ("old_views", "Views")

# Webflow appends "-xxxxx" (5 lowercase hex) when two items collide on a slug.
_SUFFIX_RE = re.compile(r"-[0-9a-f]{5}$")


def base_slug(slug: str) -> str:
    return _SUFFIX_RE.sub("", str(slug or ""))


def as_count(v: Any) -> int:
    try:
        n = int(v or 0)
    except (TypeError, ValueError):
        return 0
    return n if n > 0 else 0


@dataclass
class CounterRecord:
    id: str
    slug: str
    title: str = ""
    view_count: int = 0
    old_views: int = 0

    @property
    def total_views(self) -> int:
        return self.old_views + self.view_count

    @property
    def display_title(self) -> str:
        return (self.title or "").strip() or self.slug

    @classmethod
    def from_fields(cls, record_id: str, fields: Mapping[str, Any]) -> CounterRecord:
        old = 0
        for name in OLD_VIEWS_ALIASES:
            if fields.get(name) is not None:
                old = as_count(fields.get(name))
                break
        return cls(
            id=str(record_id or ""),
            slug=str(fields.get("slug") or "").strip(),
            title=str(fields.get("title") or ""),
            view_count=as_count(fields.get("view_count")),
            old_views=old,
        )

    def summary(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "view_count": self.view_count,
            "total_views": self.total_views,
            "title": self.title or "",
            "old_views": self.old_views,
        }


@dataclass
class CollectionItem:
    id: str
    slug: str
    name: str = ""
    total_views: int = 0
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, item: Mapping[str, Any], *, views_field: str = "total-views") -> CollectionItem:
        fd = item.get("fieldData") or {}
        return cls(
            id=str(item.get("id") or ""),
            slug=str(fd.get("slug") or item.get("slug") or "").strip(),
            name=str(fd.get("name") or item.get("name") or ""),
            total_views=as_count(fd.get(views_field)),
            raw=dict(item),
        )
