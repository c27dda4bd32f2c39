# ViewBridge test scripts
from __future__ import annotations

import pytest
import responses
from responses import matchers

from providers._mod_WEBFLOW import WebflowCollection, WebflowConfig, WebflowError

API = "https://api.webflow.com/v2"
COLL = f"{API}/collections/coll1"


def make(**kw) -> WebflowCollection:
    kw.setdefault("max_retries", 1)
    return WebflowCollection(WebflowConfig(api_token="wfTOKEN", collection_id="coll1", **kw))


def _item(iid: str, slug: str, views: int | None = None, name: str = "") -> dict:
    fd: dict = {"slug": slug, "name": name or slug}
    if views is not None:
        fd["total-views"] = views
    return {"id": iid, "fieldData": fd}


def test_list_items_paginates_until_total() -> None:
    wf = make(page_size=2)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{COLL}/items",
            match=[matchers.query_param_matcher({"offset": "0", "limit": "2"})],
            json={"items": [_item("i1", "a", 3), _item("i2", "b")], "pagination": {"total": 3}},
        )
        rsps.add(
            responses.GET,
            f"{COLL}/items",
            match=[matchers.query_param_matcher({"offset": "2", "limit": "2"})],
            json={"items": [_item("i3", "c-0a1b2", 7)], "pagination": {"total": 3}},
        )
        items = wf.list_items()

    assert [i.slug for i in items] == ["a", "b", "c-0a1b2"]
    assert [i.total_views for i in items] == [3, 0, 7]


def test_find_item_by_slug() -> None:
    wf = make()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{COLL}/items",
            match=[matchers.query_param_matcher({"slug": "hello"})],
            json={"items": [_item("i9", "hello", 12, name="Hello World")]},
        )
        item = wf.find_item("hello")
    assert item is not None
    assert (item.id, item.name, item.total_views) == ("i9", "Hello World", 12)


def test_create_and_update_send_field_data() -> None:
    wf = make(views_field="views")
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{COLL}/items",
            match=[
                matchers.json_params_matcher(
                    {"isArchived": False, "isDraft": False, "fieldData": {"name": "A", "slug": "a", "views": 5}}
                )
            ],
            json={"id": "new1", "fieldData": {"name": "A", "slug": "a", "views": 5}},
        )
        rsps.add(
            responses.PATCH,
            f"{COLL}/items/new1",
            match=[matchers.json_params_matcher({"fieldData": {"views": 6}})],
            json={"id": "new1", "fieldData": {"name": "A", "slug": "a", "views": 6}},
        )
        created = wf.create_item({"name": "A", "slug": "a", "views": 5})
        updated = wf.update_item(created.id, {"views": 6})

    assert created.total_views == 5
    assert updated.total_views == 6


def test_site_id_is_resolved_once_and_used_for_publish() -> None:
    wf = make()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, COLL, json={"id": "coll1", "siteId": "site9", "displayName": "Blog"})
        rsps.add(
            responses.POST,
            f"{API}/sites/site9/publish",
            match=[matchers.json_params_matcher({"publishToWebflowSubdomain": True})],
            json={"customDomains": [], "publishToWebflowSubdomain": True},
        )
        assert wf.site_id() == "site9"
        assert wf.site_id() == "site9"
        wf.publish_site()
        assert len([c for c in rsps.calls if c.request.method == "GET"]) == 1


def test_configured_site_id_skips_lookup() -> None:
    wf = make(site_id="cfgsite", custom_domains=["dom1"])
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/sites/cfgsite/publish",
            match=[matchers.json_params_matcher({"publishToWebflowSubdomain": True, "customDomains": ["dom1"]})],
            json={},
        )
        wf.publish_site()


def test_missing_site_id_raises() -> None:
    wf = make()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, COLL, json={"id": "coll1"})
        with pytest.raises(WebflowError, match="Site ID"):
            wf.site_id()


def test_error_body_is_attached() -> None:
    wf = make()
    body = {"code": "validation_error", "message": "Validation Error", "details": [{"param": "slug"}]}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{COLL}/items", json=body, status=400)
        with pytest.raises(WebflowError) as ei:
            wf.create_item({"slug": "x"})
    assert ei.value.status == 400
    assert ei.value.details == body


def test_missing_token_raises() -> None:
    with pytest.raises(WebflowError):
        WebflowCollection(WebflowConfig(api_token="", collection_id="coll1"))
