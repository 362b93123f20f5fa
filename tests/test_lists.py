"""Tests for SPList and SPItem."""

import pytest

from sharepointclient import ListTemplate, SPItem, SPList
from sharepointclient.exceptions import HydrationError, ItemNotFoundError, SharePointError

from .test_utils import MockSharePoint, item_payload, list_payload

LIST_GUID = "f5b0b6b8-4f1c-4f7a-9b43-3b8a1f1b2c3d"
LIST_API = f"/_api/web/Lists(guid'{LIST_GUID}')"
ITEM_GUID = "0c5cbfe2-0c9d-4b0e-8c71-2d2b6b2f1a11"


def make_list(sharepoint, **overrides):
    return SPList(sharepoint.site(), list_payload(**overrides))


class TestSPList:
    def setup_method(self):
        self.sharepoint = MockSharePoint()

    def test_hydration(self):
        sp_list = make_list(self.sharepoint)
        assert sp_list.guid == LIST_GUID
        assert sp_list.title == "Documents"
        assert sp_list.template == ListTemplate.DOCUMENT_LIBRARY
        assert sp_list.item_type == "SP.Data.Shared_x0020_DocumentsItem"
        assert sp_list.relative_url == "/sites/mySite/Shared Documents"
        assert sp_list.type == "SP.List"

    def test_missing_root_folder_fails(self):
        payload = list_payload()
        del payload["RootFolder"]
        with pytest.raises(HydrationError):
            SPList(self.sharepoint.site(), payload)

    def test_urls(self):
        sp_list = make_list(self.sharepoint)
        assert sp_list.get_relative_url() == "/sites/mySite/Shared Documents"
        assert sp_list.get_relative_url("Reports") == "/sites/mySite/Shared Documents/Reports"
        assert sp_list.get_url("Reports") == (
            "https://example.sharepoint.com/sites/mySite/Shared Documents/Reports"
        )

    def test_is_writable(self):
        assert make_list(self.sharepoint).is_writable()
        tasks = make_list(self.sharepoint, BaseTemplate=107)
        assert not tasks.is_writable()
        with pytest.raises(SharePointError) as exc_info:
            tasks.is_writable(raise_error=True)
        assert str(exc_info.value) == (
            "SPList Template Type [107] does not allow SPFolder/SPFile operations"
        )

    def test_get_all_filters_templates(self):
        self.sharepoint.add(
            "GET",
            "/_api/web/Lists",
            json={
                "d": {
                    "results": [
                        list_payload(),
                        list_payload(Id="b1", Title="Tasks", BaseTemplate=107),
                        list_payload(Id="c1", Title="Master Page Gallery", BaseTemplate=116),
                    ]
                }
            },
        )
        site = self.sharepoint.site()

        lists = SPList.get_all(site)

        assert list(lists) == [LIST_GUID, "b1"]
        assert self.sharepoint.last_request.url.params["$expand"] == "RootFolder"

        only_tasks = SPList.get_all(site, allowed_templates=[ListTemplate.TASKS])
        assert list(only_tasks) == ["b1"]

    def test_get_by_title(self):
        self.sharepoint.add(
            "GET", "/_api/web/Lists/GetByTitle('Documents')", json={"d": list_payload()}
        )
        sp_list = SPList.get_by_title(self.sharepoint.site(), "Documents")
        assert sp_list.guid == LIST_GUID

    def test_get_by_guid(self):
        self.sharepoint.add("GET", LIST_API, json={"d": list_payload()})
        sp_list = SPList.get_by_guid(
            self.sharepoint.site(), LIST_GUID, {"entity_type": "ListItemEntityTypeFullName"}
        )
        assert sp_list.title == "Documents"
        assert sp_list.get_extra("entity_type") == "SP.Data.Shared_x0020_DocumentsItem"

    def test_get_by_title_requires_title(self):
        with pytest.raises(SharePointError):
            SPList.get_by_title(self.sharepoint.site(), "")

    def test_create(self):
        self.sharepoint.add("POST", "/_api/web/Lists", json={"d": list_payload(Title="Reports")})

        sp_list = SPList.create(self.sharepoint.site(), {"Title": "Reports"})

        assert sp_list.title == "Reports"
        body = self.sharepoint.last_json()
        assert body == {
            "BaseTemplate": 101,
            "Title": "Reports",
            "__metadata": {"type": "SP.List"},
        }
        assert self.sharepoint.last_request.headers["X-RequestDigest"] == "test-digest"

    def test_update(self):
        self.sharepoint.add("POST", LIST_API, status_code=204)
        sp_list = make_list(self.sharepoint)

        assert sp_list.update({"Title": "Archive", "Description": "Old files"}) is sp_list

        assert sp_list.title == "Archive"
        assert sp_list.description == "Old files"
        assert sp_list.relative_url == "/sites/mySite/Shared Documents"
        request = self.sharepoint.last_request
        assert request.headers["X-HTTP-Method"] == "MERGE"
        assert request.headers["IF-MATCH"] == "*"
        assert self.sharepoint.last_json()["__metadata"] == {"type": "SP.List"}

    def test_delete(self):
        self.sharepoint.add("POST", LIST_API, status_code=200)
        assert make_list(self.sharepoint).delete() is True
        assert self.sharepoint.last_request.headers["X-HTTP-Method"] == "DELETE"

    def test_create_field(self):
        self.sharepoint.add("POST", f"{LIST_API}/Fields", json={"d": {"Id": "field-id"}})

        field_id = make_list(self.sharepoint).create_field({"Title": "Owner"})

        assert field_id == "field-id"
        assert self.sharepoint.last_json() == {
            "FieldTypeKind": 2,
            "Title": "Owner",
            "__metadata": {"type": "SP.Field"},
        }

    def test_get_item_count(self):
        self.sharepoint.add("GET", f"{LIST_API}/ItemCount", json={"d": {"ItemCount": 3}})
        assert make_list(self.sharepoint).get_item_count() == 3


class TestSPItem:
    def setup_method(self):
        self.sharepoint = MockSharePoint()
        self.sp_list = make_list(self.sharepoint)

    def test_get_items(self):
        self.sharepoint.add(
            "GET",
            f"{LIST_API}/items",
            json={"d": {"results": [item_payload(), item_payload(Id=2, GUID="g2", Title="Other")]}},
        )

        items = self.sp_list.get_items(top=10)

        assert list(items) == [ITEM_GUID, "g2"]
        assert self.sp_list[ITEM_GUID].title == "Quarterly report"
        assert self.sharepoint.last_request.url.params["$top"] == "10"

    def test_fetch_on_construction(self):
        self.sharepoint.add("GET", f"{LIST_API}/items", json={"d": {"results": [item_payload()]}})
        sp_list = SPList(self.sharepoint.site(), list_payload(), fetch=True)
        assert len(sp_list) == 1

    def test_get_item(self):
        self.sharepoint.add("GET", f"{LIST_API}/items(1)", json={"d": item_payload()})
        item = self.sp_list.get_item(1)
        assert item.id == 1
        assert item.type == "SP.Data.Shared_x0020_DocumentsItem"
        assert self.sp_list[ITEM_GUID] is item

    def test_get_item_requires_id(self):
        with pytest.raises(SharePointError) as exc_info:
            SPItem.get_by_id(self.sp_list, None)
        assert str(exc_info.value) == "The Item ID is empty/not set"

    def test_create_item(self):
        self.sharepoint.add("POST", f"{LIST_API}/items", json={"d": item_payload()})

        item = self.sp_list.create_item({"Title": "Quarterly report"})

        assert ITEM_GUID in self.sp_list
        assert item.list is self.sp_list
        assert self.sharepoint.last_json() == {
            "Title": "Quarterly report",
            "__metadata": {"type": "SP.Data.Shared_x0020_DocumentsItem"},
        }

    def test_update_item(self):
        self.sharepoint.add("GET", f"{LIST_API}/items(1)", json={"d": item_payload()})
        self.sharepoint.add("POST", f"{LIST_API}/items(1)", status_code=204)
        self.sp_list.get_item(1)

        item = self.sp_list.update_item(ITEM_GUID, {"Title": "Annual report"})

        assert item.title == "Annual report"
        assert item.guid == ITEM_GUID
        assert self.sharepoint.last_request.headers["X-HTTP-Method"] == "MERGE"

    def test_delete_item(self):
        self.sharepoint.add("GET", f"{LIST_API}/items(1)", json={"d": item_payload()})
        self.sharepoint.add("POST", f"{LIST_API}/items(1)", status_code=200)
        self.sp_list.get_item(1)

        assert self.sp_list.delete_item(ITEM_GUID) is True

        assert ITEM_GUID not in self.sp_list

    def test_unknown_item(self):
        with pytest.raises(ItemNotFoundError):
            self.sp_list.update_item("nope", {"Title": "x"})
        with pytest.raises(ItemNotFoundError):
            self.sp_list.delete_item("nope")
