from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, Iterable, Mapping, Optional

from sharepointclient.exceptions import SharePointError
from sharepointclient.items import DEFAULT_TOP, SPItem
from sharepointclient.objects import SPListObject, odata_entity, odata_results, replace_recursive
from sharepointclient.site import ODATA_VERBOSE, SPSite, odata_literal

logger = logging.getLogger(__name__)


class ListTemplate(IntEnum):
    """SharePoint List base templates."""

    GENERIC_LIST = 100
    DOCUMENT_LIBRARY = 101
    SURVEY = 102
    LINKS = 103
    ANNOUNCEMENTS = 104
    CONTACTS = 105
    EVENTS = 106
    TASKS = 107
    DISCUSSION_BOARD = 108
    PICTURE_LIBRARY = 109
    WEBPAGE_LIBRARY = 119
    PAGES = 850


class FieldType(IntEnum):
    """SharePoint field types (``FieldTypeKind``)."""

    INTEGER = 1
    TEXT = 2
    NOTE = 3
    DATE_TIME = 4
    COUNTER = 5
    CHOICE = 6
    LOOKUP = 7
    BOOLEAN = 8
    NUMBER = 9
    CURRENCY = 10
    URL = 11
    COMPUTED = 12
    THREADING = 13
    GUID = 14
    MULTI_CHOICE = 15
    GRID_CHOICE = 16
    CALCULATED = 17
    FILE = 18
    ATTACHMENTS = 19
    USER = 20
    RECURRENCE = 21
    CROSS_PROJECT_LINK = 22
    MOD_STAT = 23
    ERROR = 24
    CONTENT_TYPE_ID = 25
    PAGE_SEPARATOR = 26
    THREAD_INDEX = 27
    WORKFLOW_STATUS = 28
    ALL_DAY_EVENT = 29
    WORKFLOW_EVENT_TYPE = 30


class SPList(SPListObject):
    """A SharePoint List, holding SPItems keyed by GUID.

    Attributes:
        type (str): The entity type, ``SP.List``.
        guid (str): The list GUID.
        title (str): The list title.
        template (int): The list base template, see ListTemplate.
        item_type (str): The entity type of the list items.
        relative_url (str): Server relative URL of the list root folder.
        description (str): The list description.
    """

    ALLOWED_TEMPLATES = frozenset(ListTemplate)

    # templates that hold folders and files
    WRITABLE_TEMPLATES = frozenset(
        {
            ListTemplate.DOCUMENT_LIBRARY,
            ListTemplate.PICTURE_LIBRARY,
            ListTemplate.WEBPAGE_LIBRARY,
            ListTemplate.PAGES,
        }
    )

    declared_fields = (
        "type",
        "guid",
        "title",
        "template",
        "item_type",
        "relative_url",
        "description",
    )
    mapper = {
        "template": "BaseTemplate",
        "type": "__metadata.type",
        "item_type": "ListItemEntityTypeFullName",
        "guid": "Id",
        "title": "Title",
        "relative_url": "RootFolder.ServerRelativeUrl",
        "description": "Description",
    }

    def __init__(
        self,
        site: SPSite,
        payload: Any,
        extra: Optional[Mapping[str, str]] = None,
        fetch: bool = False,
        item_extra: Optional[Mapping[str, str]] = None,
        top: int = DEFAULT_TOP,
    ) -> None:
        """
        Args:
            site (SPSite): The site the list belongs to.
            payload (Any): The list entity as returned by the REST API.
            extra (Mapping[str, str], optional): Extra properties to map.
            fetch (bool): Fetch the list items straight away.
            item_extra (Mapping[str, str], optional): Extra properties to map on items.
            top (int): Maximum number of items to fetch.
        """
        super().__init__(extra)
        self.site = site
        self.hydrate(payload)
        if fetch:
            self.get_items(item_extra, top)

    def api_url(self) -> str:
        return f"_api/web/Lists(guid{odata_literal(self.guid)})"

    def get_relative_url(self, path: Optional[str] = None) -> str:
        if not path:
            return self.relative_url
        return f"{self.relative_url.rstrip('/')}/{path.lstrip('/')}"

    def get_url(self, path: Optional[str] = None) -> str:
        return self.site.get_hostname(self.get_relative_url(path))

    def is_writable(
        self,
        raise_error: bool = False,
        writable_templates: Optional[Iterable[int]] = None,
    ) -> bool:
        """Whether the list holds folders and files.

        Raises:
            SharePointError: If ``raise_error`` is set and the list is not writable.
        """
        templates = self.WRITABLE_TEMPLATES if writable_templates is None else writable_templates
        writable = self.template in templates

        if not writable and raise_error:
            raise SharePointError(
                f"SPList Template Type [{self.template}] does not allow SPFolder/SPFile operations"
            )
        return writable

    @classmethod
    def get_all(
        cls,
        site: SPSite,
        extra: Optional[Mapping[str, str]] = None,
        allowed_templates: Optional[Iterable[int]] = None,
    ) -> Dict[str, "SPList"]:
        """Get all the lists of a site, keyed by GUID.

        Lists whose base template is not in ``allowed_templates`` are skipped.
        """
        templates = frozenset(
            cls.ALLOWED_TEMPLATES if allowed_templates is None else allowed_templates
        )

        payload = site.request("_api/web/Lists", params={"$expand": "RootFolder"})

        lists = {}
        for entry in odata_results(payload):
            if entry.get("BaseTemplate") not in templates:
                continue
            sp_list = cls(site, entry, extra)
            lists[sp_list.guid] = sp_list

        logger.debug("Fetched %d lists from %s", len(lists), site.url)
        return lists

    @classmethod
    def get_by_guid(
        cls, site: SPSite, guid: str, extra: Optional[Mapping[str, str]] = None
    ) -> "SPList":
        if not guid:
            raise SharePointError("The SharePoint List GUID is empty/not set")

        payload = site.request(
            f"_api/web/Lists(guid{odata_literal(guid)})", params={"$expand": "RootFolder"}
        )
        return cls(site, odata_entity(payload), extra)

    @classmethod
    def get_by_title(
        cls, site: SPSite, title: str, extra: Optional[Mapping[str, str]] = None
    ) -> "SPList":
        if not title:
            raise SharePointError("The SharePoint List Title is empty/not set")

        payload = site.request(
            f"_api/web/Lists/GetByTitle({odata_literal(title)})",
            params={"$expand": "RootFolder"},
        )
        return cls(site, odata_entity(payload), extra)

    @classmethod
    def create(
        cls,
        site: SPSite,
        properties: Mapping[str, Any],
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPList":
        """Create a list. The base template defaults to a document library.

        Example:
            >>> SPList.create(site, {"Title": "Reports", "Description": "Monthly reports"})
        """
        body = replace_recursive(
            {"BaseTemplate": int(ListTemplate.DOCUMENT_LIBRARY)},
            properties,
            {"__metadata": {"type": "SP.List"}},
        )

        payload = site.request(
            "_api/web/Lists",
            method="POST",
            headers={"Content-Type": ODATA_VERBOSE},
            json=body,
            digest=True,
        )
        sp_list = cls(site, odata_entity(payload), extra)
        logger.info("Created list %s", sp_list.title)
        return sp_list

    def update(self, properties: Mapping[str, Any]) -> "SPList":
        """Update the list. SharePoint returns no body, so the sent properties are kept."""
        body = replace_recursive(properties, {"__metadata": {"type": "SP.List"}})

        self.site.request(
            self.api_url(),
            method="POST",
            headers={
                "Content-Type": ODATA_VERBOSE,
                "X-HTTP-Method": "MERGE",
                "IF-MATCH": "*",
            },
            json=body,
            digest=True,
        )
        self.rehydrate(body)
        return self

    def delete(self) -> bool:
        self.site.request(
            self.api_url(),
            method="POST",
            headers={"X-HTTP-Method": "DELETE", "IF-MATCH": "*"},
            digest=True,
        )
        logger.info("Deleted list %s", self.title)
        return True

    def create_field(self, properties: Mapping[str, Any]) -> str:
        """Create a field in the list. The field type defaults to text.

        Returns:
            str: The new field ID.
        """
        body = replace_recursive(
            {"FieldTypeKind": int(FieldType.TEXT)},
            properties,
            {"__metadata": {"type": "SP.Field"}},
        )

        payload = self.site.request(
            f"{self.api_url()}/Fields",
            method="POST",
            headers={"Content-Type": ODATA_VERBOSE},
            json=body,
            digest=True,
        )
        return odata_entity(payload)["Id"]

    def get_item_count(self) -> int:
        payload = self.site.request(f"{self.api_url()}/ItemCount")
        return odata_entity(payload)["ItemCount"]

    def get_items(
        self, extra: Optional[Mapping[str, str]] = None, top: int = DEFAULT_TOP
    ) -> Dict[str, SPItem]:
        """Fetch the list items, replacing the ones held."""
        self._items = dict(SPItem.get_all(self, extra, top))
        return dict(self._items)

    def get_item(self, item_id: Any, extra: Optional[Mapping[str, str]] = None) -> SPItem:
        item = SPItem.get_by_id(self, item_id, extra)
        self.add(item)
        return item

    def create_item(
        self, properties: Mapping[str, Any], extra: Optional[Mapping[str, str]] = None
    ) -> SPItem:
        item = SPItem.create(self, properties, extra)
        self.add(item)
        return item

    def update_item(self, guid: str, properties: Mapping[str, Any]) -> SPItem:
        """Update a held item.

        Raises:
            ItemNotFoundError: If the item is not held by the list.
        """
        return self[guid].update(properties)

    def delete_item(self, guid: str) -> bool:
        """Delete a held item.

        Raises:
            ItemNotFoundError: If the item is not held by the list.
        """
        deleted = self[guid].delete()
        if deleted:
            del self[guid]
        return deleted
