from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from sharepointclient.exceptions import SharePointError
from sharepointclient.objects import SPItemObject, odata_entity, odata_results, replace_recursive
from sharepointclient.site import ODATA_VERBOSE

if TYPE_CHECKING:  # pragma: no cover
    from sharepointclient.lists import SPList

logger = logging.getLogger(__name__)

DEFAULT_TOP = 5000


class SPItem(SPItemObject):
    """A SharePoint List Item.

    Attributes:
        type (str): The entity type, e.g. ``SP.Data.TasksListItem``.
        id (int): The item ID within its list.
        guid (str): The item GUID.
        title (str): The item title.
    """

    declared_fields = ("type", "id", "guid", "title")
    mapper = {
        "type": "__metadata.type",
        "id": "Id",
        "guid": "GUID",
        "title": "Title",
    }

    def __init__(
        self, sp_list: "SPList", payload: Any, extra: Optional[Mapping[str, str]] = None
    ) -> None:
        super().__init__(extra)
        self.list = sp_list
        self.hydrate(payload)

    def _api_url(self) -> str:
        return f"{self.list.api_url()}/items({self.id})"

    @classmethod
    def get_all(
        cls,
        sp_list: "SPList",
        extra: Optional[Mapping[str, str]] = None,
        top: int = DEFAULT_TOP,
    ) -> Dict[str, "SPItem"]:
        """Get all the items of a list, keyed by GUID.

        Args:
            sp_list (SPList): The list to read from.
            extra (Mapping[str, str], optional): Extra properties to map.
            top (int): Maximum number of items to return.
        """
        payload = sp_list.site.request(f"{sp_list.api_url()}/items", params={"$top": top})
        items = [cls(sp_list, entry, extra) for entry in odata_results(payload)]
        logger.debug("Fetched %d items from %s", len(items), sp_list.title)
        return {item.guid: item for item in items}

    @classmethod
    def get_by_id(
        cls, sp_list: "SPList", item_id: Any, extra: Optional[Mapping[str, str]] = None
    ) -> "SPItem":
        """Get a list item by its ID.

        Raises:
            SharePointError: If the item ID is empty.
        """
        if not item_id:
            raise SharePointError("The Item ID is empty/not set")

        payload = sp_list.site.request(f"{sp_list.api_url()}/items({item_id})")
        return cls(sp_list, odata_entity(payload), extra)

    @classmethod
    def create(
        cls,
        sp_list: "SPList",
        properties: Optional[Mapping[str, Any]] = None,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPItem":
        """Create a list item. The entity type is taken from the list."""
        body = replace_recursive(properties, {"__metadata": {"type": sp_list.item_type}})

        payload = sp_list.site.request(
            f"{sp_list.api_url()}/items",
            method="POST",
            headers={"Content-Type": ODATA_VERBOSE},
            json=body,
            digest=True,
        )
        item = cls(sp_list, odata_entity(payload), extra)
        logger.info("Created item %s in %s", item.id, sp_list.title)
        return item

    def update(self, properties: Mapping[str, Any]) -> "SPItem":
        """Update the item. SharePoint returns no body, so the sent properties are kept."""
        body = replace_recursive({"__metadata": {"type": self.type}}, properties)

        self.list.site.request(
            self._api_url(),
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
        self.list.site.request(
            self._api_url(),
            method="POST",
            headers={"X-HTTP-Method": "DELETE", "IF-MATCH": "*"},
            digest=True,
        )
        logger.info("Deleted item %s from %s", self.id, self.list.title)
        return True
