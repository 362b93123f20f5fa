from __future__ import annotations

import logging
import posixpath
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from sharepointclient.exceptions import SharePointError
from sharepointclient.lists import SPList
from sharepointclient.objects import (
    SPItemObject,
    SPListObject,
    odata_entity,
    odata_results,
    replace_recursive,
)
from sharepointclient.site import ODATA_VERBOSE, SPSite, odata_literal

logger = logging.getLogger(__name__)


class SPFolder(SPListObject, SPItemObject):
    """A SharePoint Folder, holding sub folders and files keyed by GUID.

    Attributes:
        guid (str): The folder unique ID.
        name (str): The folder name.
        title (str): The folder name.
        relative_url (str): Server relative URL of the folder.
    """

    SYSTEM_FOLDERS = frozenset({"forms"})

    declared_fields = ("guid", "name", "title", "relative_url")
    mapper = {
        "guid": "UniqueId",
        "name": "Name",
        "title": "Name",
        "relative_url": "ServerRelativeUrl",
    }

    def __init__(
        self,
        site: SPSite,
        payload: Any,
        extra: Optional[Mapping[str, str]] = None,
        fetch: bool = False,
        folder_extra: Optional[Mapping[str, str]] = None,
        file_extra: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(extra)
        self.site = site
        self.hydrate(payload)
        if fetch:
            self.get_items(folder_extra, file_extra)

    def api_url(self) -> str:
        return f"_api/web/GetFolderByServerRelativeUrl({odata_literal(self.relative_url)})"

    def get_relative_url(self, path: Optional[str] = None) -> str:
        if not path:
            return self.relative_url
        return f"{self.relative_url.rstrip('/')}/{path.lstrip('/')}"

    def get_url(self, path: Optional[str] = None) -> str:
        return self.site.get_hostname(self.get_relative_url(path))

    def is_writable(self, raise_error: bool = False) -> bool:
        return True

    @classmethod
    def is_system_folder(cls, name: str, system_folders: Optional[Iterable[str]] = None) -> bool:
        """Whether the last segment of ``name`` is a system folder, e.g. ``Forms``."""
        folders = cls.SYSTEM_FOLDERS if system_folders is None else system_folders
        folder_name = posixpath.basename(name.rstrip("/")).lower()
        return folder_name in {folder.lower() for folder in folders}

    @classmethod
    def get_all(
        cls,
        site: SPSite,
        relative_url: str,
        extra: Optional[Mapping[str, str]] = None,
        system_folders: Optional[Iterable[str]] = None,
    ) -> Dict[str, "SPFolder"]:
        """Get the sub folders of a folder, keyed by GUID. System folders are skipped."""
        payload = site.request(
            f"_api/web/GetFolderByServerRelativeUrl({odata_literal(relative_url)})/Folders"
        )

        folders = {}
        for entry in odata_results(payload):
            if cls.is_system_folder(entry.get("Name", ""), system_folders):
                continue
            folder = cls(site, entry, extra)
            folders[folder.guid] = folder
        return folders

    @classmethod
    def get_by_relative_url(
        cls,
        site: SPSite,
        relative_url: str,
        extra: Optional[Mapping[str, str]] = None,
        system_folders: Optional[Iterable[str]] = None,
    ) -> "SPFolder":
        """Get a folder by its server relative URL.

        Raises:
            SharePointError: If the URL is empty or points to a system folder.
        """
        if not relative_url:
            raise SharePointError("The SharePoint Folder Relative URL is empty/not set")

        if cls.is_system_folder(relative_url, system_folders):
            raise SharePointError("Trying to get a SharePoint System Folder")

        payload = site.request(
            f"_api/web/GetFolderByServerRelativeUrl({odata_literal(relative_url)})"
        )
        return cls(site, odata_entity(payload), extra)

    @classmethod
    def create(
        cls,
        folder: Union["SPFolder", SPList],
        name: str,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPFolder":
        """Create a folder inside a folder or a document library."""
        folder.is_writable(raise_error=True)

        if not name:
            raise SharePointError("The SharePoint Folder Name is empty/not set")

        body = {
            "__metadata": {"type": "SP.Folder"},
            "ServerRelativeUrl": folder.get_relative_url(name),
        }

        payload = folder.site.request(
            "_api/web/Folders",
            method="POST",
            headers={"Content-Type": ODATA_VERBOSE},
            json=body,
            digest=True,
        )
        new_folder = cls(folder.site, odata_entity(payload), extra)
        logger.info("Created folder %s", new_folder.relative_url)
        return new_folder

    def update(self, properties: Mapping[str, Any]) -> "SPFolder":
        body = replace_recursive(properties, {"__metadata": {"type": "SP.Folder"}})

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
        logger.info("Deleted folder %s", self.relative_url)
        return True

    def get_item_count(self) -> int:
        payload = self.site.request(f"{self.api_url()}/ItemCount")
        return odata_entity(payload)["ItemCount"]

    def get_items(
        self,
        folder_extra: Optional[Mapping[str, str]] = None,
        file_extra: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, SPItemObject]:
        """Fetch the sub folders and files, replacing the ones held."""
        from sharepointclient.files import SPFile

        folders = SPFolder.get_all(self.site, self.relative_url, folder_extra)
        files = SPFile.get_all(self, file_extra)
        self._items = {**folders, **files}
        return dict(self._items)

    def get_list(self, extra: Optional[Mapping[str, str]] = None) -> SPList:
        """Get the document library the folder belongs to.

        The library is looked up by the first path segment below the site.

        Raises:
            SharePointError: If the folder is not inside a library of the site.
        """
        pattern = re.compile(rf"^{re.escape(self.site.path)}(?P<title>[^/]+)")
        match = pattern.match(self.relative_url or "")
        if match is None:
            raise SharePointError(
                f"Unable to get the SharePoint List of the folder {self.relative_url}"
            )
        return SPList.get_by_title(self.site, match.group("title"), extra)
