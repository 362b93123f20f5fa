from __future__ import annotations

import logging
import posixpath
from datetime import datetime, timezone
from typing import IO, Any, Dict, Mapping, Optional, Tuple, Union

from sharepointclient.exceptions import SharePointError
from sharepointclient.folders import SPFolder
from sharepointclient.items import SPItem
from sharepointclient.lists import SPList
from sharepointclient.objects import SPItemObject, odata_entity, odata_results
from sharepointclient.site import SPSite, odata_literal

logger = logging.getLogger(__name__)

FileContents = Union[bytes, str, IO[bytes], IO[str], None]
FolderLike = Union[SPFolder, SPList]


def _odata_bool(value: bool) -> str:
    return "true" if value else "false"


def read_contents(
    contents: FileContents, name: Optional[str] = None
) -> Tuple[bytes, Optional[str]]:
    """Read file contents into bytes.

    File objects are read from their current position; when no name is given,
    the base name of the file object is used.
    """
    if hasattr(contents, "read"):
        data = contents.read()
        if name is None and isinstance(getattr(contents, "name", None), str):
            name = posixpath.basename(contents.name.replace("\\", "/"))
    else:
        data = contents

    if data is None:
        data = b""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return data, name


class SPFile(SPItemObject):
    """A SharePoint File.

    Attributes:
        type (str): The entity type of the list item behind the file.
        id (int): The list item ID.
        guid (str): The list item GUID.
        title (str): The file title.
        name (str): The file name.
        size (int): The file size in bytes.
        created (datetime): When the file was created.
        modified (datetime): When the file was last modified.
        relative_url (str): Server relative URL of the file.
    """

    declared_fields = (
        "type",
        "id",
        "guid",
        "title",
        "name",
        "size",
        "created",
        "modified",
        "relative_url",
    )
    mapper = {
        "type": "ListItemAllFields.__metadata.type",
        "id": "ListItemAllFields.ID",
        "guid": "ListItemAllFields.GUID",
        "title": "Title",
        "name": "Name",
        "size": "Length",
        "created": "TimeCreated",
        "modified": "TimeLastModified",
        "relative_url": "ServerRelativeUrl",
    }

    def __init__(
        self, folder: FolderLike, payload: Any, extra: Optional[Mapping[str, str]] = None
    ) -> None:
        super().__init__(extra)
        self.folder = folder
        self.hydrate(payload)

    @property
    def site(self) -> SPSite:
        return self.folder.site

    def api_url(self) -> str:
        return f"_api/web/GetFileByServerRelativeUrl({odata_literal(self.relative_url)})"

    def get_url(self) -> str:
        return self.folder.get_url(self.name)

    def get_metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "guid": self.guid,
            "title": self.title,
            "name": self.name,
            "size": self.size,
            "created": self.created,
            "modified": self.modified,
            "relative_url": self.relative_url,
            "url": self.get_url(),
        }

    @classmethod
    def get_all(
        cls, folder: FolderLike, extra: Optional[Mapping[str, str]] = None
    ) -> Dict[str, "SPFile"]:
        """Get the files of a folder, keyed by GUID like the folder's own items."""
        folder.is_writable(raise_error=True)

        payload = folder.site.request(
            f"_api/web/GetFolderByServerRelativeUrl({odata_literal(folder.get_relative_url())})"
            "/Files",
            params={"$expand": "ListItemAllFields"},
        )
        files = [cls(folder, entry, extra) for entry in odata_results(payload)]
        return {sp_file.guid: sp_file for sp_file in files}

    @classmethod
    def get_by_relative_url(
        cls, site: SPSite, relative_url: str, extra: Optional[Mapping[str, str]] = None
    ) -> "SPFile":
        """Get a file by its server relative URL. The parent folder is fetched too."""
        if not relative_url:
            raise SharePointError("The SharePoint File Relative URL is empty/not set")

        payload = site.request(
            f"_api/web/GetFileByServerRelativeUrl({odata_literal(relative_url)})",
            params={"$expand": "ListItemAllFields"},
        )
        folder = SPFolder.get_by_relative_url(site, posixpath.dirname(relative_url))
        return cls(folder, odata_entity(payload), extra)

    @classmethod
    def get_by_name(
        cls, folder: FolderLike, name: str, extra: Optional[Mapping[str, str]] = None
    ) -> "SPFile":
        folder.is_writable(raise_error=True)

        if not name:
            raise SharePointError("The SharePoint File Name is empty/not set")

        payload = folder.site.request(
            f"_api/web/GetFolderByServerRelativeUrl({odata_literal(folder.get_relative_url())})"
            f"/Files({odata_literal(name)})",
            params={"$expand": "ListItemAllFields"},
        )
        return cls(folder, odata_entity(payload), extra)

    @classmethod
    def create(
        cls,
        folder: FolderLike,
        contents: FileContents,
        name: Optional[str] = None,
        overwrite: bool = False,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPFile":
        """Upload a file to a folder or a document library.

        Args:
            folder (SPFolder | SPList): Where to upload the file.
            contents (bytes | str | file object): The file contents.
            name (str, optional): The file name. Defaults to the file object name.
            overwrite (bool): Replace an existing file with the same name.
            extra (Mapping[str, str], optional): Extra properties to map.

        Raises:
            SharePointError: If the folder is not writable or no name can be found.
        """
        folder.is_writable(raise_error=True)

        body, name = read_contents(contents, name)
        if not name:
            raise SharePointError("The SharePoint File Name is empty/not set")

        payload = folder.site.request(
            f"_api/web/GetFolderByServerRelativeUrl({odata_literal(folder.get_relative_url())})"
            f"/Files/Add(url={odata_literal(name)},overwrite={_odata_bool(overwrite)})",
            method="POST",
            params={"$expand": "ListItemAllFields"},
            content=body,
            digest=True,
        )
        sp_file = cls(folder, odata_entity(payload), extra)
        logger.info("Uploaded %s (%d bytes)", sp_file.relative_url, len(body))
        return sp_file

    def update(self, contents: FileContents) -> "SPFile":
        """Replace the file contents."""
        body, _ = read_contents(contents)

        self.site.request(
            f"{self.api_url()}/$value",
            method="POST",
            headers={"X-HTTP-Method": "PUT"},
            content=body,
            digest=True,
        )
        self.rehydrate(
            {
                "Length": len(body),
                "TimeLastModified": datetime.now(timezone.utc),
            }
        )
        return self

    def move(
        self,
        folder: FolderLike,
        name: Optional[str] = None,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPFile":
        """Move (and optionally rename) the file. The object is refreshed in place."""
        folder.is_writable(raise_error=True)

        new_url = folder.get_relative_url(name or self.name)
        self.site.request(
            f"{self.api_url()}/moveTo(newUrl={odata_literal(new_url)},flags=1)",
            method="POST",
            digest=True,
        )

        moved = type(self).get_by_name(folder, name or self.name, extra)
        self.hydrate_from(moved)
        self.folder = folder
        logger.info("Moved file to %s", new_url)
        return self

    def copy(
        self,
        folder: FolderLike,
        name: Optional[str] = None,
        overwrite: bool = False,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "SPFile":
        """Copy the file, returning the copy."""
        folder.is_writable(raise_error=True)

        new_url = folder.get_relative_url(name or self.name)
        self.site.request(
            f"{self.api_url()}/copyTo(strNewUrl={odata_literal(new_url)},"
            f"bOverWrite={_odata_bool(overwrite)})",
            method="POST",
            digest=True,
        )
        return type(self).get_by_name(folder, name or self.name, extra)

    def delete(self) -> bool:
        self.site.request(
            self.api_url(),
            method="POST",
            headers={"X-HTTP-Method": "DELETE", "IF-MATCH": "*"},
            digest=True,
        )
        logger.info("Deleted file %s", self.relative_url)
        return True

    def get_contents(self) -> bytes:
        response = self.site.request(f"{self.api_url()}/$value", process=False)
        return response.content

    def get_item(self, extra: Optional[Mapping[str, str]] = None) -> SPItem:
        """Get the list item behind the file."""
        sp_list = self.folder if isinstance(self.folder, SPList) else self.folder.get_list()
        return sp_list.get_item(self.id, extra)
