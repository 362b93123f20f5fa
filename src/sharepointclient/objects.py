"""Base classes for the objects returned by the SharePoint REST API."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional

from sharepointclient.exceptions import (
    HydrationError,
    InvalidExtraAttributeError,
    ItemNotFoundError,
    SharePointError,
)
from sharepointclient.hydration import (
    NOT_FOUND,
    HydrationMode,
    SchemaEntry,
    build_schema,
    hydrate_from_json,
    hydrate_from_peer,
    resolve_path,
)


class SPObject:
    """A SharePoint object hydrated from a REST API response.

    Subclasses declare their first-class fields in ``declared_fields`` and the
    dot-path for each in ``mapper``. Callers may pass an ``extra`` mapper with
    further names; names that are not declared fields land in ``extra`` and are
    read with ``get_extra``.
    """

    declared_fields: ClassVar[tuple[str, ...]] = ()
    mapper: ClassVar[Dict[str, str]] = {}

    def __init__(self, extra: Optional[Mapping[str, str]] = None) -> None:
        for name in self.declared_fields:
            if not hasattr(self, name):
                setattr(self, name, None)
        self.extra: Dict[str, Any] = {}
        self.schema: List[SchemaEntry] = build_schema({**self.mapper, **(extra or {})})

    def hydrate(self, data: Any, mode: HydrationMode = HydrationMode.STRICT) -> None:
        hydrate_from_json(self, self.schema, data, mode)

    def rehydrate(self, data: Any) -> None:
        """Best-effort hydration, used after writes that return no body."""
        hydrate_from_json(self, self.schema, data, HydrationMode.LENIENT)

    def hydrate_from(self, other: "SPObject") -> None:
        hydrate_from_peer(self, other)

    def get_extra(self, name: str) -> Any:
        """Get an extra property.

        Raises:
            InvalidExtraAttributeError: If the property was never populated.
        """
        try:
            return self.extra[name]
        except KeyError:
            raise InvalidExtraAttributeError(name) from None

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.declared_fields}
        data["extra"] = dict(self.extra)
        return data

    def __repr__(self) -> str:
        title = getattr(self, "title", None)
        return f"<{type(self).__name__} {title!r}>"


class SPItemObject(SPObject):
    """An object that can be stored in an SPListObject."""

    guid: Any


class SPListObject(SPObject, MutableMapping):
    """An SPObject that also holds SharePoint Items keyed by GUID."""

    def __init__(self, extra: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(extra)
        self._items: Dict[str, SPItemObject] = {}

    def __getitem__(self, key: str) -> SPItemObject:
        try:
            return self._items[key]
        except KeyError:
            raise ItemNotFoundError(key) from None

    def __setitem__(self, key: Optional[str], item: SPItemObject) -> None:
        if not isinstance(item, SPItemObject):
            raise SharePointError("SharePoint Item expected")
        self._items[item.guid if key is None else key] = item

    def __delitem__(self, key: str) -> None:
        try:
            del self._items[key]
        except KeyError:
            raise ItemNotFoundError(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __bool__(self) -> bool:
        return True

    # identity semantics, not Mapping's content comparison
    __eq__ = object.__eq__
    __hash__ = object.__hash__

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["items"] = dict(self._items)
        return data

    def add(self, item: SPItemObject) -> SPItemObject:
        """Store an item under its GUID."""
        self[item.guid] = item
        return item


def odata_entity(payload: Any) -> Any:
    """Unwrap a single entity from a verbose OData response (``d``)."""
    entity = resolve_path(payload, "d")
    if entity is NOT_FOUND:
        raise HydrationError("Invalid property mapper: d", "d")
    return entity


def odata_results(payload: Any) -> List[Any]:
    """Unwrap a collection from a verbose OData response (``d.results``)."""
    results = resolve_path(payload, "d.results")
    if results is NOT_FOUND or not isinstance(results, list):
        raise HydrationError("Invalid property mapper: d.results", "d.results")
    return results


def replace_recursive(*mappings: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge mappings left to right; nested mappings are merged rather than replaced."""
    merged: Dict[str, Any] = {}
    for mapping in mappings:
        for key, value in (mapping or {}).items():
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key] = replace_recursive(merged[key], value)
            elif isinstance(value, Mapping):
                merged[key] = replace_recursive(value)
            else:
                merged[key] = value
    return merged
