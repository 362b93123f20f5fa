"""Attribute hydration for SharePoint objects.

Maps decoded JSON responses onto typed objects through a declarative schema
of logical names and dot-paths:

    >>> schema = build_schema({"guid": "Id", "relative_url": "RootFolder.ServerRelativeUrl"})
    >>> hydrate_from_json(sp_list, schema, response["d"])

Every resolved value goes through ``coerce`` before it is assigned, so
timestamp strings arrive on the object as timezone-aware datetimes.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Protocol

from sharepointclient.exceptions import HydrationError

PATH_SEPARATOR = "."
OPTIONAL_MARKER = "?"
SPACE_ENCODING = "_x0020_"

TIMESTAMP_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z")
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class _NotFoundType:
    def __repr__(self):
        return "NOT_FOUND"

    def __bool__(self):
        return False


NOT_FOUND = _NotFoundType()


class HydrationMode(Enum):
    """Controls how an unresolved required path is handled."""

    STRICT = "strict"
    LENIENT = "lenient"


class HydrationTarget(Protocol):
    """An object that can be hydrated: declared fields plus an overflow map."""

    declared_fields: tuple[str, ...]
    extra: Dict[str, Any]


@dataclass(frozen=True)
class SchemaEntry:
    """Maps a logical attribute name to a dot-path in a response.

    Attributes:
        name (str): The logical attribute name.
        path (str): The dot-path, already in the service's space encoding.
        optional (bool): Whether a missing path is skipped even in strict mode.
    """

    name: str
    path: str
    optional: bool = False


def encode_path(path: str) -> str:
    """Rewrite spaces to the SharePoint internal name encoding."""
    return path.replace(" ", SPACE_ENCODING)


def build_schema(mapper: Mapping[str, str]) -> List[SchemaEntry]:
    """Build schema entries from a ``{name: path}`` mapper.

    A trailing ``?`` marks the path as optional; spaces are encoded.

    Args:
        mapper (Mapping[str, str]): Logical names mapped to dot-paths.

    Returns:
        List[SchemaEntry]: The schema, in mapper order.
    """
    schema = []
    for name, path in mapper.items():
        optional = path.endswith(OPTIONAL_MARKER)
        if optional:
            path = path[: -len(OPTIONAL_MARKER)]
        schema.append(SchemaEntry(name, encode_path(path), optional))
    return schema


def resolve_path(root: Any, path: str) -> Any:
    """Resolve a dot-path against a nested JSON value.

    Segments select keys of objects, or positions of arrays when the segment
    is a non-negative integer. An empty path resolves to ``root``.

    Returns:
        Any: The value found, or ``NOT_FOUND``. Never raises.
    """
    if not path:
        return root

    current = root
    for segment in path.split(PATH_SEPARATOR):
        if isinstance(current, Mapping):
            if segment not in current:
                return NOT_FOUND
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return NOT_FOUND
            current = current[index]
        else:
            return NOT_FOUND
    return current


def coerce(value: Any) -> Any:
    """Convert ``YYYY-MM-DDTHH:MM:SSZ`` strings to UTC datetimes.

    Anything else, including strings that only look like a timestamp but are
    not a valid calendar instant, is returned unchanged.
    """
    if not isinstance(value, str) or not TIMESTAMP_PATTERN.fullmatch(value):
        return value
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return value


def assign(target: HydrationTarget, name: str, value: Any) -> None:
    """Assign a value to a declared field, or to the extra map otherwise."""
    if name in target.declared_fields:
        setattr(target, name, value)
    else:
        target.extra[name] = value


def hydrate_from_json(
    target: HydrationTarget,
    schema: Iterable[SchemaEntry],
    data: Any,
    mode: HydrationMode = HydrationMode.STRICT,
) -> HydrationTarget:
    """Populate ``target`` from a decoded JSON value.

    Args:
        target: The object to populate.
        schema: The entries to resolve.
        data: The decoded JSON value.
        mode: ``STRICT`` fails on a missing required path, ``LENIENT`` skips it.

    Returns:
        The hydrated target.

    Raises:
        HydrationError: In strict mode, when a required path cannot be resolved.
    """
    for entry in schema:
        value = resolve_path(data, entry.path)
        if value is NOT_FOUND:
            if entry.optional or mode is HydrationMode.LENIENT:
                continue
            raise HydrationError(f"Invalid property mapper: {entry.path}", entry.path)
        assign(target, entry.name, coerce(value))
    return target


def hydrate_from_peer(target: HydrationTarget, source: HydrationTarget) -> HydrationTarget:
    """Copy every declared field and the extra map from another object of the same kind.

    Raises:
        HydrationError: When ``source`` is not an instance of the target's class.
    """
    if not isinstance(source, type(target)):
        raise HydrationError(f"Could not hydrate {type(target).__name__}")
    for name in target.declared_fields:
        setattr(target, name, copy.deepcopy(getattr(source, name, None)))
    target.extra = copy.deepcopy(source.extra)
    return target
