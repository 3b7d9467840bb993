"""An in-memory store of cluster objects with list, get, update, delete and patch."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from kor.labels import parse_selector

__all__ = [
    "NotFoundError",
    "AlreadyExistsError",
    "GroupVersionResource",
    "APIResource",
    "APIResourceList",
    "parse_group_version",
    "Cluster",
]


class NotFoundError(LookupError):
    """Raised when an object does not exist."""


class AlreadyExistsError(Exception):
    """Raised when creating an object that already exists."""


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies a resource collection by API group, version and plural name."""

    group: str
    version: str
    resource: str


@dataclass
class APIResource:
    """One resource served by an API group version."""

    name: str
    kind: str = ""
    verbs: tuple[str, ...] = ()
    namespaced: bool = True
    group: str = ""
    version: str = ""
    singular_name: str = ""


@dataclass
class APIResourceList:
    """The resources served under one group version string."""

    group_version: str
    api_resources: list[APIResource] = field(default_factory=list)


def parse_group_version(text: str) -> tuple[str, str]:
    """Split ``"group/version"`` or ``"version"`` into ``(group, version)``."""
    if not text or text == "/":
        return "", ""
    slashes = text.count("/")
    if slashes == 0:
        return "", text
    if slashes == 1:
        group, version = text.split("/")
        return group, version
    raise ValueError(f"unexpected GroupVersion string: {text}")


Kind = Union[str, GroupVersionResource]


def _kind_name(kind: Kind) -> str:
    return kind.resource if isinstance(kind, GroupVersionResource) else kind


def _identity(obj: Mapping[str, Any]) -> tuple[str, str]:
    meta = obj.get("metadata") or {}
    name = meta.get("name")
    if not name:
        raise ValueError("object has no metadata.name")
    return meta.get("namespace") or "", name


def _merge_patch(target: Any, patch: Any) -> Any:
    if not isinstance(patch, Mapping):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, Mapping) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = _merge_patch(result.get(key), value)
    return result


class Cluster:
    """Holds objects keyed by kind (a name or a GroupVersionResource), namespace and name."""

    def __init__(self) -> None:
        self._store: dict[Kind, dict[tuple[str, str], dict]] = {}
        self._apis: list[APIResourceList] = []

    def _bucket(self, kind: Kind) -> dict[tuple[str, str], dict]:
        return self._store.setdefault(kind, {})

    def _not_found(self, kind: Kind, name: str) -> NotFoundError:
        return NotFoundError(f'{_kind_name(kind)} "{name}" not found')

    def create(self, kind: Kind, obj: Mapping[str, Any]) -> dict:
        """Store a new object and return a copy of it."""
        key = _identity(obj)
        bucket = self._bucket(kind)
        if key in bucket:
            raise AlreadyExistsError(f'{_kind_name(kind)} "{key[1]}" already exists')
        bucket[key] = copy.deepcopy(dict(obj))
        return copy.deepcopy(bucket[key])

    def get(self, kind: Kind, namespace: str, name: str) -> dict:
        """Return a copy of one object."""
        try:
            return copy.deepcopy(self._bucket(kind)[(namespace or "", name)])
        except KeyError:
            raise self._not_found(kind, name) from None

    def list(self, kind: Kind, namespace: str = "", label_selector: str = "") -> list[dict]:
        """Return copies of objects in ``namespace`` (all when empty) that match the selector."""
        selector = parse_selector(label_selector or "")
        items = []
        for (ns, _), obj in sorted(self._bucket(kind).items()):
            if namespace and ns != namespace:
                continue
            if selector.matches((obj.get("metadata") or {}).get("labels")):
                items.append(copy.deepcopy(obj))
        return items

    def update(self, kind: Kind, obj: Mapping[str, Any]) -> dict:
        """Replace an existing object and return a copy of it."""
        key = _identity(obj)
        bucket = self._bucket(kind)
        if key not in bucket:
            raise self._not_found(kind, key[1])
        bucket[key] = copy.deepcopy(dict(obj))
        return copy.deepcopy(bucket[key])

    def delete(self, kind: Kind, namespace: str, name: str) -> None:
        """Remove an object."""
        bucket = self._bucket(kind)
        try:
            del bucket[(namespace or "", name)]
        except KeyError:
            raise self._not_found(kind, name) from None

    def merge_patch(
        self, kind: Kind, namespace: str, name: str, patch: Union[Mapping, str, bytes]
    ) -> dict:
        """Apply a JSON merge patch to an object and return the result."""
        if isinstance(patch, (str, bytes)):
            patch = json.loads(patch)
        key = (namespace or "", name)
        bucket = self._bucket(kind)
        if key not in bucket:
            raise self._not_found(kind, name)
        bucket[key] = _merge_patch(bucket[key], patch)
        return copy.deepcopy(bucket[key])

    def register_api(self, group_version: str, api_resources: Iterable[APIResource]) -> None:
        """Announce the resources served under a group version."""
        self._apis.append(APIResourceList(group_version, list(api_resources)))

    def preferred_resources(self) -> list[APIResourceList]:
        """Return the announced resource lists."""
        return copy.deepcopy(self._apis)