"""Filters deciding whether a resource should be skipped, and the framework running them."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from kor.durations import parse_duration
from kor.labels import parse_selector

__all__ = [
    "LABEL_FILTER_NAME",
    "AGE_FILTER_NAME",
    "KOR_LABEL_FILTER_NAME",
    "kor_label_filter",
    "label_filter",
    "age_filter",
    "has_excluded_label",
    "has_included_age",
    "Registry",
    "new_default_registry",
    "Framework",
    "default_framework",
]

LABEL_FILTER_NAME = "label"
AGE_FILTER_NAME = "age"
KOR_LABEL_FILTER_NAME = "korlabel"

FilterFunc = Callable[[Any, Any], bool]
Timestamp = Union[datetime, str, None]


def _metadata(obj: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(obj, Mapping):
        return None
    return obj.get("metadata") or {}


def _to_datetime(value: Union[datetime, str]) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _age(creation_time: Timestamp) -> timedelta:
    if creation_time is None:
        return timedelta.max
    return datetime.now(timezone.utc) - _to_datetime(creation_time)


def kor_label_filter(obj: Any, opts: Any) -> bool:
    """Skip resources labelled ``kor/used=true``."""
    meta = _metadata(obj)
    return meta is not None and (meta.get("labels") or {}).get("kor/used") == "true"


def label_filter(obj: Any, opts: Any) -> bool:
    """Skip resources whose labels match any excluded selector."""
    meta = _metadata(obj)
    if meta is None:
        return False
    try:
        return has_excluded_label(meta.get("labels") or {}, opts.exclude_labels)
    except ValueError:
        return False


def age_filter(obj: Any, opts: Any) -> bool:
    """Skip resources whose age lies outside the requested range."""
    meta = _metadata(obj)
    if meta is None:
        return False
    try:
        return not has_included_age(meta.get("creationTimestamp"), opts)
    except ValueError:
        return False


def has_excluded_label(labels: Mapping[str, str], exclude_selector: Iterable[str]) -> bool:
    """Return whether ``labels`` match any of the selectors; bad selectors raise."""
    selectors = [parse_selector(text) for text in exclude_selector or ()]
    return any(selector.matches(labels) for selector in selectors)


def has_included_age(creation_time: Timestamp, opts: Any) -> bool:
    """Return whether the age fits ``older_than`` / ``newer_than``; both set is an error."""
    if not opts.older_than and not opts.newer_than:
        return True
    if opts.older_than and opts.newer_than:
        raise ValueError("invalid flags: older-than and newer-than cannot be used together")
    if opts.older_than:
        return _age(creation_time) > parse_duration(opts.older_than)
    return _age(creation_time) < parse_duration(opts.newer_than)


class Registry(dict):
    """Named filter functions."""

    def register(self, name: str, func: FilterFunc) -> None:
        if name in self:
            raise ValueError(f"a filter named {name} already exists")
        self[name] = func

    def unregister(self, name: str) -> None:
        if name not in self:
            raise KeyError(f"no filter named {name} exists")
        del self[name]

    def merge(self, other: Mapping[str, FilterFunc]) -> None:
        for name, func in other.items():
            self.register(name, func)


def new_default_registry() -> Registry:
    """Return a registry with the label, age and kor-label filters."""
    return Registry(
        {
            LABEL_FILTER_NAME: label_filter,
            AGE_FILTER_NAME: age_filter,
            KOR_LABEL_FILTER_NAME: kor_label_filter,
        }
    )


class Framework:
    """Runs registry filters against one object; modifiers return new frameworks."""

    def __init__(self, registry: Optional[Mapping[str, FilterFunc]] = None, obj: Any = None) -> None:
        self._registry = Registry(registry or {})
        self._object = obj

    def run(self, opts: Any, *disable: str) -> bool:
        """Return True if any enabled filter says the object should be skipped."""
        return any(
            func(self._object, opts)
            for name, func in self._registry.items()
            if name not in disable
        )

    def run_filter(self, name: str, opts: Any) -> bool:
        """Run one filter by name; an unknown name yields True."""
        func = self._registry.get(name)
        return True if func is None else func(self._object, opts)

    def add_filter(self, name: str, func: FilterFunc) -> "Framework":
        out = Framework(self._registry, self._object)
        if name not in out._registry:
            out._registry.register(name, func)
        return out

    def with_object(self, obj: Any) -> "Framework":
        return Framework(self._registry, obj)

    def with_registry(self, registry: Mapping[str, FilterFunc]) -> "Framework":
        return Framework(registry, self._object)


def default_framework() -> Framework:
    """Return a framework over the default registry."""
    return Framework(new_default_registry())