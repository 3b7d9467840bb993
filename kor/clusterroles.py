"""Finding cluster roles that no binding refers to or that are marked unused."""

from __future__ import annotations

import sys
from typing import Any, Iterable, Mapping, Optional

from kor.delete import delete_resource
from kor.filters import default_framework
from kor.report import (
    ResourceException,
    ResourceInfo,
    UnsupportedFormatError,
    dedupe_sorted,
    group_diff,
    is_resource_exception,
    render_unused,
    resource_difference,
)

__all__ = [
    "retrieve_used_cluster_roles",
    "retrieve_cluster_role_names",
    "process_cluster_roles",
    "get_unused_cluster_roles",
]

_FILTER = default_framework()
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"couldn't convert string to bool: invalid syntax {value!r}")


def _name(obj: Mapping[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


def _selector_labels(role: Mapping[str, Any]) -> Optional[set[tuple[str, str]]]:
    """The labels an aggregating role collects, or None if it does not aggregate."""
    rule = role.get("aggregationRule")
    if rule is None:
        return None
    return {
        (key, value)
        for selector in rule.get("clusterRoleSelectors") or ()
        for key, value in (selector.get("matchLabels") or {}).items()
    }


def retrieve_used_cluster_roles(cluster, filter_opts) -> list[str]:
    """Return the names of cluster roles referenced by bindings or aggregated by used roles."""
    used: set[str] = set()
    for ns in cluster.list("Namespace"):
        for binding in cluster.list("RoleBinding", _name(ns)):
            used.add((binding.get("roleRef") or {}).get("name", ""))
    for binding in cluster.list("ClusterRoleBinding"):
        used.add((binding.get("roleRef") or {}).get("name", ""))

    roles = cluster.list("ClusterRole")
    by_name = {_name(role): role for role in roles}

    aggregated: set[tuple[str, str]] = set()
    pending = sorted(used)
    visited: set[str] = set()
    while pending:
        current = pending.pop(0)
        if current in visited:
            continue
        visited.add(current)
        role = by_name.get(current)
        if role is None:
            continue
        selected = _selector_labels(role)
        if selected is None:
            continue
        aggregated |= selected

        for candidate in roles:
            labels = (candidate.get("metadata") or {}).get("labels") or {}
            for key, value in labels.items():
                if (key, value) not in aggregated:
                    continue
                _parse_bool(value)
                name = _name(candidate)
                used.add(name)
                if name not in visited:
                    pending.append(name)
                more = _selector_labels(candidate)
                if more:
                    aggregated |= more

    return list(used)


def retrieve_cluster_role_names(
    cluster, filter_opts, exceptions: Optional[Iterable[ResourceException]] = None
) -> tuple[list[str], list[str]]:
    """Return ``(names, names marked unused)`` of the cluster roles that pass the filters."""
    exceptions = list(exceptions or ())
    names: list[str] = []
    marked_unused: list[str] = []
    for role in cluster.list("ClusterRole"):
        if _FILTER.with_object(role).run(filter_opts):
            continue
        meta = role.get("metadata") or {}
        name = meta.get("name", "")
        if (meta.get("labels") or {}).get("kor/used") == "false":
            marked_unused.append(name)
            continue
        if is_resource_exception(name, meta.get("namespace") or "", exceptions):
            continue
        names.append(name)
    return names, marked_unused


def process_cluster_roles(
    cluster, filter_opts, exceptions: Optional[Iterable[ResourceException]] = None
) -> list[ResourceInfo]:
    """Return the unused cluster roles."""
    used = dedupe_sorted(retrieve_used_cluster_roles(cluster, filter_opts))
    names, marked_unused = retrieve_cluster_role_names(cluster, filter_opts, exceptions)

    diff = [
        ResourceInfo(name, "ClusterRole is not used by any RoleBinding or ClusterRoleBinding")
        for name in resource_difference(used, names)
    ]
    diff += [ResourceInfo(name, "Marked with unused label") for name in marked_unused]
    return diff


def get_unused_cluster_roles(
    filter_opts,
    cluster,
    output_format: str,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> str:
    """Report unused cluster roles, deleting them if asked."""
    try:
        diff = process_cluster_roles(cluster, filter_opts, exceptions)
    except (ValueError, LookupError) as err:
        print(f"Failed to process cluster role : {err}", file=sys.stderr)
        diff = []
    if opts.delete_flag:
        diff = delete_resource(diff, cluster, "", "ClusterRole", opts.no_interactive)

    resources: dict = {}
    group_diff(resources, "", "ClusterRole", diff, opts.group_by)
    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""