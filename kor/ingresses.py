"""Finding ingresses without a valid backend service or marked unused."""

from __future__ import annotations

import sys
from typing import Any, Mapping

from kor.cluster import NotFoundError
from kor.delete import delete_resource
from kor.filters import default_framework
from kor.report import (
    ResourceInfo,
    UnsupportedFormatError,
    group_diff,
    render_unused,
    resource_difference,
)

__all__ = [
    "retrieve_used_ingresses",
    "retrieve_ingress_names",
    "process_namespace_ingresses",
    "get_unused_ingresses",
]

_FILTER = default_framework()


def _valid_backend(cluster, namespace: str, backend: Mapping[str, Any]) -> bool:
    service = (backend or {}).get("service")
    if service is None:
        return True
    try:
        cluster.get("Service", namespace, service.get("name", ""))
    except NotFoundError:
        return False
    return True


def _is_used(cluster, namespace: str, ingress: Mapping[str, Any]) -> bool:
    spec = ingress.get("spec") or {}
    used = True
    if spec.get("defaultBackend") is not None:
        used = _valid_backend(cluster, namespace, spec["defaultBackend"])
    for rule in spec.get("rules") or ():
        http = rule.get("http")
        if http is None:
            return True
        for path in http.get("paths") or ():
            used = _valid_backend(cluster, namespace, path.get("backend") or {})
            if used:
                return True
    return used


def retrieve_used_ingresses(cluster, namespace: str, filter_opts) -> list[str]:
    """Return the names of ingresses that route to an existing service."""
    ingresses = cluster.list("Ingress", namespace, filter_opts.include_labels)
    return [
        ingress["metadata"]["name"]
        for ingress in ingresses
        if not _FILTER.with_object(ingress).run(filter_opts)
        and _is_used(cluster, namespace, ingress)
    ]


def retrieve_ingress_names(cluster, namespace: str, filter_opts) -> tuple[list[str], list[str]]:
    """Return ``(names, names marked unused)`` of the ingresses that pass the filters."""
    ingresses = cluster.list("Ingress", namespace, filter_opts.include_labels)
    names: list[str] = []
    marked_unused: list[str] = []
    for ingress in ingresses:
        if _FILTER.with_object(ingress).run(filter_opts):
            continue
        meta = ingress.get("metadata") or {}
        if (meta.get("labels") or {}).get("kor/used") == "false":
            marked_unused.append(meta["name"])
        else:
            names.append(meta["name"])
    return names, marked_unused


def process_namespace_ingresses(cluster, namespace: str, filter_opts, opts) -> list[ResourceInfo]:
    """Return the unused ingresses of one namespace, deleting them if asked."""
    used = retrieve_used_ingresses(cluster, namespace, filter_opts)
    names, marked_unused = retrieve_ingress_names(cluster, namespace, filter_opts)

    diff = [
        ResourceInfo(name, "Ingress does not have a valid backend service")
        for name in resource_difference(used, names)
    ]
    diff += [ResourceInfo(name, "Marked with unused label") for name in marked_unused]

    if opts.delete_flag:
        diff = delete_resource(diff, cluster, namespace, "Ingress", opts.no_interactive)
    return diff


def get_unused_ingresses(filter_opts, cluster, output_format: str, opts) -> str:
    """Report unused ingresses across the selected namespaces."""
    resources: dict = {}
    for namespace in filter_opts.namespaces(cluster):
        try:
            diff = process_namespace_ingresses(cluster, namespace, filter_opts, opts)
        except (ValueError, LookupError) as err:
            print(f"Failed to process namespace {namespace}: {err}", file=sys.stderr)
            continue
        group_diff(resources, namespace, "Ingress", diff, opts.group_by)

    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""