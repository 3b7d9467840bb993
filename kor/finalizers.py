"""Finding objects stuck in deletion because of pending finalizers."""

from __future__ import annotations

import sys
from typing import Any, Iterable

from kor.cluster import GroupVersionResource
from kor.delete import delete_resource_with_finalizer
from kor.filters import default_framework
from kor.report import ResourceInfo, UnsupportedFormatError, render_unused

__all__ = [
    "check_finalizers",
    "retrieve_pending_deletion_resources",
    "get_pending_deletion_resources",
    "get_unused_finalizers",
]

_FILTER = default_framework()
_REASON = "Pending deletion waiting for finalizers"

Pending = dict[str, dict[GroupVersionResource, list[ResourceInfo]]]


def check_finalizers(finalizers, deletion_timestamp) -> bool:
    """Return whether an object has finalizers and is marked for deletion."""
    return bool(finalizers) and deletion_timestamp is not None


def _split_group_version(text: str) -> tuple[str, str]:
    if not text:
        return "", ""
    parts = text.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected GroupVersion string: {text}")


def retrieve_pending_deletion_resources(
    resource_lists: Iterable[Any], cluster, filter_opts
) -> Pending:
    """Map namespace -> resource collection -> objects waiting for finalizers.

    Raises ValueError for a malformed group/version string.
    """
    pending: Pending = {}
    for resource_list in resource_lists or ():
        group, version = _split_group_version(resource_list.group_version)
        for api_resource in resource_list.api_resources or ():
            if "list" not in (api_resource.verbs or ()):
                continue
            gvr = GroupVersionResource(group=group, version=version, resource=api_resource.name)
            try:
                items = cluster.list(gvr, label_selector=filter_opts.include_labels)
            except (LookupError, ValueError) as err:
                print(f"Error listing resources for GVR {resource_list.group_version}: {err}")
                continue
            for item in items:
                if _FILTER.with_object(item).run(filter_opts):
                    continue
                meta = item.get("metadata") or {}
                if check_finalizers(meta.get("finalizers"), meta.get("deletionTimestamp")):
                    namespace = meta.get("namespace") or ""
                    pending.setdefault(namespace, {}).setdefault(gvr, []).append(
                        ResourceInfo(meta.get("name", ""), _REASON)
                    )
    return pending


def get_pending_deletion_resources(cluster, filter_opts) -> Pending:
    """Inspect every listable resource collection the cluster serves."""
    return retrieve_pending_deletion_resources(cluster.preferred_resources(), cluster, filter_opts)


def get_unused_finalizers(filter_opts, cluster, output_format: str, opts) -> str:
    """Report objects waiting for finalizers, clearing the finalizers if asked."""
    namespaces = filter_opts.namespaces(cluster)
    try:
        pending = get_pending_deletion_resources(cluster, filter_opts)
    except (ValueError, LookupError) as err:
        print(f"Failed to process resources waiting for finalizers: {err}", file=sys.stderr)
        pending = {}

    response: dict = {}
    for namespace, by_gvr in pending.items():
        if namespace not in namespaces and namespace != "":
            continue
        diffs: dict[str, list[ResourceInfo]] = {}
        for gvr, diff in by_gvr.items():
            if opts.delete_flag:
                diff = delete_resource_with_finalizer(
                    diff, cluster, namespace, gvr, opts.no_interactive
                )
            diffs[gvr.resource] = diff
        response[namespace] = diffs

    try:
        return render_unused(output_format, response, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""