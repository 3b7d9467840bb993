"""Finding daemon sets with nothing scheduled or marked unused."""

from __future__ import annotations

import sys
from typing import Iterable, Optional

from kor.delete import delete_resource
from kor.filters import default_framework
from kor.report import (
    ResourceException,
    ResourceInfo,
    UnsupportedFormatError,
    group_diff,
    is_resource_exception,
    render_unused,
)

__all__ = ["process_namespace_daemonsets", "get_unused_daemonsets"]

_FILTER = default_framework()


def process_namespace_daemonsets(
    cluster,
    namespace: str,
    filter_opts,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> list[ResourceInfo]:
    """Return the unused daemon sets of one namespace, deleting them if asked."""
    exceptions = list(exceptions or ())
    daemon_sets = cluster.list("DaemonSet", namespace, filter_opts.include_labels)
    unused: list[ResourceInfo] = []
    for daemon_set in daemon_sets:
        if _FILTER.with_object(daemon_set).run(filter_opts):
            continue
        meta = daemon_set.get("metadata") or {}
        name = meta["name"]
        if is_resource_exception(name, meta.get("namespace") or "", exceptions):
            continue
        if (meta.get("labels") or {}).get("kor/used") == "false":
            unused.append(ResourceInfo(name, "Marked with unused label"))
            continue
        if (daemon_set.get("status") or {}).get("currentNumberScheduled", 0) == 0:
            unused.append(ResourceInfo(name, "DaemonSet has no replicas"))

    if opts.delete_flag:
        unused = delete_resource(unused, cluster, namespace, "DaemonSet", opts.no_interactive)
    return unused


def get_unused_daemonsets(
    filter_opts,
    cluster,
    output_format: str,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> str:
    """Report unused daemon sets across the selected namespaces."""
    exceptions = list(exceptions or ())
    resources: dict = {}
    for namespace in filter_opts.namespaces(cluster):
        try:
            diff = process_namespace_daemonsets(cluster, namespace, filter_opts, opts, exceptions)
        except (ValueError, LookupError) as err:
            print(f"Failed to process namespace {namespace}: {err}", file=sys.stderr)
            continue
        group_diff(resources, namespace, "DaemonSet", diff, opts.group_by)

    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""