"""Finding deployments scaled to zero or marked unused."""

from __future__ import annotations

import sys

from kor.delete import delete_resource
from kor.filters import default_framework
from kor.report import ResourceInfo, UnsupportedFormatError, group_diff, render_unused

__all__ = ["process_namespace_deployments", "get_unused_deployments"]

_FILTER = default_framework()


def process_namespace_deployments(cluster, namespace: str, filter_opts, opts) -> list[ResourceInfo]:
    """Return the unused deployments of one namespace, deleting them if asked."""
    deployments = cluster.list("Deployment", namespace, filter_opts.include_labels)
    unused: list[ResourceInfo] = []
    for deployment in deployments:
        if _FILTER.with_object(deployment).run(filter_opts):
            continue
        meta = deployment.get("metadata") or {}
        name = meta["name"]
        if (meta.get("labels") or {}).get("kor/used") == "false":
            unused.append(ResourceInfo(name, "Marked with unused label"))
            continue
        if (deployment.get("spec") or {}).get("replicas", 1) == 0:
            unused.append(ResourceInfo(name, "Deployment has no replicas"))

    if opts.delete_flag:
        unused = delete_resource(unused, cluster, namespace, "Deployment", opts.no_interactive)
    return unused


def get_unused_deployments(filter_opts, cluster, output_format: str, opts) -> str:
    """Report unused deployments across the selected namespaces."""
    resources: dict = {}
    for namespace in filter_opts.namespaces(cluster):
        try:
            diff = process_namespace_deployments(cluster, namespace, filter_opts, opts)
        except (ValueError, LookupError) as err:
            print(f"Failed to process namespace {namespace}: {err}", file=sys.stderr)
            continue
        group_diff(resources, namespace, "Deployment", diff, opts.group_by)

    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""