"""Finding horizontal pod autoscalers whose scale target is gone or that are marked unused."""

from __future__ import annotations

import sys

from kor.delete import delete_resource
from kor.filters import default_framework
from kor.report import ResourceInfo, UnsupportedFormatError, group_diff, render_unused

__all__ = ["process_namespace_hpas", "get_unused_hpas"]

_FILTER = default_framework()
_TARGET_KINDS = ("Deployment", "StatefulSet")


def _names(cluster, kind: str, namespace: str) -> set[str]:
    return {(obj.get("metadata") or {}).get("name") for obj in cluster.list(kind, namespace)}


def process_namespace_hpas(cluster, namespace: str, filter_opts, opts) -> list[ResourceInfo]:
    """Return the unused autoscalers of one namespace, deleting them if asked."""
    existing = {kind: _names(cluster, kind, namespace) for kind in _TARGET_KINDS}
    hpas = cluster.list("HorizontalPodAutoscaler", namespace, filter_opts.include_labels)

    unused: list[ResourceInfo] = []
    for hpa in hpas:
        if _FILTER.with_object(hpa).run(filter_opts):
            continue
        meta = hpa.get("metadata") or {}
        name = meta["name"]
        if (meta.get("labels") or {}).get("kor/used") == "false":
            unused.append(ResourceInfo(name, "Marked with unused label"))
            continue
        target = (hpa.get("spec") or {}).get("scaleTargetRef") or {}
        kind = target.get("kind")
        if kind in existing and target.get("name") not in existing[kind]:
            unused.append(ResourceInfo(name, f"Scale target {kind} does not exist"))

    if opts.delete_flag:
        unused = delete_resource(unused, cluster, namespace, "HPA", opts.no_interactive)
    return unused


def get_unused_hpas(filter_opts, cluster, output_format: str, opts) -> str:
    """Report unused autoscalers across the selected namespaces."""
    resources: dict = {}
    for namespace in filter_opts.namespaces(cluster):
        try:
            diff = process_namespace_hpas(cluster, namespace, filter_opts, opts)
        except (ValueError, LookupError) as err:
            print(f"Failed to process namespace {namespace}: {err}", file=sys.stderr)
            continue
        group_diff(resources, namespace, "Hpa", diff, opts.group_by)

    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""