"""Finding custom resource definitions that have no instances or are marked unused."""

from __future__ import annotations

import sys
from typing import Iterable, Optional

from kor.cluster import GroupVersionResource
from kor.filters import default_framework
from kor.options import FilterOptions
from kor.report import (
    ResourceException,
    ResourceInfo,
    UnsupportedFormatError,
    group_diff,
    is_resource_exception,
    render_unused,
)

__all__ = ["process_crds", "get_unused_crds"]

_FILTER = default_framework()
_KIND = "CustomResourceDefinition"


def _instances_gvr(crd: dict) -> GroupVersionResource:
    spec = crd.get("spec") or {}
    versions = spec.get("versions") or []
    if not versions:
        raise ValueError(f"custom resource definition {crd['metadata']['name']} has no versions")
    return GroupVersionResource(
        group=spec.get("group", ""),
        version=versions[0].get("name", ""),
        resource=(spec.get("names") or {}).get("plural", ""),
    )


def process_crds(
    cluster, filter_opts, exceptions: Optional[Iterable[ResourceException]] = None
) -> list[ResourceInfo]:
    """Return the unused custom resource definitions; only the first version is checked."""
    exceptions = list(exceptions or ())
    unused: list[ResourceInfo] = []
    for crd in cluster.list(_KIND, label_selector=filter_opts.include_labels):
        if _FILTER.with_object(crd).run(filter_opts):
            continue
        meta = crd.get("metadata") or {}
        name = meta.get("name", "")
        if (meta.get("labels") or {}).get("kor/used") == "false":
            unused.append(ResourceInfo(name, "Marked with unused label"))
            continue
        if is_resource_exception(name, meta.get("namespace") or "", exceptions):
            continue
        instances = cluster.list(_instances_gvr(crd), label_selector=filter_opts.include_labels)
        if not instances:
            unused.append(ResourceInfo(name, "CRD has no instances"))
    return unused


def get_unused_crds(
    filter_opts,
    cluster,
    output_format: str,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> str:
    """Report unused custom resource definitions; the given filter options are not applied."""
    try:
        diff = process_crds(cluster, FilterOptions(), exceptions)
    except (ValueError, LookupError) as err:
        print(f"Failed to process crds: {err}", file=sys.stderr)
        diff = []

    resources: dict = {}
    group_diff(resources, "", "Crd", diff, opts.group_by)
    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""