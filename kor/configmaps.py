"""Finding config maps that no pod refers to or that are marked unused."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from itertools import chain
from typing import Iterable, Optional

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
    "ConfigMapReferences",
    "retrieve_used_configmaps",
    "retrieve_configmap_names",
    "process_namespace_configmaps",
    "get_unused_configmaps",
]

_FILTER = default_framework()


@dataclass
class ConfigMapReferences:
    """Config map names referenced by pods, by the way they are referenced."""

    volumes: list[str] = field(default_factory=list)
    env: list[str] = field(default_factory=list)
    env_from: list[str] = field(default_factory=list)
    env_from_container: list[str] = field(default_factory=list)
    env_from_init_container: list[str] = field(default_factory=list)

    def all_names(self) -> list[str]:
        """Every referenced name, each group deduplicated and sorted, concatenated."""
        return list(
            chain.from_iterable(
                dedupe_sorted(group)
                for group in (
                    self.volumes,
                    self.env,
                    self.env_from,
                    self.env_from_container,
                    self.env_from_init_container,
                )
            )
        )


def _env_refs(container: dict) -> list[str]:
    return [
        env["valueFrom"]["configMapKeyRef"]["name"]
        for env in container.get("env") or ()
        if (env.get("valueFrom") or {}).get("configMapKeyRef") is not None
    ]


def _env_from_refs(container: dict) -> list[str]:
    return [
        source["configMapRef"]["name"]
        for source in container.get("envFrom") or ()
        if source.get("configMapRef") is not None
    ]


def retrieve_used_configmaps(cluster, namespace: str) -> ConfigMapReferences:
    """Collect the config map names that the pods of a namespace refer to."""
    refs = ConfigMapReferences()
    for pod in cluster.list("Pod", namespace):
        spec = pod.get("spec") or {}
        for volume in spec.get("volumes") or ():
            if volume.get("configMap") is not None:
                refs.volumes.append(volume["configMap"]["name"])
            for source in (volume.get("projected") or {}).get("sources") or ():
                if source.get("configMap") is not None:
                    refs.volumes.append(source["configMap"]["name"])
        for container in spec.get("containers") or ():
            refs.env.extend(_env_refs(container))
            from_refs = _env_from_refs(container)
            refs.env_from.extend(from_refs)
            refs.env_from_container.extend(from_refs)
        for init in spec.get("initContainers") or ():
            for mount in init.get("volumeMounts") or ():
                if mount.get("name") and mount.get("mountPath"):
                    refs.volumes.append(mount["name"])
            refs.env_from_init_container.extend(_env_refs(init))
            refs.env_from_init_container.extend(_env_from_refs(init))
    return refs


def retrieve_configmap_names(cluster, namespace: str, filter_opts) -> tuple[list[str], list[str]]:
    """Return ``(names, names marked unused)`` of the config maps that pass the filters."""
    names: list[str] = []
    marked_unused: list[str] = []
    for cm in cluster.list("ConfigMap", namespace, filter_opts.include_labels):
        if _FILTER.with_object(cm).run(filter_opts):
            continue
        meta = cm.get("metadata") or {}
        if (meta.get("labels") or {}).get("kor/used") == "false":
            marked_unused.append(meta["name"])
        else:
            names.append(meta["name"])
    return names, marked_unused


def process_namespace_configmaps(
    cluster,
    namespace: str,
    filter_opts,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> list[ResourceInfo]:
    """Return the unused config maps of one namespace, deleting them if asked."""
    exceptions = list(exceptions or ())
    used = retrieve_used_configmaps(cluster, namespace).all_names()
    names, marked_unused = retrieve_configmap_names(cluster, namespace, filter_opts)

    diff = [
        ResourceInfo(name, "ConfigMap is not used in any pod or container")
        for name in resource_difference(used, names)
        if not is_resource_exception(name, namespace, exceptions)
    ]
    diff += [ResourceInfo(name, "Marked with unused label") for name in marked_unused]

    if opts.delete_flag:
        diff = delete_resource(diff, cluster, namespace, "ConfigMap", opts.no_interactive)
    return diff


def get_unused_configmaps(
    filter_opts,
    cluster,
    output_format: str,
    opts,
    exceptions: Optional[Iterable[ResourceException]] = None,
) -> str:
    """Report unused config maps across the selected namespaces."""
    exceptions = list(exceptions or ())
    resources: dict = {}
    for namespace in filter_opts.namespaces(cluster):
        try:
            diff = process_namespace_configmaps(cluster, namespace, filter_opts, opts, exceptions)
        except (ValueError, LookupError) as err:
            print(f"Failed to process namespace {namespace}: {err}", file=sys.stderr)
            continue
        group_diff(resources, namespace, "ConfigMap", diff, opts.group_by)

    try:
        return render_unused(output_format, resources, opts)
    except UnsupportedFormatError as err:
        print(f"err: {err}")
        return ""