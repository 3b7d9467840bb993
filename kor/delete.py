"""Deleting unused resources, with optional confirmation and in-use flagging."""

from __future__ import annotations

import sys
from dataclasses import replace
from typing import Callable, Iterable, Optional

from kor.cluster import GroupVersionResource
from kor.report import ResourceInfo

__all__ = [
    "flag_resource",
    "flag_dynamic_resource",
    "delete_resource",
    "delete_resource_with_finalizer",
]

Ask = Callable[[str], str]

# Resource type name used by callers -> (stored kind, whether it is namespaced).
_KINDS: dict[str, tuple[str, bool]] = {
    "ConfigMap": ("ConfigMap", True),
    "Secret": ("Secret", True),
    "Service": ("Service", True),
    "Deployment": ("Deployment", True),
    "HPA": ("HorizontalPodAutoscaler", True),
    "Ingress": ("Ingress", True),
    "PDB": ("PodDisruptionBudget", True),
    "Role": ("Role", True),
    "ClusterRole": ("ClusterRole", False),
    "PVC": ("PersistentVolumeClaim", True),
    "StatefulSet": ("StatefulSet", True),
    "ServiceAccount": ("ServiceAccount", True),
    "PV": ("PersistentVolume", False),
    "Pod": ("Pod", True),
    "Job": ("Job", True),
    "ReplicaSet": ("ReplicaSet", True),
    "DaemonSet": ("DaemonSet", True),
    "StorageClass": ("StorageClass", False),
    "NetworkPolicy": ("NetworkPolicy", True),
    "RoleBinding": ("RoleBinding", True),
    "VolumeAttachment": ("VolumeAttachment", False),
}

# Volume attachments can be deleted but not flagged.
_FLAGGABLE = frozenset(_KINDS) - {"VolumeAttachment"}

_FINALIZER_PATCH = {"metadata": {"finalizers": None}}


def _target(resource_type: str, namespace: str) -> tuple[str, str]:
    kind, namespaced = _KINDS[resource_type]
    return kind, namespace if namespaced else ""


def _mark_used(obj: dict) -> dict:
    meta = obj.setdefault("metadata", {})
    labels = dict(meta.get("labels") or {})
    labels["kor/used"] = "true"
    meta["labels"] = labels
    return obj


def flag_resource(cluster, namespace: str, resource_type: str, resource_name: str) -> dict:
    """Label a resource ``kor/used=true`` and store it; unsupported types raise ValueError."""
    if resource_type not in _FLAGGABLE:
        raise ValueError(f"resource type '{resource_type}' is not supported")
    kind, ns = _target(resource_type, namespace)
    obj = cluster.get(kind, ns, resource_name)
    return cluster.update(kind, _mark_used(obj))


def flag_dynamic_resource(
    cluster, namespace: str, gvr: GroupVersionResource, resource_name: str
) -> dict:
    """Label an object of an arbitrary resource collection ``kor/used=true``."""
    obj = cluster.get(gvr, namespace, resource_name)
    return cluster.update(gvr, _mark_used(obj))


def _read_answer(ask: Ask, prompt: str) -> Optional[str]:
    try:
        answer = ask(prompt)
    except (EOFError, OSError) as err:
        print(f"Failed to read input: {err}", file=sys.stderr)
        return None
    words = (answer or "").split()
    if not words:
        print("Failed to read input: unexpected newline", file=sys.stderr)
        return None
    return words[0]


def _is_yes(answer: str) -> bool:
    return answer.lower() in ("y", "yes")


def delete_resource(
    diff: Iterable[ResourceInfo],
    cluster,
    namespace: str,
    resource_type: str,
    no_interactive: bool,
    ask: Optional[Ask] = None,
) -> list[ResourceInfo]:
    """Delete each resource in ``diff``, asking first unless ``no_interactive``.

    Deleted resources come back with ``-DELETED`` appended to their names;
    declined ones come back unchanged and may be flagged as in use. Resources
    that fail to delete, or whose answer cannot be read, are left out.
    """
    ask = ask or input
    result: list[ResourceInfo] = []
    for info in diff or ():
        if resource_type not in _KINDS:
            print(f"Resource type '{info.name}' is not supported")
            continue

        if not no_interactive:
            answer = _read_answer(
                ask,
                f"Do you want to delete {resource_type} {info.name} in namespace {namespace}? (Y/N): ",
            )
            if answer is None:
                continue
            if not _is_yes(answer):
                result.append(info)
                in_use = _read_answer(
                    ask,
                    f"Do you want flag the resource {resource_type} {info.name} "
                    f"in namespace {namespace} as In Use? (Y/N): ",
                )
                if in_use is not None and _is_yes(in_use):
                    try:
                        flag_resource(cluster, namespace, resource_type, info.name)
                    except (LookupError, ValueError) as err:
                        print(
                            f"Failed to flag resource {resource_type} {info.name} "
                            f"in namespace {namespace} as In Use: {err}",
                            file=sys.stderr,
                        )
                continue

        print(f"Deleting {resource_type} {info.name} in namespace {namespace}")
        kind, ns = _target(resource_type, namespace)
        try:
            cluster.delete(kind, ns, info.name)
        except LookupError as err:
            print(
                f"Failed to delete {resource_type} {info.name} in namespace {namespace}: {err}",
                file=sys.stderr,
            )
            continue
        result.append(replace(info, name=info.name + "-DELETED"))
    return result


def delete_resource_with_finalizer(
    resources: Iterable[ResourceInfo],
    cluster,
    namespace: str,
    gvr: GroupVersionResource,
    no_interactive: bool,
    ask: Optional[Ask] = None,
) -> list[ResourceInfo]:
    """Clear the finalizers of objects pending deletion so that they go away.

    Cleared objects come back with ``-DELETED`` appended to their names;
    declined ones come back with a reason saying so.
    """
    ask = ask or input
    remaining: list[ResourceInfo] = []
    for info in resources or ():
        if not no_interactive:
            answer = _read_answer(
                ask,
                f"Do you want to delete {gvr.resource} {info.name} in namespace {namespace}? (Y/N): ",
            )
            if answer is None:
                continue
            if not _is_yes(answer):
                remaining.append(replace(info, reason="not deleted - user declined"))
                in_use = _read_answer(
                    ask,
                    f"Do you want to flag the resource {gvr.resource} {info.name} "
                    f"in namespace {namespace} as In Use? (Y/N): ",
                )
                if in_use is not None and _is_yes(in_use):
                    try:
                        flag_dynamic_resource(cluster, namespace, gvr, info.name)
                    except LookupError as err:
                        print(
                            f"Failed to flag resource {gvr.resource} {info.name} "
                            f"in namespace {namespace} as In Use: {err}",
                            file=sys.stderr,
                        )
                continue

        print(f"Deleting {gvr.resource} {info.name} in namespace {namespace}")
        try:
            cluster.merge_patch(gvr, namespace, info.name, _FINALIZER_PATCH)
        except LookupError as err:
            print(
                f"Failed to delete {gvr.resource} {info.name} in namespace {namespace}: {err}",
                file=sys.stderr,
            )
            continue
        remaining.append(replace(info, name=info.name + "-DELETED"))
    return remaining