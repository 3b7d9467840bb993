"""Builders for Kubernetes-style object manifests stored as plain dictionaries."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional

__all__ = [
    "TEST_NAMESPACE",
    "APP_LABELS",
    "USED_LABELS",
    "UNUSED_LABELS",
    "deployment",
    "stateful_set",
    "service",
    "pod",
    "pvc_volume",
    "ephemeral_volume",
    "service_account",
    "rbac_subject",
    "role_ref",
    "cluster_role_ref",
    "role_binding",
    "cluster_role_binding",
    "role",
    "endpoints",
    "hpa",
    "ingress",
    "pvc",
    "pv",
    "storage_class",
    "pdb",
    "secret",
    "config_map",
    "job",
    "replica_set",
    "cluster_role",
    "daemon_set",
    "unstructured",
    "network_policy",
    "volume_attachment",
    "node",
    "csi_driver",
]

TEST_NAMESPACE = "test-namespace"
APP_LABELS: Mapping[str, str] = {}
USED_LABELS: Mapping[str, str] = {"kor/used": "true"}
UNUSED_LABELS: Mapping[str, str] = {"kor/used": "false"}

_QUANTITY = re.compile(
    r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+|[KMGTPE]i|[numkMGTPE])?"
)


def _meta(name: str, namespace: str = "", labels: Optional[Mapping[str, str]] = None) -> dict:
    meta: dict[str, Any] = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    meta["labels"] = dict(labels or {})
    return meta


def _object(api_version: str, kind: str, metadata: dict, **body: Any) -> dict:
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata, **body}


def _policy_rule() -> dict:
    return {"verbs": ["get"], "resources": ["pods"]}


def _test_pod_template() -> dict:
    return {
        "spec": {
            "containers": [{"name": "test", "image": "test"}],
            "restartPolicy": "Never",
        }
    }


def deployment(namespace: str, name: str, replicas: int, labels: Optional[Mapping[str, str]]) -> dict:
    """A Deployment with the given replica count; pods carry the same labels."""
    return _object(
        "apps/v1",
        "Deployment",
        _meta(name, namespace, labels),
        spec={"replicas": replicas, "template": {"metadata": {"labels": dict(labels or {})}}},
    )


def stateful_set(namespace: str, name: str, replicas: int, labels: Optional[Mapping[str, str]]) -> dict:
    """A StatefulSet with the given replica count."""
    return _object(
        "apps/v1",
        "StatefulSet",
        _meta(name, namespace, labels),
        spec={"replicas": replicas, "template": {"metadata": {"labels": dict(labels or {})}}},
    )


def service(namespace: str, name: str) -> dict:
    """A Service without labels or spec."""
    return _object("v1", "Service", _meta(name, namespace))


def pod(
    namespace: str,
    name: str,
    service_account_name: str,
    volumes: Optional[Iterable[Mapping[str, Any]]],
    labels: Optional[Mapping[str, str]],
) -> dict:
    """A Pod with volumes and no containers."""
    return _object(
        "v1",
        "Pod",
        _meta(name, namespace, labels),
        spec={
            "volumes": [dict(v) for v in volumes or ()],
            "initContainers": [],
            "containers": [],
            "serviceAccountName": service_account_name,
        },
    )


def pvc_volume(name: str, pvc_name: str) -> dict:
    """A pod volume backed by a persistent volume claim."""
    return {"name": name, "persistentVolumeClaim": {"claimName": pvc_name}}


def ephemeral_volume(name: str, size: str) -> dict:
    """A generic ephemeral volume requesting ``size`` of storage."""
    if not _QUANTITY.fullmatch(size or ""):
        raise ValueError(f"quantities must match the regular expression: {size!r}")
    return {
        "name": name,
        "ephemeral": {
            "volumeClaimTemplate": {
                "spec": {"resources": {"requests": {"storage": size}}},
            }
        },
    }


def service_account(namespace: str, name: str, labels: Optional[Mapping[str, str]]) -> dict:
    """A ServiceAccount."""
    return _object("v1", "ServiceAccount", _meta(name, namespace, labels))


def rbac_subject(namespace: str, service_account_name: str) -> dict:
    """A binding subject naming a service account."""
    return {"kind": "ServiceAccount", "name": service_account_name, "namespace": namespace}


def role_ref(role_name: str) -> dict:
    """A reference to a namespaced Role."""
    return {"kind": "Role", "name": role_name}


def cluster_role_ref(role_name: str) -> dict:
    """A reference to a ClusterRole."""
    return {"kind": "ClusterRole", "name": role_name}


def role_binding(namespace: str, name: str, service_account_name: str, ref: Mapping[str, str]) -> dict:
    """A RoleBinding of one service account to ``ref``."""
    return _object(
        "rbac.authorization.k8s.io/v1",
        "RoleBinding",
        _meta(name, namespace),
        subjects=[rbac_subject(namespace, service_account_name)],
        roleRef=dict(ref),
    )


def cluster_role_binding(
    namespace: str,
    name: str,
    service_account_name: str,
    ref: Optional[Mapping[str, str]] = None,
) -> dict:
    """A ClusterRoleBinding of one service account; an absent ``ref`` is left blank."""
    return _object(
        "rbac.authorization.k8s.io/v1",
        "ClusterRoleBinding",
        _meta(name),
        subjects=[rbac_subject(namespace, service_account_name)],
        roleRef=dict(ref) if ref is not None else {"kind": "", "name": ""},
    )


def role(namespace: str, name: str, labels: Optional[Mapping[str, str]]) -> dict:
    """A Role allowing ``get`` on pods."""
    return _object(
        "rbac.authorization.k8s.io/v1",
        "Role",
        _meta(name, namespace, labels),
        rules=[_policy_rule()],
    )


def endpoints(namespace: str, name: str, subset_count: int, labels: Optional[Mapping[str, str]]) -> dict:
    """An Endpoints object with ``subset_count`` empty subsets."""
    return _object(
        "v1",
        "Endpoints",
        _meta(name, namespace, labels),
        subsets=[{} for _ in range(subset_count)],
    )


def hpa(
    namespace: str,
    name: str,
    deployment_name: str,
    min_replicas: int,
    max_replicas: int,
    labels: Optional[Mapping[str, str]],
) -> dict:
    """A HorizontalPodAutoscaler targeting a Deployment."""
    return _object(
        "autoscaling/v2",
        "HorizontalPodAutoscaler",
        _meta(name, namespace, labels),
        spec={
            "minReplicas": min_replicas,
            "maxReplicas": max_replicas,
            "scaleTargetRef": {"kind": "Deployment", "name": deployment_name},
        },
    )


def ingress(
    namespace: str,
    name: str,
    service_name: str,
    secret_name: str,
    labels: Optional[Mapping[str, str]],
) -> dict:
    """An Ingress with one HTTP path to ``service_name`` and one TLS secret."""
    rule = {
        "host": "test.com",
        "http": {"paths": [{"path": "/path", "backend": {"service": {"name": service_name}}}]},
    }
    return _object(
        "networking.k8s.io/v1",
        "Ingress",
        _meta(name, namespace, labels),
        spec={"rules": [rule], "tls": [{"secretName": secret_name}]},
    )


def pvc(namespace: str, name: str, labels: Optional[Mapping[str, str]], storage_class: str) -> dict:
    """A PersistentVolumeClaim of the given storage class."""
    return _object(
        "v1",
        "PersistentVolumeClaim",
        _meta(name, namespace, labels),
        spec={"storageClassName": storage_class},
    )


def pv(name: str, phase: str, labels: Optional[Mapping[str, str]], storage_class: str) -> dict:
    """A PersistentVolume in ``phase``."""
    return _object(
        "v1",
        "PersistentVolume",
        _meta(name, "", labels),
        spec={"storageClassName": storage_class},
        status={"phase": phase},
    )


def storage_class(name: str, provisioner: str) -> dict:
    """A StorageClass."""
    return _object("storage.k8s.io/v1", "StorageClass", _meta(name), provisioner=provisioner)


def pdb(
    namespace: str,
    name: str,
    match_labels: Optional[Mapping[str, str]],
    pdb_labels: Optional[Mapping[str, str]],
) -> dict:
    """A PodDisruptionBudget selecting pods by ``match_labels``."""
    return _object(
        "policy/v1",
        "PodDisruptionBudget",
        _meta(name, namespace, pdb_labels),
        spec={"selector": {"matchLabels": dict(match_labels or {})}},
    )


def secret(namespace: str, name: str, labels: Optional[Mapping[str, str]]) -> dict:
    """A Secret."""
    return _object("v1", "Secret", _meta(name, namespace, labels))


def config_map(namespace: str, name: str, labels: Optional[Mapping[str, str]]) -> dict:
    """A ConfigMap."""
    return _object("v1", "ConfigMap", _meta(name, namespace, labels))


def job(
    namespace: str,
    name: str,
    status: Optional[Mapping[str, Any]],
    labels: Optional[Mapping[str, str]],
) -> dict:
    """A Job with one container and the given status."""
    return _object(
        "batch/v1",
        "Job",
        _meta(name, namespace, labels),
        spec={"template": _test_pod_template()},
        status=dict(status or {}),
    )


def replica_set(
    namespace: str,
    name: str,
    spec_replicas: Optional[int],
    status: Optional[Mapping[str, Any]],
) -> dict:
    """A ReplicaSet; ``spec_replicas`` may be None."""
    return _object(
        "apps/v1",
        "ReplicaSet",
        _meta(name, namespace),
        spec={"replicas": spec_replicas, "template": _test_pod_template()},
        status=dict(status or {}),
    )


def cluster_role(name: str, labels: Optional[Mapping[str, str]], *match_labels: Mapping[str, Any]) -> dict:
    """A ClusterRole whose aggregation rule holds the given label selectors."""
    return _object(
        "rbac.authorization.k8s.io/v1",
        "ClusterRole",
        _meta(name, "", labels),
        aggregationRule={"clusterRoleSelectors": [dict(s) for s in match_labels]},
        rules=[_policy_rule()],
    )


def daemon_set(
    namespace: str,
    name: str,
    labels: Optional[Mapping[str, str]],
    status: Optional[Mapping[str, Any]],
) -> dict:
    """A DaemonSet with the given status."""
    return _object(
        "apps/v1",
        "DaemonSet",
        _meta(name, namespace, labels),
        status=dict(status or {}),
    )


def unstructured(kind: str, api_version: str, namespace: str, name: str) -> dict:
    """A bare object of any kind with an empty spec."""
    return {
        "kind": kind,
        "apiVersion": api_version,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {},
    }


def network_policy(
    name: str,
    namespace: str,
    labels: Optional[Mapping[str, str]],
    pod_selector: Optional[Mapping[str, Any]],
    ingress: Optional[Iterable[Mapping[str, Any]]],
    egress: Optional[Iterable[Mapping[str, Any]]],
) -> dict:
    """A NetworkPolicy; it has an Egress policy type only when egress rules are given."""
    ingress_rules = [dict(r) for r in ingress or ()]
    egress_rules = [dict(r) for r in egress or ()]
    policy_types = ["Ingress"] + (["Egress"] if egress_rules else [])
    return _object(
        "networking.k8s.io/v1",
        "NetworkPolicy",
        _meta(name, namespace, labels),
        spec={
            "podSelector": dict(pod_selector or {}),
            "policyTypes": policy_types,
            "ingress": ingress_rules,
            "egress": egress_rules,
        },
    )


def volume_attachment(name: str, attacher: str, node_name: str, pv_name: str) -> dict:
    """A VolumeAttachment of a persistent volume to a node."""
    return _object(
        "storage.k8s.io/v1",
        "VolumeAttachment",
        _meta(name),
        spec={
            "attacher": attacher,
            "nodeName": node_name,
            "source": {"persistentVolumeName": pv_name},
        },
    )


def node(name: str) -> dict:
    """A Node."""
    return _object("v1", "Node", _meta(name))


def csi_driver(name: str) -> dict:
    """A CSIDriver."""
    return _object("storage.k8s.io/v1", "CSIDriver", _meta(name))