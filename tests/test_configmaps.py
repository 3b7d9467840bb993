import json

import pytest

from kor import manifests
from kor.cluster import Cluster
from kor.configmaps import (
    ConfigMapReferences,
    get_unused_configmaps,
    process_namespace_configmaps,
    retrieve_configmap_names,
    retrieve_used_configmaps,
)
from kor.manifests import APP_LABELS, TEST_NAMESPACE, UNUSED_LABELS, USED_LABELS
from kor.options import FilterOptions, Opts
from kor.report import ResourceException, ResourceInfo


def _key_ref(env_name, cm):
    return {"name": env_name, "valueFrom": {"configMapKeyRef": {"name": cm}}}


def _from_ref(cm):
    return {"configMapRef": {"name": cm}}


@pytest.fixture
def cluster():
    c = Cluster()
    c.create("Namespace", {"metadata": {"name": TEST_NAMESPACE}})
    for i, labels in enumerate(
        [APP_LABELS, APP_LABELS, APP_LABELS, USED_LABELS, UNUSED_LABELS, APP_LABELS], start=1
    ):
        c.create("ConfigMap", manifests.config_map(TEST_NAMESPACE, f"configmap-{i}", labels))

    pod1 = manifests.pod(
        TEST_NAMESPACE, "pod-1", "", [{"name": "vol-1", "configMap": {"name": "configmap-1"}}], APP_LABELS
    )
    pod2 = manifests.pod(TEST_NAMESPACE, "pod-2", "", None, APP_LABELS)
    pod2["spec"]["containers"] = [{"env": [_key_ref("ENV_VAR_1", "configmap-1")]}]
    pod3 = manifests.pod(TEST_NAMESPACE, "pod-3", "", None, APP_LABELS)
    pod3["spec"]["containers"] = [{"envFrom": [_from_ref("configmap-2")]}]
    pod4 = manifests.pod(TEST_NAMESPACE, "pod-4", "", None, APP_LABELS)
    pod4["spec"]["initContainers"] = [{"env": [_key_ref("INIT_ENV_VAR_1", "configmap-2")]}]
    pod5 = manifests.pod(TEST_NAMESPACE, "pod-5", "", None, APP_LABELS)
    pod5["spec"]["initContainers"] = [{"envFrom": [_from_ref("configmap-6")]}]
    for p in (pod1, pod2, pod3, pod4, pod5):
        c.create("Pod", p)
    return c


def test_retrieve_configmap_names(cluster):
    names, marked = retrieve_configmap_names(cluster, TEST_NAMESPACE, FilterOptions())
    assert names == ["configmap-1", "configmap-2", "configmap-3", "configmap-6"]
    assert marked == ["configmap-5"]


def test_process_namespace_cm(cluster):
    diff = process_namespace_configmaps(cluster, TEST_NAMESPACE, FilterOptions(), Opts())
    assert diff == [
        ResourceInfo("configmap-3", "ConfigMap is not used in any pod or container"),
        ResourceInfo("configmap-5", "Marked with unused label"),
    ]


def test_retrieve_used_cm(cluster):
    refs = retrieve_used_configmaps(cluster, TEST_NAMESPACE)
    assert refs.volumes == ["configmap-1"]
    assert refs.env == ["configmap-1"]
    assert refs.env_from == ["configmap-2"]
    assert refs.env_from_container == ["configmap-2"]
    assert refs.env_from_init_container == ["configmap-2", "configmap-6"]


def test_get_unused_configmaps_structured(cluster):
    opts = Opts(no_interactive=True, group_by="namespace")
    output = get_unused_configmaps(FilterOptions(), cluster, "json", opts)
    assert json.loads(output) == {
        TEST_NAMESPACE: {"ConfigMap": ["configmap-3", "configmap-5"]}
    }


def test_projected_volume_counts_as_used():
    c = Cluster()
    c.create("ConfigMap", manifests.config_map(TEST_NAMESPACE, "projected-cm", APP_LABELS))
    volume = {"name": "v", "projected": {"sources": [{"configMap": {"name": "projected-cm"}}]}}
    c.create("Pod", manifests.pod(TEST_NAMESPACE, "p", "", [volume], APP_LABELS))
    assert retrieve_used_configmaps(c, TEST_NAMESPACE).volumes == ["projected-cm"]
    assert process_namespace_configmaps(c, TEST_NAMESPACE, FilterOptions(), Opts()) == []


def test_all_names_dedupes_each_group():
    refs = ConfigMapReferences(volumes=["b", "a", "b"], env=["a"])
    assert refs.all_names() == ["a", "b", "a"]


def test_exception_exact_match(cluster):
    diff = process_namespace_configmaps(
        cluster,
        TEST_NAMESPACE,
        FilterOptions(),
        Opts(),
        [ResourceException(TEST_NAMESPACE, "configmap-3")],
    )
    assert [i.name for i in diff] == ["configmap-5"]


def test_exception_pattern_does_not_hide_marked(cluster):
    diff = process_namespace_configmaps(
        cluster,
        TEST_NAMESPACE,
        FilterOptions(),
        Opts(),
        [ResourceException("test-.*", "configmap-.*")],
    )
    assert [i.name for i in diff] == ["configmap-5"]


def test_delete_non_interactive(cluster):
    diff = process_namespace_configmaps(
        cluster, TEST_NAMESPACE, FilterOptions(), Opts(delete_flag=True, no_interactive=True)
    )
    assert [i.name for i in diff] == ["configmap-3-DELETED", "configmap-5-DELETED"]
    remaining = [o["metadata"]["name"] for o in cluster.list("ConfigMap", TEST_NAMESPACE)]
    assert remaining == ["configmap-1", "configmap-2", "configmap-4", "configmap-6"]