import json

import pytest

from kor import manifests
from kor.cluster import Cluster
from kor.hpas import get_unused_hpas, process_namespace_hpas
from kor.manifests import APP_LABELS, TEST_NAMESPACE, UNUSED_LABELS, USED_LABELS
from kor.options import FilterOptions, Opts


@pytest.fixture
def cluster():
    c = Cluster()
    c.create("Namespace", {"metadata": {"name": TEST_NAMESPACE}})
    c.create("Deployment", manifests.deployment(TEST_NAMESPACE, "test-deployment", 1, APP_LABELS))
    for name, target, labels in [
        ("test-hpa1", "test-deployment", APP_LABELS),
        ("test-hpa2", "non-existing-deployment", APP_LABELS),
        ("test-hpa3", "test-deployment", USED_LABELS),
        ("test-hpa4", "non-existing-deployment", UNUSED_LABELS),
    ]:
        c.create(
            "HorizontalPodAutoscaler",
            manifests.hpa(TEST_NAMESPACE, name, target, 1, 1, labels),
        )
    return c


def test_extract_unused_hpas(cluster):
    unused = process_namespace_hpas(cluster, TEST_NAMESPACE, FilterOptions(), Opts())
    assert [info.name for info in unused] == ["test-hpa2", "test-hpa4"]
    assert unused[0].reason == "Scale target Deployment does not exist"
    assert unused[1].reason == "Marked with unused label"


def test_get_unused_hpas_structured(cluster):
    opts = Opts(no_interactive=True, group_by="namespace")
    output = get_unused_hpas(FilterOptions(), cluster, "json", opts)
    assert json.loads(output) == {TEST_NAMESPACE: {"Hpa": ["test-hpa2", "test-hpa4"]}}


def test_stateful_set_target():
    c = Cluster()
    c.create("StatefulSet", manifests.stateful_set(TEST_NAMESPACE, "db", 1, APP_LABELS))
    good = manifests.hpa(TEST_NAMESPACE, "hpa-good", "db", 1, 2, APP_LABELS)
    good["spec"]["scaleTargetRef"]["kind"] = "StatefulSet"
    bad = manifests.hpa(TEST_NAMESPACE, "hpa-bad", "missing", 1, 2, APP_LABELS)
    bad["spec"]["scaleTargetRef"]["kind"] = "StatefulSet"
    c.create("HorizontalPodAutoscaler", good)
    c.create("HorizontalPodAutoscaler", bad)
    unused = process_namespace_hpas(c, TEST_NAMESPACE, FilterOptions(), Opts())
    assert [(i.name, i.reason) for i in unused] == [
        ("hpa-bad", "Scale target StatefulSet does not exist")
    ]


def test_exclude_labels_skip(cluster):
    cluster.create(
        "HorizontalPodAutoscaler",
        manifests.hpa(TEST_NAMESPACE, "test-hpa5", "gone", 1, 1, {"app": "skip"}),
    )
    unused = process_namespace_hpas(
        cluster, TEST_NAMESPACE, FilterOptions(exclude_labels=["app=skip"]), Opts()
    )
    assert "test-hpa5" not in [i.name for i in unused]


def test_delete_non_interactive(cluster):
    unused = process_namespace_hpas(
        cluster, TEST_NAMESPACE, FilterOptions(), Opts(delete_flag=True, no_interactive=True)
    )
    assert [i.name for i in unused] == ["test-hpa2-DELETED", "test-hpa4-DELETED"]
    remaining = [o["metadata"]["name"] for o in cluster.list("HorizontalPodAutoscaler", TEST_NAMESPACE)]
    assert remaining == ["test-hpa1", "test-hpa3"]


def test_table_output(cluster):
    output = get_unused_hpas(FilterOptions(), cluster, "table", Opts(group_by="namespace"))
    assert 'Unused resources in namespace: "test-namespace"' in output
    assert "test-hpa2" in output
    assert "test-hpa1" not in output