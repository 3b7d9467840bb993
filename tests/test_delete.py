import pytest

from kor import manifests
from kor.cluster import Cluster, GroupVersionResource, NotFoundError
from kor.delete import (
    delete_resource,
    delete_resource_with_finalizer,
    flag_dynamic_resource,
    flag_resource,
)
from kor.report import ResourceInfo

NS = manifests.TEST_NAMESPACE
GVR = GroupVersionResource("testgroup", "v1", "TestResource")


def _answers(*values):
    it = iter(values)
    return lambda prompt: next(it)


@pytest.fixture
def cm_cluster():
    cluster = Cluster()
    cluster.create("ConfigMap", manifests.config_map(NS, "configmap-1", manifests.APP_LABELS))
    cluster.create("ConfigMap", manifests.config_map(NS, "configmap-2", manifests.APP_LABELS))
    return cluster


@pytest.fixture
def dyn_cluster():
    cluster = Cluster()
    cluster.create(GVR, manifests.unstructured(GVR.resource, "testgroup/v1", NS, "test-resource"))
    cluster.merge_patch(
        GVR,
        NS,
        "test-resource",
        '{"metadata":{"finalizers":["finalizer1", "finalizer2", "finalizer3"]}}',
    )
    with_label = manifests.unstructured(GVR.resource, "testgroup/v1", NS, "test-resource-with-label")
    with_label["metadata"]["labels"] = {"test": "true"}
    cluster.create(GVR, with_label)
    return cluster


def test_delete_resource_confirmation(cm_cluster):
    diff = [
        ResourceInfo("configmap-1", "ConfigMap is not used in any pod or container"),
        ResourceInfo("configmap-2", "Marked with unused label"),
    ]
    deleted = delete_resource(diff, cm_cluster, NS, "ConfigMap", True)
    assert deleted == [
        ResourceInfo("configmap-1-DELETED", "ConfigMap is not used in any pod or container"),
        ResourceInfo("configmap-2-DELETED", "Marked with unused label"),
    ]
    assert cm_cluster.list("ConfigMap", NS) == []


def test_delete_resource_declined_and_flagged(cm_cluster):
    diff = [ResourceInfo("configmap-1", "r")]
    result = delete_resource(diff, cm_cluster, NS, "ConfigMap", False, ask=_answers("n", "yes"))
    assert result == [ResourceInfo("configmap-1", "r")]
    obj = cm_cluster.get("ConfigMap", NS, "configmap-1")
    assert obj["metadata"]["labels"]["kor/used"] == "true"


def test_delete_resource_interactive_yes(cm_cluster):
    diff = [ResourceInfo("configmap-2", "r")]
    result = delete_resource(diff, cm_cluster, NS, "ConfigMap", False, ask=_answers("Y"))
    assert [r.name for r in result] == ["configmap-2-DELETED"]
    with pytest.raises(NotFoundError):
        cm_cluster.get("ConfigMap", NS, "configmap-2")


def test_delete_resource_unreadable_answer_skips(cm_cluster):
    def fail(prompt):
        raise EOFError("closed")

    result = delete_resource([ResourceInfo("configmap-1")], cm_cluster, NS, "ConfigMap", False, ask=fail)
    assert result == []
    assert cm_cluster.get("ConfigMap", NS, "configmap-1")["metadata"]["name"] == "configmap-1"


def test_delete_resource_unsupported_type_skipped(cm_cluster):
    assert delete_resource([ResourceInfo("configmap-1")], cm_cluster, NS, "Widget", True) == []


def test_delete_resource_missing_object_left_out(cm_cluster):
    result = delete_resource([ResourceInfo("nope"), ResourceInfo("configmap-1")], cm_cluster, NS, "ConfigMap", True)
    assert [r.name for r in result] == ["configmap-1-DELETED"]


def test_flag_resource_keeps_labels():
    cluster = Cluster()
    cluster.create("Deployment", manifests.deployment(NS, "web", 1, {"app": "web"}))
    flag_resource(cluster, NS, "Deployment", "web")
    labels = cluster.get("Deployment", NS, "web")["metadata"]["labels"]
    assert labels == {"app": "web", "kor/used": "true"}


def test_flag_resource_unsupported_type():
    with pytest.raises(ValueError, match="not supported"):
        flag_resource(Cluster(), NS, "VolumeAttachment", "va")


def test_flag_resource_missing():
    with pytest.raises(NotFoundError):
        flag_resource(Cluster(), NS, "ConfigMap", "absent")


def test_delete_resource_with_finalizer(dyn_cluster):
    result = delete_resource_with_finalizer([ResourceInfo("test-resource")], dyn_cluster, NS, GVR, True)
    assert [r.name for r in result] == ["test-resource-DELETED"]
    obj = dyn_cluster.get(GVR, NS, "test-resource")
    assert "finalizers" not in obj["metadata"]


def test_delete_resource_with_finalizer_declined(dyn_cluster):
    result = delete_resource_with_finalizer(
        [ResourceInfo("test-resource")], dyn_cluster, NS, GVR, False, ask=_answers("no", "y")
    )
    assert result == [ResourceInfo("test-resource", "not deleted - user declined")]
    obj = dyn_cluster.get(GVR, NS, "test-resource")
    assert obj["metadata"]["finalizers"] == ["finalizer1", "finalizer2", "finalizer3"]
    assert obj["metadata"]["labels"]["kor/used"] == "true"


@pytest.mark.parametrize(
    "name, keeps_test_label",
    [("test-resource", False), ("test-resource-with-label", True)],
)
def test_flag_dynamic_resource(dyn_cluster, name, keeps_test_label):
    flag_dynamic_resource(dyn_cluster, NS, GVR, name)
    labels = dyn_cluster.get(GVR, NS, name)["metadata"]["labels"]
    assert labels["kor/used"] == "true"
    assert (labels.get("test") == "true") is keeps_test_label