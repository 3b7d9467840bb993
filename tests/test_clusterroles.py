import json

import pytest

from kor import manifests
from kor.cluster import Cluster
from kor.clusterroles import (
    get_unused_cluster_roles,
    process_cluster_roles,
    retrieve_cluster_role_names,
    retrieve_used_cluster_roles,
)
from kor.manifests import APP_LABELS, TEST_NAMESPACE, UNUSED_LABELS, USED_LABELS
from kor.options import FilterOptions, Opts
from kor.report import ResourceException

AGGREGATED_LABELS = {"rbac.authorization.k8s.io/aggregate-to-test-clusterRole1": "true"}


@pytest.fixture
def cluster():
    c = Cluster()
    c.create(
        "Namespace",
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": TEST_NAMESPACE}},
    )
    match = {"matchLabels": AGGREGATED_LABELS}
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole1", APP_LABELS))
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole2", APP_LABELS, match))
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole3", APP_LABELS))
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole4", USED_LABELS))
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole5", UNUSED_LABELS))
    c.create("ClusterRole", manifests.cluster_role("test-clusterRole6", AGGREGATED_LABELS))
    c.create(
        "ClusterRoleBinding",
        manifests.cluster_role_binding(
            TEST_NAMESPACE, "test-rb2", "test-sa", manifests.cluster_role_ref("test-clusterRole2")
        ),
    )
    c.create(
        "RoleBinding",
        manifests.role_binding(
            TEST_NAMESPACE, "test-rb", "test-sa", manifests.cluster_role_ref("test-clusterRole3")
        ),
    )
    return c


def test_retrieve_used_cluster_roles(cluster):
    used = retrieve_used_cluster_roles(cluster, FilterOptions())
    assert sorted(used) == ["test-clusterRole2", "test-clusterRole3", "test-clusterRole6"]


def test_retrieve_cluster_role_names(cluster):
    names, marked = retrieve_cluster_role_names(cluster, FilterOptions())
    assert len(names) == 4
    assert sorted(names) == [
        "test-clusterRole1",
        "test-clusterRole2",
        "test-clusterRole3",
        "test-clusterRole6",
    ]
    assert marked == ["test-clusterRole5"]


def test_process_cluster_roles(cluster):
    diff = process_cluster_roles(cluster, FilterOptions())
    assert [info.name for info in diff] == ["test-clusterRole1", "test-clusterRole5"]
    assert diff[0].reason == "ClusterRole is not used by any RoleBinding or ClusterRoleBinding"
    assert diff[1].reason == "Marked with unused label"


def test_exception_hides_cluster_role(cluster):
    exceptions = [ResourceException("", "test-clusterRole1")]
    diff = process_cluster_roles(cluster, FilterOptions(), exceptions)
    assert [info.name for info in diff] == ["test-clusterRole5"]


def test_non_boolean_aggregated_label_raises():
    c = Cluster()
    c.create(
        "ClusterRole",
        manifests.cluster_role("agg", APP_LABELS, {"matchLabels": {"pick": "maybe"}}),
    )
    c.create("ClusterRole", manifests.cluster_role("member", {"pick": "maybe"}))
    c.create(
        "ClusterRoleBinding",
        manifests.cluster_role_binding(
            TEST_NAMESPACE, "crb", "sa", manifests.cluster_role_ref("agg")
        ),
    )
    with pytest.raises(ValueError):
        retrieve_used_cluster_roles(c, FilterOptions())


def test_get_unused_cluster_roles_structured(cluster):
    opts = Opts(no_interactive=True, group_by="namespace")
    output = get_unused_cluster_roles(FilterOptions(), cluster, "json", opts)
    assert json.loads(output) == {
        "": {"ClusterRole": ["test-clusterRole1", "test-clusterRole5"]}
    }


def test_get_unused_cluster_roles_delete(cluster):
    opts = Opts(delete_flag=True, no_interactive=True, group_by="namespace")
    output = get_unused_cluster_roles(FilterOptions(), cluster, "json", opts)
    assert json.loads(output) == {
        "": {"ClusterRole": ["test-clusterRole1-DELETED", "test-clusterRole5-DELETED"]}
    }
    remaining = sorted(r["metadata"]["name"] for r in cluster.list("ClusterRole"))
    assert "test-clusterRole1" not in remaining
    assert "test-clusterRole5" not in remaining