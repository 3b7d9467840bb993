import json

import pytest

from kor import manifests
from kor.cluster import Cluster, GroupVersionResource
from kor.crds import get_unused_crds, process_crds
from kor.manifests import TEST_NAMESPACE
from kor.options import FilterOptions, Opts
from kor.report import ResourceException


def _crd(plural, labels=None):
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": f"{plural}.example.com", "labels": dict(labels or {})},
        "spec": {
            "group": "example.com",
            "versions": [{"name": "v1"}],
            "names": {"plural": plural},
        },
    }


@pytest.fixture
def cluster():
    c = Cluster()
    c.create("CustomResourceDefinition", _crd("widgets"))
    c.create("CustomResourceDefinition", _crd("gadgets"))
    c.create("CustomResourceDefinition", _crd("gizmos", {"kor/used": "false"}))
    c.create("CustomResourceDefinition", _crd("doodads", {"kor/used": "true"}))
    gvr = GroupVersionResource(group="example.com", version="v1", resource="widgets")
    c.create(gvr, manifests.unstructured("Widget", "example.com/v1", TEST_NAMESPACE, "w1"))
    return c


def test_process_crds(cluster):
    diff = process_crds(cluster, FilterOptions())
    assert {info.name: info.reason for info in diff} == {
        "gadgets.example.com": "CRD has no instances",
        "gizmos.example.com": "Marked with unused label",
    }


def test_process_crds_exception(cluster):
    exceptions = [ResourceException("", "gadgets.example.com")]
    diff = process_crds(cluster, FilterOptions(), exceptions)
    assert [info.name for info in diff] == ["gizmos.example.com"]


def test_exception_pattern(cluster):
    exceptions = [ResourceException(".*", "g.*")]
    diff = process_crds(cluster, FilterOptions(), exceptions)
    # the unused label wins over the exception
    assert [info.name for info in diff] == ["gizmos.example.com"]


def test_crd_without_versions_raises():
    c = Cluster()
    crd = _crd("empties")
    crd["spec"]["versions"] = []
    c.create("CustomResourceDefinition", crd)
    with pytest.raises(ValueError):
        process_crds(c, FilterOptions())


def test_get_unused_crds_structured(cluster):
    opts = Opts(no_interactive=True, group_by="namespace")
    output = get_unused_crds(FilterOptions(), cluster, "json", opts)
    data = json.loads(output)
    assert sorted(data[""]["Crd"]) == ["gadgets.example.com", "gizmos.example.com"]


def test_get_unused_crds_ignores_given_filter(cluster):
    opts = Opts(no_interactive=True, group_by="namespace")
    ignored = FilterOptions(exclude_labels=["kor/used=false"])
    output = get_unused_crds(ignored, cluster, "json", opts)
    assert "gizmos.example.com" in json.loads(output)[""]["Crd"]


def test_get_unused_crds_grouped_by_resource(cluster):
    opts = Opts(no_interactive=True, group_by="resource")
    output = get_unused_crds(FilterOptions(), cluster, "json", opts)
    data = json.loads(output)
    assert list(data) == ["Crd"]
    assert sorted(data["Crd"][""]) == ["gadgets.example.com", "gizmos.example.com"]