# kor

`kor` finds Kubernetes resources that nothing uses any more:

- deployments scaled to zero replicas,
- daemon sets with no scheduled pods,
- horizontal pod autoscalers whose Deployment or StatefulSet target is gone,
- ingresses with no backend service that exists,
- config maps that no pod mounts or refers to,
- cluster roles that no binding points at, directly or through aggregation,
- custom resource definitions that have no instances,
- objects stuck in deletion because they still have finalizers.

The checks run against a `kor.cluster.Cluster`. This is an in-memory store of
objects kept as plain dictionaries in the shape of Kubernetes manifests. You
fill it yourself, for example from API dumps, from fixtures, or with the
builders in `kor.manifests`.

## Installation

The package needs Python 3.10 or later. Its only dependency is PyYAML. The
`test` extra adds pytest.

## Usage

```python
from kor.cluster import Cluster
from kor.deployments import get_unused_deployments
from kor.manifests import deployment
from kor.options import FilterOptions, Opts

cluster = Cluster()
cluster.create("Namespace", {"metadata": {"name": "apps"}})
cluster.create("Deployment", deployment("apps", "idle", 0, {}))
cluster.create("Deployment", deployment("apps", "busy", 3, {}))

print(get_unused_deployments(FilterOptions(), cluster, "json", Opts(group_by="namespace")))
# {
#   "apps": {
#     "Deployment": [
#       "idle"
#     ]
#   }
# }
```

Each check module has two levels of entry point:

- `process_*` returns a list of `kor.report.ResourceInfo(name, reason)`.
  These are `process_namespace_deployments`, `process_namespace_daemonsets`,
  `process_namespace_hpas`, `process_namespace_ingresses`,
  `process_namespace_configmaps`, `process_cluster_roles` and `process_crds`.
- `get_unused_*` walks the namespaces chosen by the filter options and
  renders the result as `"table"`, `"json"` or `"yaml"`. The result is grouped
  by namespace or by resource type, depending on `Opts.group_by`
  (`"namespace"` or `"resource"`).

| Module             | Report function            | Takes `exceptions` |
|--------------------|----------------------------|--------------------|
| `kor.deployments`  | `get_unused_deployments`   | no                 |
| `kor.daemonsets`   | `get_unused_daemonsets`    | yes                |
| `kor.hpas`         | `get_unused_hpas`          | no                 |
| `kor.ingresses`    | `get_unused_ingresses`     | no                 |
| `kor.configmaps`   | `get_unused_configmaps`    | yes                |
| `kor.clusterroles` | `get_unused_cluster_roles` | yes                |
| `kor.crds`         | `get_unused_crds`          | yes                |
| `kor.finalizers`   | `get_unused_finalizers`    | no                 |

`get_unused_crds` ignores the filter options it is given and checks every
CRD.

### Output

Rendering is done by `kor.report.render_unused`:

- JSON is indented by two spaces and has sorted keys. YAML is a block-style
  dump of the same data.
- When `Opts.show_reason` is false, the structured forms list names only and
  leave out empty groups. When it is true, each entry is an object with
  `name` and, if there is one, `reason`.
- Tables are bordered text tables with a column width of 60, and the reason
  column appears only when `show_reason` is set. With `Opts.verbose`, empty
  groups print a "No unused ..." line.

`render_unused` raises `kor.report.UnsupportedFormatError` in two cases: for
any format other than the three above, and for `"table"` when
`Opts.webhook_url` or both `Opts.channel` and `Opts.token` are set. The
`get_unused_*` functions catch this error, print `err: ...` and return an
empty string.

## Filtering

`kor.options.FilterOptions` decides which resources are considered:

- `older_than` / `newer_than` are duration strings such as `"3h"` or
  `"1h30m"`, parsed by `kor.durations.parse_duration`. If both are set, the
  age filter keeps every resource.
- `exclude_labels` is a list of label selectors, parsed by
  `kor.labels.parse_selector`. They support `=`, `==`, `!=`, `in`, `notin`,
  existence, `!key`, `>` and `<`. A resource that matches any selector is
  skipped.
- `include_labels` is a selector applied when objects are listed.
  `FilterOptions.modify()` drops `exclude_labels` when it is set.
- `include_namespaces` / `exclude_namespaces` restrict the namespaces that
  `FilterOptions.namespaces(cluster)` returns. The include list wins over the
  exclude list. The result is sorted and computed only once.
- `FilterOptions.validate()` raises `ValueError` for malformed exclude
  labels and for bad or negative durations.

A resource labelled `kor/used=true` is always skipped. In the per-type checks,
a resource labelled `kor/used=false` is reported with the reason
`"Marked with unused label"`.

The filters are plain functions: `label_filter`, `age_filter` and
`kor_label_filter`. They are kept in a `kor.filters.Registry` and run by a
`kor.filters.Framework`. `Framework.add_filter`, `with_object` and
`with_registry` each return a new framework.

## Exceptions

A `kor.report.ResourceException(namespace, resource_name)` names a resource
that must not be reported. Both fields may be regular expressions, and they
must match the whole namespace or name. Pass a list of these as `exceptions`
to the checks marked in the table above.

## Deleting and flagging

When `Opts.delete_flag` is set, the deployment, daemon set, HPA, ingress,
config map and cluster role checks pass their findings to
`kor.delete.delete_resource`. `get_unused_finalizers` clears finalizers
instead, through `kor.delete.delete_resource_with_finalizer`.

- Unless `Opts.no_interactive` is set, each deletion is confirmed through an
  `ask` callback. When called from the checks, that callback is `input`.
- A resource you decline can be labelled `kor/used=true` with
  `flag_resource` or `flag_dynamic_resource`, so that later scans skip it.
- Deleted entries come back with `-DELETED` appended to their names.

## Other pieces

- `kor.cluster.Cluster` provides `create`, `get`, `list` (by namespace and
  label selector), `update`, `delete` and `merge_patch`. It also has
  `register_api` / `preferred_resources`, which announce the resource
  collections that the finalizer check scans.
- Objects of arbitrary resource collections are stored under a
  `GroupVersionResource`.
- `kor.manifests` has builders for common object kinds and for bare
  `unstructured` objects.

## What this package does not do

- It does not connect to a live cluster. Nothing in it talks to an API
  server or reads a kubeconfig, so you have to load the objects into a
  `Cluster` yourself.
- It has no command-line program and no metrics exporter.
- It does not send reports to chat webhooks.
- It has no combined report over all kinds. Its checks cover only the
  resource kinds listed above. Services, secrets, service accounts, stateful
  sets, roles, PVCs, PVs, pods, jobs, replica sets, PDBs, network policies,
  role bindings, storage classes and volume attachments have no check here.
  Some of these kinds can still be stored, deleted and flagged.