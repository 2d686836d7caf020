# nephioctrl

Reconcilers and supporting helpers for automating the lifecycle of Kubernetes
package revisions, workload clusters and git repositories.

Each reconciler is an object with a `reconcile(request)` method that takes a
`Request(namespace, name)` and returns a `Result` (`requeue`, and
`requeue_after` in seconds). The clients they talk to are passed in by the
caller; the package does not run a watch loop of its own.

## Modules

- **`nephioctrl.objects`**: dataclasses for `ObjectMeta`, `OwnerReference`,
  `Condition`, `ReadinessGate`, `PackageRevision` and `Secret`; the
  `Lifecycle` enum and `lifecycle_is_published`; `was_deleted`,
  `add_finalizer` and `remove_finalizer`; `NotFoundError`; and
  `create_rest_mapper()`, which returns a `RESTMapper` mapping the kinds in
  use to their resource names (`resource_for`, `kind_for`).
- **`nephioctrl.condition`**: `get_porch_conditions` converts `KptCondition`
  values to `Condition` values, `has_specific_type_conditions` looks for
  conditions whose type starts with a given type and a dot, and
  `package_revision_is_ready` checks that every readiness gate has a
  condition with status `"True"`.
- **`nephioctrl.packagevariant`**: `package_variant_ready` reports whether
  the `PackageVariant` controlling a package revision has a `Ready`
  condition set to `"True"`. A revision with no such owner counts as ready.
- **`nephioctrl.approval_client`**: `update_package_revision_approval`
  moves a `Proposed` revision to a new lifecycle through the `approval`
  subresource. It returns `None` when the lifecycle is already the target and
  raises `ApprovalError` for any other starting lifecycle.
- **`nephioctrl.approval`**: `ApprovalReconciler` proposes draft revisions
  and publishes proposed ones when the `approval.nephio.org/policy`
  annotation (`initial` or `always`) is met and the readiness gates pass.
  `approval.nephio.org/delay` holds back approval until the revision is that
  old; `parse_duration` reads values such as `"20s"` or `"1h30m"`.
  `should_process`, `manage_delay` and `policy_initial` are available on
  their own.
- **`nephioctrl.capi`** and **`nephioctrl.cluster`**: `Cluster` picks a
  `Capi` client for a secret of type `cluster.x-k8s.io/secret` whose name
  contains `kubeconfig`. `Capi.cluster_name()` strips the `-kubeconfig`
  suffix, and `Capi.get_cluster_client()` returns a client for the remote API
  server (get and server-side apply) once the Cluster API cluster is Ready.
  `rest_config_from_kubeconfig` reads the connection settings from kubeconfig
  data.
- **`nephioctrl.giteaclient`**: `GiteaClient` calls the Gitea REST API for
  users, repositories and access tokens. `get_client(stop_event, client)`
  returns a shared `GiteaClientManager` and starts one background thread
  that retries every 5 seconds until it can connect. The server address
  comes from `GIT_URL`, and the username and password from a secret named by
  `GIT_SECRET_NAME` (default `git-user-secret`) in `GIT_NAMESPACE`, or
  else `POD_NAMESPACE`.
- **`nephioctrl.bootstrap_packages`**: `BootstrapPackagesReconciler`
  applies the non-local resources of published revisions in repositories
  annotated `nephio.org/staging` to the cluster named by their
  `nephio.org/cluster-name` annotation. `filter_non_local_resources` and
  `included_file_types` select and parse the `*.yaml`, `*.yml` and
  `Kptfile` files.
- **`nephioctrl.bootstrap_secret`**: `BootstrapSecretReconciler` copies
  secrets annotated `nephio.org/app: tobeinstalledonremotecluster` to each
  cluster in their comma-separated `nephio.org/cluster-name` annotation. The
  target namespace is `nephio.org/remote-namespace` if set, and the secret's
  own namespace otherwise.
- **`nephioctrl.repository`**: `RepositoryReconciler` creates, edits and
  deletes Gitea repositories to match `RepositoryResource` objects. It manages
  the `infra.nephio.org/finalizer` finalizer and a `Ready` condition.
- **`nephioctrl.registry`**: `register`, `lookup` and `registered_names`
  for named `Reconciler` objects.
- **`nephioctrl.config`**: `ControllerConfig`, the shared settings handed to
  reconcilers.

## What it does not do

- There is no reconciler for git access tokens. `GiteaClient` can list,
  create and delete tokens, but nothing keeps tokens or their secrets in step
  with a resource.
- There is no command, controller manager or watch loop. The caller fetches
  events, builds `Request` values and calls `reconcile`.
- There are no network, IPAM, VLAN or specializer reconcilers.
  `EndpointEventHandler` and `NodeEventHandler` in `nephioctrl.watch` only
  queue requests for networks whose topology matches.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from nephioctrl.condition import package_revision_is_ready
from nephioctrl.objects import Condition, ReadinessGate

gates = [ReadinessGate(condition_type="foo")]
conditions = [Condition(type="foo", status="True")]
assert package_revision_is_ready(gates, conditions)
```

```python
from nephioctrl.approval import should_process
from nephioctrl.objects import ObjectMeta, PackageRevision

pr = PackageRevision(
    metadata=ObjectMeta(annotations={"approval.nephio.org/policy": "initial"})
)
policy, ok = should_process(pr)   # ("initial", True)
```