from types import SimpleNamespace

import pytest

from nephioctrl.bootstrap_packages import (
    CLUSTER_NAME_ANNOTATION,
    CLUSTER_RETRY,
    STAGING_ANNOTATION,
    BootstrapPackagesReconciler,
    filter_non_local_resources,
    included_file_types,
)
from nephioctrl.objects import (
    NotFoundError,
    ObjectMeta,
    PackageRevision,
    PackageRevisionSpec,
    Request,
    Result,
    Secret,
)

KPTFILE = """apiVersion: kpt.dev/v1
kind: Kptfile
metadata:
  name: xxx
  annotations:
    config.kubernetes.io/local-config: "true"
info:
  description: xxx
"""

YAML_FILE1 = """apiVersion: f1/v1
kind: F1
metadata:
  name: f1
spec:
  description: xxx
"""

YAML_FILE2 = """apiVersion: f2/v1
kind: F2
metadata:
  name: f2
spec:
  description: xxx
"""


def _gvkn(obj):
    return f"{obj['apiVersion']}.{obj['kind']}.{obj['metadata']['name']}"


def test_filter_non_local_resources_normal():
    resources = {
        "a.md": "test",
        "f1.yaml": YAML_FILE1,
        "f2.yaml": YAML_FILE2,
        "Kptfile": KPTFILE,
    }
    objs = filter_non_local_resources(resources)
    assert len(objs) == 2
    assert {_gvkn(o) for o in objs} == {"f2/v1.F2.f2", "f1/v1.F1.f1"}


def test_filter_keeps_local_config_false_and_multi_doc():
    doc = YAML_FILE1.replace("  name: f1\n", "  name: f1\n  annotations:\n    config.kubernetes.io/local-config: \"false\"\n")
    resources = {"multi.yml": doc + "---\n" + YAML_FILE2}
    assert [_gvkn(o) for o in filter_non_local_resources(resources)] == [
        "f1/v1.F1.f1",
        "f2/v1.F2.f2",
    ]


def test_filter_invalid_yaml_raises():
    with pytest.raises(ValueError):
        filter_non_local_resources({"bad.yaml": "a: [unclosed"})


@pytest.mark.parametrize(
    "path, expected",
    [
        ("f1.yaml", True),
        ("dir/f.yml", True),
        ("sub/Kptfile", True),
        ("README.md", False),
        ("Kptfile.bak", False),
    ],
)
def test_included_file_types(path, expected):
    assert included_file_types(path, ["*.yaml", "*.yml", "Kptfile"]) is expected


def _annotated(text, cluster):
    return text.replace(
        "metadata:\n", f"metadata:\n  annotations:\n    {CLUSTER_NAME_ANNOTATION}: {cluster}\n", 1
    )


class FakeClient:
    def __init__(self, pr=None, secrets=(), error=None):
        self.pr = pr
        self.secrets = list(secrets)
        self.error = error

    def get(self, kind, namespace, name):
        if self.error is not None:
            raise self.error
        if self.pr is None:
            raise NotFoundError(name)
        return self.pr

    def list(self, kind):
        assert kind is Secret
        return self.secrets


class FakePorch:
    def __init__(self, repos, resources):
        self.repos = repos
        self.resources = resources

    def list(self, kind):
        return self.repos

    def get(self, kind, namespace, name):
        return {"spec": {"resources": self.resources}}


class FakeRemote:
    def __init__(self):
        self.applied = []

    def apply(self, manifest):
        self.applied.append(manifest)


class FakeClusterClient:
    def __init__(self, remote, ready=True, error=None):
        self.remote = remote
        self.ready = ready
        self.error = error

    def get_cluster_client(self):
        if self.error is not None:
            raise self.error
        return self.remote, self.ready


class FakeCluster:
    def __init__(self, clients):
        self.clients = clients

    def get_cluster_client(self, secret):
        return self.clients.get(secret.metadata.name)


def _repo(name, staging):
    annotations = {STAGING_ANNOTATION: ""} if staging else {}
    return SimpleNamespace(metadata=ObjectMeta(name=name, annotations=annotations))


def _pr(lifecycle="Published", repo="staging"):
    return PackageRevision(
        metadata=ObjectMeta(name="pr", namespace="default"),
        spec=PackageRevisionSpec(repository_name=repo, lifecycle=lifecycle),
    )


def _reconciler(pr, cluster_clients, resources=None, secrets=None):
    if resources is None:
        resources = {
            "f1.yaml": _annotated(YAML_FILE1, "edge01"),
            "f2.yaml": _annotated(YAML_FILE2, "edge01"),
            "Kptfile": KPTFILE,
        }
    if secrets is None:
        secrets = [Secret(metadata=ObjectMeta(name="edge01-kubeconfig"))]
    client = FakeClient(pr=pr, secrets=secrets)
    porch = FakePorch([_repo("staging", True), _repo("regular", False)], resources)
    return BootstrapPackagesReconciler(client, porch, cluster=FakeCluster(cluster_clients))


REQUEST = Request("default", "pr")


def test_is_staging_package_revision():
    r = _reconciler(_pr(), {})
    assert r.is_staging_package_revision("staging") is True
    assert r.is_staging_package_revision("regular") is False
    assert r.is_staging_package_revision("missing") is False


def test_reconcile_not_found():
    r = _reconciler(None, {})
    assert r.reconcile(REQUEST) == Result()


def test_reconcile_get_error_raises():
    r = BootstrapPackagesReconciler(FakeClient(error=OSError("boom")), FakePorch([], {}))
    with pytest.raises(RuntimeError, match="cannot get resource"):
        r.reconcile(REQUEST)


def test_reconcile_applies_resources():
    remote = FakeRemote()
    r = _reconciler(_pr(), {"edge01-kubeconfig": FakeClusterClient(remote)})
    assert r.reconcile(REQUEST) == Result()
    assert [_gvkn(o) for o in remote.applied] == ["f1/v1.F1.f1", "f2/v1.F2.f2"]


@pytest.mark.parametrize("lifecycle, repo", [("Draft", "staging"), ("Published", "regular")])
def test_reconcile_skips_unpublished_or_non_staging(lifecycle, repo):
    remote = FakeRemote()
    r = _reconciler(_pr(lifecycle, repo), {"edge01-kubeconfig": FakeClusterClient(remote)})
    assert r.reconcile(REQUEST) == Result()
    assert remote.applied == []


def test_reconcile_without_cluster_annotation():
    remote = FakeRemote()
    r = _reconciler(
        _pr(),
        {"edge01-kubeconfig": FakeClusterClient(remote)},
        resources={"f1.yaml": YAML_FILE1},
    )
    assert r.reconcile(REQUEST) == Result()
    assert remote.applied == []


def test_reconcile_cluster_not_found_requeues():
    r = _reconciler(_pr(), {})
    assert r.reconcile(REQUEST) == Result(requeue_after=CLUSTER_RETRY)


def test_reconcile_cluster_not_ready_requeues():
    remote = FakeRemote()
    r = _reconciler(_pr(), {"edge01-kubeconfig": FakeClusterClient(remote, ready=False)})
    assert r.reconcile(REQUEST) == Result(requeue_after=CLUSTER_RETRY)
    assert remote.applied == []


def test_reconcile_cluster_client_error_raises():
    r = _reconciler(
        _pr(), {"edge01-kubeconfig": FakeClusterClient(None, error=ValueError("bad"))}
    )
    with pytest.raises(RuntimeError, match="cannot get clusterClient"):
        r.reconcile(REQUEST)


def test_get_cluster_client_matches_name_substring():
    target = FakeClusterClient(FakeRemote())
    r = _reconciler(
        _pr(),
        {"edge01-kubeconfig": target},
        secrets=[
            Secret(metadata=ObjectMeta(name="other-kubeconfig")),
            Secret(metadata=ObjectMeta(name="edge01-kubeconfig")),
        ],
    )
    assert r.get_cluster_client("edge01") is target
    assert r.get_cluster_client("edge99") is None