from datetime import datetime, timezone

import pytest

from nephioctrl.giteaclient import CreateRepoOption, EditRepoOption, GiteaError, Repository, User
from nephioctrl.objects import NotFoundError, ObjectMeta, Request, Result
from nephioctrl.repository import (
    DELETION_ORPHAN,
    FINALIZER,
    RepositoryReconciler,
    RepositoryResource,
    RepositorySpec,
)


class FakeGitea:
    def __init__(
        self,
        user_error=None,
        get_repo_error=None,
        edit_error=None,
        create_error=None,
        delete_error=None,
        initialized=True,
    ):
        self.user_error = user_error
        self.get_repo_error = get_repo_error
        self.edit_error = edit_error
        self.create_error = create_error
        self.delete_error = delete_error
        self.initialized = initialized
        self.calls = []

    def is_initialized(self):
        return self.initialized

    def get_my_user_info(self):
        self.calls.append(("get_my_user_info",))
        if self.user_error:
            raise self.user_error
        return User(user_name="gitea")

    def get_repo(self, owner, repo):
        self.calls.append(("get_repo", owner, repo))
        if self.get_repo_error:
            raise self.get_repo_error
        return Repository(name=repo)

    def edit_repo(self, owner, repo, option):
        self.calls.append(("edit_repo", owner, repo, option))
        if self.edit_error:
            raise self.edit_error
        return Repository(name=repo, clone_url="http://localhost/gitea/edited.git")

    def create_repo(self, option):
        self.calls.append(("create_repo", option))
        if self.create_error:
            raise self.create_error
        return Repository(name=option.name, clone_url="http://localhost/gitea/created.git")

    def delete_repo(self, owner, repo):
        self.calls.append(("delete_repo", owner, repo))
        if self.delete_error:
            raise self.delete_error


class FakeClient:
    def __init__(self, obj=None, get_error=None):
        self.obj = obj
        self.get_error = get_error
        self.updates = []
        self.status_updates = []

    def get(self, kind, namespace, name):
        if self.get_error:
            raise self.get_error
        if self.obj is None:
            raise NotFoundError(name)
        return self.obj

    def update(self, obj):
        self.updates.append(list(obj.metadata.finalizers))

    def update_status(self, obj):
        self.status_updates.append([(c.type, c.status, c.message) for c in obj.conditions])


def _reconciler(gitea, client=None):
    return RepositoryReconciler(client or FakeClient(), gitea)


def test_upsert_user_info_error():
    gitea = FakeGitea(user_error=GiteaError("error getting User Information"))
    cr = RepositoryResource()
    with pytest.raises(GiteaError):
        _reconciler(gitea).upsert_repo(gitea, cr)
    assert cr.conditions[0].message == "error getting User Information"
    assert cr.conditions[0].status == "False"


def test_upsert_existing_repo_blank_fields():
    gitea = FakeGitea()
    cr = RepositoryResource()
    _reconciler(gitea).upsert_repo(gitea, cr)
    edit = gitea.calls[-1]
    assert edit[0] == "edit_repo"
    assert edit[3] == EditRepoOption(name="", description=None, private=None)
    assert cr.url == "http://localhost/gitea/edited.git"


def test_upsert_existing_repo_fields_set():
    gitea = FakeGitea()
    cr = RepositoryResource(
        metadata=ObjectMeta(name="repo"),
        spec=RepositorySpec(description="Dummy String", private=True),
    )
    _reconciler(gitea).upsert_repo(gitea, cr)
    assert gitea.calls[-1] == (
        "edit_repo",
        "gitea",
        "repo",
        EditRepoOption(name="repo", description="Dummy String", private=True),
    )


def test_upsert_existing_repo_update_fails():
    gitea = FakeGitea(edit_error=GiteaError("error updating repo"))
    cr = RepositoryResource()
    with pytest.raises(GiteaError):
        _reconciler(gitea).upsert_repo(gitea, cr)
    assert cr.conditions[0].message == "cannot update repo"


def test_create_repo_with_fields():
    gitea = FakeGitea(get_repo_error=GiteaError("repo does not exist"))
    text = "Dummy String"
    cr = RepositoryResource(
        metadata=ObjectMeta(name="repo"),
        spec=RepositorySpec(
            description=text,
            private=True,
            issue_labels=text,
            gitignores=text,
            license=text,
            readme=text,
            default_branch=text,
            trust_model="Trust Model",
        ),
    )
    _reconciler(gitea).upsert_repo(gitea, cr)
    assert gitea.calls[-1] == (
        "create_repo",
        CreateRepoOption(
            name="repo",
            description=text,
            private=True,
            issue_labels=text,
            gitignores=text,
            license=text,
            readme=text,
            default_branch=text,
            trust_model="Trust Model",
            auto_init=True,
        ),
    )
    assert cr.url == "http://localhost/gitea/created.git"


def test_create_repo_blank_fields():
    gitea = FakeGitea(get_repo_error=GiteaError("repo does not exist"))
    cr = RepositoryResource()
    _reconciler(gitea).upsert_repo(gitea, cr)
    assert gitea.calls[-1] == ("create_repo", CreateRepoOption(name="", auto_init=True))


def test_create_repo_fails():
    gitea = FakeGitea(
        get_repo_error=GiteaError("repo does not exist"),
        create_error=GiteaError("repo creation fails"),
    )
    cr = RepositoryResource()
    with pytest.raises(GiteaError):
        _reconciler(gitea).upsert_repo(gitea, cr)
    assert cr.conditions[0].message == "cannot create repo"
    assert cr.url is None


def test_delete_repo_ok():
    gitea = FakeGitea()
    cr = RepositoryResource(metadata=ObjectMeta(name="repo-name"))
    _reconciler(gitea).delete_repo(gitea, cr)
    assert gitea.calls[-1] == ("delete_repo", "gitea", "repo-name")
    assert cr.conditions == []


def test_delete_repo_user_info_error():
    gitea = FakeGitea(user_error=GiteaError("Error getting User Information"))
    cr = RepositoryResource(metadata=ObjectMeta(name="repo-name"))
    with pytest.raises(GiteaError):
        _reconciler(gitea).delete_repo(gitea, cr)
    assert ("delete_repo", "gitea", "repo-name") not in gitea.calls


def test_delete_repo_error():
    gitea = FakeGitea(delete_error=GiteaError("Error deleting repo"))
    cr = RepositoryResource(metadata=ObjectMeta(name="repo-name"))
    with pytest.raises(GiteaError):
        _reconciler(gitea).delete_repo(gitea, cr)
    assert cr.conditions[0].message == "Error deleting repo"


def test_reconcile_not_found():
    assert _reconciler(FakeGitea()).reconcile(Request("ns", "missing")) == Result()


def test_reconcile_get_error_raises():
    client = FakeClient(get_error=ConnectionError("down"))
    with pytest.raises(RuntimeError, match="cannot get resource"):
        _reconciler(FakeGitea(), client).reconcile(Request("ns", "r"))


def test_reconcile_gitea_not_initialized():
    client = FakeClient(RepositoryResource(metadata=ObjectMeta(name="r")))
    result = _reconciler(FakeGitea(initialized=False), client).reconcile(Request("", "r"))
    assert result == Result(requeue=True)
    assert client.status_updates == [[("Ready", "False", "gitea server unreachable")]]


def test_reconcile_creates_and_marks_ready():
    cr = RepositoryResource(metadata=ObjectMeta(name="r"))
    client = FakeClient(cr)
    gitea = FakeGitea(get_repo_error=GiteaError("missing"))
    result = _reconciler(gitea, client).reconcile(Request("", "r"))
    assert result == Result()
    assert client.updates == [[FINALIZER]]
    assert client.status_updates[-1] == [("Ready", "True", "")]


def test_reconcile_deleted_removes_repo_and_finalizer():
    cr = RepositoryResource(
        metadata=ObjectMeta(
            name="r",
            finalizers=[FINALIZER],
            deletion_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
    client = FakeClient(cr)
    gitea = FakeGitea()
    assert _reconciler(gitea, client).reconcile(Request("", "r")) == Result()
    assert ("delete_repo", "gitea", "r") in gitea.calls
    assert client.updates == [[]]


def test_reconcile_deleted_orphan_keeps_repo():
    cr = RepositoryResource(
        metadata=ObjectMeta(
            name="r",
            finalizers=[FINALIZER],
            deletion_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        spec=RepositorySpec(deletion_policy=DELETION_ORPHAN),
    )
    gitea = FakeGitea()
    client = FakeClient(cr)
    _reconciler(gitea, client).reconcile(Request("", "r"))
    assert gitea.calls == []
    assert cr.metadata.finalizers == []


def test_reconcile_delete_failure_requeues():
    cr = RepositoryResource(
        metadata=ObjectMeta(
            name="r",
            finalizers=[FINALIZER],
            deletion_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
    client = FakeClient(cr)
    gitea = FakeGitea(delete_error=GiteaError("boom"))
    assert _reconciler(gitea, client).reconcile(Request("", "r")) == Result(requeue=True)
    assert cr.metadata.finalizers == [FINALIZER]