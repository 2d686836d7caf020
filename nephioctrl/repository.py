"""Keeps Gitea repositories in line with Repository resources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from nephioctrl.giteaclient import CreateRepoOption, EditRepoOption
from nephioctrl.objects import (
    Condition,
    NotFoundError,
    ObjectMeta,
    Request,
    Result,
    add_finalizer,
    remove_finalizer,
    was_deleted,
)

logger = logging.getLogger(__name__)

FINALIZER = "infra.nephio.org/finalizer"
DELETION_DELETE = "delete"
DELETION_ORPHAN = "orphan"
ERR_UPDATE_STATUS = "cannot update status"


def _ready() -> Condition:
    return Condition(type="Ready", status="True", reason="Ready")


def _failed(message: str) -> Condition:
    return Condition(type="Ready", status="False", reason="Failed", message=message)


def _set_condition(conditions: list[Condition], condition: Condition) -> None:
    for index, existing in enumerate(conditions):
        if existing.type == condition.type:
            conditions[index] = condition
            return
    conditions.append(condition)


@dataclass
class RepositorySpec:
    """Desired settings of a git repository; None leaves a setting at the server default."""

    description: str | None = None
    private: bool | None = None
    issue_labels: str | None = None
    gitignores: str | None = None
    license: str | None = None
    readme: str | None = None
    default_branch: str | None = None
    trust_model: str | None = None
    deletion_policy: str = DELETION_DELETE


@dataclass
class RepositoryResource:
    """A Repository resource with its spec and status."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RepositorySpec = field(default_factory=RepositorySpec)
    url: str | None = None
    conditions: list[Condition] = field(default_factory=list)


class RepositoryReconciler:
    """Creates, updates and deletes repositories on the Gitea server.

    The client provides get(kind, namespace, name), update(obj) and
    update_status(obj); gitea is a GiteaClientManager or an equivalent.
    """

    def __init__(self, client: Any, gitea: Any) -> None:
        self.client = client
        self.gitea = gitea

    def _update_status(self, cr: RepositoryResource) -> None:
        try:
            self.client.update_status(cr)
        except Exception as exc:
            raise RuntimeError(f"{ERR_UPDATE_STATUS}: {exc}") from exc

    def _fail(self, cr: RepositoryResource, message: str) -> Result:
        _set_condition(cr.conditions, _failed(message))
        self._update_status(cr)
        return Result(requeue=True)

    def reconcile(self, request: Request) -> Result:
        """Bring the repository on the git server in line with the resource."""
        logger.info("reconcile %s/%s", request.namespace, request.name)
        try:
            cr = self.client.get(RepositoryResource, request.namespace, request.name)
        except NotFoundError:
            return Result()
        except Exception as exc:
            logger.error("cannot get resource: %s", exc)
            raise RuntimeError(f"cannot get resource: {exc}") from exc

        if not self.gitea.is_initialized():
            logger.error("cannot connect to git server: gitea server unreachable")
            return self._fail(cr, "gitea server unreachable")

        if was_deleted(cr.metadata):
            if cr.spec.deletion_policy == DELETION_DELETE:
                try:
                    self.delete_repo(self.gitea, cr)
                except Exception:
                    logger.exception("cannot delete repo in git server")
                    self._update_status(cr)
                    return Result(requeue=True)
            try:
                if remove_finalizer(cr.metadata, FINALIZER):
                    self.client.update(cr)
            except Exception as exc:
                logger.error("cannot remove finalizer: %s", exc)
                return self._fail(cr, str(exc))
            logger.info("Successfully deleted resource")
            return Result()

        try:
            if add_finalizer(cr.metadata, FINALIZER):
                self.client.update(cr)
        except Exception as exc:
            logger.error("cannot add finalizer: %s", exc)
            return self._fail(cr, str(exc))

        try:
            self.upsert_repo(self.gitea, cr)
        except Exception:
            self._update_status(cr)
            return Result(requeue=True)

        _set_condition(cr.conditions, _ready())
        self._update_status(cr)
        return Result()

    def upsert_repo(self, gitea: Any, cr: RepositoryResource) -> None:
        """Create the repository if missing, otherwise update its settings.

        Sets a Failed condition on cr and re-raises when the server call fails.
        """
        try:
            user = gitea.get_my_user_info()
        except Exception as exc:
            logger.error("cannot get user info: %s", exc)
            _set_condition(cr.conditions, _failed(str(exc)))
            raise

        name = cr.metadata.name
        spec = cr.spec
        try:
            gitea.get_repo(user.user_name, name)
        except Exception:
            option = CreateRepoOption(name=name, auto_init=True)
            for attr in (
                "description",
                "private",
                "issue_labels",
                "gitignores",
                "license",
                "readme",
                "default_branch",
                "trust_model",
            ):
                value = getattr(spec, attr)
                if value is not None:
                    setattr(option, attr, value)
            logger.info("repository config %s", option)
            try:
                repo = gitea.create_repo(option)
            except Exception as exc:
                logger.error("cannot create repo: %s", exc)
                # The server message varies between calls; a fixed one avoids
                # triggering another reconcile through a changed status.
                _set_condition(cr.conditions, _failed("cannot create repo"))
                raise
            logger.info("repo created %s", name)
            cr.url = repo.clone_url
            return

        option = EditRepoOption(name=name, description=spec.description, private=spec.private)
        try:
            repo = gitea.edit_repo(user.user_name, name, option)
        except Exception as exc:
            logger.error("cannot update repo: %s", exc)
            _set_condition(cr.conditions, _failed("cannot update repo"))
            raise
        logger.info("repo updated %s", name)
        cr.url = repo.clone_url

    def delete_repo(self, gitea: Any, cr: RepositoryResource) -> None:
        """Delete the repository from the server; sets Failed and re-raises on error."""
        try:
            user = gitea.get_my_user_info()
        except Exception as exc:
            logger.error("cannot get user info: %s", exc)
            _set_condition(cr.conditions, _failed(str(exc)))
            raise
        try:
            gitea.delete_repo(user.user_name, cr.metadata.name)
        except Exception as exc:
            logger.error("cannot delete repo: %s", exc)
            _set_condition(cr.conditions, _failed(str(exc)))
            raise
        logger.info("repo deleted %s", cr.metadata.name)