"""Installs published packages of staging repositories onto their workload clusters."""

from __future__ import annotations

import fnmatch
import logging
import posixpath
from collections.abc import Iterable, Mapping
from typing import Any

import yaml

from nephioctrl.cluster import Cluster, ClusterClient
from nephioctrl.objects import (
    PORCH_API_VERSION,
    PORCH_CONFIG_API_VERSION,
    GroupVersionKind,
    NotFoundError,
    PackageRevision,
    Request,
    Result,
    Secret,
    lifecycle_is_published,
)

logger = logging.getLogger(__name__)

CLUSTER_NAME_ANNOTATION = "nephio.org/cluster-name"
STAGING_ANNOTATION = "nephio.org/staging"
LOCAL_CONFIG_ANNOTATION = "config.kubernetes.io/local-config"
INCLUDED_FILE_PATTERNS = ("*.yaml", "*.yml", "Kptfile")
CLUSTER_RETRY = 10.0

REPOSITORY_KIND = GroupVersionKind(*PORCH_CONFIG_API_VERSION.split("/"), "Repository")
PACKAGE_REVISION_RESOURCES_KIND = GroupVersionKind(
    *PORCH_API_VERSION.split("/"), "PackageRevisionResources"
)


def included_file_types(path: str, patterns: Iterable[str]) -> bool:
    """Return True if the base name of path matches one of the glob patterns."""
    base = posixpath.basename(path)
    return any(fnmatch.fnmatchcase(base, pattern) for pattern in patterns)


def _is_local_config(doc: Mapping[str, Any]) -> bool:
    metadata = doc.get("metadata") or {}
    annotations = metadata.get("annotations") or {} if isinstance(metadata, dict) else {}
    value = annotations.get(LOCAL_CONFIG_ANNOTATION) if isinstance(annotations, dict) else None
    return value is True or value == "true"


def filter_non_local_resources(resources: Mapping[str, str]) -> list[dict[str, Any]]:
    """Parse the package's YAML files and Kptfile, dropping local-config objects.

    Raises ValueError if an included file is not valid YAML.
    """
    objects: list[dict[str, Any]] = []
    for path in sorted(resources):
        if not included_file_types(path, INCLUDED_FILE_PATTERNS):
            continue
        try:
            docs = list(yaml.safe_load_all(resources[path]))
        except yaml.YAMLError as exc:
            raise ValueError(f"cannot parse {path}: {exc}") from exc
        for doc in docs:
            if not isinstance(doc, dict) or not doc.get("kind"):
                logger.error("cannot unmarshal data in %s: %r", path, doc)
                continue
            if _is_local_config(doc):
                continue
            objects.append(doc)
    return objects


def _resource_id(obj: Mapping[str, Any]) -> str:
    name = (obj.get("metadata") or {}).get("name", "")
    return f"{obj.get('apiVersion', '')}.{obj.get('kind', '')}.{name}"


class BootstrapPackagesReconciler:
    """Applies the resources of published staging package revisions to their cluster."""

    def __init__(self, client: Any, porch_client: Any, cluster: Any = None) -> None:
        self.client = client
        self.porch_client = porch_client
        self.cluster = cluster if cluster is not None else Cluster(client=client)

    def reconcile(self, request: Request) -> Result:
        """Install the package revision's resources on the cluster it names."""
        try:
            pr = self.client.get(PackageRevision, request.namespace, request.name)
        except NotFoundError:
            return Result()
        except Exception as exc:
            logger.error("cannot get resource: %s", exc)
            raise RuntimeError(f"cannot get resource: {exc}") from exc

        try:
            staging = self.is_staging_package_revision(pr.spec.repository_name)
        except Exception as exc:
            logger.error("cannot list repositories: %s", exc)
            raise RuntimeError(f"cannot list repositories: {exc}") from exc

        if not (staging and lifecycle_is_published(pr.spec.lifecycle)):
            return Result()

        logger.info("reconcile package revision %s/%s", request.namespace, request.name)
        try:
            resources = self._get_pr_resources(request)
        except Exception as exc:
            logger.error("cannot get resources: %s", exc)
            raise RuntimeError(f"cannot get resources: {exc}") from exc
        if not resources:
            return Result()

        first = resources[0]
        annotations = (first.get("metadata") or {}).get("annotations") or {}
        cluster_name = annotations.get(CLUSTER_NAME_ANNOTATION)
        if cluster_name is None:
            logger.info(
                "clusterName not found resource=%s annotations=%s",
                _resource_id(first),
                annotations,
            )
            return Result()

        try:
            cluster_client = self.get_cluster_client(cluster_name)
        except Exception as exc:
            msg = f"failed to get cluster Secret for: {cluster_name}"
            logger.error("%s: %s", msg, exc)
            raise RuntimeError(f"{msg}: {exc}") from exc

        if cluster_client is None:
            logger.info("cluster client not found, retry...")
            return Result(requeue_after=CLUSTER_RETRY)

        try:
            remote, ready = cluster_client.get_cluster_client()
        except Exception as exc:
            logger.error("cannot get clusterClient: %s", exc)
            raise RuntimeError(f"cannot get clusterClient: {exc}") from exc
        if not ready:
            logger.info("cluster not ready")
            return Result(requeue_after=CLUSTER_RETRY)

        for obj in resources:
            logger.info("install manifest resource=%s", _resource_id(obj))
            try:
                remote.apply(obj)
            except Exception as exc:
                name = (obj.get("metadata") or {}).get("name", "")
                msg = f"cannot apply resource to cluster: resourceName: {name}"
                logger.error("%s: %s", msg, exc)
                raise RuntimeError(f"{msg}: {exc}") from exc
        return Result()

    def get_cluster_client(self, cluster_name: str) -> ClusterClient | None:
        """Find a cluster client among the secrets whose name contains cluster_name."""
        for secret in self.client.list(Secret):
            if cluster_name in secret.metadata.name:
                cluster_client = self.cluster.get_cluster_client(secret)
                if cluster_client is not None:
                    return cluster_client
        return None

    def is_staging_package_revision(self, repository_name: str) -> bool:
        """Return True if the named repository carries the staging annotation."""
        staging = {
            repo.metadata.name
            for repo in self.porch_client.list(REPOSITORY_KIND)
            if STAGING_ANNOTATION in repo.metadata.annotations
        }
        return repository_name in staging

    def _get_pr_resources(self, request: Request) -> list[dict[str, Any]]:
        prr = self.porch_client.get(
            PACKAGE_REVISION_RESOURCES_KIND, request.namespace, request.name
        )
        resources = ((prr or {}).get("spec") or {}).get("resources") or {}
        return filter_non_local_resources(resources)