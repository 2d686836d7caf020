"""Copies secrets marked for remote installation onto their workload clusters."""

from __future__ import annotations

import base64
import copy
import logging
from typing import Any

from nephioctrl.cluster import Cluster
from nephioctrl.objects import NotFoundError, Request, Result, Secret, was_deleted

logger = logging.getLogger(__name__)

CLUSTER_NAME_KEY = "nephio.org/cluster-name"
NEPHIO_APP_KEY = "nephio.org/app"
REMOTE_NAMESPACE_KEY = "nephio.org/remote-namespace"
SYNC_APP = "tobeinstalledonremotecluster"
BOOTSTRAP_APP = "bootstrap"
MANAGEMENT_CLUSTER = "mgmt"
CLUSTER_RETRY = 10.0


def _secret_manifest(secret: Secret) -> dict[str, Any]:
    meta = secret.metadata
    metadata: dict[str, Any] = {"name": meta.name, "namespace": meta.namespace}
    if meta.annotations:
        metadata["annotations"] = dict(meta.annotations)
    if meta.labels:
        metadata["labels"] = dict(meta.labels)
    manifest: dict[str, Any] = {"apiVersion": "v1", "kind": "Secret", "metadata": metadata}
    if secret.type:
        manifest["type"] = secret.type
    if secret.data:
        manifest["data"] = {
            key: base64.b64encode(value).decode("ascii") for key, value in secret.data.items()
        }
    return manifest


class BootstrapSecretReconciler:
    """Installs annotated secrets on each remote cluster they name."""

    def __init__(self, client: Any, cluster: Any = None) -> None:
        self.client = client
        self.cluster = cluster if cluster is not None else Cluster(client=client)

    def reconcile(self, request: Request) -> Result:
        """Copy the secret to every cluster listed in its cluster-name annotation."""
        try:
            cr = self.client.get(Secret, request.namespace, request.name)
        except NotFoundError:
            return Result()
        except Exception as exc:
            logger.error("cannot get resource: %s", exc)
            raise RuntimeError(f"cannot get resource: {exc}") from exc

        if was_deleted(cr.metadata):
            return Result()

        annotations = cr.metadata.annotations
        cluster_annotation = annotations.get(CLUSTER_NAME_KEY, "")
        if (
            annotations.get(NEPHIO_APP_KEY) != SYNC_APP
            or cluster_annotation in ("", MANAGEMENT_CLUSTER)
        ):
            return Result()

        logger.info("reconcile secret %s/%s", request.namespace, request.name)
        for cluster_name in cluster_annotation.split(","):
            try:
                secrets = self.client.list(Secret)
            except Exception as exc:
                logger.error("cannot list secrets: %s", exc)
                raise RuntimeError(f"cannot list secrets: {exc}") from exc

            found = False
            for secret in secrets:
                if cluster_name in secret.metadata.name:
                    cluster_client = self.cluster.get_cluster_client(secret)
                    if cluster_client is not None:
                        found = True
                        result = self._install(cr, cluster_name, cluster_client)
                        if result is not None:
                            return result
                if found:
                    break

            if not found:
                logger.info("cluster client not found, retry...")
                return Result(requeue_after=CLUSTER_RETRY)
        return Result()

    def _install(self, cr: Secret, cluster_name: str, cluster_client: Any) -> Result | None:
        try:
            remote, ready = cluster_client.get_cluster_client()
        except Exception as exc:
            logger.error("cannot get clusterClient: %s", exc)
            raise RuntimeError(f"cannot get clusterClient: {exc}") from exc
        if not ready:
            logger.info("cluster not ready")
            return Result(requeue_after=CLUSTER_RETRY)

        remote_namespace = cr.metadata.annotations.get(REMOTE_NAMESPACE_KEY, cr.metadata.namespace)
        try:
            remote.get("v1", "Namespace", "", remote_namespace)
        except NotFoundError:
            logger.info("namespace: %s, does not exist, retry...", remote_namespace)
            return Result(requeue_after=CLUSTER_RETRY)
        except Exception as exc:
            msg = f"cannot get namespace: {remote_namespace}"
            logger.error("%s: %s", msg, exc)
            raise RuntimeError(f"{msg}: {exc}") from exc

        new_cr = copy.deepcopy(cr)
        new_cr.metadata.annotations[NEPHIO_APP_KEY] = BOOTSTRAP_APP
        new_cr.metadata.annotations[CLUSTER_NAME_KEY] = cluster_name
        new_cr.metadata.resource_version = ""
        new_cr.metadata.uid = ""
        new_cr.metadata.namespace = remote_namespace
        logger.info("secret info %s", new_cr.metadata.annotations)
        try:
            remote.apply(_secret_manifest(new_cr))
        except Exception as exc:
            msg = f"cannot apply secret to cluster {cluster_name}"
            logger.error("%s: %s", msg, exc)
            raise RuntimeError(f"{msg}: {exc}") from exc
        return None