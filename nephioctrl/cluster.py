"""Selection of a cluster client from a credentials secret."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from nephioctrl.capi import Capi
from nephioctrl.objects import Secret

CAPI_SECRET_TYPE = "cluster.x-k8s.io/secret"


@runtime_checkable
class ClusterClient(Protocol):
    """Access to a remote cluster."""

    def cluster_name(self) -> str:
        """Name of the remote cluster."""

    def get_cluster_client(self) -> tuple[Any, bool]:
        """Return (client, ready) for the remote cluster."""


@dataclass
class Cluster:
    """Chooses a cluster client implementation for a secret."""

    client: Any = None

    def get_cluster_client(self, secret: Secret | None) -> ClusterClient | None:
        """Return a client for the secret's cluster, or None if the secret is not one."""
        if secret is None:
            return None
        if secret.type == CAPI_SECRET_TYPE and "kubeconfig" in secret.metadata.name:
            return Capi(client=self.client, secret=secret)
        return None