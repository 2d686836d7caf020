"""Access to workload clusters provisioned through Cluster API."""

from __future__ import annotations

import base64
import logging
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import requests
import yaml

from nephioctrl.objects import Condition, GroupVersionKind, NotFoundError, Secret

logger = logging.getLogger(__name__)

KUBECONFIG_SUFFIX = "-kubeconfig"
CLUSTER_KIND = GroupVersionKind("cluster.x-k8s.io", "v1beta1", "Cluster")
READY_CONDITION = "Ready"


def is_ready(conditions: Iterable[Condition]) -> bool:
    """Return True if a Ready condition with status "True" is present."""
    return any(c.type == READY_CONDITION and c.status == "True" for c in conditions)


def _decode(value: str | None) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid base64 data in kubeconfig: {exc}") from exc


def _named(entries: Any, name: str, what: str) -> dict[str, Any]:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry.get(what) or {}
    raise ValueError(f"invalid configuration: {what} {name!r} not found")


def rest_config_from_kubeconfig(data: bytes | str | None) -> dict[str, Any]:
    """Build the connection settings of a cluster from kubeconfig data.

    Raises ValueError if the kubeconfig is empty or incomplete.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    try:
        doc = yaml.safe_load(data) if data else None
    except yaml.YAMLError as exc:
        raise ValueError(f"cannot parse kubeconfig: {exc}") from exc
    if not isinstance(doc, dict) or not doc:
        raise ValueError("invalid configuration: no configuration has been provided")

    current = doc.get("current-context")
    if not current:
        raise ValueError("invalid configuration: no current context is set")
    context = _named(doc.get("contexts"), current, "context")
    cluster = _named(doc.get("clusters"), context.get("cluster", ""), "cluster")
    user = _named(doc.get("users"), context.get("user", ""), "user") if context.get("user") else {}

    server = cluster.get("server")
    if not server:
        raise ValueError("invalid configuration: no server found for cluster")

    return {
        "server": server,
        "certificate_authority_data": _decode(cluster.get("certificate-authority-data")),
        "insecure_skip_tls_verify": bool(cluster.get("insecure-skip-tls-verify", False)),
        "token": user.get("token"),
        "client_certificate_data": _decode(user.get("client-certificate-data")),
        "client_key_data": _decode(user.get("client-key-data")),
        "username": user.get("username"),
        "password": user.get("password"),
    }


def _write_temp(data: bytes) -> str:
    with tempfile.NamedTemporaryFile(delete=False, suffix=".pem") as handle:
        handle.write(data)
        return handle.name


def _plural(kind: str) -> str:
    lower = kind.lower()
    if lower.endswith("s"):
        return lower + "es"
    if lower.endswith("y"):
        return lower[:-1] + "ies"
    return lower + "s"


class _KubeClient:
    """Minimal client for a cluster's API server: get and server-side apply."""

    def __init__(self, config: dict[str, Any], session: requests.Session | None = None) -> None:
        self._server = config["server"].rstrip("/")
        self._session = session or requests.Session()
        if config.get("token"):
            self._session.headers["Authorization"] = f"Bearer {config['token']}"
        elif config.get("username"):
            self._session.auth = (config["username"], config.get("password") or "")
        if config.get("insecure_skip_tls_verify"):
            self._session.verify = False
        elif config.get("certificate_authority_data"):
            self._session.verify = _write_temp(config["certificate_authority_data"])
        if config.get("client_certificate_data") and config.get("client_key_data"):
            self._session.cert = (
                _write_temp(config["client_certificate_data"]),
                _write_temp(config["client_key_data"]),
            )

    def _url(self, api_version: str, kind: str, namespace: str, name: str = "") -> str:
        prefix = "/api/v1" if api_version == "v1" else f"/apis/{api_version}"
        ns = f"/namespaces/{namespace}" if namespace else ""
        tail = f"/{name}" if name else ""
        return f"{self._server}{prefix}{ns}/{_plural(kind)}{tail}"

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Fetch an object; raises NotFoundError if it does not exist."""
        resp = self._session.get(self._url(api_version, kind, namespace, name), timeout=30)
        if resp.status_code == 404:
            raise NotFoundError(f"{kind} {namespace}/{name} not found")
        resp.raise_for_status()
        return resp.json()

    def apply(self, manifest: dict[str, Any]) -> dict[str, Any]:
        """Create or update an object with server-side apply."""
        meta = manifest.get("metadata", {})
        url = self._url(
            manifest["apiVersion"], manifest["kind"], meta.get("namespace", ""), meta["name"]
        )
        resp = self._session.patch(
            url,
            data=yaml.safe_dump(manifest),
            params={"fieldManager": "nephio", "force": "true"},
            headers={"Content-Type": "application/apply-patch+yaml"},
            timeout=30,
        )
        resp.raise_for_status()
        return resp.json()


@dataclass
class Capi:
    """A Cluster API cluster reached through its kubeconfig secret."""

    client: Any = None
    secret: Secret | None = None
    client_factory: Callable[[dict[str, Any]], Any] = field(default=_KubeClient)

    def cluster_name(self) -> str:
        """The cluster name: the secret name without the kubeconfig suffix."""
        if self.secret is None:
            return ""
        name = self.secret.metadata.name
        if name.endswith(KUBECONFIG_SUFFIX):
            return name[: -len(KUBECONFIG_SUFFIX)]
        return name

    def _cluster_ready(self) -> bool:
        assert self.secret is not None
        try:
            obj = self.client.get(CLUSTER_KIND, self.secret.metadata.namespace, self.cluster_name())
        except Exception:
            logger.exception("cannot get cluster")
            return False
        raw = ((obj or {}).get("status") or {}).get("conditions") or []
        conditions = [
            Condition(type=c.get("type", ""), status=c.get("status", ""))
            for c in raw
            if isinstance(c, dict)
        ]
        return is_ready(conditions)

    def get_cluster_client(self) -> tuple[Any, bool]:
        """Return (client, True) for a ready cluster, or (None, False).

        Raises ValueError if the kubeconfig in the secret is unusable.
        """
        if self.secret is None or not self._cluster_ready():
            return None, False
        config = rest_config_from_kubeconfig(self.secret.data.get("value"))
        return self.client_factory(config), True