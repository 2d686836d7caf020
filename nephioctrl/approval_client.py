"""Changing the lifecycle of a package revision through the approval subresource."""

from __future__ import annotations

import copy
from typing import Any, Protocol

from nephioctrl.objects import PORCH_API_VERSION, Lifecycle


class ApprovalError(Exception):
    """Raised when a lifecycle change is not allowed."""


class _RESTClient(Protocol):
    def get(self, path: str) -> dict[str, Any]: ...

    def put(self, path: str, body: dict[str, Any]) -> dict[str, Any]: ...


def _package_revision_path(namespace: str, name: str) -> str:
    return f"/apis/{PORCH_API_VERSION}/namespaces/{namespace}/packagerevisions/{name}"


def update_package_revision_approval(
    rest_client: _RESTClient, namespace: str, name: str, lifecycle: str
) -> dict[str, Any] | None:
    """Move a proposed package revision to the given lifecycle.

    Returns the updated object, or None when the revision already has that
    lifecycle. Raises ApprovalError for any other starting lifecycle.
    """
    target = str(lifecycle)
    current_obj = rest_client.get(_package_revision_path(namespace, name))
    current = current_obj.get("spec", {}).get("lifecycle", "")

    if current == Lifecycle.PROPOSED:
        pass
    elif current == target:
        return None
    else:
        raise ApprovalError(f"cannot change approval from {current} to {target}")

    body = copy.deepcopy(current_obj)
    body.setdefault("spec", {})["lifecycle"] = target
    meta = body.get("metadata", {})
    path = _package_revision_path(meta.get("namespace", namespace), meta.get("name", name))
    return rest_client.put(f"{path}/approval", body)