"""Readiness of the PackageVariant that owns a package revision."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from nephioctrl.objects import PORCH_CONFIG_API_VERSION, Condition, ObjectMeta, PackageRevision


@dataclass
class PackageVariant:
    """A PackageVariant with its status conditions."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    conditions: list[Condition] = field(default_factory=list)


class _Reader(Protocol):
    def get(self, kind: type, namespace: str, name: str) -> Any: ...


def package_variant_ready(pr: PackageRevision, reader: _Reader) -> bool:
    """Return whether the owning PackageVariant is Ready.

    A revision not controlled by a PackageVariant counts as ready. Errors
    from the reader propagate.
    """
    owned = False
    for ref in pr.metadata.owner_references:
        if not ref.controller:
            continue
        if ref.api_version != PORCH_CONFIG_API_VERSION:
            continue
        if ref.kind != "PackageVariant":
            continue
        owned = True
        pv = reader.get(PackageVariant, pr.metadata.namespace, ref.name)
        for cond in pv.conditions:
            if cond.type != "Ready":
                continue
            return cond.status == "True"
    return not owned