"""Object model for the Kubernetes and Porch resources the controllers handle."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

PORCH_API_VERSION = "porch.kpt.dev/v1alpha1"
PORCH_CONFIG_API_VERSION = "config.porch.kpt.dev/v1alpha1"


class NotFoundError(LookupError):
    """Raised when a requested API object does not exist."""


@dataclass
class OwnerReference:
    """Reference from an object to the object that owns it."""

    api_version: str
    kind: str
    name: str
    uid: str = ""
    controller: bool | None = None


@dataclass
class ObjectMeta:
    """Standard object metadata."""

    name: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    finalizers: list[str] = field(default_factory=list)
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None
    resource_version: str = ""
    uid: str = ""


@dataclass
class Condition:
    """A status condition on a package revision or other object."""

    type: str
    status: str = ""
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class ReadinessGate:
    """A condition type that must be true for a package revision to be ready."""

    condition_type: str


class Lifecycle(str, enum.Enum):
    """Lifecycle stage of a package revision."""

    DRAFT = "Draft"
    PROPOSED = "Proposed"
    PUBLISHED = "Published"
    DELETION_PROPOSED = "DeletionProposed"

    def __str__(self) -> str:
        return self.value


def lifecycle_is_published(lifecycle: str) -> bool:
    """Return True if the lifecycle denotes a published revision."""
    return lifecycle in (Lifecycle.PUBLISHED, Lifecycle.DELETION_PROPOSED)


@dataclass
class PackageRevisionSpec:
    package_name: str = ""
    repository_name: str = ""
    revision: str = ""
    lifecycle: str = ""
    readiness_gates: list[ReadinessGate] = field(default_factory=list)


@dataclass
class PackageRevisionStatus:
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class PackageRevision:
    """A revision of a package held in a Porch repository."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PackageRevisionSpec = field(default_factory=PackageRevisionSpec)
    status: PackageRevisionStatus = field(default_factory=PackageRevisionStatus)


@dataclass
class Secret:
    """A core Secret holding binary data values."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    type: str = ""
    data: dict[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class Request:
    """Identifies the object a reconcile pass works on."""

    namespace: str
    name: str


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile pass; requeue_after is in seconds."""

    requeue: bool = False
    requeue_after: float = 0.0


@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        """The apiVersion string: "group/version", or only the version for the core group."""
        return f"{self.group}/{self.version}" if self.group else self.version


def was_deleted(meta: ObjectMeta) -> bool:
    """Return True if the object carries a deletion timestamp."""
    return meta.deletion_timestamp is not None


def add_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Add a finalizer unless present; return True if the metadata changed."""
    if finalizer in meta.finalizers:
        return False
    meta.finalizers.append(finalizer)
    return True


def remove_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Remove every occurrence of a finalizer; return True if the metadata changed."""
    kept = [f for f in meta.finalizers if f != finalizer]
    changed = len(kept) != len(meta.finalizers)
    meta.finalizers = kept
    return changed


class RESTMapper:
    """Maps kinds to REST resource names and back."""

    def __init__(self) -> None:
        self._resources: dict[GroupVersionKind, str] = {}
        self._kinds: dict[str, GroupVersionKind] = {}

    def add_specific(self, kind: GroupVersionKind, plural: str, singular: str) -> None:
        """Register a kind under its plural and singular resource names."""
        self._resources[kind] = plural.lower()
        self._kinds[plural.lower()] = kind
        self._kinds[singular.lower()] = kind

    def resource_for(self, kind: GroupVersionKind) -> str:
        """Return the plural resource name for a kind."""
        try:
            return self._resources[kind]
        except KeyError:
            raise KeyError(f"no resource registered for kind {kind.api_version}/{kind.kind}") from None

    def kind_for(self, resource: str) -> GroupVersionKind:
        """Return the kind registered for a plural or singular resource name."""
        try:
            return self._kinds[resource.lower()]
        except KeyError:
            raise KeyError(f"no kind registered for resource {resource!r}") from None


def create_rest_mapper() -> RESTMapper:
    """Build a mapper for the Porch, package variant and core kinds the controllers use."""
    porch_group, porch_version = PORCH_API_VERSION.split("/")
    config_group, config_version = PORCH_CONFIG_API_VERSION.split("/")
    entries = [
        (GroupVersionKind(config_group, config_version, "Repository"), "repositories", "repository"),
        (GroupVersionKind(porch_group, porch_version, "PackageRevision"), "packagerevisions", "packagerevision"),
        (
            GroupVersionKind(porch_group, porch_version, "PackageRevisionResources"),
            "packagerevisionresources",
            "packagerevisionresources",
        ),
        (GroupVersionKind(porch_group, porch_version, "Function"), "functions", "function"),
        (GroupVersionKind(config_group, config_version, "PackageVariant"), "packagevariants", "packagevariant"),
        (GroupVersionKind("", "v1", "Secret"), "secrets", "secret"),
        (GroupVersionKind("meta.k8s.io", "v1", "Table"), "tables", "table"),
    ]
    mapper = RESTMapper()
    for kind, plural, singular in entries:
        mapper.add_specific(kind, plural, singular)
    return mapper