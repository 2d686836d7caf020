"""Registry of the reconcilers available to the controller manager."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from nephioctrl.objects import Request, Result


@runtime_checkable
class Reconciler(Protocol):
    """Anything that can reconcile one object identified by a request."""

    def reconcile(self, request: Request) -> Result:
        """Bring the named object towards its desired state."""


_reconcilers: dict[str, Reconciler] = {}


def register(name: str, reconciler: Reconciler) -> None:
    """Register a reconciler under a name, replacing any earlier one."""
    _reconcilers[name] = reconciler


def lookup(name: str) -> Reconciler:
    """Return the reconciler registered under name."""
    try:
        return _reconcilers[name]
    except KeyError:
        raise KeyError(f"no reconciler registered as {name!r}") from None


def registered_names() -> list[str]:
    """Return the registered names in sorted order."""
    return sorted(_reconcilers)