"""Shared configuration handed to every reconciler at setup."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ControllerConfig:
    """Clients and settings shared by the reconcilers.

    Durations are in seconds.
    """

    porch_client: Any = None
    porch_rest_client: Any = None
    poll: float = 0.0
    controller_options: dict[str, Any] = field(default_factory=dict)
    address: str = ""
    ipam_client_proxy: Any = None
    vlan_client_proxy: Any = None
    approval_requeue_duration: int = 0

    def approval_requeue(self) -> float:
        """Requeue delay of the approval reconciler, in seconds."""
        return float(self.approval_requeue_duration)