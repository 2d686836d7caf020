"""Helpers for package revision conditions and readiness gates."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from nephioctrl.objects import Condition, ReadinessGate


@dataclass
class KptCondition:
    """A condition as recorded in a Kptfile status."""

    type: str
    status: str = ""
    reason: str = ""
    message: str = ""


def get_porch_conditions(conditions: Iterable[KptCondition]) -> list[Condition]:
    """Convert Kptfile conditions to package revision conditions."""
    return [
        Condition(type=c.type, status=c.status, reason=c.reason, message=c.message)
        for c in conditions
    ]


def has_specific_type_conditions(conditions: Iterable[Condition], condition_type: str) -> bool:
    """Return True if any condition's type is prefixed by condition_type and a dot."""
    prefix = condition_type + "."
    return any(c.type.startswith(prefix) for c in conditions)


def package_revision_is_ready(
    readiness_gates: Iterable[ReadinessGate], conditions: Iterable[Condition]
) -> bool:
    """Return True if every readiness gate has a condition whose status is "True"."""
    by_type = {c.type: c for c in conditions}
    for gate in readiness_gates:
        cond = by_type.get(gate.condition_type)
        if cond is None or cond.status != "True":
            return False
    return True