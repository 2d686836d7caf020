"""Automatic approval of package revisions according to annotation policies."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Protocol

from nephioctrl.approval_client import update_package_revision_approval
from nephioctrl.condition import package_revision_is_ready
from nephioctrl.objects import (
    Lifecycle,
    NotFoundError,
    PackageRevision,
    Request,
    Result,
    lifecycle_is_published,
)
from nephioctrl.packagevariant import package_variant_ready

logger = logging.getLogger(__name__)

DELAY_ANNOTATION_NAME = "approval.nephio.org/delay"
POLICY_ANNOTATION_NAME = "approval.nephio.org/policy"
INITIAL_POLICY_ANNOTATION_VALUE = "initial"
ALWAYS_POLICY_ANNOTATION_VALUE = "always"

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "\u00b5s": 1e-6,
    "\u03bcs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as "1h30m" or "300ms" into seconds.

    Raises ValueError for text that is not a valid duration.
    """
    original = text
    sign = 1.0
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f'time: invalid duration "{original}"')
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if match is None:
            raise ValueError(f'time: invalid duration "{original}"')
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def should_process(pr: PackageRevision) -> tuple[str, bool]:
    """Return the approval policy and whether the revision should be handled at all."""
    policy = pr.metadata.annotations.get(POLICY_ANNOTATION_NAME)
    process = not lifecycle_is_published(pr.spec.lifecycle) and policy is not None
    return policy or "", process


def manage_delay(pr: PackageRevision) -> float:
    """Return how long to wait before approving, in seconds; 0 means no wait.

    Raises ValueError if the delay annotation is unparseable or negative.
    """
    delay = pr.metadata.annotations.get(DELAY_ANNOTATION_NAME)
    if delay is None:
        return 0.0
    seconds = parse_duration(delay)
    if seconds < 0:
        raise ValueError(f'invalid delay "{delay}"; delay must be 0 or more')
    created = pr.metadata.creation_timestamp
    if created is None:
        return 0.0
    current = datetime.now(tz=created.tzinfo)
    if (current - created).total_seconds() > seconds:
        return 0.0
    return seconds


class _Recorder(Protocol):
    def event(self, obj: Any, event_type: str, reason: str, message: str) -> None: ...


class _LogRecorder:
    def event(self, obj: Any, event_type: str, reason: str, message: str) -> None:
        level = logging.WARNING if event_type == EVENT_WARNING else logging.INFO
        logger.log(level, "%s: %s", reason, message)


class ApprovalReconciler:
    """Approves package revisions whose approval policy is met."""

    def __init__(
        self,
        api_reader: Any,
        base_client: Any = None,
        porch_rest_client: Any = None,
        recorder: _Recorder | None = None,
        requeue_duration: float = 0.0,
    ) -> None:
        self.api_reader = api_reader
        self.base_client = base_client
        self.porch_rest_client = porch_rest_client
        self.recorder = recorder if recorder is not None else _LogRecorder()
        self.requeue_duration = requeue_duration

    def reconcile(self, request: Request) -> Result:
        """Evaluate the approval policy of one package revision and act on it."""
        logger.info("reconcile approval %s/%s", request.namespace, request.name)
        try:
            pr = self.api_reader.get(PackageRevision, request.namespace, request.name)
        except NotFoundError:
            return Result()
        except Exception as exc:
            logger.error("cannot get resource: %s", exc)
            raise RuntimeError(f"cannot get resource: {exc}") from exc

        policy, ok = should_process(pr)
        if not ok:
            return Result()

        try:
            pv_ready = package_variant_ready(pr, self.api_reader)
        except Exception as exc:
            self.recorder.event(
                pr, EVENT_WARNING, "Error", f"could not get owning PackageVariant: {exc}"
            )
            return Result()

        if not pv_ready:
            self.recorder.event(
                pr,
                EVENT_NORMAL,
                "NotApproved",
                f"owning PackageVariant for {pr.spec.package_name} not Ready",
            )
            return Result(requeue_after=self.requeue_duration)

        if not package_revision_is_ready(pr.spec.readiness_gates, pr.status.conditions):
            self.recorder.event(
                pr,
                EVENT_NORMAL,
                "NotApproved",
                f"readiness gates not met for {pr.spec.package_name}, "
                f"in repo {pr.spec.repository_name}",
            )
            return Result(requeue_after=self.requeue_duration)

        if policy == INITIAL_POLICY_ANNOTATION_VALUE:
            try:
                approve = self.policy_initial(pr)
            except Exception as exc:
                self.recorder.event(
                    pr,
                    EVENT_WARNING,
                    "Error",
                    f'error evaluating approval policy "{policy}": {exc}',
                )
                return Result()
        elif policy == ALWAYS_POLICY_ANNOTATION_VALUE:
            approve = True
        else:
            self.recorder.event(
                pr,
                EVENT_WARNING,
                "InvalidPolicy",
                f'invalid "{POLICY_ANNOTATION_NAME}" annotation value: "{policy}"',
            )
            return Result()

        if not approve:
            self.recorder.event(
                pr,
                EVENT_NORMAL,
                "NotApproved",
                f'approval policy "{policy}" not met for {pr.spec.package_name}',
            )
            return Result(requeue_after=self.requeue_duration)

        try:
            requeue = manage_delay(pr)
        except ValueError as exc:
            self.recorder.event(
                pr, EVENT_WARNING, "Error", f'error processing "{DELAY_ANNOTATION_NAME}": {exc}'
            )
            return Result()

        if requeue > 0:
            self.recorder.event(pr, EVENT_NORMAL, "NotApproved", "delay time not met")
            return Result(requeue_after=requeue)

        action, reason = "approving", "Approved"
        try:
            if pr.spec.lifecycle == Lifecycle.DRAFT:
                action, reason = "proposing", "Proposed"
                pr.spec.lifecycle = Lifecycle.PROPOSED.value
                self.base_client.update(pr)
            else:
                update_package_revision_approval(
                    self.porch_rest_client,
                    pr.metadata.namespace,
                    pr.metadata.name,
                    Lifecycle.PUBLISHED,
                )
        except Exception as exc:
            self.recorder.event(pr, EVENT_WARNING, "Error", f"error {action}: {exc}")
            raise

        self.recorder.event(
            pr,
            EVENT_NORMAL,
            reason,
            f"all approval policies met for {pr.spec.package_name}: {reason}",
        )
        return Result()

    def policy_initial(self, pr: PackageRevision) -> bool:
        """Approve only if no published revision of the same package exists."""
        for other in self.api_reader.list(PackageRevision):
            if not lifecycle_is_published(other.spec.lifecycle):
                continue
            if (
                other.spec.repository_name == pr.spec.repository_name
                and other.spec.package_name == pr.spec.package_name
            ):
                return False
        return True