"""Event handlers that requeue networks when matching endpoints or nodes change."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from nephioctrl.objects import ObjectMeta, Request

logger = logging.getLogger(__name__)

NOKIA_SRL_PROVIDER = "srl.nokia.com"
NEPHIO_PROVIDER_KEY = "nephio.org/provider"
NEPHIO_TOPOLOGY_KEY = "nephio.org/topology"


class _Adder(Protocol):
    def add(self, item: Any) -> None: ...


@dataclass
class Endpoint:
    """An inventory endpoint."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class Node:
    """An inventory node."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class Network:
    """A network built over a topology."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    topology: str = ""


def _requeue_networks(client: Any, kind: type, obj: Any, queue: _Adder) -> None:
    """Queue every network whose topology matches the labels of obj."""
    if not isinstance(obj, kind):
        return
    logger.info("event kind=%s name=%s", kind.__name__, obj.metadata.name)
    try:
        networks = client.list(Network)
    except Exception:
        return
    labels = obj.metadata.labels
    for network in networks:
        if (
            labels.get(NEPHIO_PROVIDER_KEY, "") == NOKIA_SRL_PROVIDER
            and labels.get(NEPHIO_TOPOLOGY_KEY, "") == network.topology
        ):
            logger.info("event requeue network %s", network.metadata.name)
            queue.add(Request(network.metadata.namespace, network.metadata.name))


class EndpointEventHandler:
    """Requeues networks whose topology matches a changed endpoint."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def create(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a created endpoint."""
        _requeue_networks(self.client, Endpoint, obj, queue)

    def update(self, old: Any, new: Any, queue: _Adder) -> None:
        """Requeue networks affected by the old and the new endpoint."""
        _requeue_networks(self.client, Endpoint, old, queue)
        _requeue_networks(self.client, Endpoint, new, queue)

    def delete(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a deleted endpoint."""
        _requeue_networks(self.client, Endpoint, obj, queue)

    def generic(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a generic endpoint event."""
        _requeue_networks(self.client, Endpoint, obj, queue)


class NodeEventHandler:
    """Requeues networks whose topology matches a changed node."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def create(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a created node."""
        _requeue_networks(self.client, Node, obj, queue)

    def update(self, old: Any, new: Any, queue: _Adder) -> None:
        """Requeue networks affected by the old and the new node."""
        _requeue_networks(self.client, Node, old, queue)
        _requeue_networks(self.client, Node, new, queue)

    def delete(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a deleted node."""
        _requeue_networks(self.client, Node, obj, queue)

    def generic(self, obj: Any, queue: _Adder) -> None:
        """Requeue networks affected by a generic node event."""
        _requeue_networks(self.client, Node, obj, queue)