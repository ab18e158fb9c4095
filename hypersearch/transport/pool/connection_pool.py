"""
Connection pool with dead-node tracking and resurrection.

Every method here is synchronous. The transport runs on a single event
loop, so pool state only changes between suspension points and needs no
locks. Closing removed connections is the one piece of I/O, and it is
scheduled as a task.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Callable, Dict, Iterable, List, Sequence

from hypersearch.transport.config import TransportConfig
from hypersearch.transport.connection import Connection
from hypersearch.transport.errors import (
    ConfigurationError,
    DuplicateConnectionError,
)
from hypersearch.transport.models import NodeDescriptor, SelectionOptions
from hypersearch.transport.reliability import calculate_resurrect_timeout

from .selectors import Selector, create_selector


ConnectionFactory = Callable[[NodeDescriptor], Connection]


class ConnectionPool:
    """
    The set of connections the transport may use, one per node.

    Usage:
        pool = ConnectionPool(
            ["http://node-a:9200", "http://node-b:9200"],
            config=TransportConfig(),
        )

        connection = pool.get_connection()
        try:
            response = await connection.send(request, timeout=10)
            pool.mark_alive(connection)
        except ConnectionError:
            pool.mark_dead(connection)

    Dead connections are skipped until their resurrect timeout elapses,
    after which they are offered once, ahead of the rotation, so a single
    request can probe them. The timeout doubles with each consecutive
    failure up to ``max_dead_timeout``.
    """

    def __init__(
        self,
        nodes: Sequence[NodeDescriptor | str],
        config: TransportConfig | None = None,
        connection_factory: ConnectionFactory | None = None,
        selector: Selector | None = None,
    ) -> None:
        if not nodes:
            raise ConfigurationError("At least one node is required")

        self.config = config or TransportConfig()
        self.selector = selector or create_selector(self.config.selector)

        self._connection_factory = connection_factory or self._create_connection
        self._connections: Dict[str, Connection] = {}
        self._pending_closes: set[asyncio.Task] = set()

        for node in nodes:
            if isinstance(node, str):
                node = NodeDescriptor.from_url(node)

            self.add_connection(node)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, identity: str) -> bool:
        return identity in self._connections

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    @property
    def alive_connections(self) -> List[Connection]:
        return [
            connection
            for connection in self._connections.values()
            if connection.health.alive
        ]

    @property
    def dead_connections(self) -> List[Connection]:
        return [
            connection
            for connection in self._connections.values()
            if connection.health.alive is False
        ]

    def get(self, identity: str) -> Connection | None:
        return self._connections.get(identity)

    def add_connection(self, node: NodeDescriptor) -> Connection:
        if node.identity in self._connections:
            raise DuplicateConnectionError(
                f"A connection to {node.identity} already exists"
            )

        connection = self._connection_factory(node)
        connection.health.resurrect_timeout = self.config.dead_timeout
        self._connections[node.identity] = connection

        return connection

    def remove_connection(self, identity: str) -> None:
        connection = self._connections.pop(identity, None)
        if connection is None:
            return

        self._schedule_close(connection)

    def get_connection(
        self,
        options: SelectionOptions | None = None,
    ) -> Connection | None:
        """
        Pick the connection for the next attempt.

        Returns None only when the pool is empty. A returned connection
        with ``is_alive`` False is a speculative pick: either a dead node
        whose resurrect timeout has elapsed, or the least recently failed
        node when nothing is alive.
        """
        if not self._connections:
            return None

        if options is None:
            options = SelectionOptions()

        now = time.monotonic()
        exclude = options.exclude

        resurrectable = [
            connection
            for connection in self._connections.values()
            if connection.health.alive is False
            and connection.identity not in exclude
            and (connection.health.resurrect_at or 0.0) <= now
        ]

        if resurrectable:
            connection = min(
                resurrectable,
                key=lambda candidate: candidate.health.resurrect_at or 0.0,
            )

            # Restart the dead window so concurrent requests do not all
            # probe the same node.
            connection.health.dead_since = now
            return connection

        alive = self.alive_connections
        if alive:
            candidates = [
                connection for connection in alive if connection.identity not in exclude
            ]

            return self.selector.select(
                candidates or alive,
                sticky_key=options.sticky_key,
            )

        dead = self.dead_connections
        candidates = [
            connection for connection in dead if connection.identity not in exclude
        ]

        return min(
            candidates or dead,
            key=lambda candidate: candidate.health.dead_since or 0.0,
        )

    def mark_alive(self, connection: Connection) -> None:
        health = connection.health

        health.alive = True
        health.dead_since = None
        health.failure_count = 0
        health.resurrect_timeout = self.config.dead_timeout

    def mark_dead(
        self,
        connection: Connection,
        soft: bool = False,
    ) -> None:
        """
        Take a connection out of rotation.

        A hard failure grows the consecutive failure count and with it the
        resurrect timeout. A soft failure (a retryable HTTP status) only
        parks the connection for the base timeout.
        """
        health = connection.health

        if soft:
            health.resurrect_timeout = self.config.dead_timeout

        else:
            health.failure_count += 1
            health.resurrect_timeout = calculate_resurrect_timeout(
                health.failure_count,
                self.config.dead_timeout,
                self.config.max_dead_timeout,
            )

        health.alive = False
        health.dead_since = time.monotonic()

    def update(self, nodes: Iterable[NodeDescriptor]) -> None:
        """
        Reconcile membership with a freshly discovered node list.

        New nodes are added, absent ones removed unless pinned, and nodes
        present in both take the new descriptor but keep their health and
        pinning. An empty list is ignored.
        """
        incoming: Dict[str, NodeDescriptor] = {
            node.identity: node for node in nodes
        }

        if not incoming:
            return

        for identity, connection in list(self._connections.items()):
            if identity not in incoming and connection.node.pinned is False:
                self.remove_connection(identity)

        for identity, node in incoming.items():
            connection = self._connections.get(identity)

            if connection is None:
                self.add_connection(node)

            elif connection.node != node:
                connection.node = dataclasses.replace(
                    node,
                    pinned=node.pinned or connection.node.pinned,
                )

    def get_stats(self) -> dict:
        connections = self.connections

        return {
            "total": len(connections),
            "alive": sum(1 for connection in connections if connection.health.alive),
            "dead": sum(1 for connection in connections if connection.health.alive is False),
            "connections": [
                {
                    "identity": connection.identity,
                    "alive": connection.health.alive,
                    "failure_count": connection.health.failure_count,
                    "resurrect_at": connection.health.resurrect_at,
                    "requests": connection.stats.requests,
                    "last_used": connection.stats.last_used,
                }
                for connection in connections
            ],
        }

    async def close(self) -> None:
        connections = self.connections
        self._connections.clear()

        await asyncio.gather(
            *[connection.close() for connection in connections],
            *self._pending_closes,
            return_exceptions=True,
        )

        self._pending_closes.clear()

    def _create_connection(self, node: NodeDescriptor) -> Connection:
        return Connection(
            node,
            connections_per_node=self.config.connections_per_node,
            http_compress=self.config.http_compress,
        )

    def _schedule_close(self, connection: Connection) -> None:
        try:
            loop = asyncio.get_running_loop()

        except RuntimeError:
            # No loop yet, so the connection never opened a socket.
            return

        task = loop.create_task(connection.close())
        self._pending_closes.add(task)
        task.add_done_callback(self._pending_closes.discard)
