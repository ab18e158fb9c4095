"""
Node discovery.

The sniffer asks a live node for the cluster's node list and hands the
result to the pool. Concurrent triggers share one in-flight sniff, and
a failed sniff never changes the pool.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Tuple

from hypersearch.logging import Logger
from hypersearch.transport.config import TransportConfig
from hypersearch.transport.connection import Connection
from hypersearch.transport.errors import (
    ConnectionError,
    SerializationError,
    SniffError,
    TransportError,
)
from hypersearch.transport.logging_models import (
    SnifferDebug,
    SnifferError,
    SnifferInfo,
    SnifferWarning,
)
from hypersearch.transport.models import (
    NodeDescriptor,
    PreparedRequest,
    SniffResult,
)
from hypersearch.transport.pool import ConnectionPool
from hypersearch.transport.serializers import SerializerCollection


LOGGER_NAME = "hypersearch.sniffer"


def default_node_filter(node: NodeDescriptor) -> bool:
    """Drop dedicated master nodes, which do not serve client requests."""
    return node.roles != frozenset(["master"])


def parse_publish_address(address: str) -> Tuple[str, int]:
    """
    Split a publish address into host and port.

    Accepts ``host:port``, ``fqdn/ip:port`` and ``[ipv6]:port``. When a
    hostname precedes the slash it is preferred over the IP.
    """
    fqdn, _, address = address.strip().rpartition("/")

    if address.startswith("["):
        host, separator, port = address[1:].partition("]:")

    else:
        host, separator, port = address.rpartition(":")

    if not separator or not host:
        raise SniffError(f"Malformed publish address {address!r}")

    try:
        port_number = int(port)

    except ValueError as err:
        raise SniffError(f"Malformed port in publish address {address!r}") from err

    return fqdn or host, port_number


class Sniffer:
    def __init__(
        self,
        pool: ConnectionPool,
        config: TransportConfig | None = None,
        serializers: SerializerCollection | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._pool = pool
        self.config = config or pool.config
        self._serializers = serializers or SerializerCollection()
        self._logger = logger or Logger()

        self._node_filter: Callable[[NodeDescriptor], bool] = (
            self.config.sniffed_node_filter or default_node_filter
        )

        self._sniff_task: asyncio.Task | None = None
        self._interval_task: asyncio.Task | None = None

        self.last_sniff: SniffResult | None = None
        self.sniff_count: int = 0

    @property
    def in_progress(self) -> bool:
        return self._sniff_task is not None and self._sniff_task.done() is False

    async def sniff(self) -> SniffResult:
        """
        Fetch and parse the node list without touching the pool.

        Tries the alive sniff-capable connections in the pool's selection
        order, or the dead ones by time of death when none is alive, and
        moves on when one fails at the network level or answers with an
        error status or a malformed node list. Dead connections keep their
        resurrect schedule unless they answer.
        """
        tried: set[str] = set()
        errors: List[Exception] = []

        for connection in self._candidates():
            tried.add(connection.identity)

            try:
                body = await self._fetch(connection)
                nodes = self._parse_nodes(body, connection.node)

            except (SniffError, ConnectionError) as err:
                errors.append(err)

                await self._logger.log(
                    SnifferWarning(
                        message=f"Sniff against {connection.identity} failed: {err}",
                        node=connection.identity,
                        node_count=len(self._pool),
                    ),
                    name=LOGGER_NAME,
                )

                continue

            if connection.is_alive is False:
                self._pool.mark_alive(connection)

            await self._logger.log(
                SnifferDebug(
                    message=f"Discovered {len(nodes)} nodes via {connection.identity}",
                    node=connection.identity,
                    node_count=len(nodes),
                ),
                name=LOGGER_NAME,
            )

            return SniffResult(
                nodes=nodes,
                source=connection.identity,
            )

        if not tried:
            raise SniffError("No connection available to sniff from")

        raise SniffError(
            f"Sniffing failed against {len(tried)} nodes",
            attempts=len(errors),
            errors=tuple(errors),
        )

    def trigger(self) -> asyncio.Task:
        """Start a refresh unless one is already running, and return it."""
        if self._sniff_task is None or self._sniff_task.done():
            self._sniff_task = asyncio.ensure_future(self._refresh())

        return self._sniff_task

    async def refresh(self) -> SniffResult | None:
        """
        Sniff and apply the result to the pool.

        Concurrent callers await the same sniff. Failures are logged and
        reported as None.
        """
        return await asyncio.shield(self.trigger())

    def start(self) -> None:
        if self.config.sniff_interval is None or self._interval_task is not None:
            return

        self._interval_task = asyncio.ensure_future(
            self._run_interval(self.config.sniff_interval)
        )

    async def close(self) -> None:
        tasks = [
            task
            for task in (self._interval_task, self._sniff_task)
            if task is not None and task.done() is False
        ]

        for task in tasks:
            task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)

        self._interval_task = None
        self._sniff_task = None

    async def _run_interval(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.refresh()

    async def _refresh(self) -> SniffResult | None:
        try:
            result = await self.sniff()

        except TransportError as err:
            await self._logger.log(
                SnifferError(
                    message=f"Sniffing failed, keeping current nodes: {err}",
                    node="*",
                    node_count=len(self._pool),
                ),
                name=LOGGER_NAME,
            )

            return None

        self._pool.update(result.nodes)
        self.last_sniff = result
        self.sniff_count += 1

        await self._logger.log(
            SnifferInfo(
                message=f"Pool refreshed with {len(result.nodes)} sniffed nodes",
                node=result.source or "*",
                node_count=len(self._pool),
            ),
            name=LOGGER_NAME,
        )

        return result

    def _candidates(self) -> List[Connection]:
        alive = [
            connection
            for connection in self._pool.alive_connections
            if connection.can_sniff
        ]

        if not alive:
            return sorted(
                (
                    connection
                    for connection in self._pool.dead_connections
                    if connection.can_sniff
                ),
                key=lambda connection: connection.health.dead_since or 0.0,
            )

        ordered: List[Connection] = []
        while alive:
            connection = self._pool.selector.select(alive)
            alive.remove(connection)
            ordered.append(connection)

        return ordered

    async def _fetch(self, connection: Connection) -> Any:
        request = PreparedRequest(
            method="GET",
            target=self.config.sniff_path,
            headers={"accept": "application/json"},
        )

        response = await connection.send(
            request,
            timeout=self.config.sniff_timeout,
        )

        if response.status >= 300:
            raise SniffError(
                f"{connection.identity} answered the sniff with HTTP {response.status}"
            )

        serializer = self._serializers.get(response.content_type)
        if serializer is None:
            raise SniffError(
                f"Unsupported sniff response type {response.content_type!r}"
            )

        try:
            return serializer.deserialize(response.raw_body)

        except SerializationError as err:
            raise SniffError(
                f"Unparseable sniff response from {connection.identity}"
            ) from err

    def _parse_nodes(
        self,
        body: Any,
        source: NodeDescriptor,
    ) -> List[NodeDescriptor]:
        if not isinstance(body, dict) or not isinstance(body.get("nodes"), dict):
            raise SniffError("Sniff response has no 'nodes' object")

        nodes: List[NodeDescriptor] = []
        seen: set[str] = set()

        for node_id, node_info in body["nodes"].items():
            if not isinstance(node_info, dict):
                raise SniffError(f"Node {node_id!r} is not an object")

            http = node_info.get("http")
            if http is None:
                # Nodes with HTTP disabled have nothing to connect to.
                continue

            if not isinstance(http, dict):
                raise SniffError(f"Node {node_id!r} has a malformed 'http' section")

            address = http.get("publish_address")
            if not address:
                continue

            if not isinstance(address, str):
                raise SniffError(f"Node {node_id!r} has a non-string publish address")

            roles = node_info.get("roles") or []
            if not isinstance(roles, list) or not all(
                isinstance(role, str) for role in roles
            ):
                raise SniffError(f"Node {node_id!r} roles must be a list of strings")

            host, port = parse_publish_address(address)

            node = NodeDescriptor(
                host=host,
                port=port,
                scheme=source.scheme,
                path_prefix=source.path_prefix,
                roles=frozenset(roles),
                headers=dict(source.headers),
            )

            if node.identity in seen or self._node_filter(node) is False:
                continue

            seen.add(node.identity)
            nodes.append(node)

        return nodes

    def __repr__(self) -> str:
        return f"Sniffer(sniffs={self.sniff_count}, in_progress={self.in_progress})"
