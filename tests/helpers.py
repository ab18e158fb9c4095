"""Fakes and an in-process HTTP server shared by the test suite."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List

import orjson

from hypersearch.transport import (
    Connection,
    NodeDescriptor,
    PreparedRequest,
    ResponseEnvelope,
    TransportConfig,
)


HANG = object()


class ScriptedResponse:
    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        content_type: str | None = "application/json",
        raw_body: bytes | None = None,
    ) -> None:
        self.status = status
        self.content_type = content_type

        if raw_body is not None:
            self.raw_body = raw_body

        elif body is None:
            self.raw_body = b""

        else:
            self.raw_body = orjson.dumps(body)


class FakeConnection(Connection):
    """
    A Connection that never touches the network.

    Each send() pops the next outcome from ``script``: a ScriptedResponse,
    an exception to raise, HANG to block until cancelled, or an async
    callable receiving the request. An empty script answers 200 with
    ``{"ok": true}``.
    """

    def __init__(
        self,
        node: NodeDescriptor,
        script: List[Any] | None = None,
    ) -> None:
        super().__init__(node)
        self.script: List[Any] = list(script or [])
        self.requests: List[PreparedRequest] = []
        self.timeouts: List[float | None] = []
        self.cancelled = 0
        self.close_calls = 0

    async def send(
        self,
        request: PreparedRequest,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        self.stats.requests += 1
        self.stats.last_used = time.monotonic()
        self.requests.append(request)
        self.timeouts.append(timeout)

        outcome = self.script.pop(0) if self.script else ScriptedResponse(body={"ok": True})

        if isinstance(outcome, BaseException):
            raise outcome

        if outcome is HANG:
            try:
                await asyncio.sleep(3600)

            except asyncio.CancelledError:
                self.cancelled += 1
                raise

        if callable(outcome):
            outcome = await outcome(request)

        headers: Dict[str, str] = {}
        if outcome.content_type:
            headers["content-type"] = outcome.content_type

        return ResponseEnvelope(
            status=outcome.status,
            headers=headers,
            raw_body=outcome.raw_body,
            node=self.identity,
        )

    async def close(self) -> None:
        self.close_calls += 1
        await super().close()


class FakeCluster:
    """Builds FakeConnections on demand, scripted by node identity."""

    def __init__(self) -> None:
        self.scripts: Dict[str, List[Any]] = {}
        self.connections: Dict[str, FakeConnection] = {}

    def script(self, identity: str, *outcomes: Any) -> None:
        self.scripts.setdefault(identity, []).extend(outcomes)

        if connection := self.connections.get(identity):
            connection.script.extend(outcomes)

    def __call__(self, node: NodeDescriptor) -> FakeConnection:
        connection = FakeConnection(node, self.scripts.pop(node.identity, []))
        self.connections[node.identity] = connection
        return connection


def fast_config(**overrides: Any) -> TransportConfig:
    values: Dict[str, Any] = {
        "retry_backoff": 0.0,
        "request_timeout": 1.0,
    }
    values.update(overrides)

    return TransportConfig(**values)


def sniff_body(*addresses: str, roles: List[str] | None = None) -> Dict[str, Any]:
    return {
        "nodes": {
            f"node-{idx}": {
                "http": {"publish_address": address},
                "roles": roles if roles is not None else ["data", "ingest"],
            }
            for idx, address in enumerate(addresses)
        }
    }



HttpHandler = Callable[
    [str, str, Dict[str, str], bytes],
    Awaitable[tuple[int, Dict[str, str], bytes]],
]


class HttpTestServer:
    """
    Minimal HTTP/1.1 server for connection tests.

    ``handler(method, target, headers, body)`` returns status, headers and
    body. Set ``raw_response`` to send bytes verbatim instead.
    """

    def __init__(self, handler: HttpHandler | None = None) -> None:
        self.handler = handler or self._default_handler
        self.raw_response: bytes | None = None
        self.requests: List[tuple[str, str, Dict[str, str], bytes]] = []
        self.connections_opened = 0
        self.close_after_response = False
        self._server: asyncio.AbstractServer | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self.port: int = 0

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle,
            host="127.0.0.1",
            port=0,
        )
        self.port = self._server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()

            for writer in list(self._writers):
                writer.close()

            await self._server.wait_closed()

    async def _default_handler(self, method, target, headers, body):
        return 200, {"content-type": "application/json"}, b'{"ok":true}'

    async def _handle(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.connections_opened += 1
        self._writers.add(writer)

        try:
            while True:
                request_line = await reader.readline()
                if not request_line:
                    break

                method, target, _ = request_line.decode().split(" ", 2)

                headers: Dict[str, str] = {}
                while True:
                    line = await reader.readline()
                    if line in (b"\r\n", b""):
                        break

                    key, _, value = line.decode().partition(":")
                    headers[key.strip().lower()] = value.strip()

                body = b""
                if headers.get("transfer-encoding") == "chunked":
                    while True:
                        size = int((await reader.readline()).strip(), 16)
                        if size == 0:
                            await reader.readline()
                            break

                        body += (await reader.readexactly(size + 2))[:-2]

                elif "content-length" in headers:
                    body = await reader.readexactly(int(headers["content-length"]))

                self.requests.append((method, target, headers, body))

                if self.raw_response is not None:
                    writer.write(self.raw_response)
                    await writer.drain()
                    break

                status, response_headers, response_body = await self.handler(
                    method,
                    target,
                    headers,
                    body,
                )

                head = f"HTTP/1.1 {status} OK\r\n"
                for key, value in response_headers.items():
                    head += f"{key}: {value}\r\n"

                if "transfer-encoding" not in response_headers:
                    head += f"content-length: {len(response_body)}\r\n"

                writer.write(head.encode() + b"\r\n" + response_body)
                await writer.drain()

                if self.close_after_response:
                    break

        except (ConnectionError, asyncio.IncompleteReadError):
            pass

        finally:
            self._writers.discard(writer)
            writer.close()


