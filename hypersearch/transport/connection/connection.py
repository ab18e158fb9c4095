from __future__ import annotations

import asyncio
import gzip
import ssl
import time
import zlib
from typing import Dict, List, Optional, Tuple

from hypersearch.transport.errors import (
    ConfigurationError,
    ConnectionError,
    ConnectionTimeoutError,
)
from hypersearch.transport.models import (
    ConnectionHealth,
    ConnectionStats,
    NodeDescriptor,
    PreparedRequest,
    ResponseEnvelope,
)

from .protocols import NEW_LINE, StaleStreamError, read_headers


BODYLESS_METHODS = ("GET", "HEAD", "DELETE", "OPTIONS")
USER_AGENT = "hypersearch/client"


class Connection:
    """
    One node of the cluster.

    Speaks HTTP/1.1 over asyncio streams and keeps up to
    ``connections_per_node`` sockets open for reuse. Health state is
    owned by the ConnectionPool that created this connection and is only
    read here.
    """

    def __init__(
        self,
        node: NodeDescriptor,
        connections_per_node: int = 10,
        http_compress: bool = False,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.node = node
        self.identity = node.identity
        self.health = ConnectionHealth()
        self.stats = ConnectionStats()

        self.http_compress = http_compress

        self._client_ssl_context = ssl_context
        self._concurrency = connections_per_node
        self._semaphore = asyncio.Semaphore(connections_per_node)
        self._idle: List[Tuple[asyncio.StreamReader, asyncio.StreamWriter]] = []
        self._closed = False

    @property
    def is_alive(self) -> bool:
        return self.health.alive

    @property
    def roles(self) -> frozenset[str]:
        return self.node.roles

    @property
    def can_sniff(self) -> bool:
        # Nodes that only hold the master role do not serve client traffic.
        return self.node.roles != frozenset(["master"])

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    async def send(
        self,
        request: PreparedRequest,
        timeout: Optional[float] = None,
    ) -> ResponseEnvelope:
        self.stats.requests += 1
        self.stats.last_used = time.monotonic()

        if self._closed:
            raise ConnectionError(f"Connection to {self.identity} is closed")

        try:
            return await asyncio.wait_for(
                self._send(request),
                timeout=timeout,
            )

        except asyncio.TimeoutError as err:
            raise ConnectionTimeoutError(
                f"{request.method} {request.target} to {self.identity} timed out after {timeout}s"
            ) from err

    async def _send(self, request: PreparedRequest) -> ResponseEnvelope:
        request_start = time.monotonic()

        async with self._semaphore:
            try:
                try:
                    status, headers, body = await self._exchange(request, reuse=True)

                except StaleStreamError:
                    # The server closed an idle keep-alive socket.
                    status, headers, body = await self._exchange(request, reuse=False)

            except StaleStreamError as err:
                raise ConnectionError(
                    f"{self.identity} closed the connection without responding"
                ) from err

            except ssl.SSLError as err:
                raise ConnectionError(
                    f"TLS error talking to {self.identity}: {err}"
                ) from err

            except (OSError, asyncio.IncompleteReadError, ValueError) as err:
                raise ConnectionError(
                    f"{request.method} {request.target} to {self.identity} failed: {err!r}"
                ) from err

        return ResponseEnvelope(
            status=status,
            headers=headers,
            raw_body=body,
            node=self.identity,
            duration=time.monotonic() - request_start,
        )

    async def _exchange(
        self,
        request: PreparedRequest,
        reuse: bool = True,
    ) -> Tuple[int, Dict[str, str], bytes]:
        streamed = request.chunks is not None and not self.http_compress
        body = None if streamed else self._encode_body(request)
        head = self._encode_head(request, body, streamed)

        reader, writer, reused = await self._acquire_stream(reuse=reuse)
        reusable = False

        try:
            try:
                writer.write(head)

                if streamed:
                    for chunk in request.chunks:
                        chunk_size = hex(len(chunk)).replace("0x", "") + NEW_LINE
                        writer.write(chunk_size.encode() + chunk + NEW_LINE.encode())

                    writer.write(("0" + NEW_LINE * 2).encode())

                elif body:
                    writer.write(body)

                await writer.drain()

                status_line = await reader.readline()

            except (ConnectionResetError, BrokenPipeError) as err:
                if reused:
                    raise StaleStreamError() from err

                raise

            if not status_line:
                if reused:
                    raise StaleStreamError()

                raise ConnectionError(
                    f"{self.identity} closed the connection without responding"
                )

            status = self._parse_status(status_line)
            headers = await read_headers(reader)

            # Interim 1xx responses precede the real one.
            while 100 <= status < 200:
                status = self._parse_status(await reader.readline())
                headers = await read_headers(reader)

            body, framed = await self._read_body(
                reader,
                request.method,
                status,
                headers,
            )

            reusable = framed and headers.get("connection", "").lower() != "close"

            if headers.get("content-encoding", "").lower() == "gzip" and body:
                try:
                    body = gzip.decompress(body)

                except (OSError, EOFError, zlib.error) as err:
                    raise ConnectionError(
                        f"Malformed gzip body from {self.identity}"
                    ) from err

            return status, headers, body

        finally:
            if reusable and self._closed is False:
                self._idle.append((reader, writer))

            else:
                writer.close()

    async def _acquire_stream(
        self,
        reuse: bool = True,
    ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter, bool]:
        while reuse and self._idle:
            reader, writer = self._idle.pop()

            if writer.is_closing() or reader.at_eof():
                writer.close()
                continue

            return reader, writer, True

        ssl_context: ssl.SSLContext | None = None
        if self.node.is_ssl:
            if self._client_ssl_context is None:
                self._client_ssl_context = ssl.create_default_context()

            ssl_context = self._client_ssl_context

        reader, writer = await asyncio.open_connection(
            self.node.host,
            self.node.port,
            ssl=ssl_context,
            server_hostname=self.node.host if ssl_context else None,
        )

        return reader, writer, False

    def _encode_head(
        self,
        request: PreparedRequest,
        body: bytes | None,
        streamed: bool,
    ) -> bytes:
        hostname = self.node.url_host
        if self.node.port not in (80, 443):
            hostname = f"{hostname}:{self.node.port}"

        header_items = (
            f"{request.method} {self.node.path_prefix}{request.target} HTTP/1.1{NEW_LINE}"
            f"Host: {hostname}{NEW_LINE}"
            f"User-Agent: {USER_AGENT}{NEW_LINE}"
        )

        headers: Dict[str, str] = {
            **{key.lower(): value for key, value in self.node.headers.items()},
            **{key.lower(): value for key, value in request.headers.items()},
        }

        if self.http_compress:
            headers["accept-encoding"] = "gzip"

        for key, value in headers.items():
            header_items += f"{key}: {value}{NEW_LINE}"

        if streamed:
            header_items += f"Transfer-Encoding: chunked{NEW_LINE}"

        else:
            if body is not None and self.http_compress:
                header_items += f"Content-Encoding: gzip{NEW_LINE}"

            if body is not None:
                header_items += f"Content-Length: {len(body)}{NEW_LINE}"

            elif request.method not in BODYLESS_METHODS:
                header_items += f"Content-Length: 0{NEW_LINE}"

        try:
            return f"{header_items}{NEW_LINE}".encode("latin-1")

        except UnicodeEncodeError as err:
            # No socket has been opened for this request yet.
            raise ConfigurationError(
                f"{request.method} {request.target} cannot be sent as an HTTP/1.1 head: {err}"
            ) from err

    def _encode_body(self, request: PreparedRequest) -> bytes | None:
        body = request.body
        if request.chunks is not None:
            body = b"".join(request.chunks)

        if body is not None and self.http_compress:
            return gzip.compress(body)

        return body

    def _parse_status(self, status_line: bytes) -> int:
        parts = status_line.decode("latin-1").split()

        if len(parts) < 2 or not parts[0].startswith("HTTP/"):
            raise ConnectionError(
                f"Malformed status line from {self.identity}: {status_line[:64]!r}"
            )

        return int(parts[1])

    async def _read_body(
        self,
        reader: asyncio.StreamReader,
        method: str,
        status: int,
        headers: Dict[str, str],
    ) -> Tuple[bytes, bool]:
        if method == "HEAD" or status in (204, 304):
            return b"", True

        content_length = headers.get("content-length")
        transfer_encoding = headers.get("transfer-encoding", "").lower()

        if "chunked" in transfer_encoding:
            body = bytearray()

            while True:
                size_line = await reader.readline()
                if not size_line:
                    raise asyncio.IncompleteReadError(bytes(body), None)

                chunk_size = int(size_line.split(b";", 1)[0].strip(), 16)

                if not chunk_size:
                    # Skip trailers up to the final CRLF.
                    await read_headers(reader)
                    break

                chunk = await reader.readexactly(chunk_size + 2)
                body.extend(chunk[:-2])

            return bytes(body), True

        if content_length is not None:
            return await reader.readexactly(int(content_length)), True

        # No framing: the body runs until the server closes the socket.
        return await reader.read(), False

    async def close(self) -> None:
        self._closed = True

        writers = [writer for _, writer in self._idle]
        self._idle.clear()

        for writer in writers:
            writer.close()

        await asyncio.gather(
            *[writer.wait_closed() for writer in writers],
            return_exceptions=True,
        )

    def __repr__(self) -> str:
        return (
            f"Connection({self.identity}, alive={self.health.alive}, "
            f"failures={self.health.failure_count})"
        )
