"""
The request loop.

Transport turns a RequestDescriptor into a ResponseEnvelope: it picks a
connection from the pool, sends the encoded request, updates node health
from the outcome and retries on another node when the failure allows it.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, List, Sequence
from urllib.parse import urlencode

from hypersearch.env import Env, load_env
from hypersearch.logging import Logger, LoggingConfig
from hypersearch.transport.config import (
    TransportConfig,
    create_transport_config_from_env,
)
from hypersearch.transport.connection import Connection
from hypersearch.transport.errors import (
    ConfigurationError,
    ConnectionError,
    ConnectionTimeoutError,
    NoLivingConnectionsError,
    RequestAbortedError,
    RequestTimeoutError,
    SerializationError,
)
from hypersearch.transport.logging_models import (
    ConnectionPoolInfo,
    ConnectionPoolWarning,
    TransportDebug,
    TransportWarning,
)
from hypersearch.transport.logging_models import TransportError as TransportErrorLog
from hypersearch.transport.models import (
    HTTP_METHODS,
    NodeDescriptor,
    PreparedRequest,
    RequestDescriptor,
    RequestMeta,
    ResponseEnvelope,
    SelectionOptions,
)
from hypersearch.transport.pool import ConnectionFactory, ConnectionPool
from hypersearch.transport.reliability import calculate_jittered_delay
from hypersearch.transport.serializers import NdjsonSerializer, SerializerCollection
from hypersearch.transport.sniffer import Sniffer


LOGGER_NAME = "hypersearch.transport"
POOL_LOGGER_NAME = "hypersearch.pool"


class Transport:
    """
    Client-side transport for a clustered search backend.

    Usage:
        async with Transport(["http://localhost:9200"]) as transport:
            response = await transport.request(
                RequestDescriptor("GET", "/_cluster/health"),
            )

    Each call makes at most ``max_retries + 1`` attempts. Connection
    failures and timeouts mark the node dead and move on to a node not yet
    tried by this call. Statuses in ``retry_on_status`` park the node
    briefly and retry. Any other response, error statuses included, is
    returned to the caller. An attempt cut short by the call's deadline
    ends the call without counting against the node.
    """

    def __init__(
        self,
        nodes: Sequence[NodeDescriptor | str] | str,
        config: TransportConfig | None = None,
        serializers: SerializerCollection | None = None,
        logger: Logger | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        if isinstance(nodes, str):
            nodes = [nodes]

        self.config = config or TransportConfig()
        self.config.validate()

        self.serializers = serializers or SerializerCollection()

        self._owns_logger = logger is None
        self._logger = logger or Logger()

        self.pool = ConnectionPool(
            nodes,
            config=self.config,
            connection_factory=connection_factory,
        )

        self.sniffer = Sniffer(
            self.pool,
            config=self.config,
            serializers=self.serializers,
            logger=self._logger,
        )

        self._request_count = 0
        self._started = False
        self._start_task: asyncio.Task | None = None
        self._closed = False

    @classmethod
    def from_env(
        cls,
        env: Env | None = None,
        env_file: str | None = None,
        **kwargs: Any,
    ) -> Transport:
        if env is None:
            env = load_env(Env, env_file=env_file)

        LoggingConfig().update(**env.get_logging_config())

        return cls(
            env.get_node_urls(),
            config=create_transport_config_from_env(env),
            **kwargs,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """
        Run the startup sniff (when enabled) and start interval sniffing.

        Callers arriving while startup is in progress wait for the same
        task, so no request is sent before the first sniff settles.
        """
        if self._started:
            return

        if self._start_task is None:
            self._start_task = asyncio.ensure_future(self._start())

        await asyncio.shield(self._start_task)

    async def _start(self) -> None:
        if self.config.sniff_on_start:
            await self.sniffer.refresh()

        self.sniffer.start()
        self._started = True

    async def close(self) -> None:
        if self._closed:
            return

        self._closed = True

        if self._start_task is not None and self._start_task.done() is False:
            self._start_task.cancel()
            await asyncio.gather(self._start_task, return_exceptions=True)

        await self.sniffer.close()
        await self.pool.close()

        if self._owns_logger:
            await self._logger.close()

    async def __aenter__(self) -> Transport:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request(
        self,
        descriptor: RequestDescriptor,
        meta: RequestMeta | None = None,
    ) -> ResponseEnvelope:
        if meta is None:
            meta = RequestMeta()

        if self._closed:
            raise ConfigurationError("Transport is closed")

        max_retries, request_timeout = self._validate(descriptor, meta)

        if meta.aborted:
            raise RequestAbortedError(
                f"{descriptor.method} {descriptor.path} was aborted before it was sent",
            )

        if self._started is False:
            await self.start()

        self._count_request()

        deadline = meta.deadline if meta.deadline is not None else self.config.deadline
        deadline_at = time.monotonic() + deadline if deadline is not None else None

        # Encoded once and reused by every attempt.
        prepared: PreparedRequest | None = None

        retryable = descriptor.is_idempotent or self.config.retry_non_idempotent
        tried: set[str] = set()
        errors: List[Exception] = []
        previous_delay: float | None = None

        for attempt in range(max_retries + 1):
            if meta.aborted:
                raise RequestAbortedError(
                    f"{descriptor.method} {descriptor.path} was aborted",
                    attempts=attempt,
                    errors=tuple(errors),
                )

            connection = self.pool.get_connection(
                SelectionOptions(
                    exclude=tried,
                    sticky_key=meta.sticky_key,
                )
            )

            if connection is None:
                raise NoLivingConnectionsError(
                    "No connections available",
                    attempts=attempt,
                    errors=tuple(errors),
                )

            if prepared is None:
                prepared = self._prepare(descriptor)

            timeout = request_timeout
            clamped = False
            if deadline_at is not None:
                remaining = deadline_at - time.monotonic()

                if remaining <= 0:
                    raise RequestTimeoutError(
                        f"{descriptor.method} {descriptor.path} exceeded its {deadline}s deadline",
                        attempts=attempt,
                        errors=tuple(errors),
                    )

                clamped = remaining < request_timeout
                timeout = min(timeout, remaining)

            tried.add(connection.identity)
            meta.attempt = attempt + 1
            was_alive = connection.is_alive

            try:
                response = await self._send(connection, prepared, timeout, meta)

            except ConnectionError as err:
                errors.append(err)

                if clamped and isinstance(err, ConnectionTimeoutError):
                    # The caller's deadline ran out before the node's own
                    # request timeout did, so the node keeps its health.
                    await self._logger.log(
                        TransportErrorLog(
                            message=f"Deadline of {deadline}s reached waiting on {connection.identity}",
                            node=connection.identity,
                            method=descriptor.method,
                            path=descriptor.path,
                            attempt=attempt + 1,
                        ),
                        name=LOGGER_NAME,
                    )

                    raise RequestTimeoutError(
                        f"{descriptor.method} {descriptor.path} exceeded its {deadline}s deadline",
                        attempts=attempt + 1,
                        errors=tuple(errors),
                    ) from err

                self.pool.mark_dead(connection)

                await self._logger.log(
                    ConnectionPoolWarning(
                        message=f"Marked {connection.identity} dead for {connection.health.resurrect_timeout}s: {err}",
                        node=connection.identity,
                        alive_count=len(self.pool.alive_connections),
                        dead_count=len(self.pool.dead_connections),
                    ),
                    name=POOL_LOGGER_NAME,
                )

                if self.config.sniff_on_connection_fail:
                    self.sniffer.trigger()

                can_retry = retryable and (
                    self.config.retry_on_timeout
                    or isinstance(err, ConnectionTimeoutError) is False
                )

                if can_retry is False or attempt >= max_retries:
                    await self._logger.log(
                        TransportErrorLog(
                            message=f"Giving up after {attempt + 1} attempts: {err}",
                            node=connection.identity,
                            method=descriptor.method,
                            path=descriptor.path,
                            attempt=attempt + 1,
                        ),
                        name=LOGGER_NAME,
                    )

                    raise self._to_final_error(descriptor, errors, attempt + 1) from err

                await self._logger.log(
                    TransportWarning(
                        message=f"Attempt failed, retrying on another node: {err}",
                        node=connection.identity,
                        method=descriptor.method,
                        path=descriptor.path,
                        attempt=attempt + 1,
                    ),
                    name=LOGGER_NAME,
                )

                previous_delay = await self._backoff(
                    attempt,
                    meta,
                    previous_delay,
                    deadline_at,
                )

                continue

            self.pool.mark_alive(connection)

            if was_alive is False:
                await self._logger.log(
                    ConnectionPoolInfo(
                        message=f"Resurrected {connection.identity}",
                        node=connection.identity,
                        alive_count=len(self.pool.alive_connections),
                        dead_count=len(self.pool.dead_connections),
                    ),
                    name=POOL_LOGGER_NAME,
                )

            if (
                response.status in self.config.retry_on_status
                and retryable
                and attempt < max_retries
            ):
                self.pool.mark_dead(connection, soft=True)

                await self._logger.log(
                    TransportDebug(
                        message=f"Retrying after HTTP {response.status}",
                        node=connection.identity,
                        method=descriptor.method,
                        path=descriptor.path,
                        attempt=attempt + 1,
                    ),
                    name=LOGGER_NAME,
                )

                previous_delay = await self._backoff(
                    attempt,
                    meta,
                    previous_delay,
                    deadline_at,
                )

                continue

            response.attempts = attempt + 1
            response.body = self._deserialize(descriptor, response)

            return response

    async def perform_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        bulk: bool = False,
        meta: RequestMeta | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            RequestDescriptor(
                method=method,
                path=path,
                params=params,
                body=body,
                headers=headers or {},
                bulk=bulk,
            ),
            meta=meta,
        )

    async def _send(
        self,
        connection: Connection,
        prepared: PreparedRequest,
        timeout: float,
        meta: RequestMeta,
    ) -> ResponseEnvelope:
        send_task = asyncio.ensure_future(connection.send(prepared, timeout=timeout))
        abort_waiter = asyncio.ensure_future(meta.abort_event.wait())

        try:
            await asyncio.wait(
                [send_task, abort_waiter],
                return_when=asyncio.FIRST_COMPLETED,
            )

        finally:
            abort_waiter.cancel()

            if send_task.done() is False:
                send_task.cancel()

        if meta.aborted:
            # Let the cancelled send close its socket before returning.
            await asyncio.gather(send_task, return_exceptions=True)

            raise RequestAbortedError(
                f"{prepared.method} {prepared.target} was aborted in flight",
                attempts=meta.attempt,
            )

        return send_task.result()

    async def _backoff(
        self,
        attempt: int,
        meta: RequestMeta,
        previous_delay: float | None,
        deadline_at: float | None,
    ) -> float:
        delay = calculate_jittered_delay(
            attempt,
            base_delay=self.config.retry_backoff,
            max_delay=self.config.retry_backoff_max,
            jitter=self.config.retry_jitter,
            previous_delay=previous_delay,
        )

        if deadline_at is not None:
            delay = min(delay, max(deadline_at - time.monotonic(), 0.0))

        if delay <= 0 or meta.aborted:
            return delay

        try:
            await asyncio.wait_for(meta.abort_event.wait(), timeout=delay)

        except asyncio.TimeoutError:
            pass

        return delay

    def _validate(
        self,
        descriptor: RequestDescriptor,
        meta: RequestMeta,
    ) -> tuple[int, float]:
        if descriptor.method not in HTTP_METHODS:
            raise ConfigurationError(f"Unknown HTTP method {descriptor.method!r}")

        if not descriptor.path.startswith("/"):
            raise ConfigurationError(
                f"Request path must start with '/', got {descriptor.path!r}"
            )

        if not descriptor.path.isascii() or any(
            character in descriptor.path for character in " \r\n"
        ):
            raise ConfigurationError(
                f"Request path must be percent-encoded ASCII, got {descriptor.path!r}"
            )

        for name, value in descriptor.headers.items():
            if any(character in f"{name}{value}" for character in "\r\n"):
                raise ConfigurationError(f"Header {name!r} contains a line break")

            try:
                f"{name}{value}".encode("latin-1")

            except UnicodeEncodeError as err:
                raise ConfigurationError(
                    f"Header {name!r} cannot be encoded as latin-1"
                ) from err

        max_retries = (
            meta.max_retries if meta.max_retries is not None else self.config.max_retries
        )
        if max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")

        request_timeout = (
            meta.request_timeout
            if meta.request_timeout is not None
            else self.config.request_timeout
        )
        if request_timeout <= 0:
            raise ConfigurationError("request_timeout must be > 0")

        if meta.deadline is not None and meta.deadline <= 0:
            raise ConfigurationError("deadline must be > 0")

        return max_retries, request_timeout

    def _prepare(self, descriptor: RequestDescriptor) -> PreparedRequest:
        headers = {key.lower(): value for key, value in descriptor.headers.items()}
        headers.setdefault("accept", self.serializers.default_mimetype)

        body: bytes | None = None
        chunks: list[bytes] | None = None

        if descriptor.body is None:
            pass

        elif descriptor.bulk:
            serializer = self.serializers.get(NdjsonSerializer.mimetype)
            chunks = list(serializer.serialize_stream(descriptor.body))
            headers.setdefault("content-type", serializer.mimetype)

        elif isinstance(descriptor.body, bytes):
            body = descriptor.body

        elif isinstance(descriptor.body, str):
            body = descriptor.body.encode()

        else:
            content_type = headers.get("content-type")
            serializer = self.serializers.get(content_type)

            if serializer is None:
                raise SerializationError(
                    f"No serializer registered for {content_type!r}"
                )

            body = serializer.serialize(descriptor.body)
            headers.setdefault("content-type", serializer.mimetype)

        return PreparedRequest(
            method=descriptor.method,
            target=self._to_target(descriptor),
            headers=headers,
            body=body,
            chunks=chunks,
        )

    def _to_target(self, descriptor: RequestDescriptor) -> str:
        if not descriptor.params:
            return descriptor.path

        params: list[tuple[str, str]] = []
        for name, value in descriptor.params.items():
            if value is None:
                continue

            if isinstance(value, bool):
                value = "true" if value else "false"

            elif isinstance(value, (list, tuple, set, frozenset)):
                value = ",".join(str(item) for item in value)

            params.append((name, str(value)))

        if not params:
            return descriptor.path

        separator = "&" if "?" in descriptor.path else "?"
        return f"{descriptor.path}{separator}{urlencode(params)}"

    def _deserialize(
        self,
        descriptor: RequestDescriptor,
        response: ResponseEnvelope,
    ) -> Any:
        if descriptor.method == "HEAD" or not response.raw_body:
            return None

        if response.content_type is None:
            return response.raw_body

        serializer = self.serializers.get(response.content_type)
        if serializer is None:
            return response.raw_body

        return serializer.deserialize(response.raw_body)

    def _count_request(self) -> None:
        self._request_count += 1

        every = self.config.sniff_every_requests
        if every is not None and self._request_count % every == 0:
            self.sniffer.trigger()

    def _to_final_error(
        self,
        descriptor: RequestDescriptor,
        errors: List[Exception],
        attempts: int,
    ) -> Exception:
        last_error = errors[-1]
        message = f"{descriptor.method} {descriptor.path} failed: {last_error}"

        if isinstance(last_error, ConnectionTimeoutError):
            return RequestTimeoutError(
                message,
                attempts=attempts,
                errors=tuple(errors),
            )

        return ConnectionError(
            message,
            attempts=attempts,
            errors=tuple(errors),
        )
