"""
Transport configuration.

TransportConfig holds every tuning knob of the transport in seconds and
plain values. Build it directly, or from an Env with
create_transport_config_from_env().
"""

from dataclasses import dataclass, field
from typing import Callable, Literal

from hypersearch.env import Env, TimeParser

from .errors import ConfigurationError
from .models import NodeDescriptor
from .reliability import JitterStrategy


SelectorName = Literal["round_robin", "random", "sticky"]


@dataclass(slots=True)
class TransportConfig:
    """Configuration for Transport, ConnectionPool, Connection and Sniffer."""

    max_retries: int = 3
    request_timeout: float = 10.0
    deadline: float | None = None
    retry_on_status: tuple[int, ...] = (502, 503, 504)
    retry_on_timeout: bool = True
    retry_non_idempotent: bool = False
    retry_backoff: float = 0.1
    retry_backoff_max: float = 5.0
    retry_jitter: JitterStrategy = JitterStrategy.FULL

    selector: SelectorName = "round_robin"
    dead_timeout: float = 60.0
    max_dead_timeout: float = 1800.0
    connections_per_node: int = 10
    http_compress: bool = False

    sniff_on_start: bool = False
    sniff_on_connection_fail: bool = False
    sniff_interval: float | None = None
    sniff_every_requests: int | None = None
    sniff_timeout: float = 2.0
    sniff_path: str = "/_nodes/_all/http"
    sniffed_node_filter: Callable[[NodeDescriptor], bool] | None = field(
        default=None,
        repr=False,
    )

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be > 0")

        if self.deadline is not None and self.deadline <= 0:
            raise ConfigurationError("deadline must be > 0")

        if self.dead_timeout < 0 or self.max_dead_timeout < self.dead_timeout:
            raise ConfigurationError(
                "dead_timeout must be >= 0 and <= max_dead_timeout"
            )

        if self.connections_per_node < 1:
            raise ConfigurationError("connections_per_node must be >= 1")

        if self.selector not in ("round_robin", "random", "sticky"):
            raise ConfigurationError(f"Unknown selector {self.selector!r}")

        if self.sniff_interval is not None and self.sniff_interval <= 0:
            raise ConfigurationError("sniff_interval must be > 0")

        if self.sniff_every_requests is not None and self.sniff_every_requests < 1:
            raise ConfigurationError("sniff_every_requests must be >= 1")

        if not self.sniff_path.startswith("/"):
            raise ConfigurationError("sniff_path must start with '/'")

    @property
    def sniffing_enabled(self) -> bool:
        return (
            self.sniff_on_start
            or self.sniff_on_connection_fail
            or self.sniff_interval is not None
            or self.sniff_every_requests is not None
        )


def create_transport_config_from_env(env: Env) -> TransportConfig:
    """Create transport configuration from environment settings."""
    parser = TimeParser()

    return TransportConfig(
        max_retries=env.HYPERSEARCH_MAX_RETRIES,
        request_timeout=parser.parse(env.HYPERSEARCH_REQUEST_TIMEOUT),
        deadline=parser.parse(env.HYPERSEARCH_REQUEST_DEADLINE),
        retry_on_status=env.get_retry_on_status(),
        retry_on_timeout=env.HYPERSEARCH_RETRY_ON_TIMEOUT,
        retry_non_idempotent=env.HYPERSEARCH_RETRY_NON_IDEMPOTENT,
        retry_backoff=parser.parse(env.HYPERSEARCH_RETRY_BACKOFF),
        retry_backoff_max=parser.parse(env.HYPERSEARCH_RETRY_BACKOFF_MAX),
        retry_jitter=JitterStrategy(env.HYPERSEARCH_RETRY_JITTER),
        selector=env.HYPERSEARCH_SELECTOR,
        dead_timeout=parser.parse(env.HYPERSEARCH_DEAD_TIMEOUT),
        max_dead_timeout=parser.parse(env.HYPERSEARCH_MAX_DEAD_TIMEOUT),
        connections_per_node=env.HYPERSEARCH_CONNECTIONS_PER_NODE,
        http_compress=env.HYPERSEARCH_HTTP_COMPRESS,
        sniff_on_start=env.HYPERSEARCH_SNIFF_ON_START,
        sniff_on_connection_fail=env.HYPERSEARCH_SNIFF_ON_CONNECTION_FAIL,
        sniff_interval=parser.parse(env.HYPERSEARCH_SNIFF_INTERVAL),
        sniff_every_requests=env.HYPERSEARCH_SNIFF_EVERY_REQUESTS,
        sniff_timeout=parser.parse(env.HYPERSEARCH_SNIFF_TIMEOUT),
        sniff_path=env.HYPERSEARCH_SNIFF_PATH,
    )
