"""
Shared fixtures for hypersearch tests.

Transport and pool tests run against FakeConnection, whose responses are
scripted per node. Connection tests run against an in-process HTTP
server built on asyncio.start_server.
"""

import tempfile
from typing import Any, Callable, Generator, List

import pytest

from hypersearch.logging import Entry, LoggingConfig, LogLevel
from hypersearch.transport import Transport

from tests.helpers import FakeCluster, HttpTestServer, fast_config


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None, None, None]:
    config = LoggingConfig()
    previous = config.snapshot()
    config.update(log_level="critical")

    yield

    config.restore(previous)


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def make_transport(
    cluster: FakeCluster,
) -> Callable[..., Transport]:
    def create(
        nodes: List[str],
        **config_overrides: Any,
    ) -> Transport:
        return Transport(
            nodes,
            config=fast_config(**config_overrides),
            connection_factory=cluster,
        )

    return create


@pytest.fixture
def temp_log_directory() -> Generator[str, None, None]:
    with tempfile.TemporaryDirectory() as temp_directory:
        yield temp_directory


@pytest.fixture
def sample_entry() -> Entry:
    return Entry(
        message="Test log message",
        level=LogLevel.INFO,
    )


@pytest.fixture
async def http_server():
    server = HttpTestServer()
    await server.start()

    yield server

    await server.close()
