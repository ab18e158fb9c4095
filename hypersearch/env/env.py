from __future__ import annotations
from pydantic import BaseModel, StrictBool, StrictStr, StrictInt
from typing import Callable, Dict, Literal, Union

PrimaryType = Union[str, int, float, bytes, bool]


class Env(BaseModel):
    HYPERSEARCH_NODES: StrictStr = "http://localhost:9200"
    HYPERSEARCH_MAX_RETRIES: StrictInt = 3
    HYPERSEARCH_REQUEST_TIMEOUT: StrictStr = "10s"
    HYPERSEARCH_REQUEST_DEADLINE: StrictStr | None = None
    HYPERSEARCH_RETRY_ON_STATUS: StrictStr = "502,503,504"
    HYPERSEARCH_RETRY_ON_TIMEOUT: StrictBool = True
    HYPERSEARCH_RETRY_NON_IDEMPOTENT: StrictBool = False
    HYPERSEARCH_RETRY_BACKOFF: StrictStr = "0.1s"
    HYPERSEARCH_RETRY_BACKOFF_MAX: StrictStr = "5s"
    HYPERSEARCH_RETRY_JITTER: Literal["full", "equal", "decorrelated", "none"] = "full"
    HYPERSEARCH_SELECTOR: Literal["round_robin", "random", "sticky"] = "round_robin"
    HYPERSEARCH_DEAD_TIMEOUT: StrictStr = "60s"
    HYPERSEARCH_MAX_DEAD_TIMEOUT: StrictStr = "30m"
    HYPERSEARCH_CONNECTIONS_PER_NODE: StrictInt = 10
    HYPERSEARCH_HTTP_COMPRESS: StrictBool = False

    # Sniffing
    HYPERSEARCH_SNIFF_ON_START: StrictBool = False
    HYPERSEARCH_SNIFF_ON_CONNECTION_FAIL: StrictBool = False
    HYPERSEARCH_SNIFF_INTERVAL: StrictStr | None = None
    HYPERSEARCH_SNIFF_EVERY_REQUESTS: StrictInt | None = None
    HYPERSEARCH_SNIFF_TIMEOUT: StrictStr = "2s"
    HYPERSEARCH_SNIFF_PATH: StrictStr = "/_nodes/_all/http"

    # Logging
    HYPERSEARCH_LOG_LEVEL: StrictStr = "info"
    HYPERSEARCH_LOG_OUTPUT: Literal["stdout", "stderr"] = "stderr"
    HYPERSEARCH_LOGS_DIRECTORY: StrictStr | None = None

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "HYPERSEARCH_NODES": str,
            "HYPERSEARCH_MAX_RETRIES": int,
            "HYPERSEARCH_REQUEST_TIMEOUT": str,
            "HYPERSEARCH_REQUEST_DEADLINE": str,
            "HYPERSEARCH_RETRY_ON_STATUS": str,
            "HYPERSEARCH_RETRY_ON_TIMEOUT": to_bool,
            "HYPERSEARCH_RETRY_NON_IDEMPOTENT": to_bool,
            "HYPERSEARCH_RETRY_BACKOFF": str,
            "HYPERSEARCH_RETRY_BACKOFF_MAX": str,
            "HYPERSEARCH_RETRY_JITTER": str,
            "HYPERSEARCH_SELECTOR": str,
            "HYPERSEARCH_DEAD_TIMEOUT": str,
            "HYPERSEARCH_MAX_DEAD_TIMEOUT": str,
            "HYPERSEARCH_CONNECTIONS_PER_NODE": int,
            "HYPERSEARCH_HTTP_COMPRESS": to_bool,
            # Sniffing
            "HYPERSEARCH_SNIFF_ON_START": to_bool,
            "HYPERSEARCH_SNIFF_ON_CONNECTION_FAIL": to_bool,
            "HYPERSEARCH_SNIFF_INTERVAL": str,
            "HYPERSEARCH_SNIFF_EVERY_REQUESTS": int,
            "HYPERSEARCH_SNIFF_TIMEOUT": str,
            "HYPERSEARCH_SNIFF_PATH": str,
            # Logging
            "HYPERSEARCH_LOG_LEVEL": str,
            "HYPERSEARCH_LOG_OUTPUT": str,
            "HYPERSEARCH_LOGS_DIRECTORY": str,
        }

    def get_node_urls(self) -> list[str]:
        return [
            url.strip() for url in self.HYPERSEARCH_NODES.split(",") if url.strip()
        ]

    def get_retry_on_status(self) -> tuple[int, ...]:
        return tuple(
            int(status.strip())
            for status in self.HYPERSEARCH_RETRY_ON_STATUS.split(",")
            if status.strip()
        )

    def get_logging_config(self) -> dict:
        """Get logging settings in the shape LoggingConfig.update() accepts."""
        return {
            "log_level": self.HYPERSEARCH_LOG_LEVEL,
            "log_output": self.HYPERSEARCH_LOG_OUTPUT,
            "log_directory": self.HYPERSEARCH_LOGS_DIRECTORY,
        }


def to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")
