from __future__ import annotations

import base64
from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

from hypersearch.transport.errors import ConfigurationError


DEFAULT_PORT = 9200
SUPPORTED_SCHEMES = ("http", "https")


@dataclass(frozen=True, slots=True)
class NodeDescriptor:
    """Address and role information for one node of the cluster."""

    host: str
    port: int = DEFAULT_PORT
    scheme: str = "http"
    path_prefix: str = ""
    roles: frozenset[str] = frozenset()
    pinned: bool = False
    headers: dict[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_url(
        cls,
        url: str,
        roles: frozenset[str] | None = None,
        pinned: bool = False,
    ) -> NodeDescriptor:
        if "://" not in url:
            url = f"http://{url}"

        parsed = urlparse(url)
        scheme = parsed.scheme.lower()

        if scheme not in SUPPORTED_SCHEMES:
            raise ConfigurationError(
                f"Unsupported scheme {scheme!r} in node URL {url!r}"
            )

        if not parsed.hostname:
            raise ConfigurationError(f"Node URL {url!r} has no host")

        try:
            port = parsed.port

        except ValueError as err:
            raise ConfigurationError(f"Invalid port in node URL {url!r}") from err

        headers: dict[str, str] = {}
        if parsed.username is not None:
            credentials = f"{unquote(parsed.username)}:{unquote(parsed.password or '')}"
            encoded = base64.b64encode(credentials.encode()).decode()
            headers["authorization"] = f"Basic {encoded}"

        return cls(
            host=parsed.hostname,
            port=port or DEFAULT_PORT,
            scheme=scheme,
            path_prefix=parsed.path.rstrip("/"),
            roles=roles if roles is not None else frozenset(),
            pinned=pinned,
            headers=headers,
        )

    @property
    def is_ssl(self) -> bool:
        return self.scheme == "https"

    @property
    def url_host(self) -> str:
        if ":" in self.host and not self.host.startswith("["):
            return f"[{self.host}]"

        return self.host

    @property
    def identity(self) -> str:
        return f"{self.scheme}://{self.url_host}:{self.port}{self.path_prefix}"

    def __str__(self) -> str:
        return self.identity
