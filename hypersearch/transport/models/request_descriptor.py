from dataclasses import dataclass, field
from typing import Any, Literal

HTTPMethod = Literal["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

HTTP_METHODS = frozenset(
    ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
)
IDEMPOTENT_METHODS = frozenset(["GET", "HEAD", "PUT", "DELETE", "OPTIONS"])


@dataclass(slots=True)
class RequestDescriptor:
    """
    One call into the transport.

    body may be raw bytes or str (sent as is), any structured value
    (encoded as JSON), or, with bulk=True, an iterable of items encoded
    as newline-delimited JSON.
    """

    method: HTTPMethod | str
    path: str
    params: dict[str, Any] | None = None
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    bulk: bool = False
    idempotent: bool | None = None

    def __post_init__(self) -> None:
        if isinstance(self.method, str):
            self.method = self.method.upper()

    @property
    def is_idempotent(self) -> bool:
        if self.idempotent is not None:
            return self.idempotent

        return self.method in IDEMPOTENT_METHODS
