from dataclasses import dataclass, field
from typing import Any

from hypersearch.transport.errors import ResponseError


@dataclass(slots=True)
class ResponseEnvelope:
    """
    Raw HTTP response plus its deserialized body.

    Error statuses are data, not transport faults. Callers who want an
    exception call raise_for_status().
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    raw_body: bytes = b""
    body: Any = None
    node: str | None = None
    attempts: int = 0
    duration: float = 0.0

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def raise_for_status(self) -> None:
        if self.status < 400:
            return

        message = "Request failed"
        if isinstance(self.body, dict):
            error = self.body.get("error")

            if isinstance(error, dict):
                message = str(error.get("reason") or error.get("type") or message)

            elif error:
                message = str(error)

        elif isinstance(self.body, str) and self.body:
            message = self.body

        raise ResponseError(
            message,
            status=self.status,
            body=self.body,
            node=self.node,
        )
