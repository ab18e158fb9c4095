from dataclasses import dataclass, field


@dataclass(slots=True)
class PreparedRequest:
    """A request whose body has already been encoded, ready for the wire."""

    method: str
    target: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    chunks: list[bytes] | None = None

    @property
    def is_streamed(self) -> bool:
        return self.chunks is not None
