from dataclasses import dataclass, field


@dataclass(slots=True)
class SelectionOptions:
    """Per-call hints for ConnectionPool.get_connection()."""

    exclude: set[str] = field(default_factory=set)
    sticky_key: str | None = None
