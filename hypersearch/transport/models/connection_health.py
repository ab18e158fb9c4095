from dataclasses import dataclass


@dataclass(slots=True)
class ConnectionHealth:
    """Mutable health state of a connection, written only by its pool."""

    alive: bool = True
    dead_since: float | None = None
    failure_count: int = 0
    resurrect_timeout: float = 0.0

    @property
    def resurrect_at(self) -> float | None:
        if self.dead_since is None:
            return None

        return self.dead_since + self.resurrect_timeout


@dataclass(slots=True)
class ConnectionStats:
    """Usage statistics, updated on every send regardless of outcome."""

    requests: int = 0
    last_used: float | None = None
