import time
from dataclasses import dataclass, field

from .node_descriptor import NodeDescriptor


@dataclass(slots=True)
class SniffResult:
    """Nodes discovered by one sniff, consumed once by ConnectionPool.update()."""

    nodes: list[NodeDescriptor] = field(default_factory=list)
    source: str | None = None
    timestamp: float = field(default_factory=time.monotonic)
