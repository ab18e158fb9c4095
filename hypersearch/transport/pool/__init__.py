from .connection_pool import (
    ConnectionFactory as ConnectionFactory,
    ConnectionPool as ConnectionPool,
)
from .selectors import (
    RandomSelector as RandomSelector,
    RoundRobinSelector as RoundRobinSelector,
    Selector as Selector,
    StickySelector as StickySelector,
    create_selector as create_selector,
)
