"""
Selection strategies over the alive connections of a pool.

A selector only orders candidates. The pool decides which connections
are candidates (alive, not excluded) and calls select() with them in
insertion order.
"""

import hashlib
import math
import random
from typing import Dict, Sequence, Type

from hypersearch.transport.connection import Connection
from hypersearch.transport.errors import ConfigurationError


class Selector:
    name: str = "selector"

    def select(
        self,
        connections: Sequence[Connection],
        sticky_key: str | None = None,
    ) -> Connection:
        raise NotImplementedError("Selector.select() must be implemented")


class RoundRobinSelector(Selector):
    """Cycle through candidates in insertion order."""

    name = "round_robin"

    def __init__(self) -> None:
        self._cursor = 0

    def select(
        self,
        connections: Sequence[Connection],
        sticky_key: str | None = None,
    ) -> Connection:
        connection = connections[self._cursor % len(connections)]
        self._cursor = (self._cursor + 1) % len(connections)

        return connection


class RandomSelector(Selector):
    name = "random"

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def select(
        self,
        connections: Sequence[Connection],
        sticky_key: str | None = None,
    ) -> Connection:
        return self._random.choice(connections)


class StickySelector(Selector):
    """
    Route every request with the same key to the same node.

    Uses rendezvous (highest random weight) hashing over connection
    identities, so removing a node only moves the keys that were bound to
    it. Requests without a key fall back to round robin.
    """

    name = "sticky"

    def __init__(self, hash_seed: bytes = b"hypersearch-sticky") -> None:
        self.hash_seed = hash_seed
        self._fallback = RoundRobinSelector()

    def select(
        self,
        connections: Sequence[Connection],
        sticky_key: str | None = None,
    ) -> Connection:
        if sticky_key is None:
            return self._fallback.select(connections)

        return max(
            connections,
            key=lambda connection: self._compute_score(sticky_key, connection.identity),
        )

    def _compute_score(self, key: str, identity: str) -> float:
        digest = hashlib.sha256(
            self.hash_seed + key.encode() + b":" + identity.encode()
        ).digest()

        # Map the first 8 bytes into (0, 1) and apply -1/ln(h).
        hash_value = (int.from_bytes(digest[:8], "big") + 1) / (2**64 + 1)
        return -1.0 / math.log(hash_value)


SELECTORS: Dict[str, Type[Selector]] = {
    RoundRobinSelector.name: RoundRobinSelector,
    RandomSelector.name: RandomSelector,
    StickySelector.name: StickySelector,
}


def create_selector(name: str) -> Selector:
    selector_class = SELECTORS.get(name)
    if selector_class is None:
        raise ConfigurationError(
            f"Unknown selector {name!r}, expected one of {sorted(SELECTORS)}"
        )

    return selector_class()
