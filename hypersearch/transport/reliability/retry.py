"""
Delays between attempts and before dead connections come back.

Retries use a jittered exponential delay so that clients failing over
together spread out instead of hitting the next node at the same moment.
Dead connections use the same exponential curve with no jitter: a node
that keeps failing waits longer each time, up to the configured ceiling.
"""

import random
from enum import Enum


# Above this exponent every base delay is already past any cap.
MAX_EXPONENT = 63


class JitterStrategy(Enum):
    """
    How retry delays are randomized. With ``ceiling = min(cap, base * 2**n)``
    for retry ``n``:

    FULL: uniform over [0, ceiling]
    EQUAL: ceiling/2 plus uniform over [0, ceiling/2]
    DECORRELATED: uniform over [base, 3 * previous delay], capped
    NONE: exactly ceiling
    """

    FULL = "full"
    EQUAL = "equal"
    DECORRELATED = "decorrelated"
    NONE = "none"


def exponential_ceiling(retry: int, base: float, cap: float) -> float:
    return min(cap, base * (2 ** min(retry, MAX_EXPONENT)))


def calculate_jittered_delay(
    attempt: int,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    jitter: JitterStrategy = JitterStrategy.FULL,
    previous_delay: float | None = None,
) -> float:
    """
    Seconds to wait before retry number ``attempt`` (zero-based).

    A non-positive ``base_delay`` turns backoff off. ``previous_delay`` is
    only read by DECORRELATED jitter and defaults to ``base_delay``.
    """
    if base_delay <= 0:
        return 0.0

    match jitter:
        case JitterStrategy.FULL:
            return random.uniform(0, exponential_ceiling(attempt, base_delay, max_delay))

        case JitterStrategy.EQUAL:
            half = exponential_ceiling(attempt, base_delay, max_delay) / 2
            return half + random.uniform(0, half)

        case JitterStrategy.DECORRELATED:
            previous = base_delay if previous_delay is None else previous_delay
            return min(max_delay, random.uniform(base_delay, previous * 3))

        case _:
            return exponential_ceiling(attempt, base_delay, max_delay)


def calculate_resurrect_timeout(
    failure_count: int,
    base_timeout: float,
    max_timeout: float,
) -> float:
    """Seconds a connection stays dead after ``failure_count`` consecutive failures."""
    return exponential_ceiling(max(failure_count - 1, 0), base_timeout, max_timeout)
