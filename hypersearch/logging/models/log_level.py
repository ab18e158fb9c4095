from __future__ import annotations

from enum import Enum
from typing import Literal

LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'warning',
    'error',
    'critical',
    'fatal',
]


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    FATAL = "FATAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel:
        """Resolve a level name in any case. Unknown names fall back to INFO."""
        name = level_name.upper()
        if name == "WARNING":
            name = "WARN"

        try:
            return cls(name)

        except ValueError:
            return cls.INFO


_RANKS = {level: rank for rank, level in enumerate(LogLevel)}
