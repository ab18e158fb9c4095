"""
Process-wide logging settings.

Settings live in a single context variable, so a task that changes them
(a test, or one Transport configured from its own Env) only affects
itself and the tasks it starts afterwards.
"""

import contextvars
import dataclasses
from typing import Literal

from hypersearch.logging.models import LogLevel, LogLevelName

from .stream_type import StreamType


LogOutput = Literal['stdout', 'stderr']


@dataclasses.dataclass(frozen=True, slots=True)
class LoggingSettings:
    level: LogLevel = LogLevel.INFO
    output: StreamType = StreamType.STDERR
    directory: str | None = None
    disabled: frozenset[str] = frozenset()


_settings: contextvars.ContextVar[LoggingSettings] = contextvars.ContextVar(
    "hypersearch_logging_settings",
    default=LoggingSettings(),
)


class LoggingConfig:
    def update(
        self,
        log_directory: str | None = None,
        log_level: LogLevelName | None = None,
        log_output: LogOutput | None = None,
    ) -> None:
        changes = {}

        if log_directory:
            changes["directory"] = log_directory

        if log_level:
            changes["level"] = LogLevel.to_level(log_level)

        if log_output:
            changes["output"] = StreamType(log_output)

        if changes:
            _settings.set(dataclasses.replace(_settings.get(), **changes))

    def disable(self, logger_name: str) -> None:
        settings = _settings.get()
        _settings.set(
            dataclasses.replace(settings, disabled=settings.disabled | {logger_name})
        )

    def enable(self, logger_name: str) -> None:
        settings = _settings.get()
        _settings.set(
            dataclasses.replace(settings, disabled=settings.disabled - {logger_name})
        )

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        settings = _settings.get()
        return (
            logger_name not in settings.disabled
            and log_level.rank >= settings.level.rank
        )

    def snapshot(self) -> LoggingSettings:
        return _settings.get()

    def restore(self, settings: LoggingSettings) -> None:
        _settings.set(settings)

    @property
    def level(self) -> LogLevel:
        return _settings.get().level

    @property
    def output(self) -> StreamType:
        return _settings.get().output

    @property
    def directory(self) -> str | None:
        return _settings.get().directory
