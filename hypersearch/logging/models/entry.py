from typing import Any

import msgspec

from .log_level import LogLevel


class Entry(msgspec.Struct, kw_only=True):
    """Base log entry. Fields added by subclasses can be named in templates."""

    message: str | None = None
    tags: set[str] = msgspec.field(default_factory=set)
    level: LogLevel

    def to_template(self, template: str, context: dict[str, Any] | None = None) -> str:
        values = {name: getattr(self, name) for name in self.__struct_fields__}
        values["level"] = self.level.value
        values.update(context or {})

        return template.format(**values)
