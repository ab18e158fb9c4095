import re
from typing import Dict

from hypersearch.transport.errors import SerializationError

from .json_serializer import JsonSerializer
from .ndjson_serializer import NdjsonSerializer
from .serializer import Serializer
from .text_serializer import TextSerializer


# application/vnd.elasticsearch+json -> application/json
vendor_mimetype_pattern = re.compile(r"^application/vnd\.[a-z0-9.-]+\+(?P<suffix>[a-z-]+)$")


class SerializerCollection:
    def __init__(
        self,
        serializers: Dict[str, Serializer] | None = None,
        default_mimetype: str = "application/json",
    ) -> None:
        self._serializers: Dict[str, Serializer] = {
            JsonSerializer.mimetype: JsonSerializer(),
            NdjsonSerializer.mimetype: NdjsonSerializer(),
            TextSerializer.mimetype: TextSerializer(),
        }

        if serializers:
            self._serializers.update(serializers)

        if default_mimetype not in self._serializers:
            raise SerializationError(
                f"No serializer registered for default mimetype {default_mimetype!r}"
            )

        self.default_mimetype = default_mimetype

    @property
    def default(self) -> Serializer:
        return self._serializers[self.default_mimetype]

    def get(self, mimetype: str | None) -> Serializer | None:
        if mimetype is None:
            return self.default

        base_mimetype = self.normalize(mimetype)

        if serializer := self._serializers.get(base_mimetype):
            return serializer

        if base_mimetype.startswith("text/"):
            return self._serializers[TextSerializer.mimetype]

        return None

    def normalize(self, mimetype: str) -> str:
        base_mimetype = mimetype.split(";", maxsplit=1)[0].strip().lower()

        if match := vendor_mimetype_pattern.match(base_mimetype):
            suffix = match.group("suffix")
            return "application/x-ndjson" if suffix == "x-ndjson" else f"application/{suffix}"

        return base_mimetype
