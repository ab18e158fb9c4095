from typing import Any, Iterable, Iterator

import orjson

from hypersearch.transport.errors import SerializationError

from .json_serializer import JsonSerializer


class NdjsonSerializer(JsonSerializer):
    """
    Newline-delimited JSON for bulk payloads.

    Items are written one per line in the order given, so a bulk body of
    action/metadata lines followed by their document lines reaches the
    cluster exactly as it was built. Items that are already str or bytes
    are written as is.
    """

    mimetype: str = "application/x-ndjson"

    def serialize(self, data: Iterable[Any]) -> bytes:
        return b"".join(self.serialize_stream(data))

    def serialize_stream(self, data: Iterable[Any]) -> Iterator[bytes]:
        if isinstance(data, (str, bytes)):
            payload = data.encode() if isinstance(data, str) else data
            yield payload if payload.endswith(b"\n") else payload + b"\n"
            return

        if isinstance(data, dict):
            data = [data]

        elif not isinstance(data, Iterable):
            raise SerializationError(
                f"Bulk bodies must be iterable, got {type(data).__name__}"
            )

        for item in data:
            if isinstance(item, bytes):
                line = item

            elif isinstance(item, str):
                line = item.encode()

            else:
                line = super().serialize(item)

            if b"\n" in line.rstrip(b"\r\n"):
                raise SerializationError(
                    "Bulk items must encode to a single line"
                )

            if not line.endswith(b"\n"):
                line += b"\n"

            yield line

    def deserialize(self, data: bytes) -> list[Any]:
        items: list[Any] = []

        for line in data.splitlines():
            if not line.strip():
                continue

            try:
                items.append(orjson.loads(line))

            except orjson.JSONDecodeError as err:
                raise SerializationError(
                    f"Unable to deserialize NDJSON line: {err}"
                ) from err

        return items
