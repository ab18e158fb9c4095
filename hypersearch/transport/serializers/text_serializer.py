from typing import Any

from hypersearch.transport.errors import SerializationError

from .serializer import Serializer


class TextSerializer(Serializer):
    mimetype: str = "text/plain"

    def serialize(self, data: Any) -> bytes:
        if isinstance(data, bytes):
            return data

        if isinstance(data, str):
            return data.encode()

        raise SerializationError(
            f"Text bodies must be str or bytes, got {type(data).__name__}"
        )

    def deserialize(self, data: bytes) -> str:
        try:
            return data.decode()

        except UnicodeDecodeError as err:
            raise SerializationError(
                f"Unable to decode text body: {err}"
            ) from err
