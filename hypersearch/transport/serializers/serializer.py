from typing import Any


class Serializer:
    """Encodes request bodies and decodes response bodies for one mimetype."""

    mimetype: str = ""

    def serialize(self, data: Any) -> bytes:
        raise NotImplementedError("Err. - serializers must implement serialize()")

    def deserialize(self, data: bytes) -> Any:
        raise NotImplementedError("Err. - serializers must implement deserialize()")
