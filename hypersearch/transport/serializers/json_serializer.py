from typing import Any

import orjson
from pydantic import BaseModel

from hypersearch.transport.errors import SerializationError

from .serializer import Serializer


def encode_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()

    if isinstance(value, (set, frozenset)):
        return list(value)

    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class JsonSerializer(Serializer):
    mimetype: str = "application/json"

    def serialize(self, data: Any) -> bytes:
        try:
            return orjson.dumps(
                data,
                default=encode_default,
                option=orjson.OPT_SERIALIZE_NUMPY | orjson.OPT_NON_STR_KEYS,
            )

        except (orjson.JSONEncodeError, TypeError) as err:
            raise SerializationError(
                f"Unable to serialize to JSON: {err}"
            ) from err

    def deserialize(self, data: bytes) -> Any:
        if not data:
            return None

        try:
            return orjson.loads(data)

        except orjson.JSONDecodeError as err:
            raise SerializationError(
                f"Unable to deserialize as JSON: {err}"
            ) from err
