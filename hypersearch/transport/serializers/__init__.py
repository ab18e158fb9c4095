from .json_serializer import JsonSerializer as JsonSerializer
from .ndjson_serializer import NdjsonSerializer as NdjsonSerializer
from .serializer import Serializer as Serializer
from .serializer_collection import SerializerCollection as SerializerCollection
from .text_serializer import TextSerializer as TextSerializer
