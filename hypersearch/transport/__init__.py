from .config import (
    SelectorName as SelectorName,
    TransportConfig as TransportConfig,
    create_transport_config_from_env as create_transport_config_from_env,
)
from .connection import Connection as Connection
from .errors import (
    ConfigurationError as ConfigurationError,
    ConnectionError as ConnectionError,
    ConnectionTimeoutError as ConnectionTimeoutError,
    DuplicateConnectionError as DuplicateConnectionError,
    NoLivingConnectionsError as NoLivingConnectionsError,
    RequestAbortedError as RequestAbortedError,
    RequestTimeoutError as RequestTimeoutError,
    ResponseError as ResponseError,
    SerializationError as SerializationError,
    SniffError as SniffError,
    TransportError as TransportError,
)
from .models import (
    NodeDescriptor as NodeDescriptor,
    PreparedRequest as PreparedRequest,
    RequestDescriptor as RequestDescriptor,
    RequestMeta as RequestMeta,
    ResponseEnvelope as ResponseEnvelope,
    SelectionOptions as SelectionOptions,
    SniffResult as SniffResult,
)
from .pool import ConnectionPool as ConnectionPool
from .reliability import JitterStrategy as JitterStrategy
from .serializers import (
    JsonSerializer as JsonSerializer,
    NdjsonSerializer as NdjsonSerializer,
    Serializer as Serializer,
    SerializerCollection as SerializerCollection,
    TextSerializer as TextSerializer,
)
from .sniffer import Sniffer as Sniffer
from .transport import Transport as Transport
