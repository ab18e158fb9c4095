from .connection_health import (
    ConnectionHealth as ConnectionHealth,
    ConnectionStats as ConnectionStats,
)
from .node_descriptor import (
    DEFAULT_PORT as DEFAULT_PORT,
    NodeDescriptor as NodeDescriptor,
)
from .prepared_request import PreparedRequest as PreparedRequest
from .request_descriptor import (
    HTTP_METHODS as HTTP_METHODS,
    IDEMPOTENT_METHODS as IDEMPOTENT_METHODS,
    HTTPMethod as HTTPMethod,
    RequestDescriptor as RequestDescriptor,
)
from .request_meta import RequestMeta as RequestMeta
from .response_envelope import ResponseEnvelope as ResponseEnvelope
from .selection_options import SelectionOptions as SelectionOptions
from .sniff_result import SniffResult as SniffResult
