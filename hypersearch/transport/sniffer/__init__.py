from .sniffer import (
    Sniffer as Sniffer,
    default_node_filter as default_node_filter,
    parse_publish_address as parse_publish_address,
)
