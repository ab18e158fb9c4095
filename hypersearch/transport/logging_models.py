"""
Logging models for the transport.

Each model carries the node the message is about. Request models also
carry the method, path and attempt number so a retry sequence can be
followed line by line. Pool models carry the alive/dead split after the
change they report, sniffer models the node count.
"""

from hypersearch.logging.models import Entry, LogLevel


class RequestEntry(Entry, kw_only=True):
    node: str
    method: str
    path: str
    attempt: int


class TransportDebug(RequestEntry, kw_only=True):
    level: LogLevel = LogLevel.DEBUG


class TransportWarning(RequestEntry, kw_only=True):
    level: LogLevel = LogLevel.WARN


class TransportError(RequestEntry, kw_only=True):
    level: LogLevel = LogLevel.ERROR


class PoolEntry(Entry, kw_only=True):
    node: str
    alive_count: int
    dead_count: int


class ConnectionPoolInfo(PoolEntry, kw_only=True):
    level: LogLevel = LogLevel.INFO


class ConnectionPoolWarning(PoolEntry, kw_only=True):
    level: LogLevel = LogLevel.WARN


class SniffEntry(Entry, kw_only=True):
    node: str
    node_count: int


class SnifferDebug(SniffEntry, kw_only=True):
    level: LogLevel = LogLevel.DEBUG


class SnifferInfo(SniffEntry, kw_only=True):
    level: LogLevel = LogLevel.INFO


class SnifferWarning(SniffEntry, kw_only=True):
    level: LogLevel = LogLevel.WARN


class SnifferError(SniffEntry, kw_only=True):
    level: LogLevel = LogLevel.ERROR
