"""
Transport exceptions for hypersearch.

Every fault raised by the transport derives from TransportError so callers
can catch the whole family at once. Faults surfaced after the retry loop
record how many attempts were made and the per-attempt errors seen.
"""

from typing import Any


class TransportError(Exception):
    """Base class for every error raised by the transport."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        errors: tuple[Exception, ...] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.attempts = attempts
        self.errors = errors

    def __str__(self) -> str:
        if self.attempts > 0:
            return f"{self.message} (attempts={self.attempts})"

        return self.message


class ConfigurationError(TransportError):
    """Invalid request descriptor or transport configuration. Never retried."""


class SerializationError(TransportError):
    """A body could not be encoded or decoded. Never retried."""


class ConnectionError(TransportError):
    """Network-level failure: refused, reset, DNS, TLS or a broken response."""


class ConnectionTimeoutError(ConnectionError):
    """A single attempt exceeded its timeout."""


class RequestTimeoutError(TransportError):
    """The request ran out of attempts or overall deadline because of timeouts."""


class NoLivingConnectionsError(TransportError):
    """The pool has no connection to offer."""


class RequestAbortedError(TransportError):
    """The caller aborted the request."""


class DuplicateConnectionError(TransportError):
    """A connection with the same identity is already in the pool."""


class SniffError(TransportError):
    """Node discovery failed. The pool is left unchanged."""


class ResponseError(TransportError):
    """
    A valid HTTP response carrying an error status.

    Only raised when the caller opts in through
    ResponseEnvelope.raise_for_status().
    """

    def __init__(
        self,
        message: str,
        status: int,
        body: Any = None,
        node: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.node = node

    def __str__(self) -> str:
        return f"{self.status} {self.message}"
