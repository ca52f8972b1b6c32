"""Fault classification for socket-clientkit.

Contains:
- SocketClientError and subclasses raised inside the library
- FaultCategory: Stable categories of classified faults
- FaultInfo: Classified fault handed to the listener
- classify_fault: Map an exception and phase to a FaultInfo

Classification goes by condition kind (address resolution, errno, error
family) rather than exact exception class, so wrapped or platform-specific
exceptions land in the same category.
"""

import errno
import socket
from dataclasses import dataclass
from enum import Enum

from common.protocol import Phase


class SocketClientError(Exception):
    """Base class for errors raised by socket-clientkit."""

    pass


class NotConnectedError(SocketClientError):
    """Raised when a send finds no open connection."""

    pass


class StreamEndedError(SocketClientError):
    """Raised when the peer closed the stream unexpectedly."""

    pass


class RetryExhaustedError(SocketClientError):
    """Raised when the reconnection budget is used up.

    Attributes:
        attempts: Number of retry attempts made
    """

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Retry count exceeded after {attempts} attempts")


class FaultCategory(Enum):
    """Category of a classified fault, with its human-readable message."""

    UNKNOWN_HOST = "Could not resolve the specified host name."
    CONNECTION_REFUSED = "Could not connect to the specified server."
    TIMEOUT = "The connection timed out."
    NO_ROUTE = "No route to the server was found."
    PORT_IN_USE = "The specified port is already in use."
    SOCKET_CLOSED = "The socket is already closed or disconnected."
    STREAM_ENDED = "The server closed the connection."
    MALFORMED_DATA = "Received malformed character data."
    IO_ERROR = "An I/O error occurred."
    NOT_CONNECTED = "Not connected to the server."
    RETRY_EXHAUSTED = "Reconnection attempts exhausted."
    UNKNOWN = "An unknown error occurred."

    @property
    def description(self) -> str:
        return self.value


@dataclass(frozen=True)
class FaultInfo:
    """A classified fault, built per occurrence and handed to the listener."""

    category: FaultCategory
    message: str
    host: str | None
    port: int | None
    phase: Phase
    summary: str
    exception: BaseException | None = None


_ERRNO_CATEGORIES: dict[int, FaultCategory] = {
    errno.ECONNREFUSED: FaultCategory.CONNECTION_REFUSED,
    errno.ETIMEDOUT: FaultCategory.TIMEOUT,
    errno.EHOSTUNREACH: FaultCategory.NO_ROUTE,
    errno.ENETUNREACH: FaultCategory.NO_ROUTE,
    errno.EADDRINUSE: FaultCategory.PORT_IN_USE,
    errno.EADDRNOTAVAIL: FaultCategory.NO_ROUTE,
    errno.EPIPE: FaultCategory.SOCKET_CLOSED,
    errno.ECONNRESET: FaultCategory.SOCKET_CLOSED,
    errno.ECONNABORTED: FaultCategory.SOCKET_CLOSED,
    errno.ENOTCONN: FaultCategory.SOCKET_CLOSED,
    errno.EBADF: FaultCategory.SOCKET_CLOSED,
    errno.ESHUTDOWN: FaultCategory.SOCKET_CLOSED,
}

# Checked in order; the first matching family wins
_FAMILY_CATEGORIES: tuple[tuple[type[BaseException], FaultCategory], ...] = (
    (NotConnectedError, FaultCategory.NOT_CONNECTED),
    (RetryExhaustedError, FaultCategory.RETRY_EXHAUSTED),
    (StreamEndedError, FaultCategory.STREAM_ENDED),
    (EOFError, FaultCategory.STREAM_ENDED),
    (TimeoutError, FaultCategory.TIMEOUT),
    (ConnectionRefusedError, FaultCategory.CONNECTION_REFUSED),
    (BrokenPipeError, FaultCategory.SOCKET_CLOSED),
    (ConnectionError, FaultCategory.SOCKET_CLOSED),
    (UnicodeError, FaultCategory.MALFORMED_DATA),
)


def _condition_of(exc: BaseException) -> FaultCategory | None:
    """Return the category for exc itself, or None if it is unmapped."""
    # Resolver errors carry EAI_* codes, which overlap errno values
    if isinstance(exc, (socket.gaierror, socket.herror)):
        return FaultCategory.UNKNOWN_HOST

    if isinstance(exc, OSError) and exc.errno in _ERRNO_CATEGORIES:
        return _ERRNO_CATEGORIES[exc.errno]

    for family, category in _FAMILY_CATEGORIES:
        if isinstance(exc, family):
            return category

    if isinstance(exc, OSError):
        return FaultCategory.IO_ERROR
    return None


def categorize(exc: BaseException) -> FaultCategory:
    """Categorize exc, consulting its chained causes when exc is unmapped."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        category = _condition_of(current)
        if category is not None:
            return category
        current = current.__cause__ or current.__context__
    return FaultCategory.UNKNOWN


def _message_of(exc: BaseException) -> str:
    try:
        text = str(exc)
    except Exception:
        text = ""
    return text or type(exc).__name__


def classify_fault(
    exc: BaseException,
    phase: Phase,
    host: str | None = None,
    port: int | None = None,
) -> FaultInfo:
    """Classify exc raised during phase. Never raises."""
    category = categorize(exc)
    return FaultInfo(
        category=category,
        message=_message_of(exc),
        host=host,
        port=port,
        phase=phase,
        summary=f"{phase.name}: {category.description}",
        exception=exc,
    )
