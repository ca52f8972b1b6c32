"""Common modules for socket-clientkit.

This package contains code shared by the client engine and its collaborators:
- protocol: Phase and ConnectionState enums, LinkIO Protocol, defaults
- settings: ClientSettings immutable configuration
- errors: Library exceptions and fault classification
- listener: Listener contract and Notifier
"""

from common.errors import (
    FaultCategory,
    FaultInfo,
    NotConnectedError,
    RetryExhaustedError,
    SocketClientError,
    StreamEndedError,
    classify_fault,
)
from common.listener import CallbackListener, ClientEventListener, Notifier
from common.protocol import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_HEARTBEAT_PAYLOAD,
    DEFAULT_MAX_READ_CHUNK_BYTES,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_MS,
    TRACE,
    ConnectionState,
    LinkIO,
    Phase,
)
from common.settings import ClientSettings

__all__ = [
    # Protocol
    "Phase",
    "ConnectionState",
    "LinkIO",
    "TRACE",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_RETRY_COUNT",
    "DEFAULT_HEARTBEAT_INTERVAL_MS",
    "DEFAULT_HEARTBEAT_PAYLOAD",
    "DEFAULT_MAX_READ_CHUNK_BYTES",
    # Settings
    "ClientSettings",
    # Errors
    "FaultCategory",
    "FaultInfo",
    "classify_fault",
    "SocketClientError",
    "NotConnectedError",
    "RetryExhaustedError",
    "StreamEndedError",
    # Listener
    "ClientEventListener",
    "CallbackListener",
    "Notifier",
]
