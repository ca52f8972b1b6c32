"""Shared definitions for socket-clientkit.

Contains:
- Phase enum tagging every fault with the activity in progress
- ConnectionState enum for the engine state machine
- LinkIO Protocol for type checking the socket owner
- Default configuration constants
- Logging configuration
"""

import logging
from enum import Enum
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Phase(Enum):
    """Activity in progress when a fault or notification occurred."""

    CONNECT = "connect"
    SEND = "send"
    RECEIVE = "receive"
    DISCONNECT = "disconnect"
    RETRY = "retry"


class ConnectionState(Enum):
    """Lifecycle state of the connection engine."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    DISCONNECTED = "disconnected"


class LinkIO(Protocol):
    """Protocol for the live connection used by heartbeat and receive tasks."""

    @property
    def is_open(self) -> bool: ...
    def read(self, size: int, /) -> bytes: ...
    def write(self, data: bytes, /) -> None: ...
    def close(self) -> None: ...


# Default configuration values
DEFAULT_TIMEOUT_MS = 3000
DEFAULT_RETRY_COUNT = 1
DEFAULT_HEARTBEAT_INTERVAL_MS = 3000
DEFAULT_HEARTBEAT_PAYLOAD = b"\x00"
DEFAULT_MAX_READ_CHUNK_BYTES = 1024

# Worker pool bound for one-shot tasks (connect attempts, sends)
MAX_POOL_WORKERS = 3
