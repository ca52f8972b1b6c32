"""Client settings for socket-clientkit.

Contains:
- ClientSettings: Immutable connection settings with defaults
"""

import os
from dataclasses import dataclass, replace

from common.protocol import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_HEARTBEAT_PAYLOAD,
    DEFAULT_MAX_READ_CHUNK_BYTES,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_MS,
)

ENV_PREFIX = "SOCKET_CLIENT_"
_TRUE_VALUES = ("1", "true", "yes", "on")


def _env(name: str, default: str = "") -> str:
    """Get a prefixed environment variable with default."""
    return os.environ.get(ENV_PREFIX + name, default)


@dataclass(frozen=True)
class ClientSettings:
    """Settings for one client instance.

    Only host and port are required and validated; every other value is taken
    as given.

    Attributes:
        host: Server host name or IP address.
        port: Server TCP port.
        timeout_ms: Connect timeout, socket read timeout, send wait bound and
            retry interval, in milliseconds.
        retry_count: Reconnection attempts after a failure (0 disables retry).
        heartbeat_interval_ms: Period of the liveness write, in milliseconds.
        heartbeat_payload: Bytes written on each heartbeat (empty means a
            single zero byte).
        max_read_chunk_bytes: Maximum bytes read from the socket at once.
        reset_gate_on_disconnect: Close the pending-connection gate again on
            every teardown so sends wait for the next connection.
    """

    host: str
    port: int
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_count: int = DEFAULT_RETRY_COUNT
    heartbeat_interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS
    heartbeat_payload: bytes = DEFAULT_HEARTBEAT_PAYLOAD
    max_read_chunk_bytes: int = DEFAULT_MAX_READ_CHUNK_BYTES
    reset_gate_on_disconnect: bool = False

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.host:
            raise ValueError("host is required")
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be in 1..65535, got {self.port}")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    @property
    def heartbeat_interval_s(self) -> float:
        return self.heartbeat_interval_ms / 1000

    @property
    def heartbeat_bytes(self) -> bytes:
        """Payload actually written by the heartbeat task."""
        return self.heartbeat_payload or DEFAULT_HEARTBEAT_PAYLOAD

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def with_heartbeat_text(self, text: str) -> "ClientSettings":
        """Return a copy whose heartbeat payload is the UTF-8 encoding of text."""
        return replace(self, heartbeat_payload=text.encode("utf-8"))

    @classmethod
    def from_env(cls, host: str | None = None, port: int | None = None) -> "ClientSettings":
        """Build settings from SOCKET_CLIENT_* environment variables.

        Explicit host/port arguments take precedence over the environment.
        """
        settings = cls(
            host=host or _env("HOST"),
            port=port if port is not None else int(_env("PORT", "0")),
            timeout_ms=int(_env("TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS))),
            retry_count=int(_env("RETRY_COUNT", str(DEFAULT_RETRY_COUNT))),
            heartbeat_interval_ms=int(
                _env("HEARTBEAT_MS", str(DEFAULT_HEARTBEAT_INTERVAL_MS))
            ),
            max_read_chunk_bytes=int(
                _env("MAX_READ", str(DEFAULT_MAX_READ_CHUNK_BYTES))
            ),
            reset_gate_on_disconnect=_env("RESET_GATE").lower() in _TRUE_VALUES,
        )
        heartbeat_text = _env("HEARTBEAT_PAYLOAD")
        if heartbeat_text:
            settings = settings.with_heartbeat_text(heartbeat_text)
        return settings
