"""Socket ownership for socket-clientkit.

Contains:
- SocketLink: One connected TCP socket exposing only is_open/read/write/close
- open_link: Default link factory used by the engine
"""

import logging
import socket
import threading
import time

logger = logging.getLogger(__name__)


class SocketLink:
    """A connected TCP socket.

    Writes are serialized so heartbeat and send bytes never interleave.
    close() is idempotent and swallows errors; it shuts the socket down first
    so a reader blocked in read() wakes up with end of stream.
    """

    def __init__(self, sock: socket.socket, address: str) -> None:
        self._sock = sock
        self._address = address
        self._write_lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, host: str, port: int, timeout_s: float) -> "SocketLink":
        """Connect to host:port within timeout_s and use it as read timeout."""
        start = time.monotonic()
        sock = socket.create_connection((host, port), timeout=timeout_s)
        sock.settimeout(timeout_s)
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(f"Socket connected to {host}:{port} in {elapsed_ms:.1f}ms")
        return cls(sock, f"{host}:{port}")

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def address(self) -> str:
        return self._address

    def read(self, size: int, /) -> bytes:
        """Read up to size bytes.

        Returns b"" at end of stream. Raises TimeoutError when nothing arrived
        within the read timeout.
        """
        return self._sock.recv(size)

    def write(self, data: bytes, /) -> None:
        """Write the whole buffer."""
        with self._write_lock:
            self._sock.sendall(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self._sock.close()
        except OSError:
            pass
        logger.debug(f"Closed socket to {self._address}")


def open_link(host: str, port: int, timeout_s: float) -> SocketLink:
    return SocketLink.open(host, port, timeout_s)
