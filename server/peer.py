"""Loopback TCP peer for socket-clientkit.

EchoPeer is a small threaded server used by the integration tests and the
`serve` command. It accepts one client at a time, records what it receives
and can echo it back, push bytes, drop the client or go away entirely and
come back on the same port.
"""

import logging
import socket
import threading
import time

from common.protocol import TRACE

logger = logging.getLogger(__name__)

# Poll interval for accept/recv so stop() is noticed quickly
POLL_S = 0.1
RECV_SIZE = 4096


class EchoPeer:
    """Threaded single-client TCP server.

    Args:
        host: Interface to bind.
        port: Port to bind; 0 picks a free port, which is kept across
            stop()/start() so a client can reconnect to it.
        echo: Write every received chunk back to the client.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0, echo: bool = True) -> None:
        self.host = host
        self.echo = echo
        self._port = port
        self._listener: socket.socket | None = None
        self._client: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._running = False
        self._received = bytearray()
        self._accept_count = 0
        self._cond = threading.Condition()

    @property
    def port(self) -> int:
        return self._port

    @property
    def running(self) -> bool:
        return self._running

    @property
    def accept_count(self) -> int:
        with self._cond:
            return self._accept_count

    @property
    def received(self) -> bytes:
        with self._cond:
            return bytes(self._received)

    @property
    def has_client(self) -> bool:
        with self._cond:
            return self._client is not None

    def start(self) -> "EchoPeer":
        if self._running:
            return self
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((self.host, self._port))
        listener.listen(1)
        listener.settimeout(POLL_S)
        self._port = listener.getsockname()[1]
        self._listener = listener
        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, name="echo-peer", daemon=True)
        self._thread.start()
        logger.info(f"Echo peer listening on {self.host}:{self._port}")
        return self

    def stop(self) -> None:
        """Drop the client and stop listening. The port is kept for start()."""
        if not self._running:
            return
        self._running = False
        self.drop_client()
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        logger.info(f"Echo peer on port {self._port} stopped")

    def drop_client(self) -> None:
        """Close the current client connection; the client sees end of stream."""
        with self._cond:
            client, self._client = self._client, None
        if client is None:
            return
        try:
            client.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        client.close()
        logger.info("Echo peer dropped client")

    def send(self, data: bytes) -> None:
        """Push data to the connected client."""
        with self._cond:
            client = self._client
        if client is None:
            raise ConnectionError("No client connected")
        client.sendall(data)

    def clear(self) -> None:
        with self._cond:
            self._received.clear()

    def wait_for_client(self, count: int = 1, timeout: float = 5.0) -> bool:
        """Wait until at least count connections have been accepted."""
        with self._cond:
            return self._cond.wait_for(lambda: self._accept_count >= count, timeout)

    def wait_for_bytes(self, data: bytes, timeout: float = 5.0) -> bool:
        """Wait until data appears in the received bytes."""
        with self._cond:
            return self._cond.wait_for(lambda: data in self._received, timeout)

    def __enter__(self) -> "EchoPeer":
        return self.start()

    def __exit__(self, *_exc: object) -> None:
        self.stop()

    def _accept_loop(self) -> None:
        listener = self._listener
        assert listener is not None
        while self._running:
            try:
                client, addr = listener.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            client.settimeout(POLL_S)
            with self._cond:
                self._client = client
                self._accept_count += 1
                self._cond.notify_all()
            logger.info(f"Echo peer accepted {addr[0]}:{addr[1]}")
            self._serve(client)

    def _serve(self, client: socket.socket) -> None:
        start = time.monotonic()
        total = 0
        while self._running:
            try:
                data = client.recv(RECV_SIZE)
            except TimeoutError:
                continue
            except OSError:
                break
            if not data:
                logger.info("Client closed the connection")
                break
            total += len(data)
            logger.log(TRACE, f"Echo peer received {len(data)} bytes")
            with self._cond:
                self._received.extend(data)
                self._cond.notify_all()
            if self.echo:
                try:
                    client.sendall(data)
                except OSError:
                    break

        with self._cond:
            if self._client is client:
                self._client = None
        client.close()
        elapsed = time.monotonic() - start
        logger.debug(f"Echo peer session ended ({total} bytes in {elapsed:.1f}s)")
