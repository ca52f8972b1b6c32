"""pytest configuration and fixtures for socket-clientkit tests.

Provides:
- FakeLink: Scripted in-memory stand-in for a connected socket
- ScriptedConnector: Link factory returning scripted links or failures
- RecordingListener: Listener that records events and can wait for them
- EchoPeer fixture for integration tests
- Markers for unit vs integration tests
"""

import errno
import threading
import time
from collections import deque
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from client.engine import SocketClient
from common.errors import FaultCategory, FaultInfo
from common.listener import ClientEventListener
from common.settings import ClientSettings
from server.peer import EchoPeer

WAIT_S = 3.0


class FakeLink:
    """In-memory link for unit testing.

    Reads come from a queue filled with feed(); an empty queue raises
    TimeoutError after read_timeout_s, like a socket with a read timeout.
    Queued exceptions are raised from read(). close() queues end of stream so
    a blocked reader wakes up.
    """

    def __init__(self, read_timeout_s: float = 0.02) -> None:
        self._read_timeout_s = read_timeout_s
        self._incoming: deque[bytes | Exception] = deque()
        self._cond = threading.Condition()
        self._open = True
        self.writes: list[bytes] = []
        self.close_count = 0
        self.fail_writes: Exception | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    def feed(self, item: bytes | Exception) -> None:
        with self._cond:
            self._incoming.append(item)
            self._cond.notify_all()

    def feed_eof(self) -> None:
        self.feed(b"")

    def read(self, size: int, /) -> bytes:
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._incoming) > 0, self._read_timeout_s):
                raise TimeoutError("timed out")
            item = self._incoming[0]
            if isinstance(item, Exception):
                self._incoming.popleft()
                raise item
            chunk, rest = item[:size], item[size:]
            if rest:
                self._incoming[0] = rest
            else:
                self._incoming.popleft()
            return chunk

    def write(self, data: bytes, /) -> None:
        with self._cond:
            if not self._open:
                raise OSError(errno.EBADF, "Bad file descriptor")
            if self.fail_writes is not None:
                raise self.fail_writes
            self.writes.append(bytes(data))
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self.close_count += 1
            if self._open:
                self._open = False
                self._incoming.append(b"")
                self._cond.notify_all()

    @property
    def written(self) -> bytes:
        with self._cond:
            return b"".join(self.writes)

    def wait_for_writes(self, count: int, timeout: float = WAIT_S) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.writes) >= count, timeout)


class ScriptedConnector:
    """Link factory that plays back scripted outcomes.

    Each call takes the next outcome: a link is returned, an exception is
    raised. Once the script is empty every call is refused.
    """

    def __init__(self, *outcomes: FakeLink | Exception) -> None:
        self._outcomes: deque[FakeLink | Exception] = deque(outcomes)
        self._cond = threading.Condition()
        self.attempts = 0
        self.calls: list[tuple[str, int, float]] = []

    def push(self, *outcomes: FakeLink | Exception) -> None:
        with self._cond:
            self._outcomes.extend(outcomes)

    def __call__(self, host: str, port: int, timeout_s: float) -> FakeLink:
        with self._cond:
            self.attempts += 1
            self.calls.append((host, port, timeout_s))
            self._cond.notify_all()
            if self._outcomes:
                outcome = self._outcomes.popleft()
            else:
                outcome = ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingListener(ClientEventListener):
    """Listener that records every callback in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []
        self._cond = threading.Condition()

    def _record(self, kind: str, value: object = None) -> None:
        with self._cond:
            self.events.append((kind, value))
            self._cond.notify_all()

    def on_data_received(self, data: bytes) -> None:
        self._record("data", data)

    def on_error_received(self, fault: FaultInfo) -> None:
        self._record("error", fault)

    def on_disconnected(self) -> None:
        self._record("disconnected")

    def on_connected(self) -> None:
        self._record("connected")

    def on_retry_started(self) -> None:
        self._record("retry")

    def kinds(self) -> list[str]:
        with self._cond:
            return [kind for kind, _ in self.events]

    def count(self, kind: str) -> int:
        return self.kinds().count(kind)

    @property
    def faults(self) -> list[FaultInfo]:
        with self._cond:
            return [value for kind, value in self.events if kind == "error"]  # type: ignore[misc]

    @property
    def data(self) -> bytes:
        with self._cond:
            return b"".join(value for kind, value in self.events if kind == "data")  # type: ignore[misc]

    def wait_for(self, predicate: Callable[[], bool], timeout: float = WAIT_S) -> bool:
        with self._cond:
            return self._cond.wait_for(predicate, timeout)

    def wait_count(self, kind: str, count: int = 1, timeout: float = WAIT_S) -> bool:
        return self.wait_for(
            lambda: sum(1 for k, _ in self.events if k == kind) >= count, timeout
        )

    def wait_fault(self, category: FaultCategory, timeout: float = WAIT_S) -> FaultInfo | None:
        def found() -> bool:
            return any(k == "error" and v.category == category for k, v in self.events)  # type: ignore[union-attr]

        if not self.wait_for(found, timeout):
            return None
        return next(f for f in self.faults if f.category == category)


def settle(seconds: float = 0.2) -> None:
    """Give background tasks time to do anything they should not do."""
    time.sleep(seconds)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (uses localhost sockets)")


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def make_settings() -> Callable[..., ClientSettings]:
    """Build settings with short timings suitable for tests."""

    def _make(**overrides: object) -> ClientSettings:
        values: dict[str, object] = {
            "host": "127.0.0.1",
            "port": 9000,
            "timeout_ms": 100,
            "retry_count": 2,
            "heartbeat_interval_ms": 10_000,
        }
        values.update(overrides)
        return ClientSettings(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def make_client(
    recorder: RecordingListener, make_settings: Callable[..., ClientSettings]
) -> Generator[Callable[..., SocketClient], None, None]:
    """Build clients wired to the recorder; all are disconnected at teardown."""
    clients: list[SocketClient] = []

    def _make(
        connector: Callable[[str, int, float], FakeLink],
        listener: ClientEventListener | None = None,
        **overrides: object,
    ) -> SocketClient:
        client = SocketClient(
            recorder if listener is None else listener,
            make_settings(**overrides),
            link_factory=connector,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.disconnect()


@pytest.fixture
def echo_peer() -> Generator[EchoPeer, None, None]:
    """A started EchoPeer on an ephemeral localhost port."""
    peer = EchoPeer().start()
    try:
        yield peer
    finally:
        peer.stop()


@pytest.fixture
def script_dir() -> Path:
    """Return path to the main script directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def run_socket_path(script_dir: Path) -> Path:
    """Return path to run_socket.py."""
    return script_dir / "run_socket.py"
