"""Connection engine for socket-clientkit.

SocketClient owns the single live link and drives the connection state
machine:

    IDLE -> CONNECTING -> CONNECTED <-> RETRYING
                |             |            |
                +-------> DISCONNECTED <---+

All public operations return immediately; the work runs on library threads
and every fault is delivered to the listener instead of being raised.
Opening, closing and reassigning the link happens under one lock. Listener
callbacks run outside it.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from client.heartbeat import Heartbeat
from client.link import open_link
from client.receiver import Receiver
from client.scheduler import PeriodicTask, new_worker_pool
from common.errors import NotConnectedError, RetryExhaustedError
from common.listener import ClientEventListener, Notifier
from common.protocol import TRACE, ConnectionState, LinkIO, Phase
from common.settings import ClientSettings

logger = logging.getLogger(__name__)

LinkFactory = Callable[[str, int, float], LinkIO]

_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.IDLE: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.RETRYING, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.CONNECTED: frozenset(
        {ConnectionState.RETRYING, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.RETRYING: frozenset(
        {ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
}


def _completed(result: bool) -> "Future[bool]":
    future: Future[bool] = Future()
    future.set_result(result)
    return future


class SocketClient:
    """Reconnecting TCP client that moves raw byte buffers.

    Args:
        listener: Receives data, lifecycle and error callbacks.
        settings: Connection settings.
        link_factory: Opens a link as (host, port, timeout_s); defaults to a
            TCP socket.
    """

    def __init__(
        self,
        listener: ClientEventListener | None,
        settings: ClientSettings,
        link_factory: LinkFactory = open_link,
    ) -> None:
        self._settings = settings
        self._link_factory = link_factory
        self._notifier = Notifier(listener, settings.host, settings.port)
        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._link: LinkIO | None = None
        self._generation = 0
        self._retry_attempts = 0
        self._retry_task: PeriodicTask | None = None
        self._pool: ThreadPoolExecutor | None = None
        # Connect attempts never queue behind sends waiting on the gate
        self._connect_pool: ThreadPoolExecutor | None = None
        # Orders retry-started against disconnected notifications
        self._lifecycle_lock = threading.RLock()
        # Blocks senders until a connection exists
        self._gate = threading.Event()
        self._heartbeat = Heartbeat(
            settings.heartbeat_interval_s,
            settings.heartbeat_bytes,
            on_failure=lambda link, e: self._on_link_lost(link, f"heartbeat failed: {e}"),
        )
        self._receiver = Receiver(
            settings.max_read_chunk_bytes,
            on_data=self._notifier.data_received,
            on_error=lambda e: self._notifier.error(e, Phase.RECEIVE),
            on_stream_end=lambda link: self._on_link_lost(link, "end of stream"),
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return (
                self._state == ConnectionState.CONNECTED
                and self._link is not None
                and self._link.is_open
            )

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def connect(self) -> "Future[bool]":
        """Start a new connection cycle with a fresh retry budget.

        Ignored while already connecting or connected. Interrupts a running
        retry cycle. The returned future resolves to True once the first
        attempt connects; failures are reported to the listener.
        """
        with self._lock:
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                logger.warning(f"connect() ignored while {self._state.value}")
                return _completed(False)
            self._cancel_retry_locked()
            self._retry_attempts = 0
            self._generation += 1
            generation = self._generation
            self._set_state(ConnectionState.CONNECTING)
            if self._connect_pool is None:
                self._connect_pool = new_worker_pool("socket-connect", max_workers=1)
            return self._connect_pool.submit(self._connect_task, generation)

    def disconnect(self) -> None:
        """Close the connection and stop all tasks.

        Emits on_disconnected once if a cycle was active; repeated calls are
        no-ops.
        """
        error: Exception | None = None
        with self._lock:
            active = self._state in (
                ConnectionState.CONNECTING,
                ConnectionState.CONNECTED,
                ConnectionState.RETRYING,
            )
            self._generation += 1
            try:
                self._teardown_locked()
            except Exception as e:
                error = e
            if active:
                self._set_state(ConnectionState.DISCONNECTED)
            pools = (self._pool, self._connect_pool)
            self._pool = self._connect_pool = None

        for pool in pools:
            if pool is not None:
                pool.shutdown(wait=False)
        if error is not None:
            self._notifier.error(error, Phase.DISCONNECT)
        if active:
            logger.info(f"Disconnected from {self._settings.address}")
            with self._lifecycle_lock:
                self._notifier.disconnected()

    def send_message(self, data: bytes) -> "Future[bool]":
        """Queue data for sending.

        Waits up to timeout_ms for a connection. The returned future resolves
        to True if the whole buffer was written; failures are reported to the
        listener.
        """
        payload = bytes(data)
        with self._lock:
            return self._ensure_pool_locked().submit(self._send, payload)

    def __enter__(self) -> "SocketClient":
        self.connect()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.disconnect()

    # -------------------------------------------------------------------------
    # Connection establishment
    # -------------------------------------------------------------------------

    def _establish(self) -> LinkIO:
        s = self._settings
        return self._link_factory(s.host, s.port, s.timeout_s)

    def _connect_task(self, generation: int) -> bool:
        logger.info(f"Connecting to {self._settings.address}")
        try:
            link = self._establish()
        except Exception as e:
            return self._connect_failed(generation, e)
        return self._install(link, generation)

    def _connect_failed(self, generation: int, error: Exception) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            retrying = self._settings.retry_count > 0
            if retrying:
                logger.warning(f"Connection to {self._settings.address} failed: {error}")
                self._teardown_locked()
                self._start_retry_locked()
            else:
                self._set_state(ConnectionState.DISCONNECTED)

        if not retrying:
            logger.error(f"Connection to {self._settings.address} failed: {error}")
            self._notifier.error(error, Phase.CONNECT)
        return False

    def _install(self, link: LinkIO, generation: int) -> bool:
        """Make link the live connection, then start heartbeat and receive."""
        with self._lock:
            current = generation == self._generation
            if current:
                self._cancel_retry_locked()
                self._link = link
                self._set_state(ConnectionState.CONNECTED)
                self._gate.set()

        if not current:
            logger.debug("Discarding connection from a superseded cycle")
            link.close()
            return False

        logger.info(f"Connected to {self._settings.address}")
        self._notifier.connected()

        with self._lock:
            if self._link is link:
                self._heartbeat.start(link)
                self._receiver.start(link)
        return True

    # -------------------------------------------------------------------------
    # Retry cycle
    # -------------------------------------------------------------------------

    def _start_retry_locked(self) -> None:
        if self._retry_task is not None and self._retry_task.active:
            return
        self._set_state(ConnectionState.RETRYING)
        generation = self._generation
        task = PeriodicTask(
            "socket-retry",
            lambda: self._retry_once(generation, task),
            self._settings.timeout_s,
        )
        self._retry_task = task
        task.start()
        logger.info(
            f"Retry cycle started ({self._retry_attempts}/{self._settings.retry_count} used)"
        )

    def _cancel_retry_locked(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    def _retry_once(self, generation: int, task: PeriodicTask) -> None:
        limit = self._settings.retry_count
        with self._lifecycle_lock:
            with self._lock:
                if task.cancelled or generation != self._generation:
                    task.cancel()
                    return
            self._notifier.retry_started()

        with self._lock:
            if generation != self._generation:
                task.cancel()
                return
            exhausted = self._retry_attempts >= limit
            if not exhausted:
                self._retry_attempts += 1
            attempt = self._retry_attempts

        if exhausted:
            self._give_up(generation, task, attempt, None)
            return

        logger.info(f"Retry {attempt}/{limit}: connecting to {self._settings.address}")
        try:
            link = self._establish()
        except Exception as e:
            logger.warning(f"Retry {attempt}/{limit} failed: {e}")
            if attempt >= limit:
                self._give_up(generation, task, attempt, e)
            return

        task.cancel()
        self._install(link, generation)

    def _give_up(
        self,
        generation: int,
        task: PeriodicTask,
        attempts: int,
        cause: Exception | None,
    ) -> None:
        task.cancel()
        with self._lock:
            if generation != self._generation:
                return
            self._teardown_locked()
            self._set_state(ConnectionState.DISCONNECTED)

        logger.error(f"Giving up on {self._settings.address} after {attempts} retries")
        error = RetryExhaustedError(attempts)
        error.__cause__ = cause
        self._notifier.error(error, Phase.RETRY)

    # -------------------------------------------------------------------------
    # Loss and teardown
    # -------------------------------------------------------------------------

    def _on_link_lost(self, link: LinkIO, reason: str) -> None:
        """Silent teardown and retry, unless link is no longer the live one."""
        with self._lock:
            if self._link is not link:
                logger.log(TRACE, f"Ignoring loss of superseded link ({reason})")
                return
            logger.warning(f"Connection to {self._settings.address} lost: {reason}")
            self._teardown_locked()
            self._start_retry_locked()

    def _teardown_locked(self) -> None:
        """Stop tasks, cancel schedules and close the link. Idempotent."""
        self._receiver.stop()
        self._heartbeat.stop()
        self._cancel_retry_locked()
        if self._settings.reset_gate_on_disconnect:
            self._gate.clear()
        link, self._link = self._link, None
        if link is not None:
            link.close()
            logger.debug(f"Tore down connection to {self._settings.address}")

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def _send(self, payload: bytes) -> bool:
        if not self._gate.wait(self._settings.timeout_s):
            self._notifier.error(
                NotConnectedError(
                    f"No connection within {self._settings.timeout_ms}ms"
                ),
                Phase.SEND,
            )
            return False

        with self._lock:
            link = self._link
        if link is None or not link.is_open:
            self._notifier.error(NotConnectedError("Socket not connected"), Phase.SEND)
            return False

        try:
            link.write(payload)
        except Exception as e:
            logger.warning(f"Send failed: {e}")
            self._notifier.error(e, Phase.SEND)
            return False
        logger.log(TRACE, f"Sent {len(payload)} bytes")
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _ensure_pool_locked(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = new_worker_pool("socket-worker")
        return self._pool

    def _set_state(self, state: ConnectionState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Invalid state transition {self._state.value} -> {state.value}"
            )
        logger.debug(f"State {self._state.value} -> {state.value}")
        self._state = state
