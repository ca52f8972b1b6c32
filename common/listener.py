"""Listener contract and notification delivery for socket-clientkit.

Contains:
- ClientEventListener: ABC implemented by the calling application
- CallbackListener: Listener built from optional callables
- Notifier: Delivers callbacks, isolating the engine from listener failures
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from common.errors import FaultInfo, classify_fault
from common.protocol import TRACE, Phase

logger = logging.getLogger(__name__)


class ClientEventListener(ABC):
    """Callbacks invoked by the client from library threads.

    on_data_received, on_error_received and on_disconnected are required;
    on_connected and on_retry_started default to no-ops.
    """

    @abstractmethod
    def on_data_received(self, data: bytes) -> None:
        """Called with each chunk of bytes read from the server."""
        pass

    @abstractmethod
    def on_error_received(self, fault: FaultInfo) -> None:
        """Called with every classified fault."""
        pass

    @abstractmethod
    def on_disconnected(self) -> None:
        """Called once when disconnect() ends an active connection cycle."""
        pass

    def on_connected(self) -> None:
        """Called whenever a connection (or reconnection) is established."""
        pass

    def on_retry_started(self) -> None:
        """Called at the start of every reconnection attempt."""
        pass


def _ignore(*_args: object) -> None:
    pass


@dataclass
class CallbackListener(ClientEventListener):
    """Listener assembled from optional callables; missing ones are no-ops."""

    data_received: Callable[[bytes], None] = _ignore
    error_received: Callable[[FaultInfo], None] = _ignore
    disconnected: Callable[[], None] = _ignore
    connected: Callable[[], None] = _ignore
    retry_started: Callable[[], None] = _ignore

    def on_data_received(self, data: bytes) -> None:
        self.data_received(data)

    def on_error_received(self, fault: FaultInfo) -> None:
        self.error_received(fault)

    def on_disconnected(self) -> None:
        self.disconnected()

    def on_connected(self) -> None:
        self.connected()

    def on_retry_started(self) -> None:
        self.retry_started()


class Notifier:
    """Delivers events to a listener.

    Exceptions raised by the listener are logged and dropped so they never
    reach the engine's threads.
    """

    def __init__(
        self,
        listener: ClientEventListener | None,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self._listener = listener
        self._host = host
        self._port = port

    def _deliver(self, name: str, *args: object) -> None:
        if self._listener is None:
            return
        try:
            getattr(self._listener, name)(*args)
        except Exception:
            logger.exception(f"Listener raised in {name}")

    def connected(self) -> None:
        self._deliver("on_connected")

    def disconnected(self) -> None:
        self._deliver("on_disconnected")

    def retry_started(self) -> None:
        self._deliver("on_retry_started")

    def data_received(self, data: bytes) -> None:
        logger.log(TRACE, f"Delivering {len(data)} received bytes")
        self._deliver("on_data_received", data)

    def error(self, exc: BaseException, phase: Phase) -> FaultInfo:
        """Classify exc and deliver it. Returns the delivered FaultInfo."""
        fault = classify_fault(exc, phase, self._host, self._port)
        logger.debug(f"Fault {fault.category.name}: {fault.summary} ({fault.message})")
        self._deliver("on_error_received", fault)
        return fault
