"""Receive task for socket-clientkit.

Reads from the live link on a dedicated thread and forwards every chunk.
Read timeouts are normal idle time. End of stream hands control back to the
engine. Any other read error is reported and the loop keeps going.
"""

import logging
import threading
from collections.abc import Callable

from common.protocol import TRACE, LinkIO

logger = logging.getLogger(__name__)


class _ReceiveRun:
    """One receive loop bound to one link."""

    def __init__(self, link: LinkIO) -> None:
        self.link = link
        self.stopped = threading.Event()
        self.thread: threading.Thread | None = None


class Receiver:
    """Starts and stops the receive loop for the current link."""

    def __init__(
        self,
        chunk_size: int,
        on_data: Callable[[bytes], None],
        on_error: Callable[[Exception], None],
        on_stream_end: Callable[[LinkIO], None],
    ) -> None:
        self._chunk_size = chunk_size
        self._on_data = on_data
        self._on_error = on_error
        self._on_stream_end = on_stream_end
        self._run: _ReceiveRun | None = None

    @property
    def running(self) -> bool:
        run = self._run
        return run is not None and not run.stopped.is_set()

    def start(self, link: LinkIO) -> None:
        """Start receiving from link. No-op if already receiving from it."""
        if self.running and self._run is not None and self._run.link is link:
            return
        self.stop()
        run = _ReceiveRun(link)
        run.thread = threading.Thread(
            target=self._loop, args=(run,), name="socket-receive", daemon=True
        )
        self._run = run
        run.thread.start()

    def stop(self) -> None:
        """Ask the current loop to exit; it finishes its pending read first."""
        run, self._run = self._run, None
        if run is not None:
            run.stopped.set()

    def _loop(self, run: _ReceiveRun) -> None:
        link = run.link
        logger.debug("Receive loop started")
        while not run.stopped.is_set() and link.is_open:
            try:
                data = link.read(self._chunk_size)
            except TimeoutError:
                continue
            except Exception as e:
                if run.stopped.is_set() or not link.is_open:
                    break
                logger.warning(f"Read failed: {e}")
                self._on_error(e)
                continue

            if run.stopped.is_set():
                break

            if not data:
                logger.info("Server closed the connection")
                run.stopped.set()
                self._on_stream_end(link)
                break

            logger.log(TRACE, f"Received {len(data)} bytes")
            self._on_data(bytes(data))
        logger.debug("Receive loop stopped")
