"""Heartbeat task for socket-clientkit.

Writes a fixed liveness payload on a fixed period while connected. A failed
write is the only liveness signal; there is no reply to wait for.
"""

import logging
from collections.abc import Callable

from client.scheduler import PeriodicTask
from common.protocol import TRACE, LinkIO

logger = logging.getLogger(__name__)


class Heartbeat:
    """Periodic liveness writer bound to one link at a time."""

    def __init__(
        self,
        interval_s: float,
        payload: bytes,
        on_failure: Callable[[LinkIO, Exception], None],
    ) -> None:
        self._interval_s = interval_s
        self._payload = payload
        self._on_failure = on_failure
        self._task: PeriodicTask | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and self._task.active

    def start(self, link: LinkIO) -> None:
        """Start beating on link, first write immediately. No-op if running."""
        if self.active:
            return
        task = PeriodicTask(
            "socket-heartbeat", lambda: self._beat(link, task), self._interval_s
        )
        self._task = task
        task.start()
        logger.debug(f"Heartbeat started (interval={self._interval_s:.3f}s)")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _beat(self, link: LinkIO, task: PeriodicTask) -> None:
        if not link.is_open:
            return
        try:
            link.write(self._payload)
        except Exception as e:
            logger.warning(f"Heartbeat write failed: {e}")
            task.cancel()
            if self._task is task:
                self._task = None
            self._on_failure(link, e)
            return
        logger.log(TRACE, f"Heartbeat sent ({len(self._payload)} bytes)")
