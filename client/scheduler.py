"""Task scheduling for socket-clientkit.

Contains:
- PeriodicTask: Fixed-delay recurring action on its own daemon thread
- new_worker_pool: Bounded pool for one-shot tasks (connect attempts, sends)
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from common.protocol import MAX_POOL_WORKERS

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run action repeatedly, waiting interval_s after each run completes.

    The first run happens after initial_delay_s. cancel() may be called from
    inside action; no further run starts after it returns.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], None],
        interval_s: float,
        initial_delay_s: float = 0.0,
    ) -> None:
        self.name = name
        self._action = action
        self._interval_s = interval_s
        self._initial_delay_s = initial_delay_s
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def active(self) -> bool:
        """True until cancelled; a cancelled task never becomes active again."""
        return not self._cancelled.is_set()

    def _run(self) -> None:
        if self._cancelled.wait(self._initial_delay_s):
            return
        while not self._cancelled.is_set():
            try:
                self._action()
            except Exception:
                logger.exception(f"Periodic task {self.name} raised")
            if self._cancelled.wait(self._interval_s):
                break
        logger.debug(f"Periodic task {self.name} stopped")


def new_worker_pool(name: str, max_workers: int = MAX_POOL_WORKERS) -> ThreadPoolExecutor:
    """Create a pool for one-shot tasks. Threads are started on demand.

    Idle threads are not reclaimed after a keep-alive period; they live until
    the pool is shut down, which the engine does on every disconnect().
    """
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
