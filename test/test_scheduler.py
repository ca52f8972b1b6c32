"""Unit tests for PeriodicTask and the worker pool."""

import threading
import time

import pytest

from client.scheduler import PeriodicTask, new_worker_pool
from common.protocol import MAX_POOL_WORKERS


@pytest.mark.unit
class TestPeriodicTask:
    """Tests for fixed-delay periodic execution."""

    def test_first_run_is_immediate(self) -> None:
        ran = threading.Event()
        task = PeriodicTask("t", ran.set, interval_s=10.0)
        task.start()
        try:
            assert ran.wait(1.0)
        finally:
            task.cancel()

    def test_runs_repeatedly_until_cancelled(self) -> None:
        count = 0
        three = threading.Event()

        def action() -> None:
            nonlocal count
            count += 1
            if count >= 3:
                three.set()

        task = PeriodicTask("t", action, interval_s=0.01)
        task.start()
        assert three.wait(2.0)
        task.cancel()
        time.sleep(0.05)
        stopped_at = count
        time.sleep(0.1)
        assert count == stopped_at
        assert task.cancelled
        assert not task.active

    def test_cancel_from_inside_action(self) -> None:
        runs: list[int] = []
        task: PeriodicTask

        def action() -> None:
            runs.append(1)
            task.cancel()

        task = PeriodicTask("t", action, interval_s=0.01)
        task.start()
        time.sleep(0.1)
        assert runs == [1]

    def test_cancel_during_initial_delay(self) -> None:
        ran = threading.Event()
        task = PeriodicTask("t", ran.set, interval_s=0.01, initial_delay_s=0.2)
        task.start()
        task.cancel()
        assert not ran.wait(0.3)

    def test_survives_action_exception(self) -> None:
        count = 0
        again = threading.Event()

        def action() -> None:
            nonlocal count
            count += 1
            if count == 1:
                raise RuntimeError("first run fails")
            again.set()

        task = PeriodicTask("t", action, interval_s=0.01)
        task.start()
        try:
            assert again.wait(1.0)
        finally:
            task.cancel()


@pytest.mark.unit
class TestWorkerPool:
    """Tests for the bounded one-shot pool."""

    def test_bounded(self) -> None:
        pool = new_worker_pool("test-pool")
        try:
            assert pool._max_workers == MAX_POOL_WORKERS == 3
            assert pool.submit(lambda: 42).result(timeout=1.0) == 42
        finally:
            pool.shutdown(wait=True)

    def test_single_worker_pool(self) -> None:
        pool = new_worker_pool("test-connect", max_workers=1)
        try:
            assert pool._max_workers == 1
            names = {pool.submit(lambda: threading.current_thread().name).result(timeout=1.0) for _ in range(3)}
            assert len(names) == 1
            assert names.pop().startswith("test-connect")
        finally:
            pool.shutdown(wait=True)
