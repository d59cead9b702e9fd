"""
Unit tests for the capped thread-per-connection executor.
"""

import threading
import time

import pytest

from iogateway.core import ConnectionWorkers
from iogateway.core.workers import WorkerState


class TestSubmit:

    def test_runs_task(self):
        workers = ConnectionWorkers(max_connections=2)
        done = threading.Event()

        assert workers.submit(done.set) is True
        assert done.wait(timeout=2.0)

        workers.shutdown(timeout=2.0)
        assert workers.tasks_completed == 1

    def test_passes_arguments(self):
        workers = ConnectionWorkers()
        results = []

        workers.submit(results.append, "conn-1")
        workers.shutdown(timeout=2.0)

        assert results == ["conn-1"]

    def test_cap_rejects_extra_work(self):
        workers = ConnectionWorkers(max_connections=2)
        release = threading.Event()

        assert workers.submit(release.wait, 5.0)
        assert workers.submit(release.wait, 5.0)
        assert workers.submit(release.wait, 5.0) is False
        assert workers.tasks_rejected == 1
        assert workers.active_count == 2

        release.set()
        assert workers.shutdown(timeout=2.0)

    def test_slot_freed_when_task_ends(self):
        workers = ConnectionWorkers(max_connections=1)

        workers.submit(lambda: None)
        deadline = time.time() + 2.0
        while workers.active_count and time.time() < deadline:
            time.sleep(0.01)

        assert workers.submit(lambda: None) is True
        workers.shutdown(timeout=2.0)

    def test_failing_task_is_logged_not_raised(self, caplog):
        workers = ConnectionWorkers()

        def explode():
            raise RuntimeError("handler bug")

        workers.submit(explode)
        workers.shutdown(timeout=2.0)

        assert workers.tasks_failed == 1
        assert workers.active_count == 0
        assert "handler bug" in caplog.text

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            ConnectionWorkers(max_connections=0)


class TestShutdown:

    def test_rejects_after_shutdown(self):
        workers = ConnectionWorkers()
        workers.shutdown(timeout=1.0)

        assert workers.state is WorkerState.STOPPED
        assert workers.submit(lambda: None) is False

    def test_waits_for_running_tasks(self):
        workers = ConnectionWorkers()
        finished = []

        def slow():
            time.sleep(0.1)
            finished.append(True)

        workers.submit(slow)

        assert workers.shutdown(timeout=2.0) is True
        assert finished == [True]

    def test_reports_stragglers(self):
        workers = ConnectionWorkers()
        release = threading.Event()
        workers.submit(release.wait, 5.0)

        assert workers.shutdown(timeout=0.05) is False

        release.set()
