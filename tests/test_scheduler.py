"""
Test one-shot cycle scheduling
"""
import threading

import pytest

from ai_trader.core.scheduler import APSchedulerScheduler, ScheduledTask


@pytest.fixture
def scheduler():
    s = APSchedulerScheduler()
    yield s
    s.shutdown()


def test_runs_after_delay(scheduler):
    done = threading.Event()
    scheduler.schedule(0, done.set, name="cycle")
    assert done.wait(timeout=5)


def test_cancel_removes_job(scheduler):
    fired = threading.Event()
    task = scheduler.schedule(60, fired.set, name="cycle")
    assert len(scheduler._scheduler.get_jobs()) == 1

    task.cancel()

    assert task.cancelled
    assert scheduler._scheduler.get_jobs() == []
    assert not fired.is_set()


def test_cancel_after_fire_is_harmless(scheduler):
    done = threading.Event()
    task = scheduler.schedule(0, done.set)
    assert done.wait(timeout=5)
    task.cancel()
    task.cancel()
    assert task.cancelled


def test_shutdown_is_idempotent():
    s = APSchedulerScheduler()
    s.schedule(60, lambda: None)
    s.shutdown()
    s.shutdown()


def test_task_cancel_callback_runs_once():
    calls = []
    task = ScheduledTask("cycle")
    task.bind(lambda: calls.append(1))
    task.cancel()
    task.cancel()
    assert calls == [1]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
