"""
Cycle Scheduler

One-shot delayed tasks with a cancellation token. The trading loop
schedules the next cycle only after the current one completes, so runs
never overlap (fixed delay, not fixed rate).
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ai_trader.utils.logger import log


class ScheduledTask:
    """Cancellation token for one pending run"""

    def __init__(self, name: str = "task"):
        self.name = name
        self._cancelled = threading.Event()
        self._on_cancel: Optional[Callable[[], None]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def bind(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel

    def cancel(self):
        """Idempotent; a run already in progress is not interrupted"""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._on_cancel is not None:
            self._on_cancel()


class Scheduler(ABC):
    """Runs a callable once after a delay"""

    @abstractmethod
    def schedule(self, delay_seconds: float, func: Callable[[], None], name: str = "task") -> ScheduledTask:
        pass

    def shutdown(self):
        pass


class APSchedulerScheduler(Scheduler):
    """
    Scheduler backed by APScheduler's BackgroundScheduler

    Each task is a date-triggered job on a single worker thread.
    """

    def __init__(self):
        self._scheduler = BackgroundScheduler(
            executors={'default': {'type': 'threadpool', 'max_workers': 1}},
            job_defaults={'coalesce': True, 'max_instances': 1, 'misfire_grace_time': None},
        )
        self._lock = threading.Lock()

    def _ensure_started(self):
        with self._lock:
            if not self._scheduler.running:
                self._scheduler.start()
                log.info("Cycle scheduler started")

    def schedule(self, delay_seconds: float, func: Callable[[], None], name: str = "task") -> ScheduledTask:
        self._ensure_started()
        task = ScheduledTask(name)

        def run():
            if not task.cancelled:
                func()

        job = self._scheduler.add_job(
            run,
            trigger=DateTrigger(run_date=datetime.now() + timedelta(seconds=max(0.0, delay_seconds))),
            id=f"{name}_{uuid.uuid4().hex[:8]}",
            name=name,
        )

        def remove():
            try:
                job.remove()
            except JobLookupError:
                # Already fired or removed
                pass

        task.bind(remove)
        log.debug(f"Scheduled {name} in {delay_seconds:.0f}s")
        return task

    def shutdown(self):
        with self._lock:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
                log.info("Cycle scheduler stopped")
