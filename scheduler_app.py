from __future__ import annotations

import logging
import os
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import sentry_sdk
from prometheus_client import Gauge, Histogram

from feedsync.logging import configure_logging
from feedsync.services.triggers import TIMER_TRIGGER, ScheduledTrigger
from feedsync.tasks.sync import build_orchestrator, load_settings


def _utc_iso(ts: Optional[float]) -> Optional[str]:
    if ts is None or ts == float("inf"):
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


job_duration = Histogram(
    "scheduler_job_duration_seconds", "Duration of scheduler jobs", ["job_name"]
)
active_jobs_gauge = Gauge(
    "scheduler_jobs_active", "Number of scheduler jobs currently running"
)


@dataclass
class ScheduledJob:
    """Metadata describing a registered scheduler job."""

    name: str
    func: Callable[[], Any]
    interval: float
    next_run: float = field(default_factory=time.time)
    last_run: Optional[float] = None
    last_duration: Optional[float] = None
    last_result: Optional[Dict[str, Any]] = None
    total_runs: int = 0
    running: bool = False
    error: Optional[str] = None


class Scheduler:
    """Run registered jobs at fixed intervals on a small thread pool."""

    def __init__(self, *, max_workers: int = 1, name: str = "scheduler") -> None:
        self._name = name
        self._max_workers = max(1, int(max_workers))
        self._jobs: Dict[str, ScheduledJob] = {}
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tick = threading.Event()
        self._active_jobs = 0
        self._logger = logging.getLogger(name)

    def _claim(self, job: ScheduledJob) -> bool:
        with self._lock:
            if job.running:
                return False
            job.running = True
            job.error = None
            job.next_run = float("inf")
            self._active_jobs += 1
            active_jobs_gauge.set(self._active_jobs)
        return True

    def _execute(self, job: ScheduledJob) -> None:
        start = time.perf_counter()
        result: Any = None
        err_text: Optional[str] = None
        try:
            result = job.func()
        except Exception:
            err_text = traceback.format_exc()
            self._logger.exception("Scheduler job '%s' failed", job.name)
        duration = time.perf_counter() - start
        job_duration.labels(job.name).observe(duration)
        completed_at = time.time()
        with self._lock:
            job.last_run = completed_at
            job.last_duration = duration
            job.total_runs += 1
            job.error = err_text
            if hasattr(result, "to_dict"):
                job.last_result = result.to_dict()
            job.running = False
            job.next_run = completed_at + job.interval
            self._active_jobs = max(self._active_jobs - 1, 0)
            active_jobs_gauge.set(self._active_jobs)
        self._tick.set()

    def _dispatch(self, job: ScheduledJob, *, force_sync: bool = False) -> bool:
        if not self._claim(job):
            return False
        executor = self._executor
        if executor is None or force_sync:
            self._execute(job)
        else:
            executor.submit(self._execute, job)
        return True

    def _loop(self) -> None:
        self._logger.info("Scheduler loop started with max_workers=%s", self._max_workers)
        while not self._stop_event.is_set():
            now = time.time()
            with self._lock:
                idle = [job for job in self._jobs.values() if not job.running]
            due = [job for job in idle if job.next_run <= now]
            if due:
                for job in due:
                    self._dispatch(job)
                continue

            timeout = 1.0
            if idle:
                next_deadline = min(job.next_run for job in idle)
                timeout = max(min(next_deadline - time.time(), 5.0), 0.1)
            if self._tick.wait(timeout):
                self._tick.clear()
        self._logger.info("Scheduler loop stopped")

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._tick.clear()
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix=f"{self._name}-job"
            )
            self._thread = threading.Thread(
                target=self._loop, name=f"{self._name}-loop", daemon=True
            )
            self._thread.start()

    def stop(self, *, wait: bool = True) -> None:
        with self._lock:
            if not self.is_running:
                return
            self._stop_event.set()
            self._tick.set()
            thread = self._thread
            executor = self._executor
        if thread is not None and wait:
            thread.join()
        if executor is not None:
            executor.shutdown(wait=wait)
        with self._lock:
            self._thread = None
            self._executor = None
            self._active_jobs = 0

    def register_job(
        self,
        name: str,
        func: Callable[[], Any],
        *,
        interval: float,
        start_after: Optional[float] = None,
    ) -> ScheduledJob:
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        delay = interval if start_after is None else max(start_after, 0.0)
        job = ScheduledJob(
            name=name, func=func, interval=float(interval), next_run=time.time() + delay
        )
        with self._lock:
            self._jobs[name] = job
        self._tick.set()
        return job

    def trigger_job(self, name: str, *, synchronous: bool = False) -> bool:
        with self._lock:
            job = self._jobs.get(name)
            if job is None:
                raise KeyError(name)
        return self._dispatch(job, force_sync=synchronous)

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        with self._lock:
            return self._jobs.get(name)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            jobs = [
                {
                    "name": job.name,
                    "interval_seconds": job.interval,
                    "next_run_at": _utc_iso(job.next_run),
                    "last_run_at": _utc_iso(job.last_run),
                    "last_duration_seconds": job.last_duration,
                    "last_result": job.last_result,
                    "total_runs": job.total_runs,
                    "running": job.running,
                    "error": job.error,
                }
                for job in self._jobs.values()
            ]
            active = self._active_jobs
        return {
            "name": self._name,
            "max_workers": self._max_workers,
            "active_jobs": active,
            "jobs": jobs,
        }


SYNC_JOB_NAME = "sync_feed"


def build_scheduler(settings: Optional[Mapping[str, Any]] = None) -> Scheduler:
    """Create a scheduler with the feed sync job when the timer trigger is enabled."""

    settings = settings if settings is not None else load_settings()
    scheduler = Scheduler(max_workers=int(settings.get("SCHEDULER_MAX_WORKERS") or 1))
    if TIMER_TRIGGER in settings.get("SYNC_TRIGGERS", ()):
        trigger = ScheduledTrigger(lambda: build_orchestrator(settings))
        scheduler.register_job(
            SYNC_JOB_NAME,
            trigger,
            interval=float(settings.get("SYNC_INTERVAL_SECONDS") or 3600),
            start_after=0.0,
        )
    return scheduler


def main() -> None:
    configure_logging()
    dsn = os.getenv("SENTRY_DSN")
    if dsn:  # pragma: no cover - external service
        sentry_sdk.init(dsn=dsn)

    scheduler = build_scheduler()
    if scheduler.get_job(SYNC_JOB_NAME) is None:
        logging.getLogger(__name__).warning(
            "Timer trigger disabled by SYNC_TRIGGERS; scheduler has nothing to run"
        )
        return
    scheduler.start()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:  # pragma: no cover - graceful shutdown
        scheduler.stop()


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
