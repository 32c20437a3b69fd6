# jobiter/worker.py
import logging
import os
import time
import uuid
from multiprocessing import Process
from typing import Callable, Optional

from . import config
from .errors import ConfigurationError, JobIterError
from .interruption import ShutdownCheck, ShutdownFlag, TimeBudget, any_of, never
from .iteration import IterationJob, SliceResult
from .models import JobPayload
from .queue import SqliteQueue
from .registry import resolve
from .storage import (
    register_worker,
    stop_worker_record,
    recover_processing,
)

logger = logging.getLogger(__name__)


def backoff_delay(base: float, attempts: int) -> float:
    """delay = base ** attempts (with safe casts)"""
    try:
        return float(base) ** int(attempts)
    except (TypeError, ValueError, OverflowError):
        return 2.0 ** int(attempts)


class Worker:
    """
    Runs slices handed out by a queue:
      - counts the attempt in `executions` before the slice starts
      - gives every slice a fresh shutdown check
      - retries errors listed in the job's `retry_on` from the last committed cursor
      - buries everything else in the dead letter queue and re-raises
    """

    def __init__(self, queue, interruption_factory: Optional[Callable[[], ShutdownCheck]] = None):
        self.queue = queue
        self.interruption_factory = interruption_factory or (lambda: never)

    def build_job(self, payload: JobPayload) -> IterationJob:
        cls = resolve(payload.job_class)
        if not (isinstance(cls, type) and issubclass(cls, IterationJob)):
            raise ConfigurationError(f"{payload.job_class} is not an IterationJob")
        job = cls.deserialize(payload)
        job.scheduler = self.queue
        job.interruption = self.interruption_factory()
        return job

    def execute(self, payload: JobPayload) -> SliceResult:
        payload = payload.model_copy(update={"executions": payload.executions + 1})
        try:
            job = self.build_job(payload)
        except JobIterError as e:
            logger.error("cannot load job %s: %s", payload.job_id, e)
            self.queue.bury(payload, str(e))
            raise

        try:
            result = job.perform()
        except Exception as e:
            if self._should_retry(job, e):
                delay = backoff_delay(self._backoff_base(job), job.executions)
                logger.warning(
                    "job %s failed on attempt %d (%s), retrying in %.1fs from cursor=%r",
                    job.job_id, job.executions, e, delay, job.cursor_position,
                )
                self.queue.retry(job.serialize(), repr(e), delay)
                return SliceResult.RETRIED
            logger.error("job %s failed permanently after %d attempt(s): %r", job.job_id, job.executions, e)
            self.queue.bury(job.serialize(), repr(e))
            raise

        if result in (SliceResult.COMPLETED, SliceResult.SKIPPED):
            self.queue.complete(job.serialize())
        return result

    def _max_attempts(self, job: IterationJob) -> int:
        if job.max_attempts is not None:
            return job.max_attempts
        return self.queue.max_retries()

    def _backoff_base(self, job: IterationJob) -> float:
        if job.backoff_base is not None:
            return job.backoff_base
        return self.queue.backoff_base()

    def _should_retry(self, job: IterationJob, error: Exception) -> bool:
        if isinstance(error, ConfigurationError) or not job.retry_on:
            return False
        return isinstance(error, job.retry_on) and job.executions < self._max_attempts(job)


def slice_interruption() -> ShutdownCheck:
    """Per-slice check for SQLite workers: runtime budget or a `jobiter worker stop`."""
    return any_of(
        TimeBudget(config.get_float("max_job_runtime")),
        ShutdownFlag(config.shutdown_requested, poll_interval=config.get_float("poll_interval")),
    )


def worker_loop(worker_id: str, poll_interval: Optional[float] = None):
    """
    Single worker process loop:
      - respects global 'shutdown' flag
      - claims one slice at a time and runs it
      - a failing slice is logged; retry/DLQ bookkeeping happens in Worker.execute
      - always deregisters itself on exit
    """
    pid = os.getpid()
    register_worker(worker_id, pid)
    recover_processing()  # slices of dead workers resume from their stored payload
    queue = SqliteQueue()
    worker = Worker(queue, interruption_factory=slice_interruption)
    if poll_interval is None:
        poll_interval = config.get_float("poll_interval")
    logger.info("worker %s started (pid %d)", worker_id, pid)

    try:
        while True:
            if config.shutdown_requested():
                break

            payload = queue.claim(worker_id)
            if not payload:
                time.sleep(poll_interval)
                continue

            try:
                result = worker.execute(payload)
                logger.info("job %s (%s): %s", payload.job_id, payload.job_class, result.value)
            except Exception:
                logger.exception("job %s (%s) failed", payload.job_id, payload.job_class)
    except KeyboardInterrupt:
        # quiet exit on Ctrl+C
        pass
    finally:
        stop_worker_record(worker_id)
        logger.info("worker %s stopped", worker_id)


def start_workers(count: int):
    """
    Spawn N workers and join them. If Ctrl+C is pressed in the parent,
    set shutdown=true so children stop at their next item and re-enqueue.
    """
    procs = []
    for _ in range(count):
        wid = f"w-{uuid.uuid4().hex[:8]}"
        p = Process(target=worker_loop, args=(wid,), daemon=False)
        p.start()
        procs.append(p)

    try:
        for p in procs:
            p.join()
    except KeyboardInterrupt:
        # parent interrupted -> request graceful stop for all workers
        config.set_config("shutdown", "true")
        for p in procs:
            p.join()
