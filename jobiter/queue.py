"""
Queue adapters.

A queue adapter is what iteration jobs and workers talk to:

    enqueue(payload, delay=0.0, priority=None)  schedule a slice
    retry(payload, error, delay)                re-run a failed slice later
    bury(payload, error)                        give up, move to the DLQ
    complete(payload)                           the logical job is done

MemoryQueue keeps everything in lists and is what tests and embedding code
use. SqliteQueue is the persistent queue the CLI workers run against.
"""
from datetime import timedelta
from typing import List, Optional, Tuple

from . import config, storage
from .continuation import payload_from_json, payload_to_json
from .models import Job, JobPayload
from .utils import utcnow


class MemoryQueue:
    def __init__(self, max_retries: int = 3, backoff_base: float = 0.0):
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self.enqueued: List[JobPayload] = []
        self.delays: List[float] = []
        self.completed: List[JobPayload] = []
        self.dead: List[Tuple[JobPayload, str]] = []

    def max_retries(self) -> int:
        return self._max_retries

    def backoff_base(self) -> float:
        return self._backoff_base

    def enqueue(self, payload: JobPayload, delay: float = 0.0, priority: Optional[int] = None) -> None:
        # go through JSON, as a real queue would
        self.enqueued.append(payload_from_json(payload_to_json(payload)))
        self.delays.append(delay)

    def pop(self) -> JobPayload:
        self.delays.pop()
        return self.enqueued.pop()

    def peek(self) -> JobPayload:
        return self.enqueued[-1]

    def __len__(self) -> int:
        return len(self.enqueued)

    def retry(self, payload: JobPayload, error: str, delay: float) -> None:
        self.enqueue(payload, delay=delay)

    def bury(self, payload: JobPayload, error: str) -> None:
        self.dead.append((payload, error))

    def complete(self, payload: JobPayload) -> None:
        self.completed.append(payload)


class SqliteQueue:
    def max_retries(self) -> int:
        return config.get_int("max_retries")

    def backoff_base(self) -> float:
        return config.get_float("backoff_base")

    def enqueue(self, payload: JobPayload, delay: float = 0.0, priority: Optional[int] = None) -> None:
        next_run_at = utcnow() + timedelta(seconds=delay) if delay else None
        storage.upsert_job(payload, max_retries=self.max_retries(), priority=priority, next_run_at=next_run_at)

    def claim(self, worker_id: str) -> Optional[JobPayload]:
        row = storage.fetch_and_lock_next_job(worker_id)
        if row is None:
            return None
        return payload_from_json(row["payload"])

    def retry(self, payload: JobPayload, error: str, delay: float) -> None:
        # truncate error to keep DB small
        storage.mark_failed_or_dead(payload, (error or "")[:512], utcnow() + timedelta(seconds=delay))

    def bury(self, payload: JobPayload, error: str) -> None:
        storage.mark_failed_or_dead(payload, (error or "")[:512], None)

    def complete(self, payload: JobPayload) -> None:
        storage.mark_completed(payload.job_id, payload)

    def get(self, job_id: str) -> Optional[JobPayload]:
        row = storage.get_job(job_id)
        return payload_from_json(row["payload"]) if row else None

    def record(self, job_id: str) -> Optional[Job]:
        """The full queue row of a job, payload decoded."""
        row = storage.get_job(job_id)
        if not row:
            return None
        data = dict(row)
        data["payload"] = payload_from_json(data["payload"])
        return Job(**data)

    def requeue_dead(self, job_id: str) -> bool:
        """Put a dead job back in line. It resumes from its last committed cursor."""
        row = storage.get_job(job_id)
        if not row or row["state"] != "dead":
            return False
        payload = payload_from_json(row["payload"])
        payload.executions = 0
        self.enqueue(payload)
        return True
