"""
Helpers for testing iteration jobs against an in-memory queue.

    harness = IterationHarness()
    harness.iterate_exact_times(2)
    harness.push(MyJob, {"shop_id": 1})
    harness.work_one_job()
    assert harness.peek_into_queue().times_interrupted == 1

Each job instance the harness builds gets `job.journal`, a dict of lists owned
by the harness, so hooks and callbacks can record what happened without
class-level state. Extra keyword arguments become attributes of every job
instance too (a database connection, a client, ...).
"""
from collections import defaultdict
from typing import Any, Dict, List, Optional, Type

from .interruption import ExactTimes, never
from .iteration import IterationJob, SliceResult
from .models import JobPayload
from .queue import MemoryQueue
from .worker import Worker


class Journal(defaultdict):
    def __init__(self):
        super().__init__(list)

    def count(self, key: str) -> int:
        return len(self[key])


class IterationHarness(Worker):
    def __init__(self, queue: Optional[MemoryQueue] = None, **attributes: Any):
        super().__init__(queue if queue is not None else MemoryQueue())
        self.journal = Journal()
        self.attributes = attributes
        self.jobs: List[IterationJob] = []

    def build_job(self, payload: JobPayload) -> IterationJob:
        job = super().build_job(payload)
        job.journal = self.journal
        for name, value in self.attributes.items():
            setattr(job, name, value)
        self.jobs.append(job)
        return job

    def iterate_exact_times(self, n: int) -> None:
        """Every following slice asks to exit after its n-th item."""
        self.interruption_factory = lambda: ExactTimes(n)

    def continue_iterating(self) -> None:
        self.interruption_factory = lambda: never

    def push(self, job_class: Type[IterationJob], params: Optional[Dict[str, Any]] = None,
             **kwargs) -> JobPayload:
        return job_class.enqueue(self.queue, params, **kwargs)

    def work_one_job(self) -> SliceResult:
        return self.execute(self.queue.pop())

    def work_off(self, limit: int = 100) -> List[SliceResult]:
        """Run slices until the queue is empty."""
        results = []
        while len(self.queue) and len(results) < limit:
            results.append(self.work_one_job())
        return results

    def peek_into_queue(self) -> JobPayload:
        assert len(self.queue) > 0, "no jobs in queue"
        return self.queue.peek()

    def jobs_in_queue(self) -> int:
        return len(self.queue)
