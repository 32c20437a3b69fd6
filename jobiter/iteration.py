"""
Iteration jobs.

An iteration job splits one long loop into slices. Each slice rebuilds its
enumerator from the last committed cursor, processes items until the job is
asked to exit, and then re-enqueues itself with the cursor moved forward.

    class BackfillJob(IterationJob):
        def build_enumerator(self, params, cursor):
            return self.enumerator_builder.build_record_enumerator(
                Relation(db, "products"), cursor=cursor)

        def each_iteration(self, product, params):
            reindex(product)

Subclasses implement `build_enumerator` and `each_iteration`. The slice entry
point, `perform`, belongs to the framework and cannot be overridden.
"""
import logging
import time
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from . import continuation
from .cursor import Cursor
from .enumerators import Enumerator, EnumeratorBuilder
from .errors import ConfigurationError
from .hooks import COMPLETE, ITERATION, SHUTDOWN, START, HookRegistry
from .interruption import ShutdownCheck, never
from .models import JobPayload
from .registry import class_name, register

logger = logging.getLogger(__name__)


class _Abort:
    def __repr__(self) -> str:
        return "ABORT"


ABORT = _Abort()


class SliceResult(str, Enum):
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    SKIPPED = "skipped"
    RETRIED = "retried"


class IterationJob(ABC):
    # exception types the worker retries from the last committed cursor
    retry_on: Tuple[Type[BaseException], ...] = ()
    max_attempts: Optional[int] = None  # None: the queue's max_retries setting
    backoff_base: Optional[float] = None  # None: the queue's backoff_base setting

    enumerator_builder = EnumeratorBuilder()
    _hooks = HookRegistry()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "perform" in cls.__dict__:
            raise TypeError(f"Iteration job ({cls.__name__}) cannot redefine perform")
        cls._hooks = HookRegistry(parent=super(cls, cls)._hooks)
        cls._hooks.collect(cls.__dict__)
        register(cls)

    def __init__(self, params: Optional[Dict[str, Any]] = None, job_id: Optional[str] = None):
        self.job_id = job_id or uuid.uuid4().hex
        self.params: Dict[str, Any] = params if params is not None else {}
        self.cursor_position: Cursor = None
        self.times_interrupted = 0
        self.executions = 0
        self.total_time = 0.0
        self.started = False
        self.completed = False
        self.scheduler = None
        self.interruption: ShutdownCheck = never

    @abstractmethod
    def build_enumerator(self, params: Dict[str, Any], cursor: Cursor) -> Optional[Enumerator]:
        """Return an Enumerator that resumes right after `cursor`."""

    @abstractmethod
    def each_iteration(self, item: Any, params: Dict[str, Any]) -> Any:
        """Process one item. Return ABORT to finish the job early."""

    @classmethod
    def register_hook(cls, event: str, fn) -> None:
        cls._hooks.register(event, fn)

    @classmethod
    def job_class_name(cls) -> str:
        return class_name(cls)

    @classmethod
    def check_capabilities(cls) -> None:
        missing = sorted(getattr(cls, "__abstractmethods__", ()))
        if missing:
            raise ConfigurationError(
                f"Iteration job ({cls.__name__}) must implement {', '.join(missing)}"
            )

    @classmethod
    def enqueue(cls, scheduler, params: Optional[Dict[str, Any]] = None,
                job_id: Optional[str] = None, **options) -> JobPayload:
        """Schedule the first slice of a new logical job."""
        cls.check_capabilities()
        payload = JobPayload(
            job_id=job_id or uuid.uuid4().hex,
            job_class=cls.job_class_name(),
            params=params or {},
        )
        scheduler.enqueue(payload, **options)
        return payload

    perform_later = enqueue

    @classmethod
    def deserialize(cls, payload: JobPayload) -> "IterationJob":
        cls.check_capabilities()
        state = continuation.decode(payload)
        job = cls(params=payload.params, job_id=payload.job_id)
        job.cursor_position = state.cursor_position
        job.times_interrupted = state.times_interrupted
        job.executions = state.executions
        job.total_time = state.total_time
        job.started = state.started
        job.completed = state.completed
        return job

    def serialize(self) -> JobPayload:
        return continuation.encode(self)

    def job_should_exit(self) -> bool:
        return bool(self.interruption())

    @property
    def first_slice(self) -> bool:
        return not self.started and self.cursor_position is None and self.times_interrupted == 0

    def perform(self) -> SliceResult:
        """Run one slice of the job."""
        started = time.monotonic()
        name = self.job_class_name()
        if self.completed:
            # complete hooks ran in an earlier attempt of this slice
            self._hooks.run(SHUTDOWN, self)
            return SliceResult.COMPLETED

        enumerator = self.build_enumerator(self.params, cursor=self.cursor_position)
        if enumerator is None:
            logger.info("[%s] build_enumerator returned None. Skipping the job.", name)
            return SliceResult.SKIPPED
        if not isinstance(enumerator, Enumerator):
            raise ConfigurationError(
                f"{type(self).__name__}#build_enumerator is expected to return Enumerator object, "
                f"but returned {type(enumerator).__name__}"
            )

        if self.first_slice:
            self._hooks.run(START, self)
            self.started = True
        logger.debug("[%s] slice %s starting at cursor=%r", name, self.job_id, self.cursor_position)

        completed = self._iterate(enumerator)
        self.total_time += time.monotonic() - started

        if completed:
            logger.info(
                "[jobiter.iteration] Completed. times_interrupted=%d total_time=%.3f",
                self.times_interrupted, self.total_time,
            )
            self._hooks.run(COMPLETE, self)
            self.completed = True
            self._hooks.run(SHUTDOWN, self)
            return SliceResult.COMPLETED

        self.times_interrupted += 1
        self._hooks.run(SHUTDOWN, self)
        logger.info(
            "[%s] interrupted at cursor=%r times_interrupted=%d",
            name, self.cursor_position, self.times_interrupted,
        )
        self.reenqueue()
        return SliceResult.INTERRUPTED

    def _iterate(self, enumerator: Enumerator) -> bool:
        """Pull items until exhaustion, abort or exit request. True means the job is done."""
        items = iter(enumerator)
        for item, cursor in items:
            if self.each_iteration(item, self.params) is ABORT:
                logger.info("[%s] aborted after cursor=%r", self.job_class_name(), self.cursor_position)
                return True
            self.cursor_position = cursor
            self._hooks.run(ITERATION, self)
            if self.job_should_exit():
                # only yield when something is left for the continuation
                return next(items, None) is None
        return True

    def reenqueue(self) -> None:
        if self.scheduler is None:
            raise ConfigurationError(
                f"{type(self).__name__} was interrupted but has no scheduler to enqueue its continuation"
            )
        self.scheduler.enqueue(continuation.encode(self, continuation=True))
