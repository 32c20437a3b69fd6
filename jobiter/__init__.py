from .enumerators import Enumerator, EnumeratorBuilder
from .errors import ConfigurationError, CursorError, JobClassNotFound, JobIterError
from .hooks import on_complete, on_iteration, on_shutdown, on_start
from .iteration import ABORT, IterationJob, SliceResult
from .models import JobPayload, RunState
from .queue import MemoryQueue, SqliteQueue
from .relation import Relation
from .worker import Worker

__all__ = [
    "ABORT",
    "ConfigurationError",
    "CursorError",
    "Enumerator",
    "EnumeratorBuilder",
    "IterationJob",
    "JobClassNotFound",
    "JobIterError",
    "JobPayload",
    "MemoryQueue",
    "Relation",
    "RunState",
    "SliceResult",
    "SqliteQueue",
    "Worker",
    "on_complete",
    "on_iteration",
    "on_shutdown",
    "on_start",
]
