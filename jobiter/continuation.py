"""
Continuation protocol: run state and params <-> queue payload.

The runner never touches `executions`; the worker owns it. A continuation
payload starts a new slice, so it carries executions=0. A retry re-sends the
failed slice's own payload, executions included.
"""
from typing import TYPE_CHECKING, Union

from .cursor import deserialize_cursor, serialize_cursor
from .models import JobPayload, RunState

if TYPE_CHECKING:
    from .iteration import IterationJob


def encode(job: "IterationJob", continuation: bool = False) -> JobPayload:
    return JobPayload(
        job_id=job.job_id,
        job_class=job.job_class_name(),
        params=job.params,
        cursor_position=serialize_cursor(job.cursor_position),
        times_interrupted=job.times_interrupted,
        executions=0 if continuation else job.executions,
        total_time=job.total_time,
        started=job.started,
        completed=job.completed,
    )


def decode(payload: JobPayload) -> RunState:
    """Run state exactly as persisted; a fresh payload decodes to the not-started state."""
    return RunState(
        cursor_position=deserialize_cursor(payload.cursor_position),
        times_interrupted=payload.times_interrupted,
        executions=payload.executions,
        total_time=payload.total_time,
        started=payload.started,
        completed=payload.completed,
    )


def payload_to_json(payload: JobPayload) -> str:
    return payload.model_dump_json()


def payload_from_json(data: Union[str, bytes]) -> JobPayload:
    return JobPayload.model_validate_json(data)
