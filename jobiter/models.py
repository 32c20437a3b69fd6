from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from .utils import utcnow


class RunState(BaseModel):
    cursor_position: Any = None
    times_interrupted: int = Field(default=0, ge=0)
    executions: int = Field(default=0, ge=0)
    total_time: float = Field(default=0.0, ge=0)
    started: bool = False
    completed: bool = False


class JobPayload(BaseModel):
    """Everything a slice needs to run, as handed to and from the queue."""
    job_id: str
    job_class: str
    params: Dict[str, Any] = Field(default_factory=dict)
    cursor_position: Any = None  # serialized cursor, see jobiter.cursor
    times_interrupted: int = Field(default=0, ge=0)
    executions: int = Field(default=0, ge=0)
    total_time: float = Field(default=0.0, ge=0)
    started: bool = False  # start hooks have run
    completed: bool = False  # complete hooks have run
    enqueued_at: datetime = Field(default_factory=utcnow)


class Job(BaseModel):
    id: str
    job_class: str
    payload: JobPayload
    state: str = Field(default="pending")  # pending | processing | completed | failed | dead
    executions: int = 0
    max_retries: int = 3
    created_at: datetime
    updated_at: datetime
    next_run_at: datetime
    last_error: Optional[str] = None
    priority: int = 0
    worker_id: Optional[str] = None


DEFAULTS = {
    "max_retries": 3,
    "backoff_base": 2.0,
    "max_job_runtime": 300,
    "poll_interval": 1.0,
}
