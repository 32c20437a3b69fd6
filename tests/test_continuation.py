"""Tests for the continuation protocol."""

import pytest
from pydantic import ValidationError

from jobiter import IterationJob, continuation
from jobiter.models import JobPayload
from jobiter.registry import class_name, resolve
from jobiter.errors import JobClassNotFound


class TimesJob(IterationJob):
    def build_enumerator(self, params, cursor):
        return self.enumerator_builder.build_times_enumerator(params["times"], cursor=cursor)

    def each_iteration(self, index, params):
        pass


class TestDecode:
    def test_fresh_payload_is_not_started(self):
        state = continuation.decode(JobPayload(job_id="j1", job_class="x.Y"))
        assert state.cursor_position is None
        assert state.times_interrupted == 0
        assert state.executions == 0

    def test_stored_state_is_used_as_is(self):
        payload = JobPayload(job_id="j1", job_class="x.Y", cursor_position=["2024-01-02 10:00:00", 7],
                             times_interrupted=4, executions=2, total_time=1.5)
        state = continuation.decode(payload)
        assert state.cursor_position == ("2024-01-02 10:00:00", 7)
        assert state.times_interrupted == 4
        assert state.executions == 2
        assert state.total_time == 1.5

    def test_negative_counters_rejected(self):
        with pytest.raises(ValidationError):
            JobPayload(job_id="j1", job_class="x.Y", times_interrupted=-1)


class TestEncode:
    def test_round_trip_through_json(self):
        job = TimesJob(params={"times": 5, "tags": ["a", "b"]}, job_id="abc")
        job.cursor_position = ("2024-01-02 10:00:00", 7)
        job.times_interrupted = 2
        job.executions = 3
        job.started = True

        payload = continuation.payload_from_json(continuation.payload_to_json(job.serialize()))
        assert payload.job_id == "abc"
        assert payload.job_class == class_name(TimesJob)
        assert payload.params == {"times": 5, "tags": ["a", "b"]}
        assert payload.cursor_position == ["2024-01-02 10:00:00", 7]
        assert payload.executions == 3

        restored = TimesJob.deserialize(payload)
        assert restored.cursor_position == ("2024-01-02 10:00:00", 7)
        assert restored.times_interrupted == 2
        assert restored.params == job.params
        assert restored.started is True
        assert restored.completed is False

    def test_continuation_starts_a_new_slice(self):
        job = TimesJob(job_id="abc")
        job.executions = 2
        assert continuation.encode(job, continuation=True).executions == 0
        assert continuation.encode(job).executions == 2


class TestRegistry:
    def test_resolves_registered_class(self):
        assert resolve(class_name(TimesJob)) is TimesJob

    def test_imports_module_on_demand(self):
        from jobiter.iteration import IterationJob
        assert resolve("jobiter.iteration.IterationJob") is IterationJob

    def test_unknown_class(self):
        with pytest.raises(JobClassNotFound):
            resolve("jobiter.iteration.NoSuchJob")
        with pytest.raises(JobClassNotFound):
            resolve("no_such_module_anywhere.Job")
