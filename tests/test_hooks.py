"""Tests for lifecycle hook registration and ordering."""

import pytest

from jobiter import IterationJob, on_complete, on_iteration, on_start
from jobiter.hooks import COMPLETE, ITERATION, START, HookRegistry
from jobiter.testing import IterationHarness


class BaseLayer(IterationJob):
    @on_complete
    def base_complete(self):
        self.journal["order"].append("base")

    def build_enumerator(self, params, cursor):
        return self.enumerator_builder.build_times_enumerator(params.get("times", 2), cursor=cursor)

    def each_iteration(self, index, params):
        self.journal["order"].append(f"item-{index}")


class MiddleLayer(BaseLayer):
    @on_complete
    def middle_complete(self):
        self.journal["order"].append("middle")

    @on_iteration
    def after_item(self):
        self.journal["order"].append(f"cursor-{self.cursor_position}")


class TopLayer(MiddleLayer):
    @on_start
    def top_start(self):
        self.journal["order"].append("start")

    @on_complete
    def top_complete_first(self):
        self.journal["order"].append("top-1")

    @on_complete
    def top_complete_second(self):
        self.journal["order"].append("top-2")


class TestHookRegistry:
    def test_accumulates_across_layers(self):
        names = [fn.__name__ for fn in TopLayer._hooks.hooks(COMPLETE)]
        assert names == ["base_complete", "middle_complete", "top_complete_first", "top_complete_second"]

    def test_parent_is_not_affected_by_subclass(self):
        assert [fn.__name__ for fn in BaseLayer._hooks.hooks(COMPLETE)] == ["base_complete"]
        assert BaseLayer._hooks.hooks(START) == []

    def test_register_programmatically(self):
        registry = HookRegistry()
        calls = []
        registry.register(ITERATION, lambda job: calls.append(job))
        registry.run(ITERATION, "job")
        assert calls == ["job"]

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            HookRegistry().register("finish", lambda job: None)


class TestHookFiring:
    def test_order_within_a_slice(self):
        harness = IterationHarness()
        harness.push(TopLayer, {"times": 2})
        harness.work_one_job()
        assert harness.journal["order"] == [
            "start",
            "item-0", "cursor-0",
            "item-1", "cursor-1",
            "base", "middle", "top-1", "top-2",
        ]

    def test_register_hook_on_class(self):
        class Registered(BaseLayer):
            pass

        Registered.register_hook(START, lambda job: job.journal["order"].append("registered"))
        harness = IterationHarness()
        harness.push(Registered, {"times": 1})
        harness.work_one_job()
        assert harness.journal["order"][0] == "registered"
        assert BaseLayer._hooks.hooks(START) == []


class OverridingLayer(MiddleLayer):
    def middle_complete(self):
        self.journal["order"].append("override")


class RedecoratingLayer(MiddleLayer):
    @on_complete
    def middle_complete(self):
        self.journal["order"].append("redecorated")


class DisablingLayer(MiddleLayer):
    middle_complete = None


class TestOverriddenHooks:
    def run_to_completion(self, job_class):
        harness = IterationHarness()
        harness.push(job_class, {"times": 1})
        harness.work_one_job()
        return [entry for entry in harness.journal["order"] if not entry.startswith(("item", "cursor"))]

    def test_plain_override_replaces_parent_body(self):
        assert self.run_to_completion(OverridingLayer) == ["base", "override"]

    def test_decorated_override_runs_once_in_parent_slot(self):
        assert self.run_to_completion(RedecoratingLayer) == ["base", "redecorated"]
        assert [fn.__name__ for fn in RedecoratingLayer._hooks.hooks(COMPLETE)] == [
            "base_complete", "middle_complete",
        ]

    def test_override_with_none_disables_hook(self):
        assert self.run_to_completion(DisablingLayer) == ["base"]

    def test_parent_keeps_its_own_body(self):
        assert self.run_to_completion(MiddleLayer) == ["base", "middle"]
