"""
Lifecycle hooks for iteration jobs.

    class ReportJob(IterationJob):
        @on_start
        def open_report(self):
            ...

        @on_complete
        def close_report(self):
            ...

Hooks of the same kind accumulate down the class hierarchy: a subclass runs
its parents' hooks first, then its own, in definition order.

Decorated methods are dispatched by name, so a subclass that overrides a hook
method runs its own body in the parent's slot, whether or not it decorates the
override again. Setting the name to None in a subclass switches the hook off.
"""
from typing import Callable, Dict, List

START = "start"
ITERATION = "iteration"
COMPLETE = "complete"
SHUTDOWN = "shutdown"
EVENTS = (START, ITERATION, COMPLETE, SHUTDOWN)

_MARK = "__jobiter_hook__"


def _marker(event: str):
    def decorate(fn: Callable) -> Callable:
        setattr(fn, _MARK, event)
        return fn
    decorate.__name__ = f"on_{event}"
    return decorate


on_start = _marker(START)
on_iteration = _marker(ITERATION)
on_complete = _marker(COMPLETE)
on_shutdown = _marker(SHUTDOWN)


def _is_method_hook(fn: Callable) -> bool:
    return getattr(fn, _MARK, None) is not None


class HookRegistry:
    def __init__(self, parent: "HookRegistry" = None):
        self._hooks: Dict[str, List[Callable]] = {e: [] for e in EVENTS}
        if parent is not None:
            for event, hooks in parent._hooks.items():
                self._hooks[event].extend(hooks)

    def register(self, event: str, fn: Callable) -> Callable:
        if event not in self._hooks:
            raise ValueError(f"Unknown hook event {event!r}, expected one of {EVENTS}")
        self._hooks[event].append(fn)
        return fn

    def collect(self, namespace: dict) -> None:
        """Register the marked functions of a class body, in definition order."""
        for value in namespace.values():
            event = getattr(value, _MARK, None)
            if event is None:
                continue
            # a decorated override keeps the slot of the method it replaces
            if any(_is_method_hook(fn) and fn.__name__ == value.__name__ for fn in self._hooks[event]):
                continue
            self.register(event, value)

    def hooks(self, event: str) -> List[Callable]:
        return list(self._hooks[event])

    def run(self, event: str, job) -> None:
        for fn in self._hooks[event]:
            if _is_method_hook(fn):
                fn = getattr(type(job), fn.__name__, fn)
                if fn is None:
                    continue
            fn(job)
