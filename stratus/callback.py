"""Progress events for convergence runs and rolling updates.

The active callback lives in a ContextVar. Worker groups of a rolling
update run in threads that start from a copy of the caller's context, so
every group reports to the same callback. ``use_callback`` serializes
delivery: a callback never sees two events at once, even while several
groups emit concurrently.

A callback may return derived events. They are dispatched after the
callback returns, outside its lock.

Example:
    from stratus.callback import collect, use_callback
    from stratus.events import GroupFinished, InstanceTerminating

    def progress(event):
        match event:
            case InstanceTerminating(group=group, instance_id=iid):
                print(f"{group}: terminating {iid}")

    with use_callback(progress), collect(GroupFinished) as finished:
        orchestrator.rolling_update(groups)
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stratus.events import StratusEvent

type CallbackResult = StratusEvent | Sequence[StratusEvent] | None
type Callback = Callable[[StratusEvent], CallbackResult]

_callback: ContextVar[Callback | None] = ContextVar("stratus_cb", default=None)


def _normalize(result: CallbackResult) -> list[StratusEvent]:
    if result is None:
        return []
    if isinstance(result, Sequence) and not isinstance(result, str):
        return list(result)
    return [result]  # type: ignore[list-item]


def _serialized(cb: Callback) -> Callback:
    lock = threading.RLock()

    def locked(event: StratusEvent) -> CallbackResult:
        with lock:
            return cb(event)

    return locked


def emit(event: StratusEvent) -> None:
    """Deliver ``event`` and then its derived events, breadth-first."""
    cb = _callback.get()
    if cb is None:
        return

    pending: deque[StratusEvent] = deque([event])
    while pending:
        pending.extend(_normalize(cb(pending.popleft())))


def compose(*callbacks: Callback) -> Callback:
    """One callback that forwards every event to each of ``callbacks``."""
    match callbacks:
        case []:
            return lambda _: None
        case [single]:
            return single
        case _:

            def combined(event: StratusEvent) -> list[StratusEvent]:
                results: list[StratusEvent] = []
                for cb in callbacks:
                    results.extend(_normalize(cb(event)))
                return results

            return combined


@contextmanager
def use_callback(cb: Callback) -> Iterator[None]:
    """Make ``cb`` the active callback for the block, replacing any outer one."""
    token = _callback.set(_serialized(cb))
    try:
        yield
    finally:
        _callback.reset(token)


def only(*event_types: type[StratusEvent]) -> Callable[[Callback], Callback]:
    """Decorator that filters a callback to only receive specific event types.

    Example:
        @only(GroupFinished)
        def on_group(event):
            print(event)
    """

    def decorator(cb: Callback) -> Callback:
        def filtered(event: StratusEvent) -> CallbackResult:
            if isinstance(event, event_types):
                return cb(event)
            return None

        return filtered

    return decorator


@contextmanager
def collect(*event_types: type[StratusEvent]) -> Iterator[list[StratusEvent]]:
    """Record events emitted in the block, in delivery order.

    The outer callback, if any, keeps receiving every event. With
    ``event_types`` only those types are recorded.
    """
    events: list[StratusEvent] = []
    record: Callback = events.append
    if event_types:
        record = only(*event_types)(record)

    outer = _callback.get()
    with use_callback(compose(outer, record) if outer is not None else record):
        yield events


__all__ = [
    "Callback",
    "CallbackResult",
    "emit",
    "compose",
    "use_callback",
    "only",
    "collect",
]
