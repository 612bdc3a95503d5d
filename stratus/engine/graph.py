"""Dependency resolution for a set of tasks.

Edges come from each task's ``dependencies()``: a task is ordered after
every task it links to. Tasks without an ordering constraint between them
are ordered by name (then kind), so the same task set always produces the
same plan.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from loguru import logger

from stratus.core.exceptions import (
    DependencyCycleError,
    DuplicateTaskError,
    UnknownDependencyError,
)
from stratus.engine.task import Ref, Task

log = logger.bind(component="graph")


def _sort_key(ref: Ref) -> tuple[str, str]:
    return ref.name, ref.kind


def index_tasks(tasks: Iterable[Task]) -> dict[Ref, Task]:
    by_identity: dict[Ref, Task] = {}
    for task in tasks:
        if task.identity in by_identity:
            raise DuplicateTaskError(str(task.identity))
        by_identity[task.identity] = task
    return by_identity


def dependency_map(tasks: Iterable[Task]) -> dict[Ref, frozenset[Ref]]:
    """Map each task to the identities it must wait for."""
    by_identity = index_tasks(tasks)
    deps: dict[Ref, frozenset[Ref]] = {}
    for ref, task in by_identity.items():
        for dep in task.dependencies():
            if dep.identity not in by_identity:
                raise UnknownDependencyError(str(ref), str(dep.identity))
        deps[ref] = frozenset(d.identity for d in task.dependencies())
    return deps


def resolve(tasks: Iterable[Task]) -> list[Task]:
    """Order tasks so that every task comes after the tasks it links to.

    Raises:
        DuplicateTaskError: Two tasks share kind and name.
        UnknownDependencyError: A task links to a task outside the set.
        DependencyCycleError: Links form a cycle; nothing is ordered.
    """
    by_identity = index_tasks(tasks)
    deps = dependency_map(by_identity.values())

    dependents: dict[Ref, list[Ref]] = {ref: [] for ref in deps}
    pending = {ref: len(d) for ref, d in deps.items()}
    for ref, d in deps.items():
        for parent in d:
            dependents[parent].append(ref)

    ready = [(_sort_key(ref), ref) for ref, n in pending.items() if n == 0]
    heapq.heapify(ready)

    ordered: list[Task] = []
    while ready:
        _, ref = heapq.heappop(ready)
        ordered.append(by_identity[ref])
        for child in dependents[ref]:
            pending[child] -= 1
            if pending[child] == 0:
                heapq.heappush(ready, (_sort_key(child), child))

    if len(ordered) != len(by_identity):
        remaining = {ref for ref, n in pending.items() if n > 0}
        raise DependencyCycleError([str(r) for r in _find_cycle(remaining, deps)])

    log.debug("Resolved {n} tasks", n=len(ordered))
    return ordered


def _find_cycle(remaining: set[Ref], deps: dict[Ref, frozenset[Ref]]) -> list[Ref]:
    # Every node left after Kahn's pass has an unresolved parent inside
    # `remaining`, so following parents must revisit a node.
    start = min(remaining, key=_sort_key)
    path: list[Ref] = []
    seen: dict[Ref, int] = {}
    node = start
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = min((p for p in deps[node] if p in remaining), key=_sort_key)
    cycle = path[seen[node]:]
    cycle.reverse()
    return [*cycle, cycle[0]]
