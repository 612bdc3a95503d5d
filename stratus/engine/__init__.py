"""Convergence engine: tasks, dependency resolution and the executor."""

from stratus.engine.changes import Action, Change, ChangeSummary, Drift, FieldChange, diff
from stratus.engine.executor import Executor, apply
from stratus.engine.graph import resolve
from stratus.engine.task import Lifecycle, Ref, Task

__all__ = [
    "Action",
    "Change",
    "ChangeSummary",
    "Drift",
    "Executor",
    "FieldChange",
    "Lifecycle",
    "Ref",
    "Task",
    "apply",
    "diff",
    "resolve",
]
