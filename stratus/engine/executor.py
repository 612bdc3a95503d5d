"""Convergence executor.

Applies a set of tasks against a cloud handle in dependency order. For each
task: find the live object, diff it against the declaration, render the
minimal create/update, and classify the outcome. Transient cloud errors
are retried with exponential backoff; anything else aborts the run with
the failing task attached.

Example:
    summary = apply(tasks, cloud, dry_run=True)
    print(summary.describe())
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stratus.callback import emit
from stratus.cloud.model import Resource
from stratus.cloud.protocols import Cloud
from stratus.config import ConvergenceOptions
from stratus.core.exceptions import (
    LifecycleViolationError,
    TaskFailedError,
    TransientCloudError,
)
from stratus.engine.changes import Action, Change, ChangeSummary, Drift, diff
from stratus.engine.graph import resolve
from stratus.engine.task import Lifecycle, Task
from stratus.events import DriftDetected, TaskApplied, TaskPlanned, TaskRetrying

log = logger.bind(component="executor")

type Outcome = Change | Drift | None


@dataclass(slots=True)
class _Progress:
    changes: list[Change]
    warnings: list[Drift]
    dry_run: bool

    def record(self, outcome: Outcome) -> None:
        match outcome:
            case Change():
                self.changes.append(outcome)
            case Drift():
                self.warnings.append(outcome)
            case None:
                pass

    def summary(self) -> ChangeSummary:
        return ChangeSummary(
            changes=tuple(self.changes),
            warnings=tuple(self.warnings),
            dry_run=self.dry_run,
        )


class Executor:
    """Single-threaded convergence of a task set against one cloud handle.

    Args:
        cloud: Cloud handle, owned by the caller.
        options: Retry policy for transient errors.
        sleep: Blocking sleep used between retries.
    """

    def __init__(
        self,
        cloud: Cloud,
        *,
        options: ConvergenceOptions | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cloud = cloud
        self._options = options or ConvergenceOptions()
        self._sleep = sleep

    def apply(self, tasks: Iterable[Task], dry_run: bool = False) -> ChangeSummary:
        """Converge ``tasks``.

        Declaration errors (cycles, duplicates, unknown links) are raised
        before the cloud is touched.

        Raises:
            DeclarationError: The task set is inconsistent.
            TaskFailedError: A task failed; ``partial`` holds what was applied.
        """
        ordered = resolve(tasks)
        progress = _Progress(changes=[], warnings=[], dry_run=dry_run)

        log.info(
            "Converging {n} tasks{mode}",
            n=len(ordered), mode=" (dry run)" if dry_run else "",
        )
        for task in ordered:
            progress.record(self._converge(task, dry_run, progress))

        summary = progress.summary()
        log.info(
            "Convergence finished: {c} changes, {w} warnings",
            c=len(summary.changes), w=len(summary.warnings),
        )
        return summary

    def _converge(self, task: Task, dry_run: bool, progress: _Progress) -> Outcome:
        retrying = Retrying(
            stop=stop_after_attempt(self._options.max_attempts),
            wait=wait_exponential(
                multiplier=self._options.base_delay,
                max=self._options.max_delay,
            ),
            retry=retry_if_exception_type(TransientCloudError),
            before_sleep=self._before_sleep(task),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(self._step, task, dry_run)
        except TransientCloudError as e:
            log.error("Giving up on {task} after {n} attempts", task=str(task), n=self._options.max_attempts)
            raise TaskFailedError(
                task,
                f"retries exhausted after {self._options.max_attempts} attempts: {e}",
                progress.summary(),
            ) from e
        except Exception as e:
            log.error("Task {task} failed: {err}", task=str(task), err=e)
            raise TaskFailedError(task, e, progress.summary()) from e

    def _before_sleep(self, task: Task) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            log.warning(
                "Retry {attempt}/{total} for {task} after {err}",
                attempt=state.attempt_number, total=self._options.max_attempts,
                task=str(task), err=error,
            )
            emit(TaskRetrying(task=str(task), attempt=state.attempt_number, error=str(error)))

        return before_sleep

    def _step(self, task: Task, dry_run: bool) -> Outcome:
        found = self._cloud.find(task.kind, task.name)
        expected = task.render()
        fields = diff(found.properties if found else None, expected)
        task_log = log.bind(task=str(task))

        match task.lifecycle:
            case Lifecycle.SYNC:
                if found is not None and not fields:
                    task_log.debug("No changes")
                    return None
                action = Action.CREATE if found is None else Action.UPDATE
                change = Change(task=task.identity, action=action, fields=fields)
                emit(TaskPlanned(task=str(task), action=action, fields=tuple(f.field for f in fields)))
                if dry_run:
                    task_log.info("Would {action}: {fields}", action=action, fields=list(change.delta))
                    return change
                self._render(task, found, change)
                return change

            case Lifecycle.MUST_EXIST:
                if found is None:
                    raise LifecycleViolationError(f"{task} must exist but was not found")
                if fields:
                    task_log.debug("Ignoring differences on existing object: {fields}", fields=[f.field for f in fields])
                return None

            case Lifecycle.EXISTS_AND_VALIDATES:
                if found is None:
                    raise LifecycleViolationError(f"{task} must exist but was not found")
                if fields:
                    raise LifecycleViolationError(
                        f"{task} does not match its declaration: " + "; ".join(str(f) for f in fields)
                    )
                return None

            case Lifecycle.WARN_IF_CHANGES:
                if found is not None and not fields:
                    return None
                drift = Drift(task=task.identity, fields=fields, missing=found is None)
                task_log.warning("Drift detected, not modifying: {fields}", fields=[f.field for f in fields])
                emit(DriftDetected(task=str(task), fields=tuple(f.field for f in fields)))
                return drift

    def _render(self, task: Task, found: Resource | None, change: Change) -> None:
        match change.action:
            case Action.CREATE:
                log.info("Creating {task}", task=str(task))
                self._cloud.create(Resource(kind=task.kind, name=task.name, properties=task.render()))
            case Action.UPDATE:
                assert found is not None
                log.info("Updating {task}: {fields}", task=str(task), fields=list(change.delta))
                self._cloud.update(found, change.delta)
        emit(TaskApplied(task=str(task), action=change.action))


def apply(
    tasks: Iterable[Task],
    cloud: Cloud,
    dry_run: bool = False,
    *,
    options: ConvergenceOptions | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ChangeSummary:
    """Converge ``tasks`` against ``cloud``. See ``Executor.apply``."""
    return Executor(cloud, options=options, sleep=sleep).apply(tasks, dry_run)
