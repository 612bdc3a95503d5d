"""Exception hierarchy for stratus.

All stratus-specific exceptions inherit from StratusError, enabling
callers to catch every stratus failure with a single except clause.

Errors fall into four families:

- Declaration errors: the declared intent is inconsistent. Always fatal and
  raised before any cloud mutation.
- Cloud errors: raised by cloud collaborators, classified as transient
  (retried with backoff) or fatal.
- Validation errors: the cluster did not become healthy in time.
- Aggregates: TaskFailedError and RollingUpdateError carry the failing unit.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stratus.engine.changes import ChangeSummary
    from stratus.engine.task import Task
    from stratus.rolling.update import RollingUpdateReport


class StratusError(Exception):
    """Base exception for all stratus errors."""


class ConfigurationError(StratusError):
    """Raised for invalid configuration or missing required settings."""


class CancelledError(StratusError):
    """Raised when a run is cancelled through its cancellation token."""


# =============================================================================
# Declaration errors
# =============================================================================


class DeclarationError(StratusError):
    """The declared specification is inconsistent."""


class DependencyCycleError(DeclarationError):
    """Raised when task references form a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Dependency cycle between tasks: {' -> '.join(self.cycle)}")


class DuplicateTaskError(DeclarationError):
    """Raised when two tasks share the same identity."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"Task {identity} declared more than once")


class UnknownDependencyError(DeclarationError):
    """Raised when a task links to a task outside the task set."""

    def __init__(self, task: str, dependency: str) -> None:
        self.task = task
        self.dependency = dependency
        super().__init__(f"Task {task} depends on {dependency}, which is not part of this run")


class AmbiguousInstanceGroupError(DeclarationError):
    """Raised when more than one declared group maps to a live group."""

    def __init__(self, live_name: str, candidates: Sequence[str]) -> None:
        self.live_name = live_name
        self.candidates = tuple(candidates)
        super().__init__(
            f"Found multiple instance groups matching {live_name!r}: {', '.join(self.candidates)}"
        )


class UnknownRoleError(DeclarationError):
    """Raised when an instance group carries a role the orchestrator can't roll."""

    def __init__(self, group: str, role: object) -> None:
        self.group = group
        self.role = role
        super().__init__(f"Unknown role {role!r} for instance group {group!r}")


# =============================================================================
# Cloud errors
# =============================================================================


class CloudError(StratusError):
    """Raised by cloud collaborators."""

    retryable: bool = False


class TransientCloudError(CloudError):
    """Rate limiting or read-after-write lag - retry."""

    retryable = True


class FatalCloudError(CloudError):
    """Malformed request, permission denied or conflicting mutation - do not retry."""


class LifecycleViolationError(StratusError):
    """Raised when live state violates a read-only task lifecycle."""


class TaskFailedError(StratusError):
    """Raised when a task can't be converged.

    Carries the responsible task and the changes that were applied before
    the failure (nothing is rolled back).
    """

    def __init__(
        self,
        task: Task,
        cause: BaseException | str,
        partial: ChangeSummary | None = None,
    ) -> None:
        self.task = task
        self.cause = cause
        self.partial = partial
        super().__init__(f"Task {task.identity} failed: {cause}")


# =============================================================================
# Rolling update errors
# =============================================================================


class ClusterNotReadyError(StratusError):
    """Raised by cluster validators while the cluster isn't healthy yet."""


class NodeListError(StratusError):
    """Raised when the cluster API can't list nodes before a rolling update."""

    def __init__(self, cluster: str, cause: BaseException) -> None:
        self.cluster = cluster
        self.cause = cause
        super().__init__(
            f"Error listing nodes in cluster {cluster!r}: {cause} "
            "(use cloud-only mode to update without the cluster API)"
        )


class ValidationTimeoutError(StratusError):
    """Raised when the cluster didn't validate within the retry budget."""

    def __init__(self, group: str, attempts: int, last_error: BaseException | None = None) -> None:
        self.group = group
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(
            f"Cluster did not validate after {attempts} attempts while updating {group!r}{detail}"
        )


class InstanceTerminationError(StratusError):
    """Raised when the cloud refuses to terminate an instance."""

    def __init__(self, group: str, instance_id: str, cause: BaseException) -> None:
        self.group = group
        self.instance_id = instance_id
        self.cause = cause
        super().__init__(f"Error deleting instance {instance_id!r} in group {group!r}: {cause}")


class RollingUpdateError(StratusError):
    """Raised when one or more groups failed their rolling update."""

    def __init__(self, report: RollingUpdateReport) -> None:
        self.report = report
        super().__init__(report.summary())
