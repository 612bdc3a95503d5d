"""Algebraic Data Type (ADT) for stratus events.

Events cover both subsystems:
- Convergence: TaskPlanned, TaskApplied, TaskRetrying, DriftDetected
- Rolling update: GroupStarted, InstanceCordoned, CordonFailed,
  InstanceTerminating, ValidationAttempted, GroupFinished

Use pattern matching to handle events in consumers:

    match event:
        case TaskApplied(task=name, action=action):
            print(f"{action} {name}")
        case GroupFinished(group=group, state=state):
            print(f"{group}: {state}")
"""

from __future__ import annotations

from dataclasses import dataclass

# =============================================================================
# Convergence Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class TaskPlanned:
    """A change was computed for a task (emitted in dry-run and real runs)."""

    task: str
    action: str
    fields: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TaskApplied:
    """A change was rendered against the cloud."""

    task: str
    action: str


@dataclass(frozen=True, slots=True)
class TaskRetrying:
    """A transient cloud error is being retried."""

    task: str
    attempt: int
    error: str


@dataclass(frozen=True, slots=True)
class DriftDetected:
    """Live state differs from a task that must not be mutated."""

    task: str
    fields: tuple[str, ...]


# =============================================================================
# Rolling Update Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class GroupStarted:
    """Rolling update of a group started."""

    group: str
    instances: int


@dataclass(frozen=True, slots=True)
class InstanceCordoned:
    """Cluster node cordoned before termination."""

    group: str
    instance_id: str
    node: str


@dataclass(frozen=True, slots=True)
class CordonFailed:
    """Cordon failed; the instance is replaced anyway."""

    group: str
    instance_id: str
    node: str
    error: str


@dataclass(frozen=True, slots=True)
class InstanceTerminating:
    """Cloud-level termination issued for an instance."""

    group: str
    instance_id: str


@dataclass(frozen=True, slots=True)
class ValidationAttempted:
    """One cluster validation poll."""

    group: str
    attempt: int
    ok: bool


@dataclass(frozen=True, slots=True)
class GroupFinished:
    """Rolling update of a group reached a terminal state."""

    group: str
    state: str
    error: str | None = None


# =============================================================================
# Union Type (ADT)
# =============================================================================

StratusEvent = (
    TaskPlanned
    | TaskApplied
    | TaskRetrying
    | DriftDetected
    | GroupStarted
    | InstanceCordoned
    | CordonFailed
    | InstanceTerminating
    | ValidationAttempted
    | GroupFinished
)


__all__ = [
    # Convergence
    "TaskPlanned",
    "TaskApplied",
    "TaskRetrying",
    "DriftDetected",
    # Rolling update
    "GroupStarted",
    "InstanceCordoned",
    "CordonFailed",
    "InstanceTerminating",
    "ValidationAttempted",
    "GroupFinished",
    # Union type
    "StratusEvent",
]
