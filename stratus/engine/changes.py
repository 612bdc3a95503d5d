"""Field-level diffs and the change summary returned by a convergence run."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from stratus.engine.task import Ref


class Action(StrEnum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    actual: Any
    expected: Any

    def __str__(self) -> str:
        return f"{self.field}: {self.actual!r} -> {self.expected!r}"


def diff(actual: Mapping[str, Any] | None, expected: Mapping[str, Any]) -> tuple[FieldChange, ...]:
    """Compare found state to declared state, field by field.

    Only declared fields are compared; fields the live object carries but
    the task doesn't declare are ignored. A missing object differs in
    every declared field.
    """
    found = actual or {}
    return tuple(
        FieldChange(key, found.get(key), value)
        for key, value in sorted(expected.items())
        if actual is None or key not in found or found[key] != value
    )


@dataclass(frozen=True, slots=True)
class Change:
    """A create or update computed for one task."""

    task: Ref
    action: Action
    fields: tuple[FieldChange, ...]

    @property
    def delta(self) -> dict[str, Any]:
        return {f.field: f.expected for f in self.fields}

    def describe(self) -> str:
        lines = [f"  {self.action} {self.task}"]
        lines.extend(f"      {f}" for f in self.fields)
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Drift:
    """Differences detected on a task whose lifecycle forbids mutation."""

    task: Ref
    fields: tuple[FieldChange, ...]
    missing: bool = False

    def describe(self) -> str:
        if self.missing:
            return f"  {self.task} does not exist"
        return f"  {self.task} differs in " + ", ".join(f.field for f in self.fields)


@dataclass(frozen=True, slots=True)
class ChangeSummary:
    """Outcome of a convergence run.

    Attributes:
        changes: Creates and updates in the order they were (or would be) applied.
        warnings: Drift on WARN_IF_CHANGES tasks.
        dry_run: True when nothing was sent to the cloud.
    """

    changes: tuple[Change, ...] = ()
    warnings: tuple[Drift, ...] = ()
    dry_run: bool = False

    @property
    def empty(self) -> bool:
        return not self.changes

    def describe(self) -> str:
        if self.empty and not self.warnings:
            return "No changes need to be applied"
        header = "Will apply changes:" if self.dry_run else "Applied changes:"
        parts = [header, *(c.describe() for c in self.changes)] if self.changes else []
        if self.warnings:
            parts.append("Drift detected (not modified):")
            parts.extend(w.describe() for w in self.warnings)
        return "\n".join(parts)
