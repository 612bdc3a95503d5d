"""Declared infrastructure intents.

A Task says "an object of this kind and name should exist with these
properties". Concrete task types are frozen dataclasses; any field holding
another Task is a link, and each type lists its links explicitly in
``links()``. Links are collected once at construction and exposed through
``dependencies()``.

Example:
    @dataclass(frozen=True, eq=False, kw_only=True)
    class Subnet(Task):
        kind: ClassVar[str] = "Subnet"

        network: Network
        cidr: str

        def links(self) -> Iterable[Task]:
            return (self.network,)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any, ClassVar

from stratus.cloud.model import Ref


class Lifecycle(StrEnum):
    """How the executor treats a task.

    SYNC: create or update to match the declaration.
    MUST_EXIST: fail if absent, never mutate.
    EXISTS_AND_VALIDATES: fail if absent or different, never mutate.
    WARN_IF_CHANGES: report drift, never mutate.
    """

    SYNC = "Sync"
    MUST_EXIST = "MustExist"
    EXISTS_AND_VALIDATES = "ExistsAndValidates"
    WARN_IF_CHANGES = "WarnIfChanges"


_BASE_FIELDS = frozenset({"name", "lifecycle", "_dependencies"})


@dataclass(frozen=True, eq=False, kw_only=True)
class Task(ABC):
    """Base class for declared intents.

    Tasks compare by object identity; two tasks with the same kind and
    name in one run are a declaration error (see ``engine.graph``).
    """

    kind: ClassVar[str] = "Task"

    name: str
    lifecycle: Lifecycle = Lifecycle.SYNC
    _dependencies: tuple[Task, ...] = field(init=False, repr=False, default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "_dependencies", tuple(self.links()))

    @abstractmethod
    def links(self) -> Iterable[Task]:
        """Tasks this task references. Return ``()`` when there are none."""

    def dependencies(self) -> tuple[Task, ...]:
        return self._dependencies

    @property
    def identity(self) -> Ref:
        return Ref(self.kind, self.name)

    def properties(self) -> dict[str, Any]:
        """Declared properties, links included as Task objects."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in _BASE_FIELDS
        }

    def render(self) -> dict[str, Any]:
        """Properties with links replaced by Refs and unset (None) fields dropped.

        A None field means "don't care": it is neither diffed nor sent on create.
        """
        return {
            key: _render_value(value)
            for key, value in sorted(self.properties().items())
            if value is not None
        }

    def __str__(self) -> str:
        return str(self.identity)


def _render_value(value: Any) -> Any:
    match value:
        case Task():
            return value.identity
        case Mapping():
            return {k: _render_value(v) for k, v in sorted(value.items())}
        case list() | tuple():
            return tuple(_render_value(v) for v in value)
        case _:
            return value
