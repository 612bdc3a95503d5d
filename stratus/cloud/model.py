"""Provider-agnostic views of live cloud and cluster objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True, order=True)
class Ref:
    """Identity of a cloud object: its kind and name.

    Task links render to Refs, so declared and found state compare without
    cloud-assigned identifiers.
    """

    kind: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True, slots=True)
class Resource:
    """A live (or to-be-created) cloud object.

    ``properties`` uses the same shape as ``Task.render()`` so that found
    and declared state can be diffed directly.
    """

    kind: str
    name: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    tags: Mapping[str, str] = field(default_factory=dict)
    id: str | None = None

    @property
    def ref(self) -> Ref:
        return Ref(self.kind, self.name)


@dataclass(frozen=True, slots=True)
class LiveInstance:
    """One compute instance inside a live group.

    Attributes:
        id: Cloud identity of the instance (EC2 instance id, GCE instance name).
        launch_configuration: Template the instance was launched from.
    """

    id: str
    launch_configuration: str | None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class LiveGroup:
    """An autoscaling group / managed instance group."""

    name: str
    launch_configuration: str | None
    instances: tuple[LiveInstance, ...] = ()
    min_size: int = 0
    max_size: int = 0
    tags: Mapping[str, str] = field(default_factory=dict)
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Node:
    """A cluster node as reported by the cluster API.

    Attributes:
        name: Node name, used to cordon.
        external_id: Cloud identity of the backing instance.
        ready: Readiness condition.
        role: Role label, if any.
    """

    name: str
    external_id: str
    ready: bool = True
    role: str = "node"


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Outcome of a successful cluster validation."""

    cluster: str
    ready_nodes: tuple[str, ...] = ()
    not_ready_nodes: tuple[str, ...] = ()
