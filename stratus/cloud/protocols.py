"""Collaborator protocols consumed by the engine and the rolling update.

Implementations classify their failures by raising ``TransientCloudError``
(retried) or ``FatalCloudError`` (aborts the current unit of work).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stratus.cloud.model import LiveGroup, Node, Resource, ValidationReport

__all__ = [
    "Cloud",
    "InstanceGroupCloud",
    "ClusterNodes",
    "ClusterValidator",
]


@runtime_checkable
class Cloud(Protocol):
    """Generic resource access used by the convergence executor."""

    def find(self, kind: str, name: str) -> Resource | None:
        """Return the live object, or None if it doesn't exist."""
        ...

    def create(self, resource: Resource) -> Resource: ...

    def update(self, resource: Resource, delta: Mapping[str, Any]) -> Resource: ...

    def delete(self, resource: Resource) -> None: ...

    def list_by_tag(self, tags: Mapping[str, str]) -> list[Resource]: ...


@runtime_checkable
class InstanceGroupCloud(Protocol):
    """Autoscaling-group access used by discovery and the rolling update."""

    @property
    def tags(self) -> dict[str, str]:
        """Tags carried by every live resource of the cluster."""
        ...

    def list_instance_groups(self, tags: Mapping[str, str]) -> list[LiveGroup]: ...

    def terminate_instance(self, instance_id: str) -> None: ...


@runtime_checkable
class ClusterNodes(Protocol):
    """The cluster's own view of its nodes."""

    def list_nodes(self) -> list[Node]: ...

    def cordon(self, node_name: str) -> None: ...


@runtime_checkable
class ClusterValidator(Protocol):
    def validate(self, cluster_name: str) -> ValidationReport:
        """Validate the cluster, raising ClusterNotReadyError while unhealthy."""
        ...
