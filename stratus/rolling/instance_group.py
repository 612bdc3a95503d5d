"""Live instance groups joined with their declarations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from stratus.cloud.model import LiveGroup, LiveInstance, Node
from stratus.cluster import InstanceGroupSpec


class GroupStatus(StrEnum):
    READY = "Ready"
    NEEDS_UPDATE = "NeedsUpdate"


@dataclass(frozen=True, slots=True)
class CloudInstance:
    """A live instance plus the cluster node running on it, if the cluster reports one."""

    instance: LiveInstance
    node: Node | None = None

    @property
    def id(self) -> str:
        return self.instance.id


@dataclass(frozen=True, slots=True)
class CloudInstanceGroup:
    """The live group backing a declared instance group.

    ``ready`` instances run the group's current launch configuration;
    ``need_update`` instances run a stale one.
    """

    instance_group: InstanceGroupSpec
    live: LiveGroup
    ready: tuple[CloudInstance, ...]
    need_update: tuple[CloudInstance, ...]

    @classmethod
    def build(
        cls,
        instance_group: InstanceGroupSpec,
        live: LiveGroup,
        nodes_by_external_id: Mapping[str, Node],
    ) -> CloudInstanceGroup:
        ready: list[CloudInstance] = []
        need_update: list[CloudInstance] = []
        for instance in live.instances:
            member = CloudInstance(instance, nodes_by_external_id.get(instance.id))
            if instance.launch_configuration == live.launch_configuration:
                ready.append(member)
            else:
                need_update.append(member)
        return cls(instance_group, live, tuple(ready), tuple(need_update))

    @property
    def name(self) -> str:
        return self.instance_group.name

    @property
    def live_name(self) -> str:
        return self.live.name

    @property
    def status(self) -> GroupStatus:
        return GroupStatus.NEEDS_UPDATE if self.need_update else GroupStatus.READY

    @property
    def min_size(self) -> int:
        return self.live.min_size

    @property
    def max_size(self) -> int:
        return self.live.max_size

    @property
    def nodes(self) -> tuple[Node, ...]:
        return tuple(m.node for m in (*self.ready, *self.need_update) if m.node is not None)

    def to_replace(self, force: bool) -> tuple[CloudInstance, ...]:
        """Instances a rolling update replaces: stale ones, plus up-to-date ones when forced."""
        return self.need_update + self.ready if force else self.need_update

    def __str__(self) -> str:
        return f"CloudInstanceGroup:{self.live.name}"
