"""Compute group intents: launch configurations and autoscaling groups."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import ClassVar

from stratus.engine.task import Task
from stratus.tasks.iam import InstanceProfile
from stratus.tasks.network import SecurityGroup, Subnet

DEFAULT_VOLUME_SIZE = 20
DEFAULT_VOLUME_TYPE = "gp2"


@dataclass(frozen=True, eq=False, kw_only=True)
class LaunchConfiguration(Task):
    """The versioned template instances are launched from."""

    kind: ClassVar[str] = "LaunchConfiguration"

    image_id: str
    instance_type: str
    security_groups: tuple[SecurityGroup, ...] = ()
    iam_instance_profile: InstanceProfile | None = None
    root_volume_size: int = DEFAULT_VOLUME_SIZE
    root_volume_type: str = DEFAULT_VOLUME_TYPE
    ssh_key: str | None = None
    user_data: str | None = None
    spot_price: str | None = None
    associate_public_ip: bool | None = None

    def links(self) -> Iterable[Task]:
        if self.iam_instance_profile is not None:
            return (*self.security_groups, self.iam_instance_profile)
        return self.security_groups


@dataclass(frozen=True, eq=False, kw_only=True)
class AutoscalingGroup(Task):
    kind: ClassVar[str] = "AutoscalingGroup"

    launch_configuration: LaunchConfiguration
    min_size: int = 1
    max_size: int = 1
    subnets: tuple[Subnet, ...] = ()
    tags: Mapping[str, str] = field(default_factory=dict)

    def links(self) -> Iterable[Task]:
        return (self.launch_configuration, *self.subnets)
