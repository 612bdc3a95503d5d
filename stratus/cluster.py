"""Declared cluster model consumed by discovery and the rolling update.

These objects are produced by the declared-spec provider (loading and
defaulting are not stratus' concern) and are read-only from the engine's
perspective.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

type CloudProviderName = Literal["aws", "gcp", "memory"]

CLUSTER_TAG = "KubernetesCluster"

_GCE_UNSAFE = re.compile(r"[^a-z0-9-]")


def gce_safe_name(name: str) -> str:
    """Lowercase ``name`` and replace anything GCE rejects in resource names with ``-``."""
    return _GCE_UNSAFE.sub("-", name.lower())


class Role(StrEnum):
    """Role of an instance group within the cluster."""

    MASTER = "Master"
    NODE = "Node"
    BASTION = "Bastion"


@dataclass(frozen=True, slots=True)
class InstanceGroupSpec:
    """A declared set of homogeneous cluster nodes."""

    name: str
    role: Role | str
    machine_type: str = ""
    image: str = ""
    min_size: int | None = None
    max_size: int | None = None
    zones: tuple[str, ...] = ()

    @property
    def is_control_plane(self) -> bool:
        return self.role == Role.MASTER


@dataclass(frozen=True, slots=True)
class ClusterSpec:
    """Cluster-level configuration.

    Attributes:
        name: Cluster name, used in live resource naming and tagging.
        cloud_provider: Back end the cluster lives on.
        region: Cloud region (AWS region, GCP region).
        project: GCP project; ignored elsewhere.
        labels: Extra tags that live resources of this cluster carry.
    """

    name: str
    cloud_provider: CloudProviderName = "aws"
    region: str = ""
    project: str = ""
    zones: tuple[str, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict)

    @property
    def tags(self) -> dict[str, str]:
        """Tags identifying live resources that belong to this cluster."""
        return {CLUSTER_TAG: self.name, **self.labels}

    def group_resource_name(self, group: InstanceGroupSpec) -> str | None:
        """Live group name for a declared group, or None for an unknown role.

        Control-plane groups are named ``{group}.masters.{cluster}``; worker
        and bastion groups ``{group}.{cluster}``. On GCP, where names can't
        contain dots, the result goes through ``gce_safe_name``.
        """
        match group.role:
            case Role.MASTER:
                name = f"{group.name}.masters.{self.name}"
            case Role.NODE | Role.BASTION:
                name = f"{group.name}.{self.name}"
            case _:
                return None
        return gce_safe_name(name) if self.cloud_provider == "gcp" else name
