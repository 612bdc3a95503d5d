"""Rolling replacement of cluster instances."""

from stratus.rolling.command import run_rolling_update, status_lines
from stratus.rolling.discovery import find_cloud_instance_groups
from stratus.rolling.instance_group import CloudInstance, CloudInstanceGroup, GroupStatus
from stratus.rolling.update import (
    GroupResult,
    GroupState,
    RollingUpdateCluster,
    RollingUpdateReport,
)

__all__ = [
    "CloudInstance",
    "CloudInstanceGroup",
    "GroupResult",
    "GroupState",
    "GroupStatus",
    "RollingUpdateCluster",
    "RollingUpdateReport",
    "find_cloud_instance_groups",
    "run_rolling_update",
    "status_lines",
]
