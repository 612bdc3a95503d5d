"""Cloud handles and the provider-agnostic object model."""

from stratus.cloud.factory import build_cloud
from stratus.cloud.memory import MemoryCloud
from stratus.cloud.model import (
    LiveGroup,
    LiveInstance,
    Node,
    Ref,
    Resource,
    ValidationReport,
)
from stratus.cloud.protocols import (
    Cloud,
    ClusterNodes,
    ClusterValidator,
    InstanceGroupCloud,
)

__all__ = [
    "Cloud",
    "ClusterNodes",
    "ClusterValidator",
    "InstanceGroupCloud",
    "LiveGroup",
    "LiveInstance",
    "MemoryCloud",
    "Node",
    "Ref",
    "Resource",
    "ValidationReport",
    "build_cloud",
]
