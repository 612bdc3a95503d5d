"""stratus - Converge cloud infrastructure and roll cluster instances.

Example:

    from stratus import ClusterSpec, InstanceGroupSpec, Role, build_cloud, run_rolling_update
    from stratus.config import RollingUpdateOptions

    cluster = ClusterSpec(name="k8s.example.com", region="us-east-1")
    groups = [
        InstanceGroupSpec(name="master-us-east-1a", role=Role.MASTER),
        InstanceGroupSpec(name="nodes", role=Role.NODE),
    ]

    # nodes: a ClusterNodes, validator: a ClusterValidator for this cluster
    report = run_rolling_update(
        build_cloud(cluster), cluster, groups, RollingUpdateOptions(yes=True),
        nodes=nodes, validator=validator,
    )
    report.raise_for_failures()
"""

from loguru import logger

# Callback system
from stratus.callback import Callback, collect, compose, emit, only, use_callback

# Cloud handles
from stratus.cloud import (
    Cloud,
    ClusterNodes,
    ClusterValidator,
    InstanceGroupCloud,
    MemoryCloud,
    build_cloud,
)

# Declared cluster model
from stratus.cluster import ClusterSpec, InstanceGroupSpec, Role

# Configuration
from stratus.config import ConvergenceOptions, RollingUpdateOptions, resolve_options

# Errors
from stratus.core.exceptions import (
    CloudError,
    DeclarationError,
    FatalCloudError,
    RollingUpdateError,
    StratusError,
    TaskFailedError,
    TransientCloudError,
)

# Convergence engine
from stratus.engine import ChangeSummary, Executor, Lifecycle, Task, apply, resolve

# Events (ADT)
from stratus.events import StratusEvent

# Rolling update
from stratus.rolling import (
    RollingUpdateCluster,
    RollingUpdateReport,
    find_cloud_instance_groups,
    run_rolling_update,
)

logger.disable("stratus")

__version__ = "0.1.0"

__all__ = [
    # Convergence engine
    "Task",
    "Lifecycle",
    "Executor",
    "ChangeSummary",
    "apply",
    "resolve",
    # Rolling update
    "RollingUpdateCluster",
    "RollingUpdateReport",
    "find_cloud_instance_groups",
    "run_rolling_update",
    # Cluster model
    "ClusterSpec",
    "InstanceGroupSpec",
    "Role",
    # Cloud
    "Cloud",
    "InstanceGroupCloud",
    "ClusterNodes",
    "ClusterValidator",
    "MemoryCloud",
    "build_cloud",
    # Configuration
    "ConvergenceOptions",
    "RollingUpdateOptions",
    "resolve_options",
    # Callback system
    "Callback",
    "emit",
    "use_callback",
    "collect",
    "compose",
    "only",
    "StratusEvent",
    # Errors
    "StratusError",
    "DeclarationError",
    "CloudError",
    "TransientCloudError",
    "FatalCloudError",
    "TaskFailedError",
    "RollingUpdateError",
]
