from stratus.core.exceptions import (
    AmbiguousInstanceGroupError,
    CancelledError,
    CloudError,
    ClusterNotReadyError,
    ConfigurationError,
    DeclarationError,
    DependencyCycleError,
    DuplicateTaskError,
    FatalCloudError,
    InstanceTerminationError,
    LifecycleViolationError,
    NodeListError,
    RollingUpdateError,
    StratusError,
    TaskFailedError,
    TransientCloudError,
    UnknownDependencyError,
    UnknownRoleError,
    ValidationTimeoutError,
)

__all__ = [
    "AmbiguousInstanceGroupError",
    "CancelledError",
    "CloudError",
    "ClusterNotReadyError",
    "ConfigurationError",
    "DeclarationError",
    "DependencyCycleError",
    "DuplicateTaskError",
    "FatalCloudError",
    "InstanceTerminationError",
    "LifecycleViolationError",
    "NodeListError",
    "RollingUpdateError",
    "StratusError",
    "TaskFailedError",
    "TransientCloudError",
    "UnknownDependencyError",
    "UnknownRoleError",
    "ValidationTimeoutError",
]
