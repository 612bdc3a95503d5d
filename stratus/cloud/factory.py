"""Construction of cloud handles from cluster configuration.

Each call builds a fresh handle; nothing is cached at module level, and
the caller owns the handle's lifetime.
"""

from __future__ import annotations

from loguru import logger

from stratus.cloud.memory import MemoryCloud
from stratus.cloud.protocols import InstanceGroupCloud
from stratus.cluster import ClusterSpec
from stratus.core.exceptions import ConfigurationError

log = logger.bind(component="cloud")


def build_cloud(cluster: ClusterSpec) -> InstanceGroupCloud:
    """Build the cloud handle for ``cluster.cloud_provider``.

    Raises:
        ConfigurationError: Unknown provider, or a required setting is missing.
    """
    log.debug("Building {provider} cloud for {cluster}", provider=cluster.cloud_provider, cluster=cluster.name)

    match cluster.cloud_provider:
        case "aws":
            if not cluster.region:
                raise ConfigurationError(f"Cluster {cluster.name!r} has no AWS region")
            from stratus.providers.aws import AWSCloud

            return AWSCloud.for_cluster(cluster)
        case "gcp":
            if not cluster.project:
                raise ConfigurationError(f"Cluster {cluster.name!r} has no GCP project")
            from stratus.providers.gcp import GCPCloud

            return GCPCloud.for_cluster(cluster)
        case "memory":
            return MemoryCloud(tags=cluster.tags)
        case other:
            raise ConfigurationError(f"Unknown cloud provider: {other!r}")
