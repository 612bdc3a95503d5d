"""End-to-end rolling update: discover, report, then replace."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable

from loguru import logger

from stratus.cloud.model import Node
from stratus.cloud.protocols import ClusterNodes, ClusterValidator, InstanceGroupCloud
from stratus.cluster import ClusterSpec, InstanceGroupSpec
from stratus.config import RollingUpdateOptions
from stratus.core.exceptions import ConfigurationError, NodeListError
from stratus.rolling.discovery import find_cloud_instance_groups
from stratus.rolling.instance_group import CloudInstanceGroup, GroupStatus
from stratus.rolling.update import RollingUpdateCluster, RollingUpdateReport

log = logger.bind(component="rolling-update")


def run_rolling_update(
    cloud: InstanceGroupCloud,
    cluster: ClusterSpec,
    instance_groups: Iterable[InstanceGroupSpec],
    options: RollingUpdateOptions | None = None,
    nodes: ClusterNodes | None = None,
    validator: ClusterValidator | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    cancel: threading.Event | None = None,
) -> RollingUpdateReport:
    """Roll the cluster's instance groups onto their current launch configuration.

    Without ``options.yes`` this only reports what would be replaced. With
    ``options.cloud_only`` the cluster API (``nodes``, ``validator``) is never
    consulted; otherwise both are required.

    Returns:
        The orchestrator's report; empty when nothing ran.

    Raises:
        ConfigurationError: ``nodes`` or ``validator`` is missing outside
            cloud-only mode.
        NodeListError: The cluster API could not list nodes.
    """
    options = options or RollingUpdateOptions()
    if options.cloud_only:
        nodes, validator = None, None
    elif nodes is None or validator is None:
        raise ConfigurationError(
            "Rolling update needs cluster nodes and a validator; set cloud_only to update without them"
        )

    cluster_nodes: list[Node] = []
    if nodes is not None:
        try:
            cluster_nodes = nodes.list_nodes()
        except Exception as e:
            raise NodeListError(cluster.name, e) from e

    groups = find_cloud_instance_groups(cloud, cluster, instance_groups, cluster_nodes)

    for line in status_lines(groups, cloud_only=options.cloud_only):
        log.info(line)

    if not options.force and all(g.status == GroupStatus.READY for g in groups.values()):
        log.info("No rolling-update required")
        return RollingUpdateReport()

    if not options.yes:
        log.info("Must specify yes to rolling-update")
        return RollingUpdateReport()

    orchestrator = RollingUpdateCluster(
        cloud,
        cluster.name,
        options,
        nodes=nodes,
        validator=validator,
        sleep=sleep,
        cancel=cancel,
    )
    return orchestrator.rolling_update(groups)


def status_lines(groups: dict[str, CloudInstanceGroup], *, cloud_only: bool = False) -> list[str]:
    """Tab-separated status table; no NODES column when nodes weren't listed."""
    columns = ["NAME", "STATUS", "NEEDUPDATE", "READY", "MIN", "MAX"]
    if not cloud_only:
        columns.append("NODES")

    lines = ["\t".join(columns)]
    for name in sorted(groups):
        g = groups[name]
        row = [name, str(g.status), str(len(g.need_update)), str(len(g.ready)), str(g.min_size), str(g.max_size)]
        if not cloud_only:
            row.append(str(len(g.nodes)))
        lines.append("\t".join(row))
    return lines
