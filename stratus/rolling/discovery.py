"""Cloud instance group discovery.

Joins declared instance groups against the live groups tagged for the
cluster, by name: ``{group}.masters.{cluster}`` for control-plane groups,
``{group}.{cluster}`` for the rest.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from stratus.cloud.model import Node
from stratus.cloud.protocols import InstanceGroupCloud
from stratus.cluster import ClusterSpec, InstanceGroupSpec
from stratus.core.exceptions import AmbiguousInstanceGroupError
from stratus.rolling.instance_group import CloudInstanceGroup

log = logger.bind(component="discovery")


def find_cloud_instance_groups(
    cloud: InstanceGroupCloud,
    cluster: ClusterSpec,
    instance_groups: Iterable[InstanceGroupSpec],
    nodes: Iterable[Node] = (),
    *,
    warn_unmatched: bool = True,
) -> dict[str, CloudInstanceGroup]:
    """Match declared groups to live groups and partition their instances.

    Args:
        cloud: Cloud handle listing live groups.
        cluster: Cluster the groups belong to.
        instance_groups: Declared groups.
        nodes: Nodes reported by the cluster; linked to instances by external id.
        warn_unmatched: Log live groups that match no declaration.

    Returns:
        Groups keyed by declared group name.

    Raises:
        AmbiguousInstanceGroupError: Two declared groups map to one live group.
    """
    by_live_name: dict[str, list[InstanceGroupSpec]] = {}
    for group in instance_groups:
        live_name = cluster.group_resource_name(group)
        if live_name is None:
            log.warning("Ignoring instance group {name} of unknown role {role!r}", name=group.name, role=group.role)
            continue
        by_live_name.setdefault(live_name, []).append(group)

    nodes_by_external_id = {node.external_id: node for node in nodes}
    live_groups = cloud.list_instance_groups(cluster.tags)

    result: dict[str, CloudInstanceGroup] = {}
    for live in live_groups:
        candidates = by_live_name.get(live.name, [])
        if len(candidates) > 1:
            raise AmbiguousInstanceGroupError(live.name, [g.name for g in candidates])
        if not candidates:
            if warn_unmatched:
                log.warning("Found live group with no corresponding instance group: {name}", name=live.name)
            continue

        group = CloudInstanceGroup.build(candidates[0], live, nodes_by_external_id)
        log.debug(
            "Group {name}: {ready} ready, {stale} need update",
            name=group.name, ready=len(group.ready), stale=len(group.need_update),
        )
        result[group.name] = group

    return result
