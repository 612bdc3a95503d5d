"""Managed instance groups through google-cloud-compute.

Implements InstanceGroupCloud on GCE. Managed instance groups carry no
labels of their own, so a group belongs to the cluster when its instance
template is labelled with every (GCE-sanitized) cluster tag. Terminated
instances are deleted directly; the group recreates them from its current
template.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as gapi
from loguru import logger

from stratus.cloud.model import LiveGroup, LiveInstance
from stratus.cluster import gce_safe_name
from stratus.core.exceptions import CloudError, FatalCloudError, TransientCloudError

if TYPE_CHECKING:
    from stratus.cluster import ClusterSpec

log = logger.bind(provider="gcp")

# NotFound covers reads that race a recent create.
TRANSIENT_ERRORS: tuple[type[gapi.GoogleAPICallError], ...] = (
    gapi.TooManyRequests,
    gapi.ServiceUnavailable,
    gapi.NotFound,
)


def classify_api_error(action: str, error: gapi.GoogleAPICallError) -> CloudError:
    message = f"{action} failed: {error}"
    if isinstance(error, TRANSIENT_ERRORS):
        return TransientCloudError(message)
    return FatalCloudError(message)


def gce_labels(tags: Mapping[str, str]) -> dict[str, str]:
    """Cluster tags as GCE labels (lowercase, restricted charset)."""
    return {gce_safe_name(k): gce_safe_name(v) for k, v in tags.items()}


def _last_segment(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1]


class GCPCloud:
    """GCE handle scoped to one project, region and cluster.

    Args:
        project: GCP project id.
        region: Only zones of this region are considered; empty for all.
        tags: Cluster tags; converted to GCE labels.
        groups_client: ``compute_v1.InstanceGroupManagersClient``.
        templates_client: ``compute_v1.InstanceTemplatesClient``.
        instances_client: ``compute_v1.InstancesClient``.
    """

    def __init__(
        self,
        project: str,
        region: str,
        tags: Mapping[str, str],
        *,
        groups_client: Any,
        templates_client: Any,
        instances_client: Any,
    ) -> None:
        self._project = project
        self._region = region
        self._tags = gce_labels(tags)
        self._groups = groups_client
        self._templates = templates_client
        self._instances = instances_client
        self._instance_zones: dict[str, str] = {}

    @classmethod
    def for_cluster(cls, cluster: ClusterSpec) -> GCPCloud:
        from google.cloud import compute_v1

        return cls(
            cluster.project,
            cluster.region,
            cluster.tags,
            groups_client=compute_v1.InstanceGroupManagersClient(),
            templates_client=compute_v1.InstanceTemplatesClient(),
            instances_client=compute_v1.InstancesClient(),
        )

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    def list_instance_groups(self, tags: Mapping[str, str]) -> list[LiveGroup]:
        wanted = gce_labels(tags)
        template_labels: dict[str, dict[str, str]] = {}
        groups: list[LiveGroup] = []

        try:
            for scope, scoped in self._groups.aggregated_list(project=self._project):
                zone = _last_segment(scope)
                if self._region and not zone.startswith(f"{self._region}-"):
                    continue
                for mig in scoped.instance_group_managers:
                    template = _last_segment(mig.instance_template)
                    if template not in template_labels:
                        template_labels[template] = self._template_labels(template)
                    labels = template_labels[template]
                    if all(labels.get(k) == v for k, v in wanted.items()):
                        groups.append(self._to_live_group(mig, zone, template, labels))
        except gapi.GoogleAPICallError as e:
            raise classify_api_error("ListInstanceGroupManagers", e) from e

        log.debug("Found {n} managed instance groups in {project}", n=len(groups), project=self._project)
        return groups

    def terminate_instance(self, instance_id: str) -> None:
        zone = self._instance_zones.get(instance_id)
        if zone is None:
            raise FatalCloudError(f"Instance {instance_id!r} is not part of a listed instance group")

        log.debug("Deleting instance {iid} in {zone}", iid=instance_id, zone=zone)
        try:
            operation = self._instances.delete(project=self._project, zone=zone, instance=instance_id)
            operation.result()
        except gapi.GoogleAPICallError as e:
            raise classify_api_error("DeleteInstance", e) from e

    def _template_labels(self, template: str) -> dict[str, str]:
        found = self._templates.get(project=self._project, instance_template=template)
        return dict(found.properties.labels)

    def _to_live_group(self, mig: Any, zone: str, template: str, labels: Mapping[str, str]) -> LiveGroup:
        instances: list[LiveInstance] = []
        for managed in self._groups.list_managed_instances(
            project=self._project, zone=zone, instance_group_manager=mig.name,
        ):
            name = _last_segment(managed.instance)
            self._instance_zones[name] = zone
            instances.append(LiveInstance(
                id=name,
                launch_configuration=_last_segment(managed.version.instance_template) or None,
                raw=managed,
            ))

        return LiveGroup(
            name=mig.name,
            launch_configuration=template,
            instances=tuple(instances),
            min_size=mig.target_size,
            max_size=mig.target_size,
            tags=dict(labels),
            raw=mig,
        )
