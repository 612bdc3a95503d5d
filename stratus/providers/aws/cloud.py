"""Autoscaling groups and EC2 instances through boto3.

Implements InstanceGroupCloud. Live groups are the autoscaling groups that
carry every cluster tag; a group's launch configuration (or launch template
version) is what its instances are compared against.

Launch templates are rendered as ``name:version``. Groups may pin a template
through ``$Latest`` or ``$Default`` (or no version at all, which means
``$Default``) while their instances always report the number they were
launched from, so aliases are resolved with DescribeLaunchTemplates before
comparing. Groups with a mixed instances policy carry their template inside
the policy.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import ClientError
from loguru import logger

from stratus.cloud.model import LiveGroup, LiveInstance
from stratus.core.exceptions import CloudError, FatalCloudError, TransientCloudError

if TYPE_CHECKING:
    from stratus.cluster import ClusterSpec

log = logger.bind(provider="aws")

# Throttling, plus lookups of instances EC2 hasn't made visible yet.
TRANSIENT_ERROR_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InvalidInstanceID.NotFound",
})

VERSION_ALIASES = {
    "$Latest": "LatestVersionNumber",
    "$Default": "DefaultVersionNumber",
}


def classify_client_error(action: str, error: ClientError) -> CloudError:
    """Map a botocore ClientError onto the stratus cloud error taxonomy."""
    err = error.response.get("Error", {})
    code = err.get("Code", "Unknown")
    message = f"{action} failed ({code}): {err.get('Message', error)}"
    if code in TRANSIENT_ERROR_CODES:
        return TransientCloudError(message)
    return FatalCloudError(message)


def _template_spec(obj: Mapping[str, Any]) -> Mapping[str, Any] | None:
    if template := obj.get("LaunchTemplate"):
        return template
    policy = obj.get("MixedInstancesPolicy") or {}
    return (policy.get("LaunchTemplate") or {}).get("LaunchTemplateSpecification")


def _tags(asg: Mapping[str, Any]) -> dict[str, str]:
    return {t["Key"]: t.get("Value", "") for t in asg.get("Tags", [])}


class AWSCloud:
    """AWS handle scoped to one region and one cluster's tags.

    Args:
        region: AWS region.
        tags: Tags identifying the cluster's resources.
        autoscaling: boto3 autoscaling client; created from the default session if omitted.
        ec2: boto3 EC2 client; created from the default session if omitted.
    """

    def __init__(
        self,
        region: str,
        tags: Mapping[str, str],
        *,
        autoscaling: Any = None,
        ec2: Any = None,
    ) -> None:
        self._region = region
        self._tags = dict(tags)
        self._autoscaling = autoscaling or boto3.client("autoscaling", region_name=region)
        self._ec2 = ec2 or boto3.client("ec2", region_name=region)

    @classmethod
    def for_cluster(cls, cluster: ClusterSpec) -> AWSCloud:
        return cls(cluster.region, cluster.tags)

    @property
    def region(self) -> str:
        return self._region

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    def list_instance_groups(self, tags: Mapping[str, str]) -> list[LiveGroup]:
        matching: list[Mapping[str, Any]] = []
        try:
            paginator = self._autoscaling.get_paginator("describe_auto_scaling_groups")
            for page in paginator.paginate():
                for asg in page.get("AutoScalingGroups", []):
                    asg_tags = _tags(asg)
                    if all(asg_tags.get(k) == v for k, v in tags.items()):
                        matching.append(asg)
        except ClientError as e:
            raise classify_client_error("DescribeAutoScalingGroups", e) from e

        templates: dict[str, Mapping[str, Any]] = {}
        groups = [self._to_live_group(asg, templates) for asg in matching]
        log.debug("Found {n} autoscaling groups in {region}", n=len(groups), region=self._region)
        return groups

    def terminate_instance(self, instance_id: str) -> None:
        log.debug("Terminating instance {iid}", iid=instance_id)
        try:
            self._ec2.terminate_instances(InstanceIds=[instance_id])
        except ClientError as e:
            raise classify_client_error("TerminateInstances", e) from e

    def _to_live_group(self, asg: Mapping[str, Any], templates: dict[str, Mapping[str, Any]]) -> LiveGroup:
        return LiveGroup(
            name=asg["AutoScalingGroupName"],
            launch_configuration=self._launch_configuration(asg, templates),
            instances=tuple(
                LiveInstance(id=i["InstanceId"], launch_configuration=self._launch_configuration(i, templates), raw=i)
                for i in asg.get("Instances", [])
            ),
            min_size=asg.get("MinSize", 0),
            max_size=asg.get("MaxSize", 0),
            tags=_tags(asg),
            raw=asg,
        )

    def _launch_configuration(
        self,
        obj: Mapping[str, Any],
        templates: dict[str, Mapping[str, Any]],
    ) -> str | None:
        if name := obj.get("LaunchConfigurationName"):
            return name
        spec = _template_spec(obj)
        if spec is None:
            return None

        version = spec.get("Version") or "$Default"
        name = spec.get("LaunchTemplateName")
        if version in VERSION_ALIASES or not name:
            template = self._describe_template(spec, templates)
            name = template["LaunchTemplateName"]
            if field := VERSION_ALIASES.get(version):
                version = str(template[field])
        return f"{name}:{version}"

    def _describe_template(
        self,
        spec: Mapping[str, Any],
        templates: dict[str, Mapping[str, Any]],
    ) -> Mapping[str, Any]:
        template_id, name = spec.get("LaunchTemplateId"), spec.get("LaunchTemplateName")
        key = template_id or name
        if key in templates:
            return templates[key]

        try:
            if template_id:
                response = self._ec2.describe_launch_templates(LaunchTemplateIds=[template_id])
            else:
                response = self._ec2.describe_launch_templates(LaunchTemplateNames=[name])
        except ClientError as e:
            raise classify_client_error("DescribeLaunchTemplates", e) from e

        found = response.get("LaunchTemplates", [])
        if not found:
            raise FatalCloudError(f"Launch template {key!r} not found")
        template = found[0]
        templates[template["LaunchTemplateId"]] = template
        templates[template["LaunchTemplateName"]] = template
        return template
