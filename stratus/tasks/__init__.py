"""Concrete task types emitted by model builders."""

from stratus.tasks.compute import AutoscalingGroup, LaunchConfiguration
from stratus.tasks.iam import IAMBinding, IAMRole, InstanceProfile, ServiceAccount
from stratus.tasks.loadbalancer import (
    Address,
    BackendService,
    ForwardingRule,
    HealthCheck,
    TargetPool,
    public_api_load_balancer,
)
from stratus.tasks.network import FirewallRule, Network, SecurityGroup, Subnet

__all__ = [
    "Address",
    "AutoscalingGroup",
    "BackendService",
    "FirewallRule",
    "ForwardingRule",
    "HealthCheck",
    "IAMBinding",
    "IAMRole",
    "InstanceProfile",
    "LaunchConfiguration",
    "Network",
    "SecurityGroup",
    "ServiceAccount",
    "Subnet",
    "TargetPool",
    "public_api_load_balancer",
]
