"""Load balancer intents for the API endpoint.

A public load balancer is a health check, a target pool checked by it, a
reserved address and a forwarding rule tying address and pool together.
An internal load balancer swaps the target pool for a backend service.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

from stratus.engine.task import Task
from stratus.tasks.network import Network, Subnet


@dataclass(frozen=True, eq=False, kw_only=True)
class HealthCheck(Task):
    kind: ClassVar[str] = "HealthCheck"

    port: int
    request_path: str | None = None

    def links(self) -> Iterable[Task]:
        return ()


@dataclass(frozen=True, eq=False, kw_only=True)
class TargetPool(Task):
    kind: ClassVar[str] = "TargetPool"

    health_check: HealthCheck | None = None

    def links(self) -> Iterable[Task]:
        return (self.health_check,) if self.health_check else ()


@dataclass(frozen=True, eq=False, kw_only=True)
class BackendService(Task):
    kind: ClassVar[str] = "BackendService"

    health_checks: tuple[HealthCheck, ...] = ()
    protocol: str = "TCP"
    load_balancing_scheme: str | None = None
    instance_group_managers: tuple[str, ...] = ()

    def links(self) -> Iterable[Task]:
        return self.health_checks


@dataclass(frozen=True, eq=False, kw_only=True)
class Address(Task):
    kind: ClassVar[str] = "Address"

    address_type: str | None = None
    purpose: str | None = None
    subnetwork: Subnet | None = None

    def links(self) -> Iterable[Task]:
        return (self.subnetwork,) if self.subnetwork else ()


@dataclass(frozen=True, eq=False, kw_only=True)
class ForwardingRule(Task):
    kind: ClassVar[str] = "ForwardingRule"

    ip_address: Address
    ip_protocol: str = "TCP"
    port_range: str | None = None
    ports: tuple[str, ...] = ()
    target_pool: TargetPool | None = None
    backend_service: BackendService | None = None
    load_balancing_scheme: str | None = None
    network: Network | None = None
    subnetwork: Subnet | None = None

    def links(self) -> Iterable[Task]:
        candidates = (
            self.ip_address,
            self.target_pool,
            self.backend_service,
            self.network,
            self.subnetwork,
        )
        return tuple(t for t in candidates if t is not None)


def public_api_load_balancer(
    prefix: str,
    port: int,
    health_port: int,
    *,
    health_path: str = "/healthz",
) -> list[Task]:
    """Tasks for a public TCP load balancer in front of the API servers."""
    health = HealthCheck(name=f"{prefix}-api", port=health_port, request_path=health_path)
    pool = TargetPool(name=f"{prefix}-api", health_check=health)
    address = Address(name=f"{prefix}-api")
    rule = ForwardingRule(
        name=f"{prefix}-api",
        ip_address=address,
        target_pool=pool,
        port_range=f"{port}-{port}",
    )
    return [health, pool, address, rule]
