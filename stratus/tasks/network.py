"""Networking intents: networks, subnets, firewall rules."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

from stratus.engine.task import Task


@dataclass(frozen=True, eq=False, kw_only=True)
class Network(Task):
    kind: ClassVar[str] = "Network"

    cidr: str | None = None
    mode: str | None = None

    def links(self) -> Iterable[Task]:
        return ()


@dataclass(frozen=True, eq=False, kw_only=True)
class Subnet(Task):
    kind: ClassVar[str] = "Subnet"

    network: Network
    cidr: str
    region: str | None = None
    zone: str | None = None

    def links(self) -> Iterable[Task]:
        return (self.network,)


@dataclass(frozen=True, eq=False, kw_only=True)
class FirewallRule(Task):
    """Allow ``allowed`` (``"tcp:443"``) from ``source_ranges`` to ``target_tags``."""

    kind: ClassVar[str] = "FirewallRule"

    network: Network
    source_ranges: tuple[str, ...] = ()
    target_tags: tuple[str, ...] = ()
    allowed: tuple[str, ...] = ()
    family: str | None = None

    def links(self) -> Iterable[Task]:
        return (self.network,)


@dataclass(frozen=True, eq=False, kw_only=True)
class SecurityGroup(Task):
    kind: ClassVar[str] = "SecurityGroup"

    network: Network
    description: str | None = None
    remove_extra_rules: tuple[str, ...] = ()

    def links(self) -> Iterable[Task]:
        return (self.network,)
