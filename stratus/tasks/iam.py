"""Identity intents: roles, instance profiles, service accounts and bindings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

from stratus.engine.task import Task


@dataclass(frozen=True, eq=False, kw_only=True)
class IAMRole(Task):
    kind: ClassVar[str] = "IAMRole"

    policy_document: str | None = None

    def links(self) -> Iterable[Task]:
        return ()


@dataclass(frozen=True, eq=False, kw_only=True)
class InstanceProfile(Task):
    kind: ClassVar[str] = "InstanceProfile"

    role: IAMRole

    def links(self) -> Iterable[Task]:
        return (self.role,)


@dataclass(frozen=True, eq=False, kw_only=True)
class ServiceAccount(Task):
    kind: ClassVar[str] = "ServiceAccount"

    email: str
    description: str | None = None

    def links(self) -> Iterable[Task]:
        return ()


@dataclass(frozen=True, eq=False, kw_only=True)
class IAMBinding(Task):
    """Grants ``role`` on ``resource`` to a service account."""

    kind: ClassVar[str] = "IAMBinding"

    service_account: ServiceAccount
    role: str
    resource: str

    def links(self) -> Iterable[Task]:
        return (self.service_account,)
