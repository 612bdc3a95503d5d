"""In-memory cloud back end.

Implements both cloud protocols over dictionaries. Used for planning
without credentials and as the cloud in tests. Terminated instances are
replaced with a fresh instance on the group's current launch configuration,
the way an autoscaling group would.

Faults can be queued per operation:

    cloud = MemoryCloud()
    cloud.fail("create", TransientCloudError("throttled"))
    apply(tasks, cloud)  # first create is retried
"""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict, deque
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from loguru import logger

from stratus.cloud.model import LiveGroup, LiveInstance, Ref, Resource
from stratus.core.exceptions import FatalCloudError

log = logger.bind(provider="memory")


class MemoryCloud:
    """Dictionary-backed cloud handle.

    Args:
        tags: Tags identifying the cluster's live resources.
        groups: Initial live groups.
        replace_terminated: Launch a replacement when an instance is terminated.
    """

    def __init__(
        self,
        tags: Mapping[str, str] | None = None,
        groups: Iterable[LiveGroup] = (),
        *,
        replace_terminated: bool = True,
    ) -> None:
        self._tags = dict(tags or {})
        self._resources: dict[Ref, Resource] = {}
        self._groups: dict[str, LiveGroup] = {g.name: g for g in groups}
        self._faults: dict[str, deque[BaseException | None]] = defaultdict(deque)
        self._replace_terminated = replace_terminated
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    # -------------------------------------------------------------------------
    # Fault injection
    # -------------------------------------------------------------------------

    def fail(self, operation: str, *errors: BaseException | None) -> None:
        """Queue errors raised by the next calls to ``operation``; ``None`` lets a call through."""
        with self._lock:
            self._faults[operation].extend(errors)

    def _record(self, operation: str, target: str) -> None:
        with self._lock:
            self.calls.append((operation, target))
            queue = self._faults.get(operation)
            error = queue.popleft() if queue else None
        if error is not None:
            log.debug("Injected fault for {op} {target}: {err}", op=operation, target=target, err=error)
            raise error

    # -------------------------------------------------------------------------
    # Cloud
    # -------------------------------------------------------------------------

    def find(self, kind: str, name: str) -> Resource | None:
        ref = Ref(kind, name)
        self._record("find", str(ref))
        with self._lock:
            return self._resources.get(ref)

    def create(self, resource: Resource) -> Resource:
        self._record("create", str(resource.ref))
        with self._lock:
            if resource.ref in self._resources:
                raise FatalCloudError(f"{resource.ref} already exists")
            created = replace(
                resource,
                properties=dict(resource.properties),
                id=resource.id or f"{resource.kind.lower()}-{next(self._ids)}",
            )
            self._resources[resource.ref] = created
        return created

    def update(self, resource: Resource, delta: Mapping[str, Any]) -> Resource:
        self._record("update", str(resource.ref))
        with self._lock:
            current = self._resources.get(resource.ref)
            if current is None:
                raise FatalCloudError(f"{resource.ref} does not exist")
            updated = replace(current, properties={**current.properties, **delta})
            self._resources[resource.ref] = updated
        return updated

    def delete(self, resource: Resource) -> None:
        self._record("delete", str(resource.ref))
        with self._lock:
            if self._resources.pop(resource.ref, None) is None:
                raise FatalCloudError(f"{resource.ref} does not exist")

    def list_by_tag(self, tags: Mapping[str, str]) -> list[Resource]:
        self._record("list_by_tag", ",".join(f"{k}={v}" for k, v in sorted(tags.items())))
        with self._lock:
            return [r for r in self._resources.values() if _matches(r.tags, tags)]

    # -------------------------------------------------------------------------
    # InstanceGroupCloud
    # -------------------------------------------------------------------------

    def add_group(self, group: LiveGroup) -> None:
        with self._lock:
            self._groups[group.name] = group

    def group(self, name: str) -> LiveGroup:
        with self._lock:
            return self._groups[name]

    def list_instance_groups(self, tags: Mapping[str, str]) -> list[LiveGroup]:
        self._record("list_instance_groups", ",".join(f"{k}={v}" for k, v in sorted(tags.items())))
        with self._lock:
            return [g for g in self._groups.values() if _matches(g.tags, tags)]

    def terminate_instance(self, instance_id: str) -> None:
        self._record("terminate_instance", instance_id)
        with self._lock:
            for name, group in self._groups.items():
                remaining = tuple(i for i in group.instances if i.id != instance_id)
                if len(remaining) == len(group.instances):
                    continue
                if self._replace_terminated:
                    remaining += (
                        LiveInstance(
                            id=f"i-{next(self._ids):08x}",
                            launch_configuration=group.launch_configuration,
                        ),
                    )
                self._groups[name] = replace(group, instances=remaining)
                return
        raise FatalCloudError(f"Instance {instance_id} not found")


def _matches(have: Mapping[str, str], want: Mapping[str, str]) -> bool:
    return all(have.get(k) == v for k, v in want.items())
