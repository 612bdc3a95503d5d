"""Rolling update of cluster instance groups.

Replaces stale instances group by group:

1. Control-plane groups, strictly one after another (even when the masters
   are split across groups), so quorum is never at risk. The first failure
   stops the phase and nothing else runs.
2. Bastion groups, one after another.
3. Worker groups, concurrently, one worker thread per group.

Within a group, instances are replaced one at a time: cordon the node,
terminate the instance, wait for the cloud to launch its replacement, then
poll cluster validation until it passes or the retry budget runs out.
Nothing is rolled back; a failed group keeps whatever it already replaced.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass, field, replace
from enum import StrEnum

from loguru import logger
from tenacity import (
    RetryError,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from stratus.callback import emit
from stratus.cloud.protocols import ClusterNodes, ClusterValidator, InstanceGroupCloud
from stratus.cluster import Role
from stratus.config import RollingUpdateOptions
from stratus.core.exceptions import (
    CancelledError,
    CloudError,
    ConfigurationError,
    InstanceTerminationError,
    RollingUpdateError,
    UnknownRoleError,
    ValidationTimeoutError,
)
from stratus.events import (
    CordonFailed,
    GroupFinished,
    GroupStarted,
    InstanceCordoned,
    InstanceTerminating,
    ValidationAttempted,
)
from stratus.rolling.instance_group import CloudInstance, CloudInstanceGroup

log = logger.bind(component="rolling-update")

_GROUP_FAILURES = (InstanceTerminationError, ValidationTimeoutError, CancelledError)


class GroupState(StrEnum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    CONVERGED = "Converged"
    FAILED = "Failed"


@dataclass(frozen=True, slots=True)
class GroupResult:
    """Outcome of one group's rolling update.

    Attributes:
        group: Declared group name.
        role: Group role.
        state: PENDING if the group never started (an earlier phase failed).
        replaced: Instance ids terminated and validated.
        error: Why the group failed.
        crashed: The failure was an unexpected exception, not a classified one.
    """

    group: str
    role: str
    state: GroupState = GroupState.PENDING
    replaced: tuple[str, ...] = ()
    error: BaseException | None = None
    crashed: bool = False

    def describe(self) -> str:
        line = f"{self.group} ({self.role}): {self.state}"
        if self.replaced:
            line += f", replaced {len(self.replaced)}"
        if self.error is not None:
            kind = "crashed" if self.crashed else "error"
            line += f" - {kind}: {self.error}"
        return line


@dataclass(frozen=True, slots=True)
class RollingUpdateReport:
    results: Mapping[str, GroupResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(r.state == GroupState.CONVERGED for r in self.results.values())

    @property
    def failures(self) -> dict[str, GroupResult]:
        return {k: r for k, r in self.results.items() if r.state == GroupState.FAILED}

    def summary(self) -> str:
        if not self.results:
            return "No instance groups to update"
        header = "Rolling update completed" if self.ok else "Rolling update failed"
        return "\n".join([header, *(f"  {r.describe()}" for r in self.results.values())])

    def raise_for_failures(self) -> None:
        if not self.ok:
            raise RollingUpdateError(self)


class RollingUpdateCluster:
    """Drives the rolling update of a discovery snapshot.

    Args:
        cloud: Cloud handle used to terminate instances.
        cluster_name: Cluster passed to the validator.
        options: Intervals, retry budget and force/cloud-only flags.
        nodes: Cluster node access for cordoning.
        validator: Cluster validator polled after every replacement.
        sleep: Blocking sleep used for intervals and poll spacing.
        cancel: Set to stop before the next instance or validation poll.

    Raises:
        ConfigurationError: ``nodes`` or ``validator`` is missing and
            ``options.cloud_only`` is not set.
    """

    def __init__(
        self,
        cloud: InstanceGroupCloud,
        cluster_name: str,
        options: RollingUpdateOptions | None = None,
        *,
        nodes: ClusterNodes | None = None,
        validator: ClusterValidator | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel: threading.Event | None = None,
    ) -> None:
        self._cloud = cloud
        self._cluster_name = cluster_name
        self._options = options or RollingUpdateOptions()
        if not self._options.cloud_only and (nodes is None or validator is None):
            raise ConfigurationError(
                "Rolling update needs cluster nodes and a validator; set cloud_only to update without them"
            )
        if self._options.cloud_only:
            log.warning("Cloud-only rolling update: nodes are not cordoned and the cluster is not validated")
        self._nodes = nodes
        self._validator = validator
        self._sleep = sleep
        self._cancel = cancel

    def interval_for(self, role: Role | str) -> float:
        match role:
            case Role.MASTER:
                return self._options.master_interval
            case Role.BASTION:
                return self._options.bastion_interval
            case Role.NODE:
                return self._options.node_interval
            case _:
                raise ValueError(f"No interval for role {role!r}")

    def rolling_update(self, groups: Mapping[str, CloudInstanceGroup]) -> RollingUpdateReport:
        """Update ``groups``; never raises for group failures, see the report.

        Raises:
            UnknownRoleError: A group has a role that can't be rolled. Raised
                before any instance is touched.
        """
        if not groups:
            return RollingUpdateReport()

        phases: dict[Role, list[CloudInstanceGroup]] = {role: [] for role in Role}
        for name in sorted(groups):
            group = groups[name]
            role = group.instance_group.role
            if role not in phases:
                raise UnknownRoleError(name, role)
            phases[Role(role)].append(group)

        results: dict[str, GroupResult] = {
            g.name: GroupResult(group=g.name, role=str(role))
            for role in (Role.MASTER, Role.BASTION, Role.NODE)
            for g in phases[role]
        }

        for role in (Role.MASTER, Role.BASTION):
            for group in phases[role]:
                result = self._run_guarded(group)
                results[group.name] = result
                if result.state == GroupState.FAILED:
                    log.error(
                        "{role} group {name} failed, not updating remaining groups",
                        role=role, name=group.name,
                    )
                    return RollingUpdateReport(results)

        results.update(self._run_workers(phases[Role.NODE]))
        report = RollingUpdateReport(results)
        log.info("Rolling update finished: {outcome}", outcome="ok" if report.ok else "failed")
        return report

    def _run_workers(self, groups: list[CloudInstanceGroup]) -> dict[str, GroupResult]:
        if not groups:
            return {}

        workers = self._options.max_workers or len(groups)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rolling-update") as pool:
            futures: dict[str, Future[GroupResult]] = {
                group.name: pool.submit(copy_context().run, self._run_guarded, group)
                for group in groups
            }
            return {name: future.result() for name, future in futures.items()}

    def _run_guarded(self, group: CloudInstanceGroup) -> GroupResult:
        try:
            return self._run_group(group)
        except Exception as e:
            log.exception("Rolling update of {name} crashed", name=group.name)
            emit(GroupFinished(group=group.name, state=GroupState.FAILED, error=str(e)))
            return GroupResult(
                group=group.name,
                role=str(group.instance_group.role),
                state=GroupState.FAILED,
                error=e,
                crashed=True,
            )

    def _run_group(self, group: CloudInstanceGroup) -> GroupResult:
        group_log = log.bind(group=group.name)
        result = GroupResult(group=group.name, role=str(group.instance_group.role))
        to_replace = group.to_replace(self._options.force)

        if not to_replace:
            group_log.info("No instances to replace")
            emit(GroupFinished(group=group.name, state=GroupState.CONVERGED))
            return replace(result, state=GroupState.CONVERGED)

        interval = self.interval_for(group.instance_group.role)
        result = replace(result, state=GroupState.IN_PROGRESS)
        group_log.info("Replacing {n} instances, interval {s}s", n=len(to_replace), s=interval)
        emit(GroupStarted(group=group.name, instances=len(to_replace)))

        for member in to_replace:
            try:
                self._check_cancelled()
                self._replace_instance(group, member, interval)
            except _GROUP_FAILURES as e:
                group_log.error("Rolling update failed: {err}", err=e)
                emit(GroupFinished(group=group.name, state=GroupState.FAILED, error=str(e)))
                return replace(result, state=GroupState.FAILED, error=e)
            result = replace(result, replaced=(*result.replaced, member.id))

        group_log.info("Rolling update complete")
        emit(GroupFinished(group=group.name, state=GroupState.CONVERGED))
        return replace(result, state=GroupState.CONVERGED)

    def _replace_instance(self, group: CloudInstanceGroup, member: CloudInstance, interval: float) -> None:
        log.info("Stopping instance {iid} in group {live}", iid=member.id, live=group.live_name)
        self._cordon(group, member)

        emit(InstanceTerminating(group=group.name, instance_id=member.id))
        try:
            self._cloud.terminate_instance(member.id)
        except CloudError as e:
            raise InstanceTerminationError(group.name, member.id, e) from e

        self._sleep(interval)
        self._validate(group, interval)

    def _cordon(self, group: CloudInstanceGroup, member: CloudInstance) -> None:
        if self._options.cloud_only or self._nodes is None:
            return
        if member.node is None:
            log.warning("Instance {iid} has no cluster node, not cordoning", iid=member.id)
            return
        try:
            self._nodes.cordon(member.node.name)
        except Exception as e:
            log.warning(
                "Cordon failed {node} - {iid} in group {live}: {err}",
                node=member.node.name, iid=member.id, live=group.live_name, err=e,
            )
            emit(CordonFailed(group=group.name, instance_id=member.id, node=member.node.name, error=str(e)))
            return
        emit(InstanceCordoned(group=group.name, instance_id=member.id, node=member.node.name))

    def _validate(self, group: CloudInstanceGroup, interval: float) -> None:
        if self._options.cloud_only or self._validator is None:
            log.debug("Skipping cluster validation (cloud-only)")
            return

        attempts = self._options.validation_retries + 1
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(interval),
            retry=retry_if_not_exception_type(CancelledError),
            sleep=self._sleep,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._check_cancelled()
                    self._poll_validation(group, attempt.retry_state.attempt_number)
        except RetryError as e:
            raise ValidationTimeoutError(group.name, attempts, e.last_attempt.exception()) from e

    def _poll_validation(self, group: CloudInstanceGroup, attempt: int) -> None:
        assert self._validator is not None
        try:
            self._validator.validate(self._cluster_name)
        except Exception as e:
            log.debug("Unable to validate cluster {c}: {err}", c=self._cluster_name, err=e)
            emit(ValidationAttempted(group=group.name, attempt=attempt, ok=False))
            raise
        log.debug("Cluster {c} is validated and proceeding", c=self._cluster_name)
        emit(ValidationAttempted(group=group.name, attempt=attempt, ok=True))

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise CancelledError("Rolling update cancelled")
