from __future__ import annotations

import pytest

from stratus.callback import use_callback
from stratus.cloud import Ref, Resource
from stratus.config import ConvergenceOptions
from stratus.core.exceptions import (
    FatalCloudError,
    LifecycleViolationError,
    TaskFailedError,
    TransientCloudError,
)
from stratus.engine import Action, Executor, Lifecycle, apply
from stratus.events import TaskApplied, TaskPlanned, TaskRetrying
from stratus.tasks import HealthCheck, Network, Subnet, public_api_load_balancer

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


def _network_tasks():
    net = Network(name="main", cidr="10.0.0.0/16", mode="custom")
    return [
        net,
        Subnet(name="us-east-1a", network=net, cidr="10.0.1.0/24", zone="us-east-1a"),
        Subnet(name="us-east-1b", network=net, cidr="10.0.2.0/24", zone="us-east-1b"),
    ]


def _mutations(cloud) -> list[tuple[str, str]]:
    return [c for c in cloud.calls if c[0] in ("create", "update", "delete")]


class TestConvergence:
    def test_creates_in_dependency_order(self, cloud, sleep):
        summary = Executor(cloud, sleep=sleep).apply(_network_tasks())

        assert [c.action for c in summary.changes] == [Action.CREATE] * 3
        assert _mutations(cloud) == [
            ("create", "Network/main"),
            ("create", "Subnet/us-east-1a"),
            ("create", "Subnet/us-east-1b"),
        ]

    def test_second_apply_is_a_no_op(self, cloud, sleep):
        tasks = _network_tasks() + public_api_load_balancer("k8s", 443, 8080)
        Executor(cloud, sleep=sleep).apply(tasks)
        cloud.calls.clear()

        summary = Executor(cloud, sleep=sleep).apply(tasks)

        assert summary.empty
        assert summary.describe() == "No changes need to be applied"
        assert _mutations(cloud) == []

    def test_links_render_as_refs(self, cloud, sleep):
        Executor(cloud, sleep=sleep).apply(_network_tasks())

        subnet = cloud.find("Subnet", "us-east-1a")
        assert subnet is not None
        assert subnet.properties["network"] == Ref("Network", "main")

    def test_update_sends_only_changed_fields(self, cloud, sleep):
        cloud.create(Resource("HealthCheck", "api", {"port": 80, "request_path": "/healthz"}))
        cloud.calls.clear()

        summary = Executor(cloud, sleep=sleep).apply([HealthCheck(name="api", port=8080, request_path="/healthz")])

        (change,) = summary.changes
        assert change.action == Action.UPDATE
        assert change.delta == {"port": 8080}
        assert _mutations(cloud) == [("update", "HealthCheck/api")]
        assert cloud.find("HealthCheck", "api").properties["port"] == 8080

    def test_unset_fields_are_not_compared(self, cloud, sleep):
        cloud.create(Resource("HealthCheck", "api", {"port": 80, "request_path": "/ready", "interval": 5}))
        cloud.calls.clear()

        summary = Executor(cloud, sleep=sleep).apply([HealthCheck(name="api", port=80)])

        assert summary.empty
        assert _mutations(cloud) == []


class TestDryRun:
    def test_no_mutations(self, cloud, sleep):
        summary = apply(_network_tasks(), cloud, dry_run=True, sleep=sleep)

        assert summary.dry_run
        assert len(summary.changes) == 3
        assert _mutations(cloud) == []

    def test_matches_real_run(self, cloud, sleep):
        planned = apply(_network_tasks(), cloud, dry_run=True, sleep=sleep)
        applied = apply(_network_tasks(), cloud, sleep=sleep)

        assert planned.changes == applied.changes
        assert planned.describe().startswith("Will apply changes:")
        assert applied.describe().startswith("Applied changes:")


class TestRetries:
    def test_transient_errors_are_retried(self, cloud, sleep):
        cloud.fail("create", TransientCloudError("throttled"), TransientCloudError("throttled"))

        summary = Executor(cloud, sleep=sleep).apply([Network(name="main")])

        assert len(summary.changes) == 1
        assert sleep.calls == [1.0, 2.0]
        assert cloud.find("Network", "main") is not None

    def test_backoff_is_capped(self, cloud, sleep):
        cloud.fail("find", *(TransientCloudError("lag") for _ in range(4)))
        options = ConvergenceOptions(max_attempts=5, base_delay=2.0, max_delay=5.0)

        Executor(cloud, options=options, sleep=sleep).apply([Network(name="main")])

        assert sleep.calls == [2.0, 4.0, 5.0, 5.0]

    def test_exhausted_retries_fail_the_task(self, cloud, sleep):
        tasks = _network_tasks()
        cloud.fail("create", None, *(TransientCloudError("throttled") for _ in range(3)))
        options = ConvergenceOptions(max_attempts=3)

        with pytest.raises(TaskFailedError) as exc:
            Executor(cloud, options=options, sleep=sleep).apply(tasks)

        assert exc.value.task is tasks[1]
        assert sleep.calls == [1.0, 2.0]
        assert "retries exhausted after 3 attempts" in str(exc.value)
        assert isinstance(exc.value.__cause__, TransientCloudError)

    def test_retry_events(self, cloud, sleep):
        seen = []
        cloud.fail("create", TransientCloudError("throttled"))

        with use_callback(seen.append):
            Executor(cloud, sleep=sleep).apply([Network(name="main")])

        retries = [e for e in seen if isinstance(e, TaskRetrying)]
        assert [(e.task, e.attempt) for e in retries] == [("Network/main", 1)]


class TestFatalErrors:
    def test_fatal_error_is_not_retried(self, cloud, sleep):
        tasks = _network_tasks()
        cloud.fail("find", None, None, FatalCloudError("access denied"))

        with pytest.raises(TaskFailedError) as exc:
            Executor(cloud, sleep=sleep).apply(tasks)

        assert exc.value.task is tasks[2]
        assert sleep.calls == []

    def test_partial_summary_lists_applied_changes(self, cloud, sleep):
        tasks = _network_tasks()
        cloud.fail("create", None, FatalCloudError("quota exceeded"))

        with pytest.raises(TaskFailedError) as exc:
            Executor(cloud, sleep=sleep).apply(tasks)

        partial = exc.value.partial
        assert partial is not None
        assert [c.task for c in partial.changes] == [Ref("Network", "main")]
        assert cloud.find("Network", "main") is not None


class TestLifecycles:
    def test_must_exist_missing(self, cloud, sleep):
        with pytest.raises(TaskFailedError) as exc:
            apply([Network(name="shared", lifecycle=Lifecycle.MUST_EXIST)], cloud, sleep=sleep)

        assert isinstance(exc.value.cause, LifecycleViolationError)
        assert _mutations(cloud) == []

    def test_must_exist_ignores_differences(self, cloud, sleep):
        cloud.create(Resource("Network", "shared", {"cidr": "172.16.0.0/12"}))
        cloud.calls.clear()

        summary = apply(
            [Network(name="shared", cidr="10.0.0.0/16", lifecycle=Lifecycle.MUST_EXIST)], cloud, sleep=sleep,
        )

        assert summary.empty
        assert _mutations(cloud) == []

    def test_exists_and_validates_rejects_differences(self, cloud, sleep):
        cloud.create(Resource("Network", "shared", {"cidr": "172.16.0.0/12"}))

        with pytest.raises(TaskFailedError, match="does not match its declaration"):
            apply(
                [Network(name="shared", cidr="10.0.0.0/16", lifecycle=Lifecycle.EXISTS_AND_VALIDATES)],
                cloud,
                sleep=sleep,
            )

    def test_exists_and_validates_accepts_match(self, cloud, sleep):
        cloud.create(Resource("Network", "shared", {"cidr": "10.0.0.0/16"}))

        summary = apply(
            [Network(name="shared", cidr="10.0.0.0/16", lifecycle=Lifecycle.EXISTS_AND_VALIDATES)],
            cloud,
            sleep=sleep,
        )

        assert summary.empty

    def test_warn_if_changes_reports_drift(self, cloud, sleep):
        cloud.create(Resource("Network", "shared", {"cidr": "172.16.0.0/12"}))
        cloud.calls.clear()

        summary = apply(
            [Network(name="shared", cidr="10.0.0.0/16", lifecycle=Lifecycle.WARN_IF_CHANGES)], cloud, sleep=sleep,
        )

        assert summary.empty
        (drift,) = summary.warnings
        assert [f.field for f in drift.fields] == ["cidr"]
        assert not drift.missing
        assert "Drift detected" in summary.describe()
        assert _mutations(cloud) == []

    def test_warn_if_changes_missing_object(self, cloud, sleep):
        summary = apply([Network(name="shared", lifecycle=Lifecycle.WARN_IF_CHANGES, cidr="10.0.0.0/8")], cloud, sleep=sleep)

        (drift,) = summary.warnings
        assert drift.missing
        assert _mutations(cloud) == []


class TestEvents:
    def test_planned_and_applied(self, cloud, sleep):
        seen = []

        with use_callback(seen.append):
            apply([Network(name="main", cidr="10.0.0.0/16")], cloud, sleep=sleep)

        assert seen == [
            TaskPlanned(task="Network/main", action=Action.CREATE, fields=("cidr",)),
            TaskApplied(task="Network/main", action=Action.CREATE),
        ]

    def test_dry_run_plans_without_applying(self, cloud, sleep):
        seen = []

        with use_callback(seen.append):
            apply([Network(name="main", cidr="10.0.0.0/16")], cloud, dry_run=True, sleep=sleep)

        assert [type(e) for e in seen] == [TaskPlanned]
