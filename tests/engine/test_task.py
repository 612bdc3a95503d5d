from __future__ import annotations

import pytest

from stratus.cloud import Ref
from stratus.engine import Action, Change, ChangeSummary, Lifecycle, diff
from stratus.engine.changes import FieldChange
from stratus.tasks import (
    AutoscalingGroup,
    BackendService,
    ForwardingRule,
    HealthCheck,
    IAMRole,
    InstanceProfile,
    LaunchConfiguration,
    Network,
    SecurityGroup,
    Subnet,
    public_api_load_balancer,
)

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class TestTask:
    def test_identity(self):
        net = Network(name="main")
        assert net.identity == Ref("Network", "main")
        assert str(net) == "Network/main"

    def test_default_lifecycle(self):
        assert Network(name="main").lifecycle == Lifecycle.SYNC

    def test_dependencies_follow_links(self):
        role = IAMRole(name="nodes")
        profile = InstanceProfile(name="nodes", role=role)
        net = Network(name="main")
        sg = SecurityGroup(name="nodes", network=net)
        lc = LaunchConfiguration(
            name="nodes", image_id="ami-1", instance_type="t3.large",
            security_groups=(sg,), iam_instance_profile=profile,
        )

        assert lc.dependencies() == (sg, profile)

    def test_optional_links_are_skipped(self):
        rule = public_api_load_balancer("k8s", 443, 8080)[-1]
        assert isinstance(rule, ForwardingRule)
        assert {d.kind for d in rule.dependencies()} == {"Address", "TargetPool"}

    def test_tasks_compare_by_identity(self):
        assert Network(name="main") != Network(name="main")


class TestRender:
    def test_links_become_refs(self):
        net = Network(name="main")
        subnet = Subnet(name="a", network=net, cidr="10.0.0.0/24")

        assert subnet.render() == {"cidr": "10.0.0.0/24", "network": Ref("Network", "main")}

    def test_none_fields_are_dropped(self):
        assert HealthCheck(name="hc", port=80).render() == {"port": 80}

    def test_collections(self):
        hc = HealthCheck(name="hc", port=80)
        backend = BackendService(name="api", health_checks=[hc], instance_group_managers=("b", "a"))

        rendered = backend.render()

        assert rendered["health_checks"] == (Ref("HealthCheck", "hc"),)
        assert rendered["instance_group_managers"] == ("b", "a")

    def test_mappings_are_sorted(self):
        lc = LaunchConfiguration(name="lc", image_id="ami-1", instance_type="t3.large")
        asg = AutoscalingGroup(name="nodes", launch_configuration=lc, tags={"b": "2", "a": "1"})

        assert list(asg.render()["tags"]) == ["a", "b"]

    def test_render_excludes_base_fields(self):
        rendered = Network(name="main", lifecycle=Lifecycle.MUST_EXIST, cidr="10.0.0.0/8").render()
        assert rendered == {"cidr": "10.0.0.0/8"}


class TestDiff:
    def test_missing_object_differs_everywhere(self):
        assert diff(None, {"b": 2, "a": 1}) == (FieldChange("a", None, 1), FieldChange("b", None, 2))

    def test_only_declared_fields(self):
        assert diff({"a": 1, "extra": True}, {"a": 1}) == ()

    def test_changed_and_missing_fields(self):
        changes = diff({"a": 1}, {"a": 2, "b": 3})
        assert changes == (FieldChange("a", 1, 2), FieldChange("b", None, 3))

    def test_explicit_none_in_live_state(self):
        assert diff({"a": None}, {"a": 1}) == (FieldChange("a", None, 1),)


class TestChangeSummary:
    def test_describe(self):
        change = Change(task=Ref("Network", "main"), action=Action.CREATE, fields=(FieldChange("cidr", None, "10.0.0.0/16"),))
        summary = ChangeSummary(changes=(change,), dry_run=True)

        assert summary.describe() == (
            "Will apply changes:\n"
            "  create Network/main\n"
            "      cidr: None -> '10.0.0.0/16'"
        )

    def test_empty(self):
        assert ChangeSummary().empty
        assert ChangeSummary().describe() == "No changes need to be applied"
