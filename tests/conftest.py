from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping

import pytest

from stratus.cloud import LiveGroup, LiveInstance, MemoryCloud, Node, ValidationReport
from stratus.cluster import ClusterSpec
from stratus.core.exceptions import ClusterNotReadyError


class Timeline:
    """Ordered log of everything the fakes observed, across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entries: list[tuple[str, ...]] = []

    def add(self, *entry: str) -> None:
        with self._lock:
            self.entries.append(entry)

    def kinds(self) -> list[str]:
        return [e[0] for e in self.entries]

    def of(self, kind: str) -> list[tuple[str, ...]]:
        return [e for e in self.entries if e[0] == kind]


class RecordingSleep:
    def __init__(self, timeline: Timeline) -> None:
        self._timeline = timeline
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self._timeline.add("sleep", str(seconds))


class TimelineCloud(MemoryCloud):
    def __init__(self, timeline: Timeline, **kwargs) -> None:
        super().__init__(**kwargs)
        self._timeline = timeline

    def terminate_instance(self, instance_id: str) -> None:
        self._timeline.add("terminate", instance_id)
        super().terminate_instance(instance_id)


class FakeNodes:
    def __init__(self, timeline: Timeline, nodes: Iterable[Node] = (), fail_cordon: Iterable[str] = ()) -> None:
        self._timeline = timeline
        self._nodes = list(nodes)
        self._fail = set(fail_cordon)
        self.cordoned: list[str] = []

    def list_nodes(self) -> list[Node]:
        return list(self._nodes)

    def cordon(self, node_name: str) -> None:
        self._timeline.add("cordon", node_name)
        if node_name in self._fail:
            raise RuntimeError(f"cannot cordon {node_name}")
        self.cordoned.append(node_name)


class FlakyValidator:
    """Fails the first ``failures`` validations; ``failures=None`` never succeeds."""

    def __init__(self, timeline: Timeline, failures: int | None = 0) -> None:
        self._timeline = timeline
        self._failures = failures
        self.calls = 0

    def validate(self, cluster_name: str) -> ValidationReport:
        self.calls += 1
        self._timeline.add("validate", cluster_name)
        if self._failures is None or self.calls <= self._failures:
            raise ClusterNotReadyError(f"{cluster_name} not ready (attempt {self.calls})")
        return ValidationReport(cluster=cluster_name)


CLUSTER_NAME = "k8s.example.com"


def build_live_group(
    name: str,
    current: str,
    instances: Mapping[str, str],
    *,
    min_size: int = 1,
    max_size: int = 3,
    cluster: str = CLUSTER_NAME,
) -> LiveGroup:
    """A live group whose instances map id -> launch configuration."""
    return LiveGroup(
        name=name,
        launch_configuration=current,
        instances=tuple(LiveInstance(id=iid, launch_configuration=lc) for iid, lc in instances.items()),
        min_size=min_size,
        max_size=max_size,
        tags={"KubernetesCluster": cluster},
    )


@pytest.fixture
def timeline() -> Timeline:
    return Timeline()


@pytest.fixture
def sleep(timeline: Timeline) -> RecordingSleep:
    return RecordingSleep(timeline)


@pytest.fixture
def cluster() -> ClusterSpec:
    return ClusterSpec(name=CLUSTER_NAME, cloud_provider="memory")


@pytest.fixture
def cloud(timeline: Timeline, cluster: ClusterSpec) -> TimelineCloud:
    return TimelineCloud(timeline, tags=cluster.tags)


@pytest.fixture
def make_group():
    return build_live_group


@pytest.fixture
def make_nodes(timeline: Timeline):
    def factory(nodes: Iterable[Node] = (), fail_cordon: Iterable[str] = ()) -> FakeNodes:
        return FakeNodes(timeline, nodes, fail_cordon)

    return factory


@pytest.fixture
def make_validator(timeline: Timeline):
    def factory(failures: int | None = 0) -> FlakyValidator:
        return FlakyValidator(timeline, failures)

    return factory
