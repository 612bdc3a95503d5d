from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from stratus.cloud import MemoryCloud
from stratus.engine import apply
from stratus.observability import LogConfig, setup_logging, teardown_logging
from stratus.tasks import Network

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("logging")]


class TestSetupLogging:
    def test_file_sink_renders_bound_context(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "stratus.log"
        cloud = MemoryCloud()
        ids = setup_logging(LogConfig(level="DEBUG", file=str(log_file), console=False))
        try:
            apply([Network(name="main")], cloud, sleep=lambda _: None)
            apply([Network(name="main")], cloud, sleep=lambda _: None)
        finally:
            teardown_logging(ids)

        content = log_file.read_text()
        assert "Converging 1 tasks" in content
        assert "[component=executor]" in content
        assert "[component=executor task=Network/main]" in content

    def test_console_only(self):
        ids = setup_logging(LogConfig(file=None, console=True))
        try:
            assert len(ids) == 1
        finally:
            teardown_logging(ids)

    def test_disabled_after_teardown(self):
        teardown_logging(setup_logging(LogConfig(file=None, console=False)))
        messages: list[str] = []
        sink = logger.add(messages.append, level="DEBUG")
        try:
            apply([Network(name="main")], MemoryCloud(), sleep=lambda _: None)
        finally:
            logger.remove(sink)

        assert messages == []
