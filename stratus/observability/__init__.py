"""Observability helpers for stratus."""

from .logging import LogConfig, LogLevel, setup_logging, teardown_logging

__all__ = [
    "LogConfig",
    "LogLevel",
    "setup_logging",
    "teardown_logging",
]
