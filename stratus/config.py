"""TOML-based engine configuration.

Loads ~/.stratus/defaults.toml (global) and stratus.toml (project), merges
them, and builds the option objects consumed by the convergence executor
and the rolling update.

Example stratus.toml::

    [convergence]
    max_attempts = 8

    [rolling_update]
    node_interval = 60
    validation_retries = 12
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from stratus.core.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".stratus" / "defaults.toml"
PROJECT_CONFIG_NAME = "stratus.toml"


@dataclass(frozen=True, slots=True)
class ConvergenceOptions:
    """Retry policy for transient cloud errors.

    Attributes:
        max_attempts: Attempts per task, including the first one.
        base_delay: Initial backoff in seconds; doubles on every retry.
        max_delay: Backoff cap in seconds.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("convergence.max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("convergence delays must be non-negative")


@dataclass(frozen=True, slots=True)
class RollingUpdateOptions:
    """Rolling update behaviour. Intervals are in seconds.

    Attributes:
        master_interval: Wait after terminating a control-plane instance.
        node_interval: Wait after terminating a worker instance.
        bastion_interval: Wait after terminating a bastion instance.
        validation_retries: Extra validation attempts after the first one.
        force: Replace up-to-date instances too.
        cloud_only: Don't cordon or validate through the cluster API.
        yes: Actually perform the update (otherwise only report).
        max_workers: Worker groups updated concurrently (None: one per group).
    """

    master_interval: float = 300.0
    node_interval: float = 120.0
    bastion_interval: float = 300.0
    validation_retries: int = 8
    force: bool = False
    cloud_only: bool = False
    yes: bool = False
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if self.validation_retries < 0:
            raise ConfigurationError("rolling_update.validation_retries must be non-negative")
        if min(self.master_interval, self.node_interval, self.bastion_interval) < 0:
            raise ConfigurationError("rolling_update intervals must be non-negative")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("rolling_update.max_workers must be at least 1")


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("convergence", {})
    merged.setdefault("rolling_update", {})
    return merged


def _build[T](cls: type[T], section: str, raw: RawConfig) -> T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in [{section}]: {', '.join(unknown)}. Valid: {', '.join(sorted(known))}"
        )
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(f"Invalid [{section}] section: {e}") from e


def resolve_options(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    **overrides: Any,
) -> tuple[ConvergenceOptions, RollingUpdateOptions]:
    """Build option objects from config files.

    Keyword overrides (e.g. ``force=True``) apply to the rolling update
    section and win over file values.
    """
    config = load_config(project_dir=project_dir, global_path=global_path)
    convergence = _build(ConvergenceOptions, "convergence", config["convergence"])
    rolling = _build(
        RollingUpdateOptions,
        "rolling_update",
        {**config["rolling_update"], **overrides},
    )
    return convergence, rolling
