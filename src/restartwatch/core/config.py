"""Configuration models for restartwatch.

Defines Pydantic v2 models for harness settings: SSH transport, health
polling bounds, the daemons to restart, event tracking policy and logging.
A whole harness configuration is loaded from YAML with
``HarnessConfig.from_yaml``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from restartwatch.core.errors import ConfigError

if TYPE_CHECKING:
    from restartwatch.daemon.types import RestartTarget

# Well-known daemon health ports
CONTROLLER_MANAGER_PORT = 10252
SCHEDULER_PORT = 10251
KUBELET_READ_ONLY_PORT = 10255


class SSHConfig(BaseModel):
    """How remote commands reach a host."""

    port: int = Field(default=22, ge=1, le=65535, description="SSH port on every host")
    user: str | None = Field(
        default=None,
        description="Remote login user. None uses the local ssh defaults.",
    )
    connect_timeout: int = Field(
        default=10,
        ge=1,
        description="Seconds ssh waits for the TCP connection (ConnectTimeout)",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds one remote command may run before it is abandoned",
    )
    options: list[str] = Field(
        default_factory=lambda: ["BatchMode=yes", "StrictHostKeyChecking=no"],
        description="Extra -o options passed to ssh",
    )
    provider: str = Field(
        default="gce",
        description="Cloud provider name, used only to warn when SSH may not work",
    )


class PollConfig(BaseModel):
    """Health polling bounds shared by every target."""

    interval_seconds: float = Field(default=5.0, gt=0)
    timeout_seconds: float = Field(default=600.0, gt=0)

    @model_validator(mode="after")
    def _timeout_covers_interval(self) -> PollConfig:
        if self.timeout_seconds < self.interval_seconds:
            raise ValueError(
                f"timeout_seconds ({self.timeout_seconds}) must not be shorter than "
                f"interval_seconds ({self.interval_seconds})"
            )
        return self


class DaemonTargetConfig(BaseModel):
    """A daemon to restart, without polling bounds."""

    host: str = Field(min_length=1)
    daemon: str = Field(min_length=1)
    health_port: int = Field(ge=1, le=65535)

    def to_target(self, poll: PollConfig) -> RestartTarget:
        """Combine with the shared poll bounds into a ``RestartTarget``."""
        from restartwatch.daemon.types import RestartTarget

        return RestartTarget(
            host=self.host,
            daemon=self.daemon,
            health_port=self.health_port,
            poll_interval=poll.interval_seconds,
            poll_timeout=poll.timeout_seconds,
        )


class TrackerConfig(BaseModel):
    """Event tracking policy."""

    steady_phase: str = Field(
        default="Running",
        min_length=1,
        description="Updates observed in this phase are not recorded",
    )


class LogConfig(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value


class HarnessConfig(BaseModel):
    """Top-level restartwatch configuration."""

    ssh: SSHConfig = Field(default_factory=SSHConfig)
    poll: PollConfig = Field(default_factory=PollConfig)
    targets: list[DaemonTargetConfig] = Field(default_factory=list)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    def restart_targets(self) -> list[RestartTarget]:
        """All configured targets with the shared poll bounds applied."""
        return [t.to_target(self.poll) for t in self.targets]

    @classmethod
    def from_yaml(cls, path: Path) -> HarnessConfig:
        """Load configuration from a YAML file."""
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> HarnessConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


__all__ = [
    "CONTROLLER_MANAGER_PORT",
    "DaemonTargetConfig",
    "HarnessConfig",
    "KUBELET_READ_ONLY_PORT",
    "LogConfig",
    "PollConfig",
    "SCHEDULER_PORT",
    "SSHConfig",
    "TrackerConfig",
]
