"""Shared value types for daemon restart cycles.

``RestartTarget`` describes how to reach and validate one daemon instance.
It is a frozen Pydantic v2 model so targets loaded from YAML and targets
built in code go through the same validation.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Providers where SSH to nodes is known to work
PROVIDERS_WITH_SSH = frozenset({"gce", "gke", "aws", "local"})


class RestartTarget(BaseModel):
    """One daemon instance on one host, plus its polling bounds."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, description="SSH-reachable host name or address")
    daemon: str = Field(min_length=1, description="Process name matched by pgrep")
    health_port: int = Field(ge=1, le=65535, description="Port serving /healthz on localhost")
    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between health probes")
    poll_timeout: float = Field(default=600.0, gt=0, description="Upper bound on one health wait")

    @model_validator(mode="after")
    def _timeout_covers_interval(self) -> RestartTarget:
        if self.poll_timeout < self.poll_interval:
            raise ValueError(
                f"poll_timeout ({self.poll_timeout}s) must not be shorter than "
                f"poll_interval ({self.poll_interval}s)"
            )
        return self

    def __str__(self) -> str:
        return f"Daemon {self.daemon} on node {self.host}"


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one remote command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class RestartCycle:
    """Timing of one verified restart: health before the kill, recovery after."""

    target: RestartTarget
    baseline_seconds: float
    recovery_seconds: float


__all__ = ["ExecResult", "PROVIDERS_WITH_SSH", "RestartCycle", "RestartTarget"]
