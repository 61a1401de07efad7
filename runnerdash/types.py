"""Core types shared across all runnerdash subsystems."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

SERVICE_PREFIX = "actions.runner."

# Files that make up a runner instance directory
LAUNCH_SCRIPT = "run.sh"
CONFIG_MARKER = ".runner"
CONTROL_SCRIPT = "svc.sh"
DIAG_DIR = "_diag"


# ── Runner Status ─────────────────────────────────────────────────────────────


class RunnerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"  # configured but stopped
    FAILED = "failed"  # service manager reports failure
    NOT_FOUND = "not-found"  # unknown, the default

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def style(self) -> str:
        return _STYLES[self]


_SYMBOLS = {
    RunnerStatus.ACTIVE: "●",
    RunnerStatus.INACTIVE: "○",
    RunnerStatus.FAILED: "✗",
    RunnerStatus.NOT_FOUND: "?",
}

_STYLES = {
    RunnerStatus.ACTIVE: "green",
    RunnerStatus.INACTIVE: "yellow",
    RunnerStatus.FAILED: "bold red",
    RunnerStatus.NOT_FOUND: "dim",
}


# ── Control Actions ───────────────────────────────────────────────────────────


class ControlAction(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"

    @property
    def past_tense(self) -> str:
        return {
            ControlAction.START: "started",
            ControlAction.STOP: "stopped",
            ControlAction.RESTART: "restarted",
        }[self]

    @property
    def progressive(self) -> str:
        return {
            ControlAction.START: "Starting",
            ControlAction.STOP: "Stopping",
            ControlAction.RESTART: "Restarting",
        }[self]


# ── Runner ────────────────────────────────────────────────────────────────────


def service_name(username: str, repo: str, number: int) -> str:
    """The unit/agent name a runner is registered under."""
    return f"{SERVICE_PREFIX}{username}.{repo}-runner-{number}"


class Runner(BaseModel):
    """One runner instance: identity plus the last observed status.

    Instances are frozen. A refresh produces new records with
    ``model_copy(update={"status": ...})`` instead of mutating.
    """

    model_config = ConfigDict(frozen=True)

    repo: str
    number: int = Field(default=0, ge=0)
    service_name: str
    path: Path
    status: RunnerStatus = RunnerStatus.NOT_FOUND

    @property
    def display_name(self) -> str:
        return f"{self.repo}-runner-{self.number}"

    def with_status(self, status: RunnerStatus) -> Runner:
        return self.model_copy(update={"status": status})
