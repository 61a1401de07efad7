"""Platform strategy interface.

A strategy is the only place that knows the host's service manager: how to
ask it about many runners in one call, how to check that one runner's unit
is registered, how to drive that unit, and where its journal lives.
Everything above it (prober, controller, worker) is platform-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from runnerdash.commands import CommandResult, CommandRunner, privileged
from runnerdash.types import CONTROL_SCRIPT, ControlAction, Runner, RunnerStatus


@dataclass(frozen=True)
class UnitState:
    """What the service manager says about one runner.

    ``exists=False`` is an existence miss. ``status=None`` on an existing
    unit means the manager knows it but reports nothing we can map.
    """

    exists: bool
    status: RunnerStatus | None = None
    unit: str = ""  # the name the manager knows it by


MISSING = UnitState(exists=False)


class ProbeStrategy(ABC):
    """Read-only side of a service manager."""

    @abstractmethod
    async def query_units(self, runners: Sequence[Runner]) -> dict[str, UnitState]:
        """Batched lookup keyed by service name. Absent keys are misses.

        Implementations issue at most one external call regardless of
        ``len(runners)`` and may raise; the prober degrades on any error.
        """

    @abstractmethod
    async def find_unit(self, runner: Runner) -> UnitState:
        """Existence check for a single runner's unit."""

    async def journal(self, runner: Runner, lines: int) -> list[str]:
        """Centralized log lines, when the platform keeps them."""
        return []


class ControlStrategy(ABC):
    """Mutating side of a service manager."""

    scripts_need_sudo: bool = False

    @abstractmethod
    async def control_unit(
        self, runner: Runner, action: ControlAction, unit: UnitState
    ) -> CommandResult:
        """Issue the native verb for a registered unit."""

    def script_command(self, verb: str) -> list[str]:
        """argv for the per-instance control script, run from its directory."""
        return privileged([f"./{CONTROL_SCRIPT}", verb], self.scripts_need_sudo)


class PlatformStrategy(ProbeStrategy, ControlStrategy):
    """Both halves for one host platform, chosen once at startup."""

    name: str = "base"

    def __init__(self, commands: CommandRunner, use_sudo: bool = True) -> None:
        self._commands = commands
        self._use_sudo = use_sudo
