"""Platform strategies — one per host service manager, chosen at startup."""

from __future__ import annotations

import sys
from typing import Sequence

from runnerdash.commands import CommandResult, CommandRunner
from runnerdash.exceptions import ControlError
from runnerdash.platforms.base import (
    MISSING,
    ControlStrategy,
    PlatformStrategy,
    ProbeStrategy,
    UnitState,
)
from runnerdash.platforms.launchd import LaunchdStrategy
from runnerdash.platforms.systemd import SystemdStrategy
from runnerdash.types import ControlAction, Runner

__all__ = [
    "MISSING",
    "ControlStrategy",
    "LaunchdStrategy",
    "NoServiceManager",
    "PlatformStrategy",
    "ProbeStrategy",
    "SystemdStrategy",
    "UnitState",
    "select_strategy",
]


class NoServiceManager(PlatformStrategy):
    """Hosts without a supported service manager: every unit is a miss."""

    name = "none"

    async def query_units(self, runners: Sequence[Runner]) -> dict[str, UnitState]:
        return {}

    async def find_unit(self, runner: Runner) -> UnitState:
        return MISSING

    async def control_unit(
        self, runner: Runner, action: ControlAction, unit: UnitState
    ) -> CommandResult:
        raise ControlError(f"No service manager to {action.value} {runner.display_name}")


def select_strategy(
    commands: CommandRunner, platform: str = "", use_sudo: bool = True
) -> PlatformStrategy:
    """Pick the strategy for ``platform`` (default: the running host)."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return SystemdStrategy(commands, use_sudo=use_sudo)
    if platform == "darwin":
        return LaunchdStrategy(commands)
    return NoServiceManager(commands, use_sudo=use_sudo)
