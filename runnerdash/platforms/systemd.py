"""systemd strategy (Linux)."""

from __future__ import annotations

import logging
from typing import Sequence

from runnerdash.commands import CommandResult, CommandRunner, privileged
from runnerdash.platforms.base import MISSING, PlatformStrategy, UnitState
from runnerdash.types import ControlAction, Runner, RunnerStatus

_logger = logging.getLogger(__name__)

_ACTIVE_STATES = {
    "active": RunnerStatus.ACTIVE,
    "inactive": RunnerStatus.INACTIVE,
    "failed": RunnerStatus.FAILED,
}


def unit_name(runner: Runner) -> str:
    return f"{runner.service_name}.service"


def parse_show_output(text: str) -> dict[str, UnitState]:
    """Parse ``systemctl show --property=Id,LoadState,ActiveState`` output.

    One ``key=value`` block per unit, blocks separated by blank lines.
    """
    states: dict[str, UnitState] = {}
    for block in text.strip().split("\n\n"):
        props: dict[str, str] = {}
        for line in block.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                props[key.strip()] = value.strip()
        unit = props.get("Id", "")
        if not unit:
            continue
        name = unit.removesuffix(".service")
        if props.get("LoadState", "not-found") == "not-found":
            states[name] = MISSING
            continue
        states[name] = UnitState(
            exists=True,
            status=_ACTIVE_STATES.get(props.get("ActiveState", "")),
            unit=unit,
        )
    return states


class SystemdStrategy(PlatformStrategy):
    name = "systemd"

    def __init__(self, commands: CommandRunner, use_sudo: bool = True) -> None:
        super().__init__(commands, use_sudo)
        # svc.sh writes unit files under /etc/systemd, so it needs root too
        self.scripts_need_sudo = use_sudo

    async def query_units(self, runners: Sequence[Runner]) -> dict[str, UnitState]:
        if not runners:
            return {}
        result = await self._commands.run([
            "systemctl", "show", "--property=Id,LoadState,ActiveState",
            *(unit_name(r) for r in runners),
        ])
        if not result.ok:
            _logger.debug("systemctl show failed: %s", result.output)
            return {}
        return parse_show_output(result.stdout)

    async def find_unit(self, runner: Runner) -> UnitState:
        states = await self.query_units([runner])
        return states.get(runner.service_name, MISSING)

    async def control_unit(
        self, runner: Runner, action: ControlAction, unit: UnitState
    ) -> CommandResult:
        return await self._commands.run(privileged(
            ["systemctl", action.value, unit.unit or unit_name(runner)],
            self._use_sudo,
        ))

    async def journal(self, runner: Runner, lines: int) -> list[str]:
        result = await self._commands.run([
            "journalctl", "-u", unit_name(runner),
            "-n", str(lines), "--no-pager", "-o", "short-iso",
        ])
        if not result.ok:
            return []
        return [
            line for line in result.stdout.splitlines()
            if line and not line.startswith("-- No entries --")
        ]
