"""launchd strategy (macOS).

Runner agents are registered by ``svc.sh`` as per-user LaunchAgents. The
label svc.sh picks embeds the GitHub owner, which is not always the local
username, so a label that does not match exactly is looked up by its
``<repo>-runner-<n>`` suffix instead. Two repositories whose directory names
end the same way (``api`` and ``legacy-api``) can match each other's
agents; that is a known limitation.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from runnerdash.commands import CommandResult, CommandRunner
from runnerdash.platforms.base import MISSING, PlatformStrategy, UnitState
from runnerdash.types import SERVICE_PREFIX, ControlAction, Runner, RunnerStatus

_logger = logging.getLogger(__name__)


def parse_launchctl_list(text: str) -> dict[str, tuple[str, str]]:
    """``launchctl list`` output as ``{label: (pid, last_exit_status)}``."""
    entries: dict[str, tuple[str, str]] = {}
    for line in text.splitlines():
        parts = line.split("\t") if "\t" in line else line.split()
        if len(parts) < 3 or parts[0] == "PID":
            continue
        pid, status, label = parts[0].strip(), parts[1].strip(), parts[2].strip()
        entries[label] = (pid, status)
    return entries


def match_label(runner: Runner, labels: Sequence[str]) -> str | None:
    """Exact service-name match first, then the ``<repo>-runner-<n>`` suffix."""
    if runner.service_name in labels:
        return runner.service_name
    suffix = f"{runner.repo}-runner-{runner.number}"
    for label in labels:
        if label.startswith(SERVICE_PREFIX) and label.endswith(suffix):
            return label
    return None


def state_from_entry(pid: str, status: str) -> RunnerStatus:
    if pid != "-":
        return RunnerStatus.ACTIVE
    return RunnerStatus.INACTIVE if status == "0" else RunnerStatus.FAILED


class LaunchdStrategy(PlatformStrategy):
    name = "launchd"

    def __init__(self, commands: CommandRunner, agents_dir: Path | None = None) -> None:
        # LaunchAgents live in the user's domain; sudo would target root's
        super().__init__(commands, use_sudo=False)
        self._agents_dir = agents_dir or Path.home() / "Library" / "LaunchAgents"

    def _plist_labels(self) -> list[str]:
        try:
            return sorted(p.stem for p in self._agents_dir.glob(f"{SERVICE_PREFIX}*.plist"))
        except OSError:
            return []

    def _plist(self, label: str) -> Path:
        return self._agents_dir / f"{label}.plist"

    async def query_units(self, runners: Sequence[Runner]) -> dict[str, UnitState]:
        if not runners:
            return {}
        result = await self._commands.run(["launchctl", "list"])
        if not result.ok:
            _logger.debug("launchctl list failed: %s", result.output)
            return {}
        loaded = parse_launchctl_list(result.stdout)
        loaded_labels = list(loaded)
        plist_labels = self._plist_labels()

        states: dict[str, UnitState] = {}
        for runner in runners:
            label = match_label(runner, loaded_labels)
            if label is not None:
                pid, status = loaded[label]
                states[runner.service_name] = UnitState(
                    exists=True, status=state_from_entry(pid, status), unit=label,
                )
                continue
            # Installed but not loaded: registered, state unknown
            label = match_label(runner, plist_labels)
            if label is not None:
                states[runner.service_name] = UnitState(exists=True, unit=label)
        return states

    async def find_unit(self, runner: Runner) -> UnitState:
        states = await self.query_units([runner])
        return states.get(runner.service_name, MISSING)

    async def control_unit(
        self, runner: Runner, action: ControlAction, unit: UnitState
    ) -> CommandResult:
        label = unit.unit or runner.service_name
        plist = self._plist(label)
        target = f"gui/{os.getuid()}/{label}"

        if action is ControlAction.START:
            if plist.exists():
                args = ["launchctl", "load", "-w", str(plist)]
            else:
                args = ["launchctl", "kickstart", target]
        elif action is ControlAction.STOP:
            if plist.exists():
                args = ["launchctl", "unload", str(plist)]
            else:
                args = ["launchctl", "kill", "SIGTERM", target]
        else:
            args = ["launchctl", "kickstart", "-k", target]
        return await self._commands.run(args)
