"""StatusProber — resolve every runner's status in a fixed number of calls.

One refresh costs at most two external commands no matter how many runners
there are:

1. a single batched service-manager query from the platform strategy;
2. a single process listing, matched per runner by its directory path,
   issued only when some runner is left undecided by step 1.

Resolution per runner:

- the service manager reports active/inactive/failed → that status;
- otherwise (no unit, or a unit in a state we cannot map) → process
  listing says running → ACTIVE, ``.runner`` present → INACTIVE,
  else NOT_FOUND.

Probing never raises. Any failure degrades to the next signal.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from runnerdash.commands import CommandRunner
from runnerdash.exceptions import RunnerDashError
from runnerdash.platforms.base import MISSING, ProbeStrategy, UnitState
from runnerdash.types import CONFIG_MARKER, LAUNCH_SCRIPT, Runner, RunnerStatus

_logger = logging.getLogger(__name__)

PS_COMMAND = ["ps", "-axo", "pid=,command="]


def path_in_command(path: Path, command: str) -> bool:
    """True if ``command`` references ``path`` itself, not a sibling like ``<path>0``."""
    needle = str(path)
    start = command.find(needle)
    while start != -1:
        end = start + len(needle)
        if end == len(command) or command[end] in "/ \t":
            return True
        start = command.find(needle, start + 1)
    return False


class StatusProber:
    """Batched status resolution over a platform ProbeStrategy."""

    def __init__(
        self,
        strategy: ProbeStrategy,
        commands: CommandRunner,
        process_marker: str = "Runner.Listener",
    ) -> None:
        self._strategy = strategy
        self._commands = commands
        self._markers = (process_marker, LAUNCH_SCRIPT)

    async def probe_all(self, runners: Sequence[Runner]) -> dict[Path, RunnerStatus]:
        """Status for every runner, keyed by runner path."""
        if not runners:
            return {}

        units = await self._query_units(runners)
        undecided = [r for r in runners if not _decided(units.get(r.service_name, MISSING))]
        running = await self._running_paths(undecided) if undecided else {}
        return {
            r.path: self.resolve(r, units.get(r.service_name, MISSING), running.get(r.path, False))
            for r in runners
        }

    async def refresh(self, runners: Sequence[Runner]) -> list[Runner]:
        """New runner records carrying freshly probed statuses."""
        statuses = await self.probe_all(runners)
        return [r.with_status(statuses.get(r.path, RunnerStatus.NOT_FOUND)) for r in runners]

    @staticmethod
    def resolve(runner: Runner, unit: UnitState, running: bool) -> RunnerStatus:
        if _decided(unit):
            return unit.status
        if running:
            return RunnerStatus.ACTIVE
        try:
            configured = (runner.path / CONFIG_MARKER).exists()
        except OSError as e:
            _logger.debug("Cannot check %s for %s: %s", CONFIG_MARKER, runner.display_name, e)
            return RunnerStatus.NOT_FOUND
        return RunnerStatus.INACTIVE if configured else RunnerStatus.NOT_FOUND

    async def _running_paths(self, runners: Sequence[Runner]) -> dict[Path, bool]:
        try:
            result = await self._commands.run(PS_COMMAND)
        except RunnerDashError as e:
            _logger.debug("Process listing unavailable: %s", e)
            return {}
        if not result.ok:
            _logger.debug("Process listing failed: %s", result.output)
            return {}

        commands = [
            line for line in result.stdout.splitlines()
            if any(marker in line for marker in self._markers)
        ]
        return {
            r.path: any(path_in_command(r.path, c) for c in commands)
            for r in runners
        }

    async def _query_units(self, runners: Sequence[Runner]) -> dict[str, UnitState]:
        try:
            return await self._strategy.query_units(runners)
        except (RunnerDashError, OSError, ValueError) as e:
            _logger.debug("Service manager query failed: %s", e)
            return {}


def _decided(unit: UnitState) -> bool:
    return unit.exists and unit.status is not None
