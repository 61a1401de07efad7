"""ActionController — validated start/stop/restart with a tiered fallback.

Every request passes the validation gate before anything is executed:
the action must be one of the three verbs, the service name must be in the
``actions.runner.`` namespace and made only of ``[A-Za-z0-9._-]``, and any
runner path that ends up inside a pkill/pgrep pattern must be free of shell
metacharacters. The path check runs up front for every tier, so a runner
root containing any of those characters cannot be controlled at all, not
even through the service manager.

Then the first applicable tier handles the action:

1. a registered service-manager unit gets the native verb; its result is
   final. A lookup that fails counts as "no unit";
2. otherwise a ``svc.sh`` in the runner directory is driven, installing the
   service first on ``start`` when it is not installed yet;
3. otherwise the runner process is controlled directly: ``run.sh`` is
   spawned detached, and stop is a SIGTERM via ``pkill -f``. Restart waits
   for the old process to exit (bounded) before spawning again.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path

from runnerdash.commands import CommandResult, CommandRunner
from runnerdash.exceptions import (
    CommandFailedError,
    ControlError,
    ControlTimeoutError,
    RunnerDashError,
    ValidationError,
)
from runnerdash.platforms.base import MISSING, PlatformStrategy, UnitState
from runnerdash.types import (
    CONTROL_SCRIPT,
    LAUNCH_SCRIPT,
    SERVICE_PREFIX,
    ControlAction,
    Runner,
)

_logger = logging.getLogger(__name__)

_SERVICE_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")

# Characters never allowed in a path interpolated into a process pattern
SHELL_METACHARACTERS = frozenset(";&|`$\n\r'\"(){}<>*?[]!#")

# pkill/pgrep exit status when no process matched
_NO_MATCH = 1


def parse_action(action: str | ControlAction) -> ControlAction:
    """Exactly ``start``, ``stop`` or ``restart``; case-sensitive, no aliases."""
    if isinstance(action, ControlAction):
        return action
    try:
        return ControlAction(action)
    except ValueError:
        raise ValidationError(f"Invalid action: {action}") from None


def validate_service_name(name: str) -> None:
    if not _SERVICE_NAME_RE.match(name):
        raise ValidationError("Invalid service name format")
    if not name.startswith(SERVICE_PREFIX):
        raise ValidationError(f"Service name must start with '{SERVICE_PREFIX}'")


def process_pattern(path: Path) -> str:
    """pkill/pgrep ``-f`` pattern for processes running out of ``path``."""
    text = str(path)
    bad = sorted(set(text) & SHELL_METACHARACTERS)
    if bad:
        raise ValidationError(f"Runner path contains disallowed characters: {''.join(bad)!r}")
    return f"{text}/"


class ActionController:
    """Runs control actions against one runner at a time."""

    def __init__(
        self,
        strategy: PlatformStrategy,
        commands: CommandRunner,
        restart_timeout: float = 5.0,
        poll_interval: float = 0.25,
    ) -> None:
        self._strategy = strategy
        self._commands = commands
        self._restart_timeout = restart_timeout
        self._poll_interval = poll_interval

    async def control(self, runner: Runner, action: str | ControlAction) -> str:
        """Apply ``action`` to ``runner`` and return a success message.

        Raises ValidationError before any subprocess is started, and a
        ControlError subclass when the action itself fails.
        """
        verb = parse_action(action)
        validate_service_name(runner.service_name)
        pattern = process_pattern(runner.path)

        unit = await self._find_unit(runner)
        if unit.exists:
            _logger.info("%s %s via %s", verb.value, runner.service_name, self._strategy.name)
            result = await self._strategy.control_unit(runner, verb, unit)
            self._check(result, verb, runner)
            return _success(verb, runner)

        if (runner.path / CONTROL_SCRIPT).is_file():
            _logger.info("%s %s via %s", verb.value, runner.display_name, CONTROL_SCRIPT)
            await self._control_script(runner, verb)
            return _success(verb, runner)

        _logger.info("%s %s via process control", verb.value, runner.display_name)
        return await self._control_process(runner, verb, pattern)

    async def _find_unit(self, runner: Runner) -> UnitState:
        try:
            return await self._strategy.find_unit(runner)
        except (RunnerDashError, OSError, ValueError) as e:
            _logger.debug("Unit lookup for %s failed: %s", runner.service_name, e)
            return MISSING

    # ── Tier 2: svc.sh ──────────────────────────────────────────────

    async def _control_script(self, runner: Runner, verb: ControlAction) -> None:
        if verb is ControlAction.START:
            status = await self._script(runner, "status")
            if not status.ok or "not installed" in status.stdout.lower():
                install = await self._script(runner, "install")
                if not install.ok:
                    raise CommandFailedError(
                        f"Failed to install service for {runner.display_name}: {install.output}",
                        returncode=install.returncode,
                        output=install.output,
                    )
            self._check(await self._script(runner, "start"), verb, runner)
        elif verb is ControlAction.STOP:
            self._check(await self._script(runner, "stop"), verb, runner)
        else:
            self._check(await self._script(runner, "stop"), verb, runner)
            self._check(await self._script(runner, "start"), verb, runner)

    async def _script(self, runner: Runner, verb: str) -> CommandResult:
        return await self._commands.run(self._strategy.script_command(verb), cwd=runner.path)

    # ── Tier 3: direct process control ──────────────────────────────

    async def _control_process(self, runner: Runner, verb: ControlAction, pattern: str) -> str:
        if verb is ControlAction.START:
            await self._spawn(runner)
            return _success(verb, runner)

        if verb is ControlAction.STOP:
            result = await self._commands.run(["pkill", "-TERM", "-f", pattern])
            if result.returncode == _NO_MATCH:
                return f"{runner.display_name} was not running"
            self._check(result, verb, runner)
            return _success(verb, runner)

        result = await self._commands.run(["pkill", "-TERM", "-f", pattern])
        if result.returncode not in (0, _NO_MATCH):
            self._check(result, verb, runner)
        await self._wait_for_exit(runner, pattern)
        await self._spawn(runner)
        return _success(verb, runner)

    async def _wait_for_exit(self, runner: Runner, pattern: str) -> None:
        deadline = time.monotonic() + self._restart_timeout
        while True:
            result = await self._commands.run(["pgrep", "-f", pattern])
            if result.returncode == _NO_MATCH:
                return
            if not result.ok:
                raise CommandFailedError(
                    f"Could not check whether {runner.display_name} exited: {result.output}",
                    returncode=result.returncode,
                    output=result.output,
                )
            if time.monotonic() >= deadline:
                raise ControlTimeoutError(
                    f"{runner.display_name} did not exit within {self._restart_timeout:g}s"
                )
            await asyncio.sleep(self._poll_interval)

    async def _spawn(self, runner: Runner) -> None:
        script = runner.path / LAUNCH_SCRIPT
        if not script.is_file():
            raise ControlError(f"{LAUNCH_SCRIPT} not found in {runner.path}")
        pid = await self._commands.spawn_detached([str(script)], cwd=runner.path)
        _logger.info("Spawned %s (pid %d)", runner.display_name, pid)

    @staticmethod
    def _check(result: CommandResult, verb: ControlAction, runner: Runner) -> None:
        if not result.ok:
            raise CommandFailedError(
                f"Failed to {verb.value} {runner.display_name}: {result.output}",
                returncode=result.returncode,
                output=result.output,
            )


def _success(verb: ControlAction, runner: Runner) -> str:
    return f"Successfully {verb.past_tense} {runner.display_name}"
