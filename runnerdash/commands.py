"""External-process layer — every subprocess runnerdash starts goes through here.

Probing and control code never touch ``asyncio.create_subprocess_exec``
directly; they receive a ``CommandRunner`` so tests can swap in a recording
stand-in and count exactly which commands a refresh or an action issued.

Commands are always argv lists, never shell strings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from runnerdash.exceptions import CommandFailedError, SpawnError

_logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Diagnostic text: stderr when there is any, stdout otherwise."""
        return (self.stderr.strip() or self.stdout.strip())[:2000]


def privileged(args: Sequence[str], use_sudo: bool) -> list[str]:
    """Prefix a command with non-interactive sudo when enabled."""
    if use_sudo:
        return ["sudo", "-n", *args]
    return list(args)


class CommandRunner:
    """Runs commands as asyncio subprocesses."""

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout
        self._detached: list[asyncio.subprocess.Process] = []

    async def run(self, args: Sequence[str], cwd: Path | None = None) -> CommandResult:
        """Run a command to completion and capture its output.

        Raises SpawnError when the executable cannot be launched and
        CommandFailedError when it does not finish within the timeout.
        A non-zero exit is *not* an error here; callers inspect the result.
        """
        argv = list(args)
        _logger.debug("exec %s (cwd=%s)", argv, cwd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            raise SpawnError(f"Could not run {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandFailedError(
                f"{argv[0]} timed out after {self._timeout:g}s", returncode=None
            )

        return CommandResult(
            args=argv,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def spawn_detached(self, args: Sequence[str], cwd: Path | None = None) -> int:
        """Start a long-running command in its own session and return its PID.

        The child is not waited for; it outlives a dashboard restart.
        """
        argv = list(args)
        _logger.debug("spawn %s (cwd=%s)", argv, cwd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=str(cwd) if cwd else None,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(f"Could not launch {argv[0]}: {e}") from e
        self._detached.append(proc)
        return proc.pid

