"""CLI runtime context — wires the subsystems from settings."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Sequence

from runnerdash.commands import CommandRunner
from runnerdash.config import settings
from runnerdash.controller import ActionController
from runnerdash.platforms import select_strategy
from runnerdash.prober import StatusProber
from runnerdash.types import Runner
from runnerdash.worker import WorkerHandle


class RunnerDashContext:
    """Singleton holding the command runner, platform strategy, prober and controller."""

    _instance: RunnerDashContext | None = None

    def __init__(self, commands: CommandRunner | None = None) -> None:
        self.commands = commands or CommandRunner(timeout=settings.command_timeout)
        self.strategy = select_strategy(
            self.commands, platform=settings.platform, use_sudo=settings.use_sudo,
        )
        self.prober = StatusProber(
            self.strategy, self.commands, process_marker=settings.process_marker,
        )
        self.controller = ActionController(
            self.strategy,
            self.commands,
            restart_timeout=settings.restart_timeout,
            poll_interval=settings.exit_poll_interval,
        )

    def new_worker(self, runners: Sequence[Runner]) -> WorkerHandle:
        return WorkerHandle(
            runners, self.prober, self.controller,
            poll_interval=settings.worker_poll_interval,
        )

    @classmethod
    def get(cls) -> RunnerDashContext:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    return asyncio.run(coro)
