"""Shared test fixtures — FakeCommandRunner for testing without subprocesses."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from runnerdash.commands import CommandResult
from runnerdash.exceptions import SpawnError
from runnerdash.types import CONFIG_MARKER, CONTROL_SCRIPT, LAUNCH_SCRIPT, Runner, service_name

Handler = Callable[[list[str]], CommandResult] | CommandResult


def executable(argv: list[str]) -> str:
    """Executable name ignoring a ``sudo -n`` prefix and any directory part."""
    rest = argv[2:] if argv[:2] == ["sudo", "-n"] else argv
    return Path(rest[0]).name if rest else ""


def result(returncode: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class FakeCommandRunner:
    """Records every command and answers from per-executable handlers.

    Unknown executables succeed with empty output.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None) -> None:
        self.handlers: dict[str, Handler] = dict(handlers or {})
        self.calls: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.spawned: list[list[str]] = []
        self.spawn_error: str | None = None

    async def run(self, args, cwd=None) -> CommandResult:
        argv = list(args)
        self.calls.append(argv)
        self.cwds.append(cwd)
        handler = self.handlers.get(executable(argv))
        if handler is None:
            return CommandResult(args=argv, returncode=0)
        if callable(handler):
            return handler(argv)
        return handler

    async def spawn_detached(self, args, cwd=None) -> int:
        argv = list(args)
        self.calls.append(argv)
        self.cwds.append(cwd)
        if self.spawn_error:
            raise SpawnError(self.spawn_error)
        self.spawned.append(argv)
        return 4242

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if executable(c) == name)

    def executables(self) -> list[str]:
        return [executable(c) for c in self.calls]


def systemctl_show(units: dict[str, tuple[str, str]]) -> Callable[[list[str]], CommandResult]:
    """Handler answering ``systemctl show`` from ``{service_name: (LoadState, ActiveState)}``.

    Services not listed report ``LoadState=not-found``.
    """

    def _handler(argv: list[str]) -> CommandResult:
        rest = argv[2:] if argv[:2] == ["sudo", "-n"] else argv
        if rest[1] != "show":
            return CommandResult(args=argv, returncode=0)
        blocks = []
        for unit in rest[3:]:
            name = unit.removesuffix(".service")
            load, active = units.get(name, ("not-found", "inactive"))
            blocks.append(f"Id={unit}\nLoadState={load}\nActiveState={active}")
        return CommandResult(args=argv, returncode=0, stdout="\n\n".join(blocks) + "\n")

    return _handler


@pytest.fixture
def fake_commands():
    return FakeCommandRunner()


@pytest.fixture
def make_runner(tmp_path):
    """Create ``<tmp>/runners/<repo>/<slot>/`` with marker files and return its Runner."""

    def _factory(
        repo: str = "repoA",
        slot: int = 0,
        username: str = "ci",
        configured: bool = False,
        control_script: bool = False,
        launch_script: bool = True,
    ) -> Runner:
        path = tmp_path / "runners" / repo / str(slot)
        path.mkdir(parents=True, exist_ok=True)
        if launch_script:
            (path / LAUNCH_SCRIPT).write_text("#!/bin/sh\n")
        if configured:
            (path / CONFIG_MARKER).write_text("{}")
        if control_script:
            (path / CONTROL_SCRIPT).write_text("#!/bin/sh\n")
        return Runner(
            repo=repo,
            number=slot,
            service_name=service_name(username, repo, slot),
            path=path,
        )

    return _factory
