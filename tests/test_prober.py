"""Tests for StatusProber — batching, tier precedence and degradation."""

from __future__ import annotations

from pathlib import Path

import pytest

from runnerdash.exceptions import SpawnError
from runnerdash.platforms import NoServiceManager, SystemdStrategy
from runnerdash.prober import StatusProber, path_in_command
from runnerdash.types import RunnerStatus

from tests.conftest import FakeCommandRunner, result, systemctl_show


def _ps(*paths: Path) -> str:
    lines = ["    1 /sbin/init"]
    for i, p in enumerate(paths, start=100):
        lines.append(f"  {i} {p}/bin/Runner.Listener run --startuptype service")
    return "\n".join(lines) + "\n"


@pytest.mark.parametrize("count", [1, 5, 40])
async def test_probe_cost_is_independent_of_runner_count(make_runner, count):
    runners = [make_runner(slot=i) for i in range(count)]
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({}),
        "ps": result(0, stdout=_ps()),
    })
    prober = StatusProber(SystemdStrategy(commands), commands)

    statuses = await prober.probe_all(runners)

    assert len(statuses) == count
    assert len(commands.calls) == 2
    assert commands.count("systemctl") == 1
    assert commands.count("ps") == 1


async def test_service_manager_states_win_without_process_lookup(make_runner):
    r0, r1 = make_runner(slot=0), make_runner(slot=1)
    commands = FakeCommandRunner({"systemctl": systemctl_show({
        r0.service_name: ("loaded", "active"),
        r1.service_name: ("loaded", "failed"),
    })})
    prober = StatusProber(SystemdStrategy(commands), commands)

    statuses = await prober.probe_all([r0, r1])

    assert [statuses[r0.path], statuses[r1.path]] == [RunnerStatus.ACTIVE, RunnerStatus.FAILED]
    assert commands.count("ps") == 0


async def test_unit_inactive_beats_running_process(make_runner):
    runner = make_runner()
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({runner.service_name: ("loaded", "inactive")}),
        "ps": result(0, stdout=_ps(runner.path)),
    })
    statuses = await StatusProber(SystemdStrategy(commands), commands).probe_all([runner])
    assert statuses[runner.path] is RunnerStatus.INACTIVE


async def test_no_unit_not_running_configured_is_inactive(make_runner):
    runner = make_runner(slot=2, configured=True)
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({}),
        "ps": result(0, stdout=_ps()),
    })
    statuses = await StatusProber(SystemdStrategy(commands), commands).probe_all([runner])
    assert statuses[runner.path] is RunnerStatus.INACTIVE


async def test_no_unit_running_process_is_active(make_runner):
    runner = make_runner(slot=3)
    other = make_runner(slot=4, configured=True)
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({}),
        "ps": result(0, stdout=_ps(runner.path)),
    })
    statuses = await StatusProber(SystemdStrategy(commands), commands).probe_all([runner, other])
    assert statuses[runner.path] is RunnerStatus.ACTIVE
    assert statuses[other.path] is RunnerStatus.INACTIVE


async def test_nothing_known_is_not_found(make_runner):
    runner = make_runner()
    commands = FakeCommandRunner({"ps": result(0, stdout=_ps())})
    statuses = await StatusProber(NoServiceManager(commands), commands).probe_all([runner])
    assert statuses[runner.path] is RunnerStatus.NOT_FOUND
    assert commands.executables() == ["ps"]


async def test_registered_unknown_state_falls_through_to_processes(make_runner):
    runner = make_runner()
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({runner.service_name: ("loaded", "activating")}),
        "ps": result(0, stdout=_ps(runner.path)),
    })
    statuses = await StatusProber(SystemdStrategy(commands), commands).probe_all([runner])
    assert statuses[runner.path] is RunnerStatus.ACTIVE


async def test_failures_degrade_instead_of_raising(make_runner):
    runner = make_runner(configured=True)

    def _spawn_fails(argv):
        raise SpawnError("no ps")

    commands = FakeCommandRunner({
        "systemctl": result(1, stderr="Failed to connect to bus"),
        "ps": _spawn_fails,
    })
    statuses = await StatusProber(SystemdStrategy(commands), commands).probe_all([runner])
    assert statuses[runner.path] is RunnerStatus.INACTIVE


async def test_unreadable_runner_directory_is_not_found(make_runner, monkeypatch):
    runner = make_runner(configured=True)
    real_exists = Path.exists

    def _exists(self, *args, **kwargs):
        if self.name == ".runner":
            raise PermissionError(13, "Permission denied", str(self))
        return real_exists(self, *args, **kwargs)

    monkeypatch.setattr(Path, "exists", _exists)
    commands = FakeCommandRunner({"ps": result(0, stdout=_ps())})

    refreshed = await StatusProber(NoServiceManager(commands), commands).refresh([runner])

    assert refreshed[0].status is RunnerStatus.NOT_FOUND


async def test_empty_runner_list_issues_no_calls():
    commands = FakeCommandRunner()
    prober = StatusProber(SystemdStrategy(commands), commands)
    assert await prober.probe_all([]) == {}
    assert commands.calls == []


async def test_refresh_replaces_records(make_runner):
    runner = make_runner()
    commands = FakeCommandRunner({
        "systemctl": systemctl_show({runner.service_name: ("loaded", "active")}),
    })
    (updated,) = await StatusProber(SystemdStrategy(commands), commands).refresh([runner])
    assert updated.status is RunnerStatus.ACTIVE
    assert runner.status is RunnerStatus.NOT_FOUND
    assert updated is not runner


def test_path_in_command_ignores_sibling_slots():
    path = Path("/home/ci/action-runners/repoA/1")
    assert path_in_command(path, f"{path}/bin/Runner.Listener run")
    assert path_in_command(path, f"/bin/bash {path}")
    assert not path_in_command(path, "/home/ci/action-runners/repoA/10/bin/Runner.Listener run")
