"""Tests for core runner types."""

from pathlib import Path

import pydantic
import pytest

from runnerdash.types import ControlAction, Runner, RunnerStatus, service_name


def test_service_name_format():
    assert service_name("ci", "repoA", 0) == "actions.runner.ci.repoA-runner-0"


def test_service_name_is_deterministic():
    assert service_name("u", "r", 3) == service_name("u", "r", 3)
    assert service_name("u", "r", 3) != service_name("u", "r", 4)


def test_default_status_is_not_found():
    r = Runner(repo="r", number=1, service_name=service_name("u", "r", 1), path=Path("/x"))
    assert r.status is RunnerStatus.NOT_FOUND
    assert r.display_name == "r-runner-1"


def test_runner_is_frozen():
    r = Runner(repo="r", number=1, service_name="actions.runner.u.r-runner-1", path=Path("/x"))
    with pytest.raises(pydantic.ValidationError):
        r.status = RunnerStatus.ACTIVE


def test_with_status_returns_new_record():
    r = Runner(repo="r", number=1, service_name="actions.runner.u.r-runner-1", path=Path("/x"))
    updated = r.with_status(RunnerStatus.FAILED)
    assert updated.status is RunnerStatus.FAILED
    assert r.status is RunnerStatus.NOT_FOUND
    assert updated.service_name == r.service_name


def test_status_symbols():
    assert RunnerStatus.ACTIVE.symbol == "●"
    assert RunnerStatus.INACTIVE.symbol == "○"
    assert RunnerStatus.FAILED.symbol == "✗"
    assert RunnerStatus.NOT_FOUND.symbol == "?"
    assert RunnerStatus.NOT_FOUND.value == "not-found"


def test_actions_are_case_sensitive():
    assert ControlAction("restart") is ControlAction.RESTART
    with pytest.raises(ValueError):
        ControlAction("Restart")
    assert ControlAction.STOP.past_tense == "stopped"
