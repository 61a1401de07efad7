"""Runner log retrieval: the service manager's journal, else ``_diag`` files."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

from runnerdash.exceptions import RunnerDashError
from runnerdash.platforms.base import ProbeStrategy
from runnerdash.types import DIAG_DIR, Runner

_logger = logging.getLogger(__name__)


def newest_diag_file(runner: Runner) -> Path | None:
    """Most recently modified ``*.log`` under the runner's diagnostics directory."""
    diag = runner.path / DIAG_DIR
    try:
        candidates = [p for p in diag.glob("*.log") if p.is_file()]
        return max(candidates, key=lambda p: p.stat().st_mtime, default=None)
    except OSError:
        return None


def tail_file(path: Path, lines: int) -> list[str]:
    with path.open(encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=lines)]


async def fetch_logs(runner: Runner, strategy: ProbeStrategy, lines: int = 100) -> list[str]:
    """Last ``lines`` log lines for a runner; empty when there are none."""
    try:
        journal = await strategy.journal(runner, lines)
    except RunnerDashError as e:
        _logger.debug("Journal unavailable for %s: %s", runner.display_name, e)
        journal = []
    if journal:
        return journal[-lines:]

    path = newest_diag_file(runner)
    if path is None:
        return []
    try:
        return tail_file(path, lines)
    except OSError as e:
        _logger.debug("Cannot read %s: %s", path, e)
        return []
