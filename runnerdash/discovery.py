"""RunnerDiscovery — enumerate runner instances from the directory tree.

Layout::

    <root>/<repo>/<slot>/run.sh

Every slot directory holding the launch script is one runner. The slot
directory name is the runner number. Discovery only establishes identity;
status stays NOT_FOUND until the first probe.
"""

from __future__ import annotations

import getpass
import logging
from pathlib import Path

from runnerdash.config import settings
from runnerdash.exceptions import DiscoveryError
from runnerdash.types import LAUNCH_SCRIPT, Runner, service_name

_logger = logging.getLogger(__name__)


def default_root() -> Path:
    """``settings.runners_dir`` or ``~/action-runners``."""
    if settings.runners_dir is not None:
        return settings.runners_dir.expanduser()
    try:
        return Path.home() / "action-runners"
    except RuntimeError as e:
        raise DiscoveryError(f"Cannot find home directory: {e}") from e


def current_username() -> str:
    if settings.username:
        return settings.username
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def parse_slot(name: str) -> int:
    """Slot number from a directory name; anything unparsable is slot 0."""
    try:
        number = int(name)
    except ValueError:
        return 0
    return number if number >= 0 else 0


def discover(root: Path | None = None, username: str | None = None) -> list[Runner]:
    """Find all runners under ``root``, sorted by (repo, number)."""
    root = root if root is not None else default_root()
    username = username if username is not None else current_username()

    if not root.is_dir():
        _logger.info("Runners root %s does not exist", root)
        return []

    runners: list[Runner] = []
    for repo_dir in _subdirs(root):
        for slot_dir in _subdirs(repo_dir):
            if not (slot_dir / LAUNCH_SCRIPT).is_file():
                continue
            number = parse_slot(slot_dir.name)
            runners.append(Runner(
                repo=repo_dir.name,
                number=number,
                service_name=service_name(username, repo_dir.name, number),
                path=slot_dir,
            ))

    runners.sort(key=lambda r: (r.repo, r.number, str(r.path)))
    _logger.info("Discovered %d runners under %s", len(runners), root)
    return runners


def _subdirs(path: Path) -> list[Path]:
    try:
        entries = sorted(path.iterdir())
    except OSError as e:
        raise DiscoveryError(f"Cannot read {path}: {e}") from e
    return [p for p in entries if not p.name.startswith(".") and p.is_dir()]
