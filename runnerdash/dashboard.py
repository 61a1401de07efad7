"""Dashboard — presentation state over the worker's published snapshots.

Holds the last runner list the worker published, the operator's selection
and a one-line status message. It only ever pushes fire-and-forget commands
and drains responses without blocking, so rendering never waits on a probe
or an action.
"""

from __future__ import annotations

from typing import Sequence

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from runnerdash.exceptions import ChannelError
from runnerdash.types import ControlAction, Runner, RunnerStatus
from runnerdash.worker import ActionComplete, Control, Refresh, RunnersUpdated, WorkerHandle

UNAVAILABLE = "Warning: Worker unavailable. Data may be stale."
CRASHED = "ERROR: Background worker crashed. Data may be stale."


class Dashboard:
    def __init__(self, handle: WorkerHandle, runners: Sequence[Runner] = ()) -> None:
        self._handle = handle
        self.runners: tuple[Runner, ...] = tuple(runners)
        self.selected = 0
        self.status_message: str | None = None

    # ── Worker traffic ──────────────────────────────────────────────

    def request_refresh(self) -> None:
        try:
            self._handle.send(Refresh())
        except ChannelError:
            self.status_message = UNAVAILABLE

    def control_selected(self, action: ControlAction) -> None:
        try:
            self._handle.send(Control(index=self.selected, action=action.value))
        except ChannelError:
            self.status_message = UNAVAILABLE
            return
        self.status_message = f"{action.progressive} runner..."

    def poll_updates(self) -> int:
        """Apply every pending response in order; returns how many there were."""
        try:
            responses = self._handle.drain()
        except ChannelError:
            self.status_message = CRASHED
            return 0

        for response in responses:
            if isinstance(response, RunnersUpdated):
                self.runners = response.runners
                if self.runners and self.selected >= len(self.runners):
                    self.selected = len(self.runners) - 1
            elif isinstance(response, ActionComplete):
                self.status_message = response.message
        return len(responses)

    # ── Selection ───────────────────────────────────────────────────

    @property
    def selected_runner(self) -> Runner | None:
        if 0 <= self.selected < len(self.runners):
            return self.runners[self.selected]
        return None

    def select_next(self) -> None:
        if self.runners:
            self.selected = (self.selected + 1) % len(self.runners)

    def select_previous(self) -> None:
        if self.runners:
            self.selected = (self.selected - 1) % len(self.runners)

    def counts(self) -> tuple[int, int, int]:
        """(active, failed, total)"""
        active = sum(1 for r in self.runners if r.status is RunnerStatus.ACTIVE)
        failed = sum(1 for r in self.runners if r.status is RunnerStatus.FAILED)
        return active, failed, len(self.runners)

    # ── Rendering ───────────────────────────────────────────────────

    def render(self) -> Group:
        active, failed, total = self.counts()
        header = Text.assemble(
            (" Runner Dashboard ", "bold cyan"),
            " | ",
            (f"● {active} active", "green"),
            " | ",
            (f"✗ {failed} failed", "red" if failed else "dim"),
            " | ",
            f"{total} total",
        )
        parts = [Panel(header, border_style="cyan"), runners_table(self.runners, self.selected)]
        if self.status_message:
            style = "red" if self.status_message.startswith(("Error", "ERROR", "Warning")) else "white"
            parts.append(Text(self.status_message, style=style))
        return Group(*parts)


def runners_table(runners: Sequence[Runner], selected: int | None = None) -> Table:
    table = Table(title="Runners", expand=True)
    table.add_column("Repo", style="cyan", no_wrap=True)
    table.add_column("Runner", style="white")
    table.add_column("Status")
    table.add_column("Service", style="dim")
    table.add_column("Path", style="blue")

    for i, r in enumerate(runners):
        table.add_row(
            r.repo,
            f"runner-{r.number}",
            f"[{r.status.style}]{r.status.symbol} {r.status.value}[/{r.status.style}]",
            r.service_name,
            str(r.path),
            style="reverse" if i == selected else None,
        )
    if not runners:
        table.add_row("[dim]No runners found.[/dim]", "", "", "", "")
    return table
