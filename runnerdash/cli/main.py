"""runnerdash CLI — list, watch and control local Actions runners.

`runnerdash ps` probes once and prints a table.
`runnerdash watch` keeps a live view fed by the background worker.
`runnerdash start|stop|restart REPO [SLOT] | --all` runs actions through the
worker, so every printed result follows a fresh re-probe.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from runnerdash.config import settings
from runnerdash.discovery import discover
from runnerdash.exceptions import RunnerDashError
from runnerdash.types import ControlAction, Runner, RunnerStatus

console = Console()

app = typer.Typer(
    name="runnerdash",
    help="Status and control for locally installed GitHub Actions runners.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _discover() -> list[Runner]:
    try:
        return discover()
    except RunnerDashError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)


def _find(runners: list[Runner], repo: str, slot: int) -> int:
    for i, r in enumerate(runners):
        if r.repo == repo and r.number == slot:
            return i
    console.print(f"[red]Error: no runner {repo}-runner-{slot}[/red]")
    raise typer.Exit(code=2)


@app.command("ps")
def ps(
    repo: Optional[str] = typer.Argument(None, help="Only runners of this repository"),
):
    """List runners and their status."""
    from runnerdash.cli.context import RunnerDashContext, run_async
    from runnerdash.dashboard import runners_table

    ctx = RunnerDashContext.get()
    found = [r for r in _discover() if repo is None or r.repo == repo]
    runners = run_async(ctx.prober.refresh(found))
    console.print(runners_table(runners))

    active = sum(1 for r in runners if r.status is RunnerStatus.ACTIVE)
    failed = sum(1 for r in runners if r.status is RunnerStatus.FAILED)
    console.print(
        f"[green]● {active} active[/green]  "
        f"[{'red' if failed else 'dim'}]✗ {failed} failed[/]  "
        f"{len(runners)} total"
    )


@app.command("watch")
def watch():
    """Live view of all runners, refreshed in the background. Ctrl+C to stop."""
    from runnerdash.cli.context import RunnerDashContext, run_async
    from runnerdash.dashboard import Dashboard

    ctx = RunnerDashContext.get()
    runners = _discover()

    async def _watch():
        handle = ctx.new_worker(runners)
        handle.start()
        dashboard = Dashboard(handle, runners)
        dashboard.request_refresh()
        last_refresh = time.monotonic()
        try:
            with Live(dashboard.render(), console=console, refresh_per_second=4) as live:
                while True:
                    if time.monotonic() - last_refresh >= settings.refresh_interval:
                        dashboard.request_refresh()
                        last_refresh = time.monotonic()
                    if dashboard.poll_updates():
                        live.update(dashboard.render())
                    await asyncio.sleep(0.1)
        finally:
            await handle.close()

    try:
        run_async(_watch())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


def _targets(runners: list[Runner], repo: Optional[str], slot: Optional[int], all_: bool) -> list[int]:
    """Runner indices selected by ``REPO SLOT``, ``REPO`` or ``--all``."""
    if all_:
        if repo is not None:
            console.print("[red]Error: give either a REPO or --all, not both[/red]")
            raise typer.Exit(code=2)
        if not runners:
            console.print("[dim]No runners found.[/dim]")
        return list(range(len(runners)))
    if repo is None:
        console.print("[red]Error: give a REPO (and optionally a SLOT) or --all[/red]")
        raise typer.Exit(code=2)
    if slot is not None:
        return [_find(runners, repo, slot)]
    indices = [i for i, r in enumerate(runners) if r.repo == repo]
    if not indices:
        console.print(f"[red]Error: no runners for {repo}[/red]")
        raise typer.Exit(code=2)
    return indices


def _control(
    action: ControlAction, repo: Optional[str], slot: Optional[int], all_: bool
) -> None:
    from runnerdash.cli.context import RunnerDashContext, run_async
    from runnerdash.dashboard import runners_table
    from runnerdash.worker import ActionComplete, Control, RunnersUpdated

    ctx = RunnerDashContext.get()
    runners = _discover()
    indices = _targets(runners, repo, slot, all_)
    if not indices:
        return

    async def _run() -> tuple[tuple[Runner, ...], list[str]]:
        handle = ctx.new_worker(runners)
        handle.start()
        updated: tuple[Runner, ...] = tuple(runners)
        messages: list[str] = []
        try:
            # The worker serializes these; each action gets its own re-probe
            for index in indices:
                handle.send(Control(index=index, action=action.value))
            # Controller time plus one re-probe
            timeout = settings.command_timeout * 3 + settings.restart_timeout
            while len(messages) < len(indices):
                response = await handle.receive(timeout)
                if isinstance(response, RunnersUpdated):
                    updated = response.runners
                elif isinstance(response, ActionComplete):
                    messages.append(response.message)
            return updated, messages
        finally:
            await handle.close()

    if len(indices) == 1:
        target = runners[indices[0]].display_name
    else:
        target = f"{len(indices)} runners"
    console.print(f"[dim]{action.progressive} {target}...[/dim]")
    try:
        updated, messages = run_async(_run())
    except RunnerDashError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(runners_table([updated[i] for i in indices]))
    failed = 0
    for message in messages:
        if message.startswith("Error"):
            failed += 1
            console.print(f"[red]{message}[/red]")
        else:
            console.print(f"[green]{message}[/green]")
    if failed:
        raise typer.Exit(code=1)


@app.command("start")
def start(
    repo: Optional[str] = typer.Argument(None, help="Repository directory name"),
    slot: Optional[int] = typer.Argument(None, help="Runner number (default: every runner of REPO)"),
    all_: bool = typer.Option(False, "--all", "-a", help="Every discovered runner"),
):
    """Start a runner, every runner of a repository, or all runners."""
    _control(ControlAction.START, repo, slot, all_)


@app.command("stop")
def stop(
    repo: Optional[str] = typer.Argument(None, help="Repository directory name"),
    slot: Optional[int] = typer.Argument(None, help="Runner number (default: every runner of REPO)"),
    all_: bool = typer.Option(False, "--all", "-a", help="Every discovered runner"),
):
    """Stop a runner, every runner of a repository, or all runners."""
    _control(ControlAction.STOP, repo, slot, all_)


@app.command("restart")
def restart(
    repo: Optional[str] = typer.Argument(None, help="Repository directory name"),
    slot: Optional[int] = typer.Argument(None, help="Runner number (default: every runner of REPO)"),
    all_: bool = typer.Option(False, "--all", "-a", help="Every discovered runner"),
):
    """Restart a runner, every runner of a repository, or all runners."""
    _control(ControlAction.RESTART, repo, slot, all_)


@app.command("logs")
def logs(
    repo: str = typer.Argument(help="Repository directory name"),
    slot: int = typer.Argument(help="Runner number"),
    lines: int = typer.Option(settings.log_lines, "--lines", "-n", help="Number of lines"),
):
    """Show a runner's recent log lines."""
    from runnerdash.cli.context import RunnerDashContext, run_async
    from runnerdash.logs import fetch_logs

    ctx = RunnerDashContext.get()
    runners = _discover()
    runner = runners[_find(runners, repo, slot)]

    output = run_async(fetch_logs(runner, ctx.strategy, lines))
    if not output:
        console.print(f"[dim]No logs found for {runner.display_name}.[/dim]")
        return
    for line in output:
        console.print(line, markup=False, highlight=False)


@app.command("health")
def health():
    """Exit non-zero when any registered runner is not active."""
    from runnerdash.cli.context import RunnerDashContext, run_async

    ctx = RunnerDashContext.get()
    runners = run_async(ctx.prober.refresh(_discover()))

    known = [r for r in runners if r.status is not RunnerStatus.NOT_FOUND]
    unhealthy = [r for r in known if r.status is not RunnerStatus.ACTIVE]
    for r in unhealthy:
        console.print(f"[red]✗ {r.display_name}: {r.status.value}[/red]")

    console.print(
        f"Total: {len(known)}  Active: {len(known) - len(unhealthy)}  "
        f"Unhealthy: {len(unhealthy)}"
    )
    if unhealthy:
        console.print("[yellow]Some runners need attention.[/yellow]")
        raise typer.Exit(code=1)
    console.print("[green]All runners are healthy.[/green]")


@app.command("version")
def version_cmd():
    """Show runnerdash version."""
    from runnerdash import __version__
    console.print(f"runnerdash v{__version__}")
