"""ReconciliationWorker — the single owner of the live runner list.

The presentation side never probes or controls anything itself. It pushes
commands onto the worker's inbound queue and drains published responses
from the outbound queue:

    Refresh             → RunnersUpdated
    Control(i, action)  → RunnersUpdated, then ActionComplete
    Shutdown            → loop exits

Every control action, successful or not, is followed by a full re-probe so
the published list reflects what the host reports rather than what the
action claimed. Each RunnersUpdated carries a fresh tuple of frozen Runner
records, so the two sides never share a mutable list.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, TypeAlias

from runnerdash.controller import ActionController
from runnerdash.exceptions import ChannelError, RunnerDashError, WorkerStateError
from runnerdash.prober import StatusProber
from runnerdash.types import Runner

_logger = logging.getLogger(__name__)


# ── Messages ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class Control:
    index: int
    action: str


@dataclass(frozen=True)
class Shutdown:
    pass


@dataclass(frozen=True)
class RunnersUpdated:
    runners: tuple[Runner, ...]


@dataclass(frozen=True)
class ActionComplete:
    message: str


WorkerCommand: TypeAlias = Refresh | Control | Shutdown
WorkerResponse: TypeAlias = RunnersUpdated | ActionComplete


# ── Worker state ─────────────────────────────────────────────────────────────


class WorkerState(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


VALID_TRANSITIONS: dict[WorkerState, set[WorkerState]] = {
    WorkerState.IDLE: {WorkerState.BUSY, WorkerState.STOPPED},
    WorkerState.BUSY: {WorkerState.IDLE, WorkerState.STOPPED},
    WorkerState.STOPPED: set(),  # terminal
}


class ReconciliationWorker:
    """Serializes every refresh and control action against the runner list."""

    def __init__(
        self,
        runners: Sequence[Runner],
        prober: StatusProber,
        controller: ActionController,
        commands: asyncio.Queue,
        responses: asyncio.Queue,
        poll_interval: float = 0.1,
    ) -> None:
        self._runners: list[Runner] = list(runners)
        self._prober = prober
        self._controller = controller
        self._commands = commands
        self._responses = responses
        self._poll_interval = poll_interval
        self._state = WorkerState.IDLE
        self._busy_with: str | None = None

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def busy_with(self) -> str | None:
        """What the worker is doing while BUSY ("refresh" or an action)."""
        return self._busy_with

    def snapshot(self) -> tuple[Runner, ...]:
        return tuple(self._runners)

    def _transition(self, target: WorkerState, busy_with: str | None = None) -> None:
        if target not in VALID_TRANSITIONS[self._state]:
            raise WorkerStateError(
                f"Cannot transition worker from {self._state.value} to {target.value}"
            )
        self._state = target
        self._busy_with = busy_with

    async def run(self) -> None:
        """Process commands until Shutdown, a poisoned queue, or cancellation."""
        try:
            while True:
                try:
                    command = await asyncio.wait_for(
                        self._commands.get(), timeout=self._poll_interval
                    )
                except asyncio.TimeoutError:
                    continue
                if not await self.handle(command):
                    break
        except Exception:
            _logger.exception("Reconciliation worker crashed")
            raise
        finally:
            if self._state is not WorkerState.STOPPED:
                self._transition(WorkerState.STOPPED)
            _logger.debug("Reconciliation worker stopped")

    async def handle(self, command: WorkerCommand | None) -> bool:
        """Handle one command. Returns False when the loop should stop."""
        if isinstance(command, Refresh):
            self._transition(WorkerState.BUSY, "refresh")
            await self._reprobe()
            self._publish(RunnersUpdated(self.snapshot()))
            self._transition(WorkerState.IDLE)
            return True

        if isinstance(command, Control):
            self._transition(WorkerState.BUSY, command.action)
            message = await self._apply(command)
            await self._reprobe()
            self._publish(RunnersUpdated(self.snapshot()))
            self._publish(ActionComplete(message))
            self._transition(WorkerState.IDLE)
            return True

        if isinstance(command, Shutdown):
            return False

        _logger.warning("Unexpected worker command %r, shutting down", command)
        return False

    async def _apply(self, command: Control) -> str:
        if not 0 <= command.index < len(self._runners):
            return (
                f"Error: Runner index {command.index} out of bounds "
                f"(have {len(self._runners)} runners)"
            )
        runner = self._runners[command.index]
        try:
            return await self._controller.control(runner, command.action)
        except RunnerDashError as e:
            _logger.info("%s %s failed: %s", command.action, runner.display_name, e)
            return f"Error: {e}"

    async def _reprobe(self) -> None:
        self._runners = await self._prober.refresh(self._runners)

    def _publish(self, response: WorkerResponse) -> None:
        self._responses.put_nowait(response)


# ── Presentation-side handle ─────────────────────────────────────────────────


class WorkerHandle:
    """The presentation side's only way to reach the worker.

    ``send`` and ``drain`` never block; ``receive`` waits (bounded) for the
    next response and is meant for one-shot CLI commands.
    """

    def __init__(
        self,
        runners: Sequence[Runner],
        prober: StatusProber,
        controller: ActionController,
        poll_interval: float = 0.1,
    ) -> None:
        self._commands: asyncio.Queue = asyncio.Queue()
        self._responses: asyncio.Queue = asyncio.Queue()
        self.worker = ReconciliationWorker(
            runners, prober, controller, self._commands, self._responses, poll_interval,
        )
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.worker.run(), name="runnerdash-worker")

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def crashed(self) -> bool:
        if self._task is None or not self._task.done() or self._task.cancelled():
            return False
        return self._task.exception() is not None

    def send(self, command: WorkerCommand) -> None:
        if not self.alive:
            raise ChannelError("Worker unavailable")
        self._commands.put_nowait(command)

    def drain(self) -> list[WorkerResponse]:
        """All responses published so far, oldest first.

        Raises ChannelError once the queue is empty and the worker has died.
        """
        pending: list[WorkerResponse] = []
        while True:
            try:
                pending.append(self._responses.get_nowait())
            except asyncio.QueueEmpty:
                break
        if not pending and self.crashed:
            raise ChannelError("Background worker crashed")
        return pending

    async def receive(self, timeout: float) -> WorkerResponse:
        """Next response, waiting at most ``timeout`` seconds.

        Returns early with ChannelError if the worker stops while waiting.
        """
        if not self._responses.empty():
            return self._responses.get_nowait()
        if not self.alive:
            raise ChannelError("Worker unavailable")

        getter = asyncio.ensure_future(self._responses.get())
        done, _ = await asyncio.wait(
            {getter, self._task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED,
        )
        if getter in done:
            return getter.result()
        getter.cancel()
        # The worker may publish its last response and exit in the same step
        if not self._responses.empty():
            return self._responses.get_nowait()
        if self._task.done():
            if self.crashed:
                raise ChannelError("Background worker crashed")
            raise ChannelError("Worker unavailable")
        raise ChannelError(f"No response from worker within {timeout:g}s")

    async def close(self) -> None:
        """Cooperative shutdown: the current command finishes first."""
        if self._task is None:
            return
        if self._task.done():
            if self.crashed:
                _logger.warning("Worker had crashed: %s", self._task.exception())
            return
        self._commands.put_nowait(Shutdown())
        await self._task
