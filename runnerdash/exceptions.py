"""Custom exception hierarchy for runnerdash."""


class RunnerDashError(Exception):
    """Base for all runnerdash errors."""


class DiscoveryError(RunnerDashError):
    """The runners root could not be resolved or listed."""


class ValidationError(RunnerDashError):
    """A control request was rejected before any subprocess was spawned."""


class ControlError(RunnerDashError):
    """A control action failed."""


class CommandFailedError(ControlError):
    """The control command ran and exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class SpawnError(ControlError):
    """The control mechanism could not be launched at all."""


class ControlTimeoutError(ControlError):
    """A restart gave up waiting for the old process to exit."""


class ChannelError(RunnerDashError):
    """The background worker is no longer accepting or publishing messages."""


class WorkerStateError(RunnerDashError):
    """Invalid worker state transition."""
