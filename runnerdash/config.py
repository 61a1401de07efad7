"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class RunnerDashSettings(BaseSettings):
    runners_dir: Path | None = None  # None means ~/action-runners
    username: str = ""  # empty means $USER
    platform: str = ""  # linux|darwin|none, empty means detect

    # Control
    use_sudo: bool = True
    process_marker: str = "Runner.Listener"
    command_timeout: float = 30.0
    restart_timeout: float = 5.0
    exit_poll_interval: float = 0.25

    # Worker / presentation cadence
    refresh_interval: float = 1.0
    worker_poll_interval: float = 0.1

    log_lines: int = 100
    log_level: str = "WARNING"

    model_config = {"env_prefix": "RUNNERDASH_"}


settings = RunnerDashSettings()
