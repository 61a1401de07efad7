"""runnerdash — status and control for a fleet of local Actions runners."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("runnerdash")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
