"""Installation engine services."""

from .cancellation import CancellationToken
from .installation import APP_OP_DELAY_SECONDS, APP_OP_REPETITIONS, InstallationEngine, ProgressSink
from .runner import InstallationRunner

__all__ = [
    "APP_OP_DELAY_SECONDS",
    "APP_OP_REPETITIONS",
    "CancellationToken",
    "InstallationEngine",
    "InstallationRunner",
    "ProgressSink",
]
