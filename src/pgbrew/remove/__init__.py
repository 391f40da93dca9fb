"""Extension removal for pgbrew."""

from .uninstaller import (
    ActiveUsageConflict,
    UninstallCoordinator,
    UninstallResult,
    drop_commands,
)
from .usage import ExtensionUsageQuery

__all__ = [
    "ActiveUsageConflict",
    "UninstallCoordinator",
    "UninstallResult",
    "drop_commands",
    "ExtensionUsageQuery",
]
