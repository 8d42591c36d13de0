"""Domain model for the payload launcher: versions, paths and status graph."""

from domain.launcher.errors import (
    ConfigurationError,
    ExecutableMissingError,
    IllegalTransitionError,
    InstallError,
    InstallLocationPermissionError,
    LaunchError,
    LauncherError,
    NetworkError,
)
from domain.launcher.models import InstallLocation, InstalledPayload, PayloadLayout
from domain.launcher.state import (
    InstallKind,
    LauncherSnapshot,
    LauncherStateMachine,
    LauncherStatus,
)
from domain.launcher.version import Version, compare_versions, is_newer

__all__ = [
    "ConfigurationError",
    "ExecutableMissingError",
    "IllegalTransitionError",
    "InstallError",
    "InstallKind",
    "InstallLocation",
    "InstallLocationPermissionError",
    "InstalledPayload",
    "LaunchError",
    "LauncherError",
    "LauncherSnapshot",
    "LauncherStateMachine",
    "LauncherStatus",
    "NetworkError",
    "PayloadLayout",
    "Version",
    "compare_versions",
    "is_newer",
]
