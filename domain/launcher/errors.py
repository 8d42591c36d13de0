"""Exception hierarchy raised by the launcher core."""

from __future__ import annotations


class LauncherError(RuntimeError):
    """Base class for failures the launcher reports to the user."""


class NetworkError(LauncherError):
    """Raised when a remote resource cannot be retrieved or understood."""


class InstallLocationPermissionError(LauncherError):
    """Raised when the current user cannot create directories at a location."""


class InstallError(LauncherError):
    """Raised when extraction or version persistence fails."""


class LaunchError(LauncherError):
    """Raised when the installed executable cannot be started."""


class ExecutableMissingError(LaunchError):
    """Raised when the executable disappeared since the last check."""


class ConfigurationError(LauncherError):
    """Raised when no valid install location could be established."""


class IllegalTransitionError(LauncherError):
    """Raised when a component requests a transition the graph forbids."""


__all__ = [
    "ConfigurationError",
    "ExecutableMissingError",
    "IllegalTransitionError",
    "InstallError",
    "InstallLocationPermissionError",
    "LaunchError",
    "LauncherError",
    "NetworkError",
]
