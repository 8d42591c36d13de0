"""Public API for the launcher service package."""

from __future__ import annotations

from services.launcher.builder import build_launcher_service, build_tk_launcher_service
from services.launcher.constants import (
    INSTALL_LOCK_NAME,
    MAX_ARCHIVE_ENTRIES,
    MAX_ARCHIVE_FILE_SIZE,
    MAX_ARCHIVE_TOTAL_BYTES,
    MAX_COMPRESSION_RATIO,
)
from services.launcher.downloader import (
    DownloadCancelledError,
    DownloadCompleted,
    DownloadFailed,
    DownloadHandle,
    DownloadProgress,
    Downloader,
)
from services.launcher.install_location import InstallLocationResolver, has_write_access
from services.launcher.installer import PayloadInstaller
from services.launcher.process_launcher import ProcessLauncher
from services.launcher.releases import GitHubReleaseListing
from services.launcher.remote_version import HttpVersionSource, RemoteVersionSource
from services.launcher.service import LauncherService
from services.launcher.update_checker import CheckOutcome, UpdateChecker

__all__ = [
    "INSTALL_LOCK_NAME",
    "MAX_ARCHIVE_ENTRIES",
    "MAX_ARCHIVE_FILE_SIZE",
    "MAX_ARCHIVE_TOTAL_BYTES",
    "MAX_COMPRESSION_RATIO",
    "CheckOutcome",
    "DownloadCancelledError",
    "DownloadCompleted",
    "DownloadFailed",
    "DownloadHandle",
    "DownloadProgress",
    "Downloader",
    "GitHubReleaseListing",
    "HttpVersionSource",
    "InstallLocationResolver",
    "LauncherService",
    "PayloadInstaller",
    "ProcessLauncher",
    "RemoteVersionSource",
    "UpdateChecker",
    "build_launcher_service",
    "build_tk_launcher_service",
    "has_write_access",
]
