"""Helpers for constructing the launcher service from configuration."""

from __future__ import annotations

import logging
import subprocess
from typing import Any, Callable
from urllib.request import urlopen

from adapters.directory_picker import DirectoryPicker, TkDirectoryPicker, TkNotifier, UserNotifier
from app.config import LauncherConfig, get_launcher_config
from domain.launcher.state import LauncherStateMachine
from services.launcher.downloader import Downloader
from services.launcher.install_location import InstallLocationResolver
from services.launcher.installer import PayloadInstaller
from services.launcher.process_launcher import ProcessLauncher
from services.launcher.releases import GitHubReleaseListing
from services.launcher.remote_version import HttpVersionSource
from services.launcher.service import LauncherService, Runner
from services.launcher.update_checker import UpdateChecker
from shared.dispatch import Dispatcher, run_in_thread, tk_dispatcher


_LOGGER = logging.getLogger(__name__)


def build_launcher_service(
    picker: DirectoryPicker,
    notifier: UserNotifier,
    *,
    dispatch: Dispatcher,
    config: LauncherConfig | None = None,
    runner: Runner = run_in_thread,
    opener: Callable[..., object] = urlopen,
    popen: Callable[..., subprocess.Popen] = subprocess.Popen,
) -> LauncherService:
    """Wire a :class:`LauncherService` for the current environment.

    ``dispatch`` must run callbacks on the thread that owns the service, such
    as :func:`~shared.dispatch.tk_dispatcher` or a
    :class:`~shared.dispatch.QueueDispatcher` pumped by that thread.
    """

    config = config or get_launcher_config()
    state = LauncherStateMachine()
    source = HttpVersionSource(timeout=config.remote.timeout_seconds, opener=opener)
    resolver = InstallLocationResolver(
        config.location.marker_path,
        picker,
        notifier,
        layout=config.payload,
        max_attempts=config.location.max_prompt_attempts,
    )
    downloader = Downloader(
        timeout=config.remote.timeout_seconds,
        chunk_size=config.download.chunk_size,
        opener=opener,
        dispatch=dispatch,
        spawn=runner("launcher-download"),
    )
    releases = None
    if config.remote.release_api_url:
        releases = GitHubReleaseListing(
            config.remote.release_api_url,
            timeout=config.remote.timeout_seconds,
            opener=opener,
        )

    _LOGGER.debug(
        "Building launcher service (version_url=%s, archive_url=%s, marker=%s)",
        config.remote.version_url,
        config.remote.archive_url,
        config.location.marker_path,
    )
    return LauncherService(
        state=state,
        resolver=resolver,
        checker=UpdateChecker(source, state),
        source=source,
        downloader=downloader,
        installer=PayloadInstaller(stale_lock_seconds=config.install.stale_lock_seconds),
        process_launcher=ProcessLauncher(popen=popen),
        notifier=notifier,
        layout=config.payload,
        version_url=config.remote.version_url,
        archive_url=config.remote.archive_url,
        releases=releases,
        dispatch=dispatch,
        runner=runner,
    )


def build_tk_launcher_service(root: Any, *, config: LauncherConfig | None = None) -> LauncherService:
    """Wire the service for a Tk shell whose main loop runs on ``root``."""

    return build_launcher_service(
        TkDirectoryPicker(),
        TkNotifier(),
        config=config,
        dispatch=tk_dispatcher(root),
    )


__all__ = ["build_launcher_service", "build_tk_launcher_service"]
