"""Facade coordinating checks, downloads, installs and launches for a shell."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable

from adapters.directory_picker import UserNotifier
from domain.launcher.errors import (
    ConfigurationError,
    InstallError,
    LaunchError,
    LauncherError,
    NetworkError,
)
from domain.launcher.models import InstalledPayload, InstallLocation, PayloadLayout
from domain.launcher.state import (
    InstallKind,
    LauncherSnapshot,
    LauncherStateMachine,
    LauncherStatus,
)
from domain.launcher.version import Version
from services.launcher.constants import MESSAGE_DOWNLOAD_CANCELLED, MESSAGE_UP_TO_DATE
from services.launcher.downloader import (
    DownloadCompleted,
    DownloadFailed,
    DownloadHandle,
    DownloadProgress,
    Downloader,
)
from services.launcher.install_location import InstallLocationResolver
from services.launcher.installer import PayloadInstaller
from services.launcher.process_launcher import ProcessLauncher
from services.launcher.releases import GitHubReleaseListing
from services.launcher.remote_version import RemoteVersionSource
from services.launcher.update_checker import CheckOutcome, UpdateChecker
from shared.dispatch import Callback, Dispatcher, run_in_thread
from shared.result import Result


_LOGGER = logging.getLogger(__name__)

NOTIFY_TITLE = "Game Launcher"

Runner = Callable[[str], Callable[[Callback], None]]


class LauncherService:
    """Single entry point the presentation shell calls into.

    Blocking work runs through ``runner`` (daemon threads by default) and its
    results come back through ``dispatch`` before the state machine is
    touched, so every state change happens on the controlling thread.
    ``dispatch`` must therefore hand callbacks to that thread;
    :func:`~shared.dispatch.invoke_immediately` is only safe with an inline
    ``runner``.
    """

    def __init__(
        self,
        *,
        state: LauncherStateMachine,
        resolver: InstallLocationResolver,
        checker: UpdateChecker,
        source: RemoteVersionSource,
        downloader: Downloader,
        installer: PayloadInstaller,
        process_launcher: ProcessLauncher,
        notifier: UserNotifier,
        layout: PayloadLayout,
        version_url: str,
        archive_url: str,
        dispatch: Dispatcher,
        releases: GitHubReleaseListing | None = None,
        runner: Runner = run_in_thread,
    ) -> None:
        self._state = state
        self._resolver = resolver
        self._checker = checker
        self._source = source
        self._downloader = downloader
        self._installer = installer
        self._process_launcher = process_launcher
        self._notifier = notifier
        self._layout = layout
        self._version_url = version_url
        self._archive_url = archive_url
        self._releases = releases
        self._dispatch = dispatch
        self._runner = runner
        self._checking = False
        self._fetching_version = False
        self._cancel_before_download = False
        self._handle: DownloadHandle | None = None

    @property
    def state(self) -> LauncherStateMachine:
        return self._state

    @property
    def snapshot(self) -> LauncherSnapshot:
        return self._state.snapshot

    @property
    def location(self) -> InstallLocation | None:
        return self._resolver.location

    @property
    def is_checking(self) -> bool:
        return self._checking

    @property
    def has_pending_work(self) -> bool:
        """``True`` while a check, download or install has not settled yet."""

        return self._checking or self._state.is_busy

    @property
    def can_navigate_away(self) -> bool:
        return not self._state.is_busy

    def payload(self) -> InstalledPayload:
        return self._resolver.resolve().payload(self._layout)

    # ------------------------------------------------------------------
    # Update check
    # ------------------------------------------------------------------
    def check_for_updates(self) -> None:
        status = self._state.status
        if self._state.is_busy or self._checking:
            _LOGGER.debug("Ignoring update check while %s", status.value if status else "checking")
            return
        if status is LauncherStatus.WAITING:
            self._state.announce()
            return

        try:
            payload = self.payload()
        except ConfigurationError as exc:
            self._fail(exc, f"No install location available. {exc}")
            return

        self._checking = True
        _LOGGER.info("Checking %s for updates", payload.directory)
        self._runner("launcher-check")(lambda: self._run_check(payload))

    def _run_check(self, payload: InstalledPayload) -> None:
        try:
            outcome = self._checker.evaluate(payload, self._version_url)
        except Exception as exc:  # pragma: no cover - defensive guard
            _LOGGER.exception("Unexpected error while checking for updates")
            outcome = CheckOutcome(
                LauncherStatus.FAILED,
                f"Failed to check for updates: {exc}",
                error=LauncherError(str(exc)),
            )
        self._dispatch(lambda: self._apply_check(outcome))

    def _apply_check(self, outcome: CheckOutcome) -> None:
        self._checking = False
        snapshot = self._checker.apply(outcome)
        if snapshot.status is LauncherStatus.FAILED:
            self._notifier.show_error(NOTIFY_TITLE, snapshot.message)

    # ------------------------------------------------------------------
    # Download and install
    # ------------------------------------------------------------------
    def confirm_download(self) -> bool:
        """Start the pending install or update; ``False`` when none is waiting."""

        snapshot = self._state.snapshot
        if snapshot.status is not LauncherStatus.WAITING:
            _LOGGER.debug("No download to confirm in state %s", snapshot.status)
            return False

        payload = self.payload()
        self._cancel_before_download = False
        remote_version = snapshot.remote_version
        if snapshot.install_kind is InstallKind.FRESH_INSTALL or remote_version is None:
            self._state.transition(LauncherStatus.DOWNLOADING, message="Preparing download...")
            self._fetching_version = True
            self._runner("launcher-check")(lambda: self._fetch_release_version(payload))
        else:
            self._state.transition(
                LauncherStatus.DOWNLOADING, message=f"Downloading version {remote_version}..."
            )
            self._start_download(payload, remote_version)
        return True

    def _fetch_release_version(self, payload: InstalledPayload) -> None:
        result = self._source.fetch(self._version_url)
        self._dispatch(lambda: self._on_release_version(payload, result))

    def _on_release_version(
        self, payload: InstalledPayload, result: Result[Version, NetworkError]
    ) -> None:
        self._fetching_version = False
        if self._cancel_before_download:
            self._cancel_before_download = False
            self._state.transition(LauncherStatus.FAILED, message=MESSAGE_DOWNLOAD_CANCELLED)
            return
        if result.is_err():
            error = result.unwrap_err()
            self._fail(error, f"Failed to find the latest version: {error}")
            return
        self._start_download(payload, result.unwrap())

    def _start_download(self, payload: InstalledPayload, version: Version) -> None:
        self._handle = self._downloader.start(
            self._archive_url,
            payload.staged_archive,
            version,
            on_progress=self._on_download_progress,
            on_complete=lambda event: self._on_download_complete(payload, event),
            on_failure=self._on_download_failed,
        )

    def _on_download_progress(self, event: DownloadProgress) -> None:
        self._state.report_progress(event.percent)

    def _on_download_complete(self, payload: InstalledPayload, event: DownloadCompleted) -> None:
        self._handle = None
        self._state.transition(
            LauncherStatus.INSTALLING,
            message=f"Installing version {event.version}...",
            remote_version=event.version,
        )
        self._runner("launcher-install")(lambda: self._run_install(payload, event))

    def _on_download_failed(self, event: DownloadFailed) -> None:
        self._handle = None
        if event.cancelled:
            _LOGGER.info("Download of version %s cancelled by the user", event.version)
            self._state.transition(
                LauncherStatus.FAILED, message=MESSAGE_DOWNLOAD_CANCELLED, error=event.error
            )
            return
        self._fail(event.error, f"Download failed: {event.error}")

    def _run_install(self, payload: InstalledPayload, event: DownloadCompleted) -> None:
        result = self._installer.install(event.path, event.version, payload)
        self._dispatch(lambda: self._on_installed(result))

    def _on_installed(self, result: Result[Version, InstallError]) -> None:
        if result.is_err():
            error = result.unwrap_err()
            self._fail(error, f"Installation failed: {error}")
            return
        version = result.unwrap()
        self._state.transition(
            LauncherStatus.READY,
            message=MESSAGE_UP_TO_DATE,
            install_kind=None,
            local_version=version,
            remote_version=version,
        )

    def cancel_download(self) -> bool:
        """Request cancellation of the running download; safe to call repeatedly."""

        handle = self._handle
        # A finished handle may still be stored when the transfer beat start().
        if handle is not None and not handle.done:
            return handle.cancel()
        if self._fetching_version:
            self._cancel_before_download = True
            return True
        return False

    # ------------------------------------------------------------------
    # Launch, location and the combined play control
    # ------------------------------------------------------------------
    def launch(self) -> Result[subprocess.Popen, LaunchError]:
        if not self._state.can_launch:
            error = LaunchError("The game is not ready to launch yet.")
            _LOGGER.warning("Launch requested in state %s", self._state.status)
            self._notifier.show_error(NOTIFY_TITLE, str(error))
            return Result.err(error)

        payload = self.payload()
        result = self._process_launcher.launch(payload.executable, payload.working_directory)
        if result.is_err():
            self._notifier.show_error(NOTIFY_TITLE, str(result.unwrap_err()))
        return result

    def change_install_location(self, new_path: Path) -> Result[InstallLocation, LauncherError]:
        if self.has_pending_work:
            error = LauncherError("The install location cannot change while the launcher is busy.")
            _LOGGER.warning("Refusing to change install location while busy")
            self._notifier.show_error(NOTIFY_TITLE, str(error))
            return Result.err(error)

        try:
            location = self._resolver.change_location(Path(new_path))
        except LauncherError as exc:
            _LOGGER.error("Changing install location failed: %s", exc)
            self._notifier.show_error(NOTIFY_TITLE, str(exc))
            return Result.err(exc)

        if self._state.status is not LauncherStatus.WAITING:
            self.check_for_updates()
        return Result.ok(location)

    def primary_action(self) -> None:
        """Launch when ready, retry after failure, or start the pending download."""

        status = self._state.status
        if status is LauncherStatus.READY:
            self.launch()
        elif status is LauncherStatus.WAITING:
            self.confirm_download()
        elif status is None or status is LauncherStatus.FAILED:
            self.check_for_updates()
        else:
            _LOGGER.debug("Primary action ignored while %s", status.value)

    def list_releases(self) -> list[Version]:
        if self._releases is None:
            return []
        return self._releases.list_versions()

    def _fail(self, error: BaseException, message: str) -> None:
        _LOGGER.error("%s", message)
        self._state.transition(LauncherStatus.FAILED, message=message, error=error)
        self._notifier.show_error(NOTIFY_TITLE, message)


__all__ = ["LauncherService", "NOTIFY_TITLE"]
