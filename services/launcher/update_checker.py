"""Decide whether the installed payload is ready, missing or outdated."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from domain.launcher.errors import LauncherError
from domain.launcher.models import InstalledPayload
from domain.launcher.state import (
    InstallKind,
    LauncherSnapshot,
    LauncherStateMachine,
    LauncherStatus,
)
from domain.launcher.version import Version, is_newer
from services.launcher.constants import (
    MESSAGE_DAMAGED_INSTALL,
    MESSAGE_INSTALL_AVAILABLE,
    MESSAGE_UP_TO_DATE,
    MESSAGE_UPDATE_AVAILABLE,
)
from services.launcher.installer import read_version_file
from services.launcher.remote_version import RemoteVersionSource


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of comparing the installed payload with the published release."""

    status: LauncherStatus
    message: str
    install_kind: InstallKind | None = None
    local_version: Version | None = None
    remote_version: Version | None = None
    error: LauncherError | None = None


class UpdateChecker:
    """Compare local and remote versions and record the verdict.

    :meth:`evaluate` performs the blocking I/O and may run on any thread.
    :meth:`apply` mutates the state machine and belongs on the controlling
    thread.
    """

    def __init__(self, source: RemoteVersionSource, state: LauncherStateMachine) -> None:
        self._source = source
        self._state = state

    def evaluate(self, payload: InstalledPayload, remote_version_url: str) -> CheckOutcome:
        try:
            local_version = read_version_file(payload.version_file)
        except FileNotFoundError:
            _LOGGER.info("No installed payload found at %s", payload.directory)
            return CheckOutcome(
                LauncherStatus.WAITING,
                MESSAGE_INSTALL_AVAILABLE,
                install_kind=InstallKind.FRESH_INSTALL,
            )
        if local_version is None:
            _LOGGER.warning(
                "Version file %s is damaged; offering a fresh install", payload.version_file
            )
            return CheckOutcome(
                LauncherStatus.WAITING,
                MESSAGE_DAMAGED_INSTALL,
                install_kind=InstallKind.FRESH_INSTALL,
            )

        result = self._source.fetch(remote_version_url)
        if result.is_err():
            error = result.unwrap_err()
            return CheckOutcome(
                LauncherStatus.FAILED,
                f"Failed to check for updates: {error}",
                local_version=local_version,
                error=error,
            )

        remote_version = result.unwrap()
        if is_newer(remote_version, local_version):
            _LOGGER.info("Update available: %s -> %s", local_version, remote_version)
            return CheckOutcome(
                LauncherStatus.WAITING,
                MESSAGE_UPDATE_AVAILABLE,
                install_kind=InstallKind.UPDATE,
                local_version=local_version,
                remote_version=remote_version,
            )

        _LOGGER.info(
            "Installed version %s is up to date (remote %s)", local_version, remote_version
        )
        return CheckOutcome(
            LauncherStatus.READY,
            MESSAGE_UP_TO_DATE,
            local_version=local_version,
            remote_version=remote_version,
        )

    def apply(self, outcome: CheckOutcome) -> LauncherSnapshot:
        return self._state.transition(
            outcome.status,
            message=outcome.message,
            install_kind=outcome.install_kind,
            local_version=outcome.local_version,
            remote_version=outcome.remote_version,
            error=outcome.error,
        )

    def check(self, payload: InstalledPayload, remote_version_url: str) -> LauncherSnapshot:
        return self.apply(self.evaluate(payload, remote_version_url))


__all__ = ["CheckOutcome", "UpdateChecker"]
