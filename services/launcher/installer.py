"""Install a staged payload archive and record the installed version."""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from pathlib import Path

from domain.launcher.errors import InstallError
from domain.launcher.models import InstalledPayload
from domain.launcher.version import Version
from services.launcher.archive import extract_archive
from services.launcher.constants import INSTALL_LOCK_NAME
from shared.result import Result


_LOGGER = logging.getLogger(__name__)


class InstallLock:
    """Exclusive lock file guarding an install root across processes.

    A lock file older than ``stale_after`` seconds is assumed to belong to a
    launcher that crashed mid-install and is replaced.
    """

    def __init__(self, path: Path, *, stale_after: float) -> None:
        self._path = Path(path)
        self._stale_after = stale_after
        self._held = False

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        for attempt in range(2):
            try:
                fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if attempt == 0 and self._is_stale():
                    _LOGGER.warning("Removing stale install lock %s", self._path)
                    self._path.unlink(missing_ok=True)
                    continue
                raise InstallError(
                    "Another installation is already running for this location"
                ) from None
            except OSError as exc:
                raise InstallError(f"Unable to lock install location: {exc}") from exc
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(str(os.getpid()))
            self._held = True
            return

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        except OSError:
            _LOGGER.warning("Unable to remove install lock %s", self._path, exc_info=True)

    def _is_stale(self) -> bool:
        try:
            age = time.time() - self._path.stat().st_mtime
        except OSError:
            return False
        return age > self._stale_after

    def __enter__(self) -> "InstallLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class PayloadInstaller:
    """Extract staged archives and keep the version file consistent.

    The version file is removed before extraction begins and only written
    after every file is in place.  Any failure from that point on deletes the
    whole payload directory, so the next check offers a fresh install instead
    of trusting a half-written payload.
    """

    def __init__(self, *, stale_lock_seconds: float = 3600) -> None:
        self._stale_lock_seconds = stale_lock_seconds
        self._local_lock = threading.Lock()

    def install(
        self, staged_archive: Path, version: Version, payload: InstalledPayload
    ) -> Result[Version, InstallError]:
        staged_archive = Path(staged_archive)
        if not staged_archive.is_file():
            error = InstallError(f"Staged archive is missing: {staged_archive}")
            _LOGGER.error("Cannot install version %s: %s", version, error)
            return Result.err(error)
        lock = InstallLock(
            payload.root / INSTALL_LOCK_NAME, stale_after=self._stale_lock_seconds
        )
        with self._local_lock:
            try:
                lock.acquire()
            except InstallError as exc:
                _LOGGER.error("Cannot install version %s: %s", version, exc)
                return Result.err(exc)
            try:
                self._install(staged_archive, version, payload)
            except (InstallError, OSError) as exc:
                error = exc if isinstance(exc, InstallError) else InstallError(
                    f"Failed to install version {version}: {exc}"
                )
                if error is not exc:
                    error.__cause__ = exc
                _LOGGER.error("Installing version %s failed: %s", version, error)
                self._discard_partial_install(staged_archive, payload)
                return Result.err(error)
            finally:
                lock.release()

        _LOGGER.info("Installed version %s into %s", version, payload.directory)
        return Result.ok(version)

    def _install(
        self, staged_archive: Path, version: Version, payload: InstalledPayload
    ) -> None:
        payload.version_file.unlink(missing_ok=True)
        extract_archive(staged_archive, payload.root, only=payload.directory.name)
        if not payload.directory.is_dir():
            raise InstallError(
                f"Payload archive did not contain the {payload.directory.name} directory"
            )

        staged_archive.unlink()
        _LOGGER.debug("Removed staged archive %s", staged_archive)
        write_version_file(payload.version_file, version)

    def _discard_partial_install(
        self, staged_archive: Path, payload: InstalledPayload
    ) -> None:
        if payload.directory.exists():
            _LOGGER.warning("Removing partially installed payload at %s", payload.directory)
            try:
                shutil.rmtree(payload.directory)
            except OSError:
                _LOGGER.exception("Unable to remove partial payload at %s", payload.directory)
        try:
            staged_archive.unlink(missing_ok=True)
        except OSError:
            _LOGGER.warning("Unable to remove staged archive %s", staged_archive, exc_info=True)


def write_version_file(path: Path, version: Version) -> None:
    """Write ``version`` to ``path`` so readers never see a partial line."""

    temporary = path.with_name(f"{path.name}.tmp")
    temporary.write_text(version.format(), encoding="utf-8")
    os.replace(temporary, path)


def read_version_file(path: Path) -> Version | None:
    """Return the strictly parsed version stored at ``path``.

    Raises :class:`FileNotFoundError` when there is no version file and
    returns ``None`` when the file exists but cannot be read or parsed.
    """

    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError):
        _LOGGER.warning("Unable to read version file %s", path, exc_info=True)
        return None
    return Version.try_parse(text)


__all__ = [
    "InstallLock",
    "PayloadInstaller",
    "read_version_file",
    "write_version_file",
]
