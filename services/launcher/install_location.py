"""Resolve, validate and migrate the directory the payload is installed into."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from adapters.directory_picker import DirectoryPicker, UserNotifier
from domain.launcher.errors import (
    ConfigurationError,
    InstallError,
    InstallLocationPermissionError,
    LauncherError,
)
from domain.launcher.models import InstalledPayload, InstallLocation, PayloadLayout
from services.launcher.constants import LOCATION_PROBE_PREFIX


_LOGGER = logging.getLogger(__name__)

PROMPT_TITLE = "Choose where to install the game"
ERROR_TITLE = "Invalid install location"


class InstallLocationResolver:
    """Own the install location for the current session.

    The location is read from a marker file on first use and cached in memory
    afterwards.  When there is no usable marker the user is prompted through
    the :class:`DirectoryPicker` until a writable directory is chosen, the
    picker is cancelled, or ``max_attempts`` prompts were rejected.
    """

    def __init__(
        self,
        marker_path: Path,
        picker: DirectoryPicker,
        notifier: UserNotifier,
        *,
        layout: PayloadLayout,
        max_attempts: int = 5,
    ) -> None:
        self._marker_path = Path(marker_path)
        self._picker = picker
        self._notifier = notifier
        self._layout = layout
        self._max_attempts = max(1, int(max_attempts))
        self._location: InstallLocation | None = None

    @property
    def marker_path(self) -> Path:
        return self._marker_path

    @property
    def location(self) -> InstallLocation | None:
        """The cached location, or ``None`` before :meth:`resolve` succeeded."""

        return self._location

    def resolve(self) -> InstallLocation:
        if self._location is not None:
            return self._location

        persisted = self._read_marker()
        if persisted is not None:
            try:
                self._check(persisted)
            except LauncherError as exc:
                _LOGGER.warning("Saved install location %s is unusable: %s", persisted, exc)
                self._notifier.show_error(
                    ERROR_TITLE,
                    f"The saved install location can no longer be used. {exc}",
                )
            else:
                _LOGGER.info("Using install location %s", persisted)
                self._location = InstallLocation(persisted, self._marker_path)
                return self._location

        chosen = self._prompt()
        self._write_marker(chosen)
        self._location = InstallLocation(chosen, self._marker_path)
        _LOGGER.info("Install location set to %s", chosen)
        return self._location

    def validate(self, path: Path) -> bool:
        """Return ``True`` when ``path`` is an existing directory the user can write."""

        try:
            self._check(Path(path))
        except LauncherError:
            return False
        return True

    def change_location(self, new_path: Path) -> InstallLocation:
        """Move the installed payload to ``new_path`` and remember it.

        The marker keeps pointing at the old location unless the move
        succeeded.
        """

        new_root = self._check(Path(new_path).expanduser())
        current = self._location
        if current is None:
            persisted = self._read_marker()
            if persisted is not None and self.validate(persisted):
                current = InstallLocation(persisted, self._marker_path)

        if current is not None and _same_directory(current.path, new_root):
            _LOGGER.debug("Install location unchanged at %s", new_root)
            self._location = current
            return current

        if current is not None:
            self._move_payload(
                current.payload(self._layout),
                InstalledPayload.from_location(new_root, self._layout),
            )

        self._write_marker(new_root)
        self._location = InstallLocation(new_root, self._marker_path)
        _LOGGER.info("Install location changed to %s", new_root)
        return self._location

    def _prompt(self) -> Path:
        initial_dir = Path.home()
        for attempt in range(1, self._max_attempts + 1):
            selected = self._picker.ask_directory(PROMPT_TITLE, initial_dir)
            if selected is None:
                _LOGGER.info("Install location prompt cancelled")
                raise ConfigurationError("No install location was selected.")
            candidate = Path(selected).expanduser()
            try:
                return self._check(candidate)
            except LauncherError as exc:
                _LOGGER.warning(
                    "Rejected install location %s (attempt %d of %d): %s",
                    candidate,
                    attempt,
                    self._max_attempts,
                    exc,
                )
                self._notifier.show_error(ERROR_TITLE, str(exc))
        raise ConfigurationError(
            f"No usable install location was chosen after {self._max_attempts} attempts."
        )

    def _check(self, path: Path) -> Path:
        if not path.is_absolute():
            raise ConfigurationError(f"{path} is not an absolute path.")
        try:
            if not path.exists():
                raise ConfigurationError(f"{path} does not exist.")
            if not path.is_dir():
                raise ConfigurationError(f"{path} is not a directory.")
        except OSError as exc:
            raise ConfigurationError(f"{path} cannot be inspected: {exc}") from exc
        if not has_write_access(path):
            raise InstallLocationPermissionError(
                f"You do not have permission to install into {path}."
            )
        return path

    def _move_payload(self, source: InstalledPayload, target: InstalledPayload) -> None:
        if not source.directory.exists():
            _LOGGER.debug("No payload at %s to move", source.directory)
            return
        if target.directory.exists():
            raise ConfigurationError(
                f"{target.root} already contains a {target.directory.name} folder."
            )

        _LOGGER.info("Moving payload from %s to %s", source.directory, target.directory)
        try:
            os.rename(source.directory, target.directory)
            return
        except OSError as exc:
            _LOGGER.debug("Rename to %s failed (%s); copying instead", target.directory, exc)

        try:
            shutil.copytree(source.directory, target.directory)
        except OSError as exc:
            _LOGGER.error("Copying payload to %s failed: %s", target.directory, exc)
            shutil.rmtree(target.directory, ignore_errors=True)
            raise InstallError(f"Failed to move the game to {target.root}: {exc}") from exc

        # The new copy is complete; whatever is left of the old one is never used again.
        try:
            source.version_file.unlink(missing_ok=True)
            shutil.rmtree(source.directory)
        except OSError:
            _LOGGER.warning(
                "Unable to remove the old payload at %s", source.directory, exc_info=True
            )

    def _read_marker(self) -> Path | None:
        try:
            text = self._marker_path.read_text(encoding="utf-8-sig")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            _LOGGER.warning("Unable to read install marker %s", self._marker_path, exc_info=True)
            return None
        stripped = text.strip()
        if not stripped:
            return None
        return Path(stripped)

    def _write_marker(self, path: Path) -> None:
        try:
            self._marker_path.parent.mkdir(parents=True, exist_ok=True)
            temporary = self._marker_path.with_name(f"{self._marker_path.name}.tmp")
            temporary.write_text(f"{path}\n", encoding="utf-8")
            os.replace(temporary, self._marker_path)
        except OSError as exc:
            raise ConfigurationError(
                f"Unable to remember the install location in {self._marker_path}: {exc}"
            ) from exc


def has_write_access(directory: Path) -> bool:
    """Return ``True`` if the current user can create directories in ``directory``.

    Fails closed: anything that cannot be inspected counts as not writable.
    """

    try:
        if os.name == "nt":
            if not os.access(directory, os.W_OK):
                return False
        elif not _mode_grants_write(directory.stat()):
            return False
        probe = tempfile.mkdtemp(prefix=LOCATION_PROBE_PREFIX, dir=directory)
        os.rmdir(probe)
    except OSError:
        _LOGGER.debug("Write probe failed for %s", directory, exc_info=True)
        return False
    return True


def _mode_grants_write(info: os.stat_result) -> bool:
    euid = os.geteuid()
    if euid == 0:
        return True
    mode = info.st_mode
    if info.st_uid == euid:
        required = stat.S_IWUSR | stat.S_IXUSR
    elif info.st_gid == os.getegid() or info.st_gid in os.getgroups():
        required = stat.S_IWGRP | stat.S_IXGRP
    else:
        required = stat.S_IWOTH | stat.S_IXOTH
    return mode & required == required


def _same_directory(left: Path, right: Path) -> bool:
    try:
        return os.path.samefile(left, right)
    except OSError:
        return left == right


__all__ = ["InstallLocationResolver", "has_write_access"]
