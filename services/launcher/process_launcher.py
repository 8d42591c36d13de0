"""Start the installed payload executable."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Callable

from domain.launcher.errors import ExecutableMissingError, LaunchError
from shared.result import Result


_LOGGER = logging.getLogger(__name__)


class ProcessLauncher:
    """Spawn the payload executable with its own folder as the working directory."""

    def __init__(self, *, popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        self._popen = popen

    def launch(
        self, executable: Path, working_directory: Path
    ) -> Result[subprocess.Popen, LaunchError]:
        executable = Path(executable)
        # The payload may have been removed since the last check.
        if not executable.is_file():
            _LOGGER.error("Executable %s is missing", executable)
            return Result.err(
                ExecutableMissingError(f"Game executable not found: {executable}")
            )

        popen_kwargs: dict[str, Any] = {}
        if os.name == "nt":  # pragma: no cover - exercised on Windows
            creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
            if creationflags:
                popen_kwargs["creationflags"] = creationflags

        _LOGGER.info("Launching %s in %s", executable, working_directory)
        try:
            process = self._popen(
                [str(executable)],
                cwd=str(working_directory),
                **popen_kwargs,
            )
        except OSError as exc:
            _LOGGER.error("Failed to launch %s: %s", executable, exc)
            error = LaunchError(f"Failed to launch game: {exc}")
            error.__cause__ = exc
            return Result.err(error)
        return Result.ok(process)


__all__ = ["ProcessLauncher"]
