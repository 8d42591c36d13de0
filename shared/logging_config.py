"""Central logging configuration for the launcher.

Install locations and marker files usually live under the user's home
directory, so every record written by the launcher passes through a formatter
that replaces the home path and the account name with placeholders before it
reaches disk.  The log can then be attached to bug reports as-is.

``GAME_LAUNCHER_LOG_FILE``
    Absolute path to the log file that should be created.

``GAME_LAUNCHER_LOG_DIR``
    Directory where ``launcher.log`` will be created.  Ignored when
    ``GAME_LAUNCHER_LOG_FILE`` is present.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable

LOG_FILE_ENV = "GAME_LAUNCHER_LOG_FILE"
LOG_DIR_ENV = "GAME_LAUNCHER_LOG_DIR"
_DEFAULT_DIRNAME = ".game_launcher"
_DEFAULT_LOGNAME = "launcher.log"
_HANDLER_TAG = "_game_launcher_logging_handler"
_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s %(name)s] %(message)s"

USER_PLACEHOLDER = "<user>"
USER_HOME_PLACEHOLDER = "<user_home>"

_CONFIGURED = False
_LOG_PATH: Path | None = None
_FILE_HANDLER: logging.FileHandler | None = None


class LogVerbosity(str, Enum):
    """Verbosity levels supported by the launcher log file."""

    DISABLED = "disabled"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    VERBOSE = "verbose"


_VERBOSITY_LEVELS: dict[LogVerbosity, int] = {
    LogVerbosity.DISABLED: logging.CRITICAL + 1,
    LogVerbosity.ERROR: logging.ERROR,
    LogVerbosity.WARNING: logging.WARNING,
    LogVerbosity.INFO: logging.INFO,
    LogVerbosity.VERBOSE: logging.DEBUG,
}

_DEFAULT_VERBOSITY = LogVerbosity.INFO
_CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


def _home_candidates() -> set[str]:
    candidates = {str(Path.home())}
    for env_var in ("HOME", "USERPROFILE"):
        value = os.environ.get(env_var)
        if value:
            candidates.add(os.path.expanduser(value))
    return {
        os.path.normpath(candidate)
        for candidate in candidates
        if candidate and os.path.normpath(candidate) not in {os.sep, "."}
    }


def _username_candidates() -> set[str]:
    names = {Path.home().name}
    for env_var in ("USERNAME", "USER", "LOGNAME"):
        value = os.environ.get(env_var)
        if value:
            names.add(value)
    return {name.strip() for name in names if name and name.strip()}


def _build_redaction_patterns() -> tuple[tuple[re.Pattern[str], str], ...]:
    flags = re.IGNORECASE if os.name == "nt" else 0
    patterns: list[tuple[re.Pattern[str], str]] = []
    seen: set[str] = set()
    for home in _home_candidates():
        for variant in {home, home.replace("\\", "/"), home.replace("/", "\\")}:
            key = variant.lower() if os.name == "nt" else variant
            if key in seen:
                continue
            seen.add(key)
            patterns.append((re.compile(re.escape(variant), flags), USER_HOME_PLACEHOLDER))

    # Longest names first so "alice.smith" is not half-replaced by "alice".
    for username in sorted(_username_candidates(), key=len, reverse=True):
        escaped = re.escape(username)
        if any(character.isalnum() for character in username):
            pattern = re.compile(rf"(?<!\w){escaped}(?!\w)", re.IGNORECASE)
        else:
            pattern = re.compile(escaped, re.IGNORECASE)
        patterns.append((pattern, USER_PLACEHOLDER))
    return tuple(patterns)


_REDACTION_PATTERNS = _build_redaction_patterns()


def redact(message: str) -> str:
    """Replace the user's home path and account name in ``message``."""

    if not message:
        return message
    for pattern, replacement in _REDACTION_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class _RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def ensure_launcher_logging() -> Path:
    """Configure the root logger once and return the log file path.

    A file handler records everything at the current verbosity; a console
    handler is added only when stderr is an interactive terminal.  Repeated
    calls return the already configured path.
    """

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER

    if _CONFIGURED and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    formatter = _RedactingFormatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(_VERBOSITY_LEVELS[_CURRENT_VERBOSITY])
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    if _should_log_to_stderr(root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_TAG, True)
        root.addHandler(stream_handler)

    _CONFIGURED = True
    _LOG_PATH = log_path
    logging.getLogger(__name__).info(
        "Writing launcher logs to %s (verbosity=%s)", log_path, _CURRENT_VERBOSITY.value
    )
    return log_path


def set_file_log_verbosity(verbosity: LogVerbosity | str) -> None:
    """Adjust the minimum severity recorded in the launcher log file."""

    global _CURRENT_VERBOSITY

    if isinstance(verbosity, str) and not isinstance(verbosity, LogVerbosity):
        try:
            verbosity = LogVerbosity(verbosity.lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported log verbosity: {verbosity}") from exc

    ensure_launcher_logging()
    _CURRENT_VERBOSITY = verbosity
    if _FILE_HANDLER is not None:
        _FILE_HANDLER.setLevel(_VERBOSITY_LEVELS[verbosity])
    logging.getLogger(__name__).info("File log verbosity set to %s", verbosity.value)


def get_file_log_verbosity() -> LogVerbosity:
    return _CURRENT_VERBOSITY


def _resolve_log_path() -> Path:
    env_file = os.environ.get(LOG_FILE_ENV)
    if env_file:
        return Path(env_file).expanduser()

    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser() / _DEFAULT_LOGNAME

    return Path.home() / _DEFAULT_DIRNAME / "logs" / _DEFAULT_LOGNAME


def _should_log_to_stderr(handlers: Iterable[logging.Handler]) -> bool:
    stderr = getattr(sys, "stderr", None)
    is_tty = getattr(stderr, "isatty", None)
    if not callable(is_tty):
        return False
    try:
        if not is_tty():
            return False
    except (OSError, ValueError):
        return False

    for handler in handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream is stderr:
            return False
    return True


def _reset_for_tests() -> None:
    """Remove handlers installed by :func:`ensure_launcher_logging`."""

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _CURRENT_VERBOSITY

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    _CONFIGURED = False
    _LOG_PATH = None
    _FILE_HANDLER = None
    _CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


__all__ = [
    "LOG_DIR_ENV",
    "LOG_FILE_ENV",
    "LogVerbosity",
    "ensure_launcher_logging",
    "get_file_log_verbosity",
    "redact",
    "set_file_log_verbosity",
]
