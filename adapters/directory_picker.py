"""Directory picker and notification adapters decoupling the core from Tk."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol, TextIO


_LOGGER = logging.getLogger(__name__)


class DirectoryPicker(Protocol):
    """Interface for choosing an install directory."""

    def ask_directory(self, title: str, initial_dir: Path | None = None) -> Path | None:
        """Return the chosen directory or ``None`` if the user cancelled."""


class UserNotifier(Protocol):
    """Interface for blocking, human-readable notifications."""

    def show_error(self, title: str, message: str) -> None:
        """Report a failure and return once the user acknowledged it."""

    def show_info(self, title: str, message: str) -> None:
        """Report information and return once the user acknowledged it."""


@dataclass(slots=True)
class TkDirectoryPicker:
    """Tk-backed picker using :func:`tkinter.filedialog.askdirectory`."""

    must_exist: bool = True

    def ask_directory(self, title: str, initial_dir: Path | None = None) -> Path | None:
        from tkinter import filedialog

        selected = filedialog.askdirectory(
            title=title,
            initialdir=str(initial_dir) if initial_dir else None,
            mustexist=self.must_exist,
        )
        if not selected:
            return None
        return Path(selected)


class TkNotifier:
    """Tk-backed notifier using :mod:`tkinter.messagebox`."""

    def show_error(self, title: str, message: str) -> None:
        from tkinter import messagebox

        messagebox.showerror(title, message)

    def show_info(self, title: str, message: str) -> None:
        from tkinter import messagebox

        messagebox.showinfo(title, message)


@dataclass(slots=True)
class PresetDirectoryPicker:
    """Headless picker answering prompts from a fixed list of directories.

    Once the list is exhausted every further prompt counts as a cancellation.
    """

    answers: list[Path | None] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)

    @classmethod
    def of(cls, answers: Iterable[Path | str | None]) -> "PresetDirectoryPicker":
        return cls([Path(answer) if answer is not None else None for answer in answers])

    def ask_directory(self, title: str, initial_dir: Path | None = None) -> Path | None:
        self.prompts.append(title)
        if not self.answers:
            _LOGGER.debug("No preset directory left for prompt %r", title)
            return None
        return self.answers.pop(0)


class ConsoleNotifier:
    """Headless notifier that logs messages and echoes them to a stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def show_error(self, title: str, message: str) -> None:
        _LOGGER.error("%s: %s", title, message)
        self._write(f"error: {message}")

    def show_info(self, title: str, message: str) -> None:
        _LOGGER.info("%s: %s", title, message)
        self._write(message)

    def _write(self, text: str) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        print(text, file=stream)


__all__ = [
    "ConsoleNotifier",
    "DirectoryPicker",
    "PresetDirectoryPicker",
    "TkDirectoryPicker",
    "TkNotifier",
    "UserNotifier",
]
