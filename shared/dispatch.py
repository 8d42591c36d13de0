"""Helpers for handing background results back to the controlling thread."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable


_LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]
Dispatcher = Callable[[Callback], None]


def invoke_immediately(callback: Callback) -> None:
    """Headless dispatcher: run ``callback`` on the calling thread."""

    callback()


def tk_dispatcher(widget: Any) -> Dispatcher:
    """Return a dispatcher that schedules callbacks on ``widget``'s Tk loop."""

    def _dispatch(callback: Callback) -> None:
        if threading.current_thread() is threading.main_thread():
            callback()
            return
        try:
            widget.after(0, callback)
        except RuntimeError:
            # Tk refuses cross-thread calls once its loop has stopped.
            _LOGGER.debug("Tk loop unavailable; running callback inline", exc_info=True)
            callback()

    return _dispatch


class QueueDispatcher:
    """Dispatcher for shells without an event loop of their own.

    Callbacks queue up until the controlling thread calls :meth:`pump` or
    :meth:`run_until`.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callback]" = queue.Queue()

    def __call__(self, callback: Callback) -> None:
        self._queue.put(callback)

    def pump(self, timeout: float | None = None) -> bool:
        """Run one queued callback, waiting up to ``timeout`` seconds for it."""

        try:
            callback = self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        callback()
        return True

    def run_until(self, done: Callable[[], bool], *, poll_interval: float = 0.1) -> None:
        while not done():
            self.pump(timeout=poll_interval)
        while self.pump(timeout=0):
            pass


def run_in_thread(name: str) -> Callable[[Callback], None]:
    """Return a runner that executes work on a named daemon thread."""

    def _run(work: Callback) -> None:
        thread = threading.Thread(target=work, name=name, daemon=True)
        thread.start()

    return _run


__all__ = [
    "Callback",
    "Dispatcher",
    "QueueDispatcher",
    "invoke_immediately",
    "run_in_thread",
    "tk_dispatcher",
]
