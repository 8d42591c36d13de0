"""Background archive downloads with progress, cancellation and a typed result."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from app.version import user_agent
from domain.launcher.errors import NetworkError
from domain.launcher.version import Version
from shared.dispatch import Callback, Dispatcher, invoke_immediately, run_in_thread


_LOGGER = logging.getLogger(__name__)


class DownloadCancelledError(NetworkError):
    """Raised through the download future when the user cancelled it."""


@dataclass(frozen=True)
class DownloadProgress:
    percent: int
    received_bytes: int
    total_bytes: int | None


@dataclass(frozen=True)
class DownloadCompleted:
    """Successful transfer of the archive for ``version``."""

    version: Version
    path: Path
    received_bytes: int


@dataclass(frozen=True)
class DownloadFailed:
    """Failed or cancelled transfer; any partial file is left on disk."""

    version: Version
    error: NetworkError
    cancelled: bool = False


class _CancelRequested(Exception):
    pass


class DownloadHandle:
    """Track one transfer started by :class:`Downloader`.

    ``future`` resolves with :class:`DownloadCompleted` or raises the
    :class:`NetworkError` that ended the transfer.  Events are handed to the
    dispatcher in the order the worker produced them and nothing is delivered
    after the terminal event.
    """

    def __init__(
        self,
        version: Version,
        *,
        dispatch: Dispatcher,
        on_progress: Callable[[DownloadProgress], None] | None,
        on_complete: Callable[[DownloadCompleted], None] | None,
        on_failure: Callable[[DownloadFailed], None] | None,
    ) -> None:
        self.version = version
        self.future: Future[DownloadCompleted] = Future()
        self.future.set_running_or_notify_cancel()
        self._dispatch = dispatch
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._on_failure = on_failure
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._finished = False
        self._delivered_terminal = False
        self._last_percent = -1
        self._outcome: DownloadCompleted | DownloadFailed | None = None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self.future.done()

    @property
    def cancelled(self) -> bool:
        return isinstance(self._outcome, DownloadFailed) and self._outcome.cancelled

    def cancel(self) -> bool:
        """Request cancellation; returns ``False`` once the transfer finished."""

        with self._lock:
            if self._finished:
                return False
            if not self._cancel_event.is_set():
                _LOGGER.info("Cancelling download of version %s", self.version)
            self._cancel_event.set()
            return True

    def wait(self, timeout: float | None = None) -> DownloadCompleted:
        return self.future.result(timeout=timeout)

    def _report_progress(self, received: int, total: int | None) -> None:
        if not total:
            return
        percent = min(received * 100 // total, 100)
        if percent <= self._last_percent:
            return
        self._last_percent = percent
        self._deliver_progress(DownloadProgress(percent, received, total))

    def _deliver_progress(self, event: DownloadProgress) -> None:
        callback = self._on_progress
        if callback is None:
            return

        def _deliver() -> None:
            if not self._delivered_terminal:
                callback(event)

        self._dispatch(_deliver)

    def _finish(self, path: Path, received: int) -> None:
        with self._lock:
            if self._finished:
                return
            if self._cancel_event.is_set():
                cancelled = True
            else:
                cancelled = False
                self._finished = True
        if cancelled:
            self._fail(DownloadCancelledError("Download cancelled"), cancelled=True)
            return

        if self._last_percent < 100:
            self._last_percent = 100
            self._deliver_progress(DownloadProgress(100, received, received))
        outcome = DownloadCompleted(self.version, path, received)
        self._outcome = outcome
        _LOGGER.info("Downloaded %s bytes for version %s to %s", received, self.version, path)

        def _complete() -> None:
            if self._on_complete is not None:
                self._on_complete(outcome)

        try:
            self._deliver_terminal(_complete)
        finally:
            self.future.set_result(outcome)

    def _fail(self, error: NetworkError, *, cancelled: bool = False) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
        outcome = DownloadFailed(self.version, error, cancelled=cancelled)
        self._outcome = outcome
        if cancelled:
            _LOGGER.info("Download of version %s cancelled", self.version)
        else:
            _LOGGER.warning("Download of version %s failed: %s", self.version, error)

        def _failed() -> None:
            if self._on_failure is not None:
                self._on_failure(outcome)

        try:
            self._deliver_terminal(_failed)
        finally:
            self.future.set_exception(error)

    def _deliver_terminal(self, callback: Callback) -> None:
        def _deliver() -> None:
            if self._delivered_terminal:
                return
            self._delivered_terminal = True
            try:
                callback()
            except Exception:
                _LOGGER.exception("Download completion callback failed for version %s", self.version)

        self._dispatch(_deliver)


class Downloader:
    """Stream remote archives to a staging file on a background thread."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        chunk_size: int = 81920,
        opener: Callable[..., object] = urlopen,
        dispatch: Dispatcher = invoke_immediately,
        spawn: Callable[[Callback], None] | None = None,
    ) -> None:
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._opener = opener
        self._dispatch = dispatch
        self._spawn = spawn or run_in_thread("launcher-download")

    def start(
        self,
        url: str,
        destination: Path,
        version: Version,
        *,
        on_progress: Callable[[DownloadProgress], None] | None = None,
        on_complete: Callable[[DownloadCompleted], None] | None = None,
        on_failure: Callable[[DownloadFailed], None] | None = None,
    ) -> DownloadHandle:
        """Begin downloading ``url`` into ``destination`` for ``version``."""

        handle = DownloadHandle(
            version,
            dispatch=self._dispatch,
            on_progress=on_progress,
            on_complete=on_complete,
            on_failure=on_failure,
        )
        destination = Path(destination)
        _LOGGER.info("Starting download of version %s from %s", version, url)
        self._spawn(lambda: self._run(handle, url, destination))
        return handle

    def _run(self, handle: DownloadHandle, url: str, destination: Path) -> None:
        try:
            received = self._transfer(handle, url, destination)
        except _CancelRequested:
            handle._fail(DownloadCancelledError("Download cancelled"), cancelled=True)
        except NetworkError as exc:
            handle._fail(exc)
        else:
            handle._finish(destination, received)

    def _transfer(self, handle: DownloadHandle, url: str, destination: Path) -> int:
        request = Request(url, headers={"User-Agent": user_agent()})
        try:
            with self._opener(request, timeout=self._timeout) as response:  # nosec - configured release URL
                status = getattr(response, "status", None)
                if status is not None and not 200 <= status < 300:
                    raise NetworkError(f"Archive request returned HTTP {status}")
                total = _content_length(response)
                destination.parent.mkdir(parents=True, exist_ok=True)
                received = 0
                with destination.open("wb") as target:
                    while True:
                        if handle.cancel_requested:
                            raise _CancelRequested()
                        chunk = response.read(self._chunk_size)
                        if not chunk:
                            break
                        target.write(chunk)
                        received += len(chunk)
                        handle._report_progress(received, total)
        except HTTPError as exc:
            raise NetworkError(f"Archive request returned HTTP {exc.code}") from exc
        except URLError as exc:
            raise NetworkError(f"Unable to reach download server: {exc.reason}") from exc
        except (OSError, ValueError) as exc:
            raise NetworkError(f"Download failed: {exc}") from exc

        if total is not None and received < total:
            raise NetworkError(
                f"Download ended early ({received} of {total} bytes received)"
            )
        return received


def _content_length(response: object) -> int | None:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    raw = headers.get("Content-Length")
    try:
        value = int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


__all__ = [
    "DownloadCancelledError",
    "DownloadCompleted",
    "DownloadFailed",
    "DownloadHandle",
    "DownloadProgress",
    "Downloader",
]
