"""Launcher status graph and the single owner of the current status."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from domain.launcher.errors import IllegalTransitionError
from domain.launcher.version import Version


_LOGGER = logging.getLogger(__name__)


class LauncherStatus(str, Enum):
    """User-visible launcher states."""

    READY = "ready"
    FAILED = "failed"
    WAITING = "waiting"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"


class InstallKind(str, Enum):
    """Whether a pending download is a first install or an update."""

    FRESH_INSTALL = "fresh_install"
    UPDATE = "update"


TERMINAL_STATUSES = frozenset({LauncherStatus.READY, LauncherStatus.FAILED})
BUSY_STATUSES = frozenset({LauncherStatus.DOWNLOADING, LauncherStatus.INSTALLING})

_TRANSITIONS: dict[LauncherStatus | None, frozenset[LauncherStatus]] = {
    None: frozenset(
        {LauncherStatus.WAITING, LauncherStatus.READY, LauncherStatus.FAILED}
    ),
    LauncherStatus.READY: frozenset(
        {LauncherStatus.READY, LauncherStatus.WAITING, LauncherStatus.FAILED}
    ),
    LauncherStatus.FAILED: frozenset(
        {LauncherStatus.FAILED, LauncherStatus.WAITING, LauncherStatus.READY}
    ),
    LauncherStatus.WAITING: frozenset({LauncherStatus.DOWNLOADING}),
    LauncherStatus.DOWNLOADING: frozenset(
        {LauncherStatus.INSTALLING, LauncherStatus.FAILED}
    ),
    LauncherStatus.INSTALLING: frozenset(
        {LauncherStatus.READY, LauncherStatus.FAILED}
    ),
}


def can_transition(current: LauncherStatus | None, target: LauncherStatus) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True)
class LauncherSnapshot:
    """Read-only view of the launcher state handed to the presentation shell."""

    status: LauncherStatus | None = None
    message: str = ""
    install_kind: InstallKind | None = None
    progress: int = 0
    local_version: Version | None = None
    remote_version: Version | None = None
    error: BaseException | None = None

    @property
    def is_busy(self) -> bool:
        return self.status in BUSY_STATUSES

    @property
    def can_launch(self) -> bool:
        return self.status is LauncherStatus.READY


StateListener = Callable[[LauncherSnapshot, LauncherSnapshot], None]

_UNSET = object()


class LauncherStateMachine:
    """Own the launcher status and enforce the legal transition graph.

    Components request changes through :meth:`transition`; the shell observes
    them through :attr:`snapshot` and :meth:`subscribe`.  Listeners are
    notified after every change but nothing in here reacts to a change, so a
    transition can never cascade into further core work.

    The machine is owned by the controlling thread.  Background work must hand
    its results back through a dispatcher before calling into it.
    """

    def __init__(self) -> None:
        self._snapshot = LauncherSnapshot()
        self._listeners: list[StateListener] = []

    @property
    def snapshot(self) -> LauncherSnapshot:
        return self._snapshot

    @property
    def status(self) -> LauncherStatus | None:
        return self._snapshot.status

    @property
    def is_busy(self) -> bool:
        return self._snapshot.is_busy

    @property
    def can_launch(self) -> bool:
        return self._snapshot.can_launch

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def transition(
        self,
        target: LauncherStatus,
        *,
        message: str = "",
        install_kind: InstallKind | None | object = _UNSET,
        local_version: Version | None | object = _UNSET,
        remote_version: Version | None | object = _UNSET,
        error: BaseException | None = None,
    ) -> LauncherSnapshot:
        """Move to ``target`` or raise :class:`IllegalTransitionError`.

        Version and install-kind fields keep their previous values unless
        given explicitly.  Progress resets on every transition except into
        :attr:`LauncherStatus.READY`, which reports a full bar.
        """

        current = self._snapshot.status
        if not can_transition(current, target):
            raise IllegalTransitionError(
                f"Cannot move launcher from {_describe(current)} to {target.value}"
            )

        previous = self._snapshot
        changes: dict[str, object] = {
            "status": target,
            "message": message,
            "error": error,
            "progress": 100 if target is LauncherStatus.READY else 0,
        }
        if install_kind is not _UNSET:
            changes["install_kind"] = install_kind
        if local_version is not _UNSET:
            changes["local_version"] = local_version
        if remote_version is not _UNSET:
            changes["remote_version"] = remote_version
        self._snapshot = replace(previous, **changes)
        _LOGGER.info(
            "Launcher state %s -> %s%s",
            _describe(current),
            target.value,
            f" ({message})" if message else "",
        )
        self._notify(previous)
        return self._snapshot

    def report_progress(self, percent: int) -> bool:
        """Record download progress, ignoring stale or duplicate values.

        Returns ``True`` when the snapshot changed.
        """

        if self._snapshot.status is not LauncherStatus.DOWNLOADING:
            _LOGGER.debug(
                "Ignoring progress %s outside of the downloading state", percent
            )
            return False
        clamped = max(0, min(100, int(percent)))
        if clamped <= self._snapshot.progress:
            return False
        previous = self._snapshot
        self._snapshot = replace(previous, progress=clamped)
        self._notify(previous)
        return True

    def announce(self) -> None:
        """Re-deliver the current snapshot to every listener unchanged."""

        self._notify(self._snapshot)

    def _notify(self, previous: LauncherSnapshot) -> None:
        current = self._snapshot
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                _LOGGER.exception("Launcher state listener %r failed", listener)


def _describe(status: LauncherStatus | None) -> str:
    return status.value if status is not None else "unchecked"


__all__ = [
    "BUSY_STATUSES",
    "InstallKind",
    "LauncherSnapshot",
    "LauncherStateMachine",
    "LauncherStatus",
    "StateListener",
    "TERMINAL_STATUSES",
    "can_transition",
]
