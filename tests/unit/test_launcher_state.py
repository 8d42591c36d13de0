from __future__ import annotations

import logging

import pytest

from domain.launcher import (
    IllegalTransitionError,
    InstallKind,
    LauncherStateMachine,
    LauncherStatus,
    Version,
)
from domain.launcher.state import can_transition


def test_machine_starts_unchecked() -> None:
    machine = LauncherStateMachine()

    assert machine.status is None
    assert not machine.is_busy
    assert not machine.can_launch


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (LauncherStatus.WAITING, LauncherStatus.READY),
        (LauncherStatus.WAITING, LauncherStatus.FAILED),
        (LauncherStatus.READY, LauncherStatus.DOWNLOADING),
        (LauncherStatus.DOWNLOADING, LauncherStatus.READY),
        (LauncherStatus.INSTALLING, LauncherStatus.WAITING),
        (None, LauncherStatus.INSTALLING),
    ],
)
def test_illegal_transitions_are_rejected(current, target) -> None:
    assert not can_transition(current, target)


def test_illegal_transition_raises_and_keeps_state() -> None:
    machine = LauncherStateMachine()
    machine.transition(LauncherStatus.WAITING, install_kind=InstallKind.FRESH_INSTALL)

    with pytest.raises(IllegalTransitionError):
        machine.transition(LauncherStatus.READY)

    assert machine.status is LauncherStatus.WAITING


def test_full_update_cycle_reaches_ready() -> None:
    machine = LauncherStateMachine()
    machine.transition(
        LauncherStatus.WAITING,
        install_kind=InstallKind.UPDATE,
        local_version=Version(1, 0, 0),
        remote_version=Version(1, 1, 0),
    )
    machine.transition(LauncherStatus.DOWNLOADING)
    assert machine.is_busy
    machine.transition(LauncherStatus.INSTALLING)
    snapshot = machine.transition(LauncherStatus.READY, local_version=Version(1, 1, 0), install_kind=None)

    assert snapshot.can_launch
    assert snapshot.progress == 100
    assert snapshot.local_version == Version(1, 1, 0)
    assert snapshot.remote_version == Version(1, 1, 0)
    assert snapshot.install_kind is None


def test_progress_only_increases_while_downloading() -> None:
    machine = LauncherStateMachine()
    assert not machine.report_progress(10)

    machine.transition(LauncherStatus.WAITING)
    machine.transition(LauncherStatus.DOWNLOADING)

    assert machine.report_progress(40)
    assert not machine.report_progress(25)
    assert not machine.report_progress(40)
    assert machine.report_progress(250)
    assert machine.snapshot.progress == 100


def test_listeners_receive_previous_and_current_snapshots() -> None:
    machine = LauncherStateMachine()
    seen: list[tuple] = []
    unsubscribe = machine.subscribe(lambda previous, current: seen.append((previous.status, current.status)))

    machine.transition(LauncherStatus.FAILED, message="offline")
    unsubscribe()
    machine.transition(LauncherStatus.FAILED)

    assert seen == [(None, LauncherStatus.FAILED)]


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    machine = LauncherStateMachine()
    received: list[LauncherStatus | None] = []

    def broken(previous, current) -> None:
        raise RuntimeError("listener exploded")

    machine.subscribe(broken)
    machine.subscribe(lambda previous, current: received.append(current.status))

    with caplog.at_level(logging.ERROR, logger="domain.launcher.state"):
        machine.transition(LauncherStatus.READY)

    assert machine.status is LauncherStatus.READY
    assert received == [LauncherStatus.READY]
    assert "listener" in caplog.text


def test_announce_repeats_current_snapshot() -> None:
    machine = LauncherStateMachine()
    machine.transition(LauncherStatus.WAITING, message="Install available.")
    seen = []
    machine.subscribe(lambda previous, current: seen.append((previous, current)))

    machine.announce()

    assert len(seen) == 1
    assert seen[0][0] is seen[0][1]
    assert seen[0][1].message == "Install available."
