from __future__ import annotations

from pathlib import Path

import pytest

from domain.launcher import (
    InstallKind,
    InstalledPayload,
    LauncherStateMachine,
    LauncherStatus,
    NetworkError,
    Version,
)
from services.launcher.constants import MESSAGE_DAMAGED_INSTALL, MESSAGE_UP_TO_DATE
from services.launcher.update_checker import UpdateChecker
from tests.unit.launcher_test_utils import LAYOUT, StaticVersionSource, install_payload


URL = "https://example.invalid/Version.txt"


def _check(tmp_path: Path, source: StaticVersionSource, machine: LauncherStateMachine | None = None):
    machine = machine or LauncherStateMachine()
    payload = InstalledPayload.from_location(tmp_path, LAYOUT)
    snapshot = UpdateChecker(source, machine).check(payload, URL)
    return snapshot, machine


def test_missing_version_file_offers_fresh_install_without_fetching(tmp_path: Path) -> None:
    source = StaticVersionSource(error=NetworkError("offline"))

    snapshot, _ = _check(tmp_path, source)

    assert snapshot.status is LauncherStatus.WAITING
    assert snapshot.install_kind is InstallKind.FRESH_INSTALL
    assert source.calls == []


def test_equal_versions_are_ready(tmp_path: Path) -> None:
    install_payload(tmp_path, "1.0.0")

    snapshot, _ = _check(tmp_path, StaticVersionSource(Version(1, 0, 0)))

    assert snapshot.status is LauncherStatus.READY
    assert snapshot.message == MESSAGE_UP_TO_DATE
    assert snapshot.local_version == Version(1, 0, 0)


def test_newer_remote_offers_update(tmp_path: Path) -> None:
    install_payload(tmp_path, "1.0.0\n")

    snapshot, _ = _check(tmp_path, StaticVersionSource(Version(1, 1, 0)))

    assert snapshot.status is LauncherStatus.WAITING
    assert snapshot.install_kind is InstallKind.UPDATE
    assert snapshot.remote_version == Version(1, 1, 0)


def test_older_remote_never_prompts(tmp_path: Path) -> None:
    install_payload(tmp_path, "2.0.0")

    snapshot, _ = _check(tmp_path, StaticVersionSource(Version(1, 9, 9)))

    assert snapshot.status is LauncherStatus.READY


def test_remote_failure_moves_to_failed(tmp_path: Path) -> None:
    install_payload(tmp_path, "1.0.0")
    error = NetworkError("timed out")

    snapshot, _ = _check(tmp_path, StaticVersionSource(error=error))

    assert snapshot.status is LauncherStatus.FAILED
    assert snapshot.error is error
    assert "timed out" in snapshot.message


@pytest.mark.parametrize("content", ["garbage", "1.2", ""])
def test_damaged_version_file_offers_fresh_install(tmp_path: Path, content: str, caplog) -> None:
    install_payload(tmp_path, content)
    source = StaticVersionSource(Version(1, 0, 0))

    snapshot, _ = _check(tmp_path, source)

    assert snapshot.status is LauncherStatus.WAITING
    assert snapshot.install_kind is InstallKind.FRESH_INSTALL
    assert snapshot.message == MESSAGE_DAMAGED_INSTALL
    assert "damaged" in caplog.text
    assert source.calls == []


def test_zero_version_file_is_not_treated_as_damaged(tmp_path: Path) -> None:
    install_payload(tmp_path, "0.0.0")

    snapshot, _ = _check(tmp_path, StaticVersionSource(Version(0, 0, 1)))

    assert snapshot.install_kind is InstallKind.UPDATE


def test_evaluate_does_not_touch_state(tmp_path: Path) -> None:
    install_payload(tmp_path, "1.0.0")
    machine = LauncherStateMachine()
    checker = UpdateChecker(StaticVersionSource(Version(1, 0, 0)), machine)

    outcome = checker.evaluate(InstalledPayload.from_location(tmp_path, LAYOUT), URL)

    assert outcome.status is LauncherStatus.READY
    assert machine.status is None
