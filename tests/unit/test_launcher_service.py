from __future__ import annotations

import json
from pathlib import Path
from urllib.error import URLError

import pytest

from app.config import LauncherConfig, load_launcher_config
from domain.launcher import (
    ExecutableMissingError,
    InstallKind,
    LaunchError,
    LauncherStatus,
    Version,
)
from services.launcher import build_launcher_service
from services.launcher.constants import MESSAGE_DOWNLOAD_CANCELLED
from shared.dispatch import QueueDispatcher, invoke_immediately
from tests.unit.launcher_test_utils import (
    LAYOUT,
    DeferredRunner,
    FakeOpener,
    RecordingNotifier,
    RecordingPicker,
    build_payload_archive,
    install_payload,
    run_inline,
)


VERSION_URL = "https://example.invalid/Version.txt"
ARCHIVE_URL = "https://example.invalid/Game_Build.zip"
RELEASES_URL = "https://api.example.invalid/releases"


class _RecordingPopen:
    def __init__(self) -> None:
        self.calls: list[tuple[list[str], dict]] = []

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        return "process"


def _config(tmp_path: Path) -> LauncherConfig:
    data = {
        "remote": {
            "version_url": VERSION_URL,
            "archive_url": ARCHIVE_URL,
            "release_api_url": RELEASES_URL,
            "timeout_seconds": 5,
        },
        "payload": {
            "directory_name": LAYOUT.directory_name,
            "executable": LAYOUT.executable,
            "version_file": LAYOUT.version_file,
            "archive_name": LAYOUT.archive_name,
        },
        "location": {"marker_directory": str(tmp_path / "launcher"), "max_prompt_attempts": 2},
        "download": {"chunk_size": 256},
    }
    path = tmp_path / "launcher.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return load_launcher_config(path)


class _Harness:
    def __init__(
        self,
        tmp_path: Path,
        *,
        remote: str = "1.1.0",
        runner=run_inline,
        dispatch=invoke_immediately,
        install_dir: Path | None = None,
    ) -> None:
        self.install_root = install_dir or tmp_path / "games"
        self.install_root.mkdir(exist_ok=True)
        archive = build_payload_archive(tmp_path, name="remote.zip")
        self.opener = FakeOpener(
            {
                VERSION_URL: remote.encode("utf-8"),
                ARCHIVE_URL: archive.read_bytes(),
                RELEASES_URL: json.dumps([{"tag_name": "v1.1.0"}, {"tag_name": "v1.0.0"}]).encode("utf-8"),
            }
        )
        self.picker = RecordingPicker([self.install_root])
        self.notifier = RecordingNotifier()
        self.popen = _RecordingPopen()
        self.service = build_launcher_service(
            self.picker,
            self.notifier,
            config=_config(tmp_path),
            runner=runner,
            opener=self.opener,
            popen=self.popen,
            dispatch=dispatch,
        )

    @property
    def payload_dir(self) -> Path:
        return self.install_root / LAYOUT.directory_name

    def requested(self) -> list[str]:
        return [request.full_url for request in self.opener.requests]


def test_fresh_install_flow_reaches_ready_and_launches(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    service = harness.service

    service.check_for_updates()
    assert service.snapshot.status is LauncherStatus.WAITING
    assert service.snapshot.install_kind is InstallKind.FRESH_INSTALL
    assert harness.requested() == []

    assert service.confirm_download()

    snapshot = service.snapshot
    assert snapshot.status is LauncherStatus.READY
    assert snapshot.local_version == Version(1, 1, 0)
    assert (harness.payload_dir / LAYOUT.version_file).read_text(encoding="utf-8") == "1.1.0"
    assert not (harness.install_root / LAYOUT.archive_name).exists()
    assert harness.requested() == [VERSION_URL, ARCHIVE_URL]

    result = service.launch()
    assert result.unwrap() == "process"
    assert harness.popen.calls[0][1]["cwd"] == str(harness.payload_dir)
    assert harness.notifier.errors == []


def test_update_flow_uses_checked_version_as_download_token(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    install_payload(harness.install_root, "1.0.0")
    service = harness.service
    statuses: list[LauncherStatus | None] = []
    service.state.subscribe(lambda previous, current: statuses.append(current.status))

    service.primary_action()
    assert service.snapshot.install_kind is InstallKind.UPDATE
    service.primary_action()

    assert service.snapshot.status is LauncherStatus.READY
    assert service.snapshot.local_version == Version(1, 1, 0)
    assert harness.requested() == [VERSION_URL, ARCHIVE_URL]
    assert statuses[0] is LauncherStatus.WAITING
    assert LauncherStatus.DOWNLOADING in statuses
    assert statuses[-2:] == [LauncherStatus.INSTALLING, LauncherStatus.READY]


def test_up_to_date_install_is_ready(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, remote="1.0.0")
    install_payload(harness.install_root, "1.0.0")

    harness.service.check_for_updates()

    assert harness.service.snapshot.status is LauncherStatus.READY
    assert harness.service.snapshot.can_launch


def test_network_failure_fails_and_notifies(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    install_payload(harness.install_root, "1.0.0")

    def offline():
        raise URLError("offline")

    harness.opener.responses[VERSION_URL] = offline

    harness.service.check_for_updates()

    assert harness.service.snapshot.status is LauncherStatus.FAILED
    assert len(harness.notifier.errors) == 1
    assert "offline" in harness.notifier.errors[0]

    harness.opener.responses[VERSION_URL] = b"1.0.0"
    harness.service.primary_action()
    assert harness.service.snapshot.status is LauncherStatus.READY


def test_failed_install_removes_payload_and_fails(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    install_payload(harness.install_root, "1.0.0")
    harness.opener.responses[ARCHIVE_URL] = b"definitely not a zip"
    service = harness.service

    service.check_for_updates()
    service.confirm_download()

    assert service.snapshot.status is LauncherStatus.FAILED
    assert not harness.payload_dir.exists()
    assert not (harness.install_root / LAYOUT.archive_name).exists()
    assert "Installation failed" in harness.notifier.errors[-1]

    service.check_for_updates()
    assert service.snapshot.install_kind is InstallKind.FRESH_INSTALL


def test_cancelled_download_fails_quietly(tmp_path: Path) -> None:
    runner = DeferredRunner()
    harness = _Harness(tmp_path, runner=runner)
    install_payload(harness.install_root, "1.0.0")
    service = harness.service

    service.check_for_updates()
    assert service.is_checking
    assert runner.run_next() == "launcher-check"
    service.confirm_download()
    assert not service.can_navigate_away

    assert service.cancel_download()
    assert service.cancel_download()
    assert runner.run_next() == "launcher-download"

    snapshot = service.snapshot
    assert snapshot.status is LauncherStatus.FAILED
    assert snapshot.message == MESSAGE_DOWNLOAD_CANCELLED
    assert harness.notifier.errors == []
    assert (harness.payload_dir / LAYOUT.version_file).read_text(encoding="utf-8") == "1.0.0"
    assert not service.cancel_download()
    assert service.can_navigate_away


def test_cancel_while_fetching_fresh_install_version(tmp_path: Path) -> None:
    runner = DeferredRunner()
    harness = _Harness(tmp_path, runner=runner)
    service = harness.service

    service.check_for_updates()
    runner.run_next()
    service.confirm_download()
    assert service.snapshot.status is LauncherStatus.DOWNLOADING
    assert service.cancel_download()
    runner.run_all()

    assert service.snapshot.status is LauncherStatus.FAILED
    assert service.snapshot.message == MESSAGE_DOWNLOAD_CANCELLED
    assert ARCHIVE_URL not in harness.requested()


def test_cancel_after_transfer_finished_lets_install_complete(tmp_path: Path) -> None:
    dispatcher = QueueDispatcher()
    harness = _Harness(tmp_path, dispatch=dispatcher)
    install_payload(harness.install_root, "1.0.0")
    service = harness.service

    service.check_for_updates()
    dispatcher.run_until(lambda: not service.has_pending_work)
    service.confirm_download()

    assert not service.cancel_download()
    dispatcher.run_until(lambda: not service.has_pending_work)

    assert service.snapshot.status is LauncherStatus.READY
    assert (harness.payload_dir / LAYOUT.version_file).read_text(encoding="utf-8") == "1.1.0"


def test_check_is_ignored_while_busy_and_repeats_when_waiting(tmp_path: Path) -> None:
    runner = DeferredRunner()
    harness = _Harness(tmp_path, runner=runner)
    service = harness.service
    announcements = []
    service.state.subscribe(lambda previous, current: announcements.append(current.status))

    service.check_for_updates()
    service.check_for_updates()
    assert len(runner.pending) == 1
    runner.run_next()

    service.check_for_updates()
    assert announcements == [LauncherStatus.WAITING, LauncherStatus.WAITING]
    assert runner.pending == []

    service.confirm_download()
    service.check_for_updates()
    assert service.snapshot.status is LauncherStatus.DOWNLOADING


def test_missing_install_location_fails_check(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    harness.picker.answers.clear()

    harness.service.check_for_updates()

    assert harness.service.snapshot.status is LauncherStatus.FAILED
    assert "No install location" in harness.notifier.errors[-1]


def test_launch_requires_ready_state(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    harness.service.check_for_updates()

    result = harness.service.launch()

    assert type(result.unwrap_err()) is LaunchError
    assert harness.popen.calls == []


def test_launch_reports_missing_executable_even_when_ready(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, remote="1.0.0")
    install_payload(harness.install_root, "1.0.0", executable=False)
    harness.service.check_for_updates()
    assert harness.service.snapshot.status is LauncherStatus.READY

    result = harness.service.launch()

    assert isinstance(result.unwrap_err(), ExecutableMissingError)
    assert harness.service.snapshot.status is LauncherStatus.READY
    assert harness.notifier.errors


def test_change_install_location_moves_payload_and_rechecks(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, remote="1.0.0")
    install_payload(harness.install_root, "1.0.0")
    service = harness.service
    service.check_for_updates()
    new_root = tmp_path / "elsewhere"
    new_root.mkdir()

    result = service.change_install_location(new_root)

    assert result.unwrap().path == new_root
    assert (new_root / LAYOUT.directory_name / LAYOUT.version_file).exists()
    assert service.snapshot.status is LauncherStatus.READY
    assert harness.requested() == [VERSION_URL, VERSION_URL]


def test_change_install_location_is_refused_while_busy(tmp_path: Path) -> None:
    runner = DeferredRunner()
    harness = _Harness(tmp_path, runner=runner)
    install_payload(harness.install_root, "1.0.0")
    service = harness.service
    service.check_for_updates()
    runner.run_next()
    service.confirm_download()
    new_root = tmp_path / "elsewhere"
    new_root.mkdir()

    result = service.change_install_location(new_root)

    assert result.is_err()
    assert harness.payload_dir.exists()
    assert not (new_root / LAYOUT.directory_name).exists()


def test_list_releases_uses_release_listing(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)

    assert harness.service.list_releases() == [Version(1, 1, 0), Version(1, 0, 0)]


@pytest.mark.parametrize("status", [None, LauncherStatus.FAILED])
def test_primary_action_checks_when_unchecked_or_failed(tmp_path: Path, status) -> None:
    harness = _Harness(tmp_path)
    if status is not None:
        harness.service.state.transition(status)

    harness.service.primary_action()

    assert harness.service.snapshot.status is LauncherStatus.WAITING


def test_cancel_is_a_no_op_once_an_inline_download_has_finished(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    install_payload(harness.install_root, "1.0.0")
    service = harness.service

    service.check_for_updates()
    service.confirm_download()

    assert service.snapshot.status is LauncherStatus.READY
    assert not service.cancel_download()
    assert service.snapshot.status is LauncherStatus.READY
