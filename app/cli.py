"""Headless command line shell for the game launcher."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence, TextIO

from adapters.directory_picker import ConsoleNotifier, PresetDirectoryPicker
from app.config import get_launcher_config, load_launcher_config
from app.version import get_launcher_version
from domain.launcher.state import LauncherSnapshot, LauncherStatus
from services.launcher.builder import build_launcher_service
from services.launcher.service import LauncherService
from shared.dispatch import QueueDispatcher
from shared.logging_config import LogVerbosity, ensure_launcher_logging, set_file_log_verbosity


_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PENDING = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="game-launcher",
        description="Check for, install and launch the latest game build.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_launcher_version()}"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON file overriding the bundled launcher configuration.",
    )
    parser.add_argument(
        "--install-dir",
        type=Path,
        help="Install directory to use when none has been chosen yet.",
    )
    parser.add_argument(
        "--verbosity",
        choices=[level.value for level in LogVerbosity],
        default=LogVerbosity.INFO.value,
        help="Minimum severity written to the log file.",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("status", help="Show the install location and update status.")
    commands.add_parser(
        "check",
        help="Check for updates (exit 0 when ready, 2 when a download is pending, 1 on failure).",
    )
    commands.add_parser("update", help="Download and install any pending update.")
    commands.add_parser("launch", help="Update if needed, then start the game.")
    set_location = commands.add_parser("set-location", help="Move the game to another directory.")
    set_location.add_argument("directory", type=Path)
    commands.add_parser("versions", help="List published releases.")
    return parser


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    args = build_parser().parse_args(argv)
    out = stdout if stdout is not None else sys.stdout

    ensure_launcher_logging()
    set_file_log_verbosity(args.verbosity)
    config = load_launcher_config(args.config) if args.config else get_launcher_config()

    dispatcher = QueueDispatcher()
    picker = PresetDirectoryPicker.of([args.install_dir.expanduser().absolute()] if args.install_dir else [])
    service = build_launcher_service(
        picker,
        ConsoleNotifier(sys.stderr),
        config=config,
        dispatch=dispatcher,
    )
    _LOGGER.info("Running launcher command %s", args.command)

    if args.command == "versions":
        return _list_versions(service, out)
    if args.command == "set-location":
        result = service.change_install_location(args.directory.expanduser().absolute())
        if result.is_err():
            return EXIT_FAILED
        _wait_for_idle(service, dispatcher)
        print(f"Install location: {result.unwrap().path}", file=out)
        return EXIT_OK

    service.state.subscribe(_progress_printer(out))
    service.check_for_updates()
    _wait_for_idle(service, dispatcher)

    if args.command == "status":
        _print_status(service, out)
        return EXIT_OK
    if args.command == "check":
        return _exit_code(service.snapshot)

    if service.snapshot.status is LauncherStatus.WAITING:
        service.confirm_download()
        _wait_for_idle(service, dispatcher)
    if service.snapshot.status is not LauncherStatus.READY:
        return EXIT_FAILED
    if args.command == "update":
        return EXIT_OK

    result = service.launch()
    if result.is_err():
        return EXIT_FAILED
    print(f"Started {service.payload().executable} (pid {result.unwrap().pid})", file=out)
    return EXIT_OK


def _wait_for_idle(service: LauncherService, dispatcher: QueueDispatcher) -> None:
    try:
        dispatcher.run_until(lambda: not service.has_pending_work)
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted; cancelling any running download")
        service.cancel_download()
        dispatcher.run_until(lambda: not service.has_pending_work)


def _progress_printer(out: TextIO):
    def _print(previous: LauncherSnapshot, current: LauncherSnapshot) -> None:
        if current.status is not previous.status or current.message != previous.message:
            if current.message:
                print(current.message, file=out)
        elif current.status is LauncherStatus.DOWNLOADING and current.progress != previous.progress:
            print(f"  {current.progress}%", file=out)

    return _print


def _print_status(service: LauncherService, out: TextIO) -> None:
    snapshot = service.snapshot
    location = service.location
    print(f"Install location: {location.path if location else 'not set'}", file=out)
    print(f"Installed version: {snapshot.local_version or 'none'}", file=out)
    print(f"Published version: {snapshot.remote_version or 'unknown'}", file=out)
    status = snapshot.status.value if snapshot.status else "unchecked"
    print(f"Status: {status}", file=out)


def _exit_code(snapshot: LauncherSnapshot) -> int:
    if snapshot.status is LauncherStatus.READY:
        return EXIT_OK
    if snapshot.status is LauncherStatus.WAITING:
        return EXIT_PENDING
    return EXIT_FAILED


def _list_versions(service: LauncherService, out: TextIO) -> int:
    versions = service.list_releases()
    if not versions:
        print("No published releases found.", file=out)
        return EXIT_OK
    for version in versions:
        print(version, file=out)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
