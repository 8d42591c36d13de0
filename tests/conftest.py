from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    tests_dir = root / "tests"
    tests_str = str(tests_dir)
    if tests_str not in sys.path:
        sys.path.insert(1, tests_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _log_dir_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Route launcher log files to a temporary directory during tests."""

    from shared import logging_config

    log_dir = tmp_path_factory.mktemp("logs")
    monkeypatch.delenv(logging_config.LOG_FILE_ENV, raising=False)
    monkeypatch.setenv(logging_config.LOG_DIR_ENV, str(log_dir))

    yield

    logging_config._reset_for_tests()


@pytest.fixture(autouse=True)
def _launcher_config_env(monkeypatch: pytest.MonkeyPatch):
    """Always start from the bundled configuration and launcher version."""

    from app.config import CONFIG_PATH_ENV, reset_launcher_config_cache
    from app.version import VERSION_ENV, get_launcher_version

    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(VERSION_ENV, raising=False)
    reset_launcher_config_cache()
    get_launcher_version.cache_clear()

    yield

    reset_launcher_config_cache()
    get_launcher_version.cache_clear()
