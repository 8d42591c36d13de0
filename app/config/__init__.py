"""Launcher configuration loaded from JSON resources."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

from domain.launcher.models import PayloadLayout

_CONFIG_RESOURCE = "launcher.json"
CONFIG_PATH_ENV = "GAME_LAUNCHER_CONFIG"
_LAUNCHER_CONFIG_CACHE: LauncherConfig | None = None

_LOGGER = logging.getLogger(__name__)

_DEFAULT_VERSION_URL = (
    "https://github.com/SheaMcAuley995/Cosmechanics/releases/latest/download/Version.txt"
)
_DEFAULT_ARCHIVE_URL = (
    "https://github.com/SheaMcAuley995/Cosmechanics/releases/latest/download/Cosmechanics_Build.zip"
)
_DEFAULT_RELEASE_API_URL = (
    "https://api.github.com/repos/SheaMcAuley995/Cosmechanics/releases?per_page=30"
)
_DEFAULT_LAYOUT = PayloadLayout(
    directory_name="Cosmechanics_Build",
    executable="ProjectFlorpMajor.exe",
    version_file="Version.txt",
    archive_name="Cosmechanics_Build.zip",
)


@dataclass(frozen=True)
class RemoteConfig:
    """Where the release metadata and payload archive are published."""

    version_url: str
    archive_url: str
    release_api_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class LocationConfig:
    """Install-location marker settings."""

    marker_file: str
    marker_directory: Path | None
    max_prompt_attempts: int

    @property
    def marker_path(self) -> Path:
        base = self.marker_directory if self.marker_directory is not None else Path.cwd()
        return base / self.marker_file


@dataclass(frozen=True)
class DownloadConfig:
    chunk_size: int


@dataclass(frozen=True)
class InstallConfig:
    stale_lock_seconds: int


@dataclass(frozen=True)
class LauncherConfig:
    """Structured configuration values for the launcher."""

    remote: RemoteConfig
    payload: PayloadLayout
    location: LocationConfig
    download: DownloadConfig
    install: InstallConfig


def get_launcher_config() -> LauncherConfig:
    """Return the cached launcher configuration."""

    global _LAUNCHER_CONFIG_CACHE
    if _LAUNCHER_CONFIG_CACHE is None:
        _LAUNCHER_CONFIG_CACHE = load_launcher_config(os.environ.get(CONFIG_PATH_ENV) or None)
    return _LAUNCHER_CONFIG_CACHE


def reset_launcher_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _LAUNCHER_CONFIG_CACHE
    _LAUNCHER_CONFIG_CACHE = None


def load_launcher_config(path: str | Path | None = None) -> LauncherConfig:
    """Load configuration from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    return LauncherConfig(
        remote=_parse_remote_section(_section(data, "remote")),
        payload=_parse_payload_section(_section(data, "payload")),
        location=_parse_location_section(_section(data, "location")),
        download=_parse_download_section(_section(data, "download")),
        install=_parse_install_section(_section(data, "install")),
    )


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any] | None:
    section = data.get(name) if isinstance(data, Mapping) else None
    return section if isinstance(section, Mapping) else None


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("Unable to read launcher config %s: %s", path, exc)
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        _LOGGER.warning("Launcher config is not valid JSON; using defaults")
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_remote_section(section: Mapping[str, Any] | None) -> RemoteConfig:
    section = section or {}
    return RemoteConfig(
        version_url=_coerce_url(section.get("version_url"), default=_DEFAULT_VERSION_URL),
        archive_url=_coerce_url(section.get("archive_url"), default=_DEFAULT_ARCHIVE_URL),
        release_api_url=_coerce_url(
            section.get("release_api_url"), default=_DEFAULT_RELEASE_API_URL
        ),
        timeout_seconds=_coerce_positive_float(section.get("timeout_seconds"), default=30.0),
    )


def _parse_payload_section(section: Mapping[str, Any] | None) -> PayloadLayout:
    section = section or {}
    return PayloadLayout(
        directory_name=_coerce_relative_name(
            section.get("directory_name"), default=_DEFAULT_LAYOUT.directory_name
        ),
        executable=_coerce_relative_name(
            section.get("executable"), default=_DEFAULT_LAYOUT.executable
        ),
        version_file=_coerce_relative_name(
            section.get("version_file"), default=_DEFAULT_LAYOUT.version_file
        ),
        archive_name=_coerce_relative_name(
            section.get("archive_name"), default=_DEFAULT_LAYOUT.archive_name
        ),
    )


def _parse_location_section(section: Mapping[str, Any] | None) -> LocationConfig:
    section = section or {}
    directory = section.get("marker_directory")
    marker_directory = (
        Path(directory).expanduser() if isinstance(directory, str) and directory.strip() else None
    )
    return LocationConfig(
        marker_file=_coerce_relative_name(
            section.get("marker_file"), default="InstallLocation.txt"
        ),
        marker_directory=marker_directory,
        max_prompt_attempts=_coerce_positive_int(section.get("max_prompt_attempts"), default=5),
    )


def _parse_download_section(section: Mapping[str, Any] | None) -> DownloadConfig:
    section = section or {}
    return DownloadConfig(
        chunk_size=_coerce_positive_int(section.get("chunk_size"), default=81920),
    )


def _parse_install_section(section: Mapping[str, Any] | None) -> InstallConfig:
    section = section or {}
    return InstallConfig(
        stale_lock_seconds=_coerce_positive_int(section.get("stale_lock_seconds"), default=3600),
    )


def _coerce_url(value: Any, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _coerce_relative_name(value: Any, *, default: str) -> str:
    if not isinstance(value, str):
        return default
    cleaned = value.strip().strip("/\\")
    if not cleaned or Path(cleaned).is_absolute() or ".." in Path(cleaned).parts:
        return default
    return cleaned.replace("\\", "/")


def _coerce_positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not isfinite(value):
            return default
        candidate = int(value)
    elif isinstance(value, str):
        try:
            candidate = int(float(value))
        except ValueError:
            return default
    else:
        return default
    if candidate <= 0:
        return default
    return candidate


def _coerce_positive_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not isfinite(candidate) or candidate <= 0:
        return default
    return candidate


__all__ = [
    "CONFIG_PATH_ENV",
    "DownloadConfig",
    "InstallConfig",
    "LauncherConfig",
    "LocationConfig",
    "RemoteConfig",
    "get_launcher_config",
    "load_launcher_config",
    "reset_launcher_config_cache",
]
