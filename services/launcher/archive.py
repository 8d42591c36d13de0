"""Zip extraction that refuses entries escaping the install root."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path

from domain.launcher.errors import InstallError
from services.launcher import constants


_LOGGER = logging.getLogger(__name__)


def extract_archive(archive_path: Path, target_dir: Path, *, only: str | None = None) -> int:
    """Extract ``archive_path`` into ``target_dir``, overwriting existing files.

    When ``only`` is given every entry must live under that top-level
    directory. Returns the number of entries extracted.
    """

    _LOGGER.info("Extracting payload archive %s into %s", archive_path, target_dir)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            return extract_zip_safely(archive, target_dir, only=only)
    except InstallError:
        raise
    except (OSError, RuntimeError, zipfile.BadZipFile) as exc:
        # zipfile reports encrypted members with a bare RuntimeError.
        raise InstallError(f"Failed to extract payload archive: {exc}") from exc


def extract_zip_safely(
    archive: zipfile.ZipFile, target_dir: Path, *, only: str | None = None
) -> int:
    target_dir.mkdir(parents=True, exist_ok=True)
    root = target_dir.resolve()
    total_bytes = 0
    processed_entries = 0
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        processed_entries += 1
        if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
            raise InstallError("Payload archive contained too many entries")

        path = Path(name)
        if path.is_absolute() or name.startswith(("/", "\\")):
            raise InstallError(f"Payload archive contained an absolute path entry: {name}")
        destination = (root / path).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise InstallError(f"Payload archive contained an unsafe path: {name}") from None
        if only is not None:
            try:
                destination.relative_to(root / only)
            except ValueError:
                raise InstallError(
                    f"Payload archive entry {name} is outside the {only} directory"
                ) from None

        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue

        if member.file_size > constants.MAX_ARCHIVE_FILE_SIZE:
            raise InstallError(f"Payload archive member {name} is too large")
        if member.compress_size == 0 and member.file_size > 0:
            raise InstallError(f"Payload archive member {name} reported zero compressed size")
        if (
            member.compress_size > 0
            and member.file_size > member.compress_size * constants.MAX_COMPRESSION_RATIO
        ):
            raise InstallError(f"Payload archive member {name} exceeded the compression ratio limit")
        total_bytes += member.file_size
        if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            raise InstallError("Payload archive expands beyond the size limit")

        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        _LOGGER.debug("Extracted archive member %s", name)

    _LOGGER.info(
        "Extracted %s entries totalling %s bytes", processed_entries, total_bytes
    )
    return processed_entries


__all__ = ["extract_archive", "extract_zip_safely"]
