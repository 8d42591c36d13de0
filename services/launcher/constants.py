"""Constants shared across the launcher service modules."""

from __future__ import annotations

MAX_ARCHIVE_TOTAL_BYTES = 8 * 1024 * 1024 * 1024  # 8 GiB
MAX_ARCHIVE_FILE_SIZE = 4 * 1024 * 1024 * 1024  # 4 GiB per file
MAX_ARCHIVE_ENTRIES = 50000
MAX_COMPRESSION_RATIO = 200  # Uncompressed vs compressed bytes

MAX_VERSION_BODY_BYTES = 1024
INSTALL_LOCK_NAME = ".launcher-install.lock"
LOCATION_PROBE_PREFIX = ".launcher-permission-probe-"

MESSAGE_UP_TO_DATE = "Game up to date. Ready to play!"
MESSAGE_INSTALL_AVAILABLE = "Install available."
MESSAGE_UPDATE_AVAILABLE = "Update available."
MESSAGE_DAMAGED_INSTALL = "The local installation is damaged. Reinstall available."
MESSAGE_DOWNLOAD_CANCELLED = "Download cancelled."
