"""Value objects describing where the payload is installed."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PayloadLayout:
    """Fixed relative names of the payload files inside an install location."""

    directory_name: str
    executable: str
    version_file: str
    archive_name: str


@dataclass(frozen=True)
class InstallLocation:
    """A validated install directory and the marker file that remembers it."""

    path: Path
    marker_path: Path

    def payload(self, layout: PayloadLayout) -> "InstalledPayload":
        return InstalledPayload.from_location(self.path, layout)


@dataclass(frozen=True)
class InstalledPayload:
    """Paths of an installed payload, derived from its install root."""

    root: Path
    directory: Path
    version_file: Path
    staged_archive: Path
    executable: Path

    @classmethod
    def from_location(cls, root: Path, layout: PayloadLayout) -> "InstalledPayload":
        root = Path(root)
        directory = root / layout.directory_name
        return cls(
            root=root,
            directory=directory,
            version_file=directory / layout.version_file,
            staged_archive=root / layout.archive_name,
            executable=directory / layout.executable,
        )

    @property
    def working_directory(self) -> Path:
        # The payload resolves its assets relative to its own folder.
        return self.directory

    @property
    def is_present(self) -> bool:
        return self.directory.is_dir()


__all__ = ["InstallLocation", "InstalledPayload", "PayloadLayout"]
