"""Release version triples used to decide whether the payload needs updating."""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering


__all__ = [
    "MAX_COMPONENT",
    "Version",
    "compare_versions",
    "is_newer",
]

MAX_COMPONENT = 2**31 - 1


@total_ordering
@dataclass(frozen=True)
class Version:
    """Immutable ``major.minor.patch`` triple ordered field by field."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Version {name} must be an integer, got {value!r}")
            if not 0 <= value <= MAX_COMPONENT:
                raise ValueError(f"Version {name} out of range: {value}")

    @classmethod
    def zero(cls) -> "Version":
        return cls(0, 0, 0)

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``text``, returning the zero version when it is malformed.

        The zero version is also a legitimate release, so callers that need to
        tell "missing" or "corrupt" apart from ``0.0.0`` should use
        :meth:`try_parse` or check the version file separately.
        """

        parsed = cls.try_parse(text)
        if parsed is None:
            return cls.zero()
        return parsed

    @classmethod
    def try_parse(cls, text: str) -> "Version | None":
        """Strictly parse ``text`` or return ``None``."""

        if not isinstance(text, str):
            return None
        components = text.strip().split(".")
        if len(components) != 3:
            return None
        values: list[int] = []
        for component in components:
            if not component.isascii() or not component.isdigit():
                return None
            value = int(component)
            if value > MAX_COMPONENT:
                return None
            values.append(value)
        return cls(*values)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def format(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        return self.format()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare_versions(self, other) < 0


def compare_versions(left: Version, right: Version) -> int:
    """Return ``1``, ``0`` or ``-1`` comparing ``left`` against ``right``.

    Fields are compared in order and the first difference decides, so a
    higher major always wins regardless of minor or patch.
    """

    for mine, theirs in zip(left.as_tuple(), right.as_tuple()):
        if mine != theirs:
            return 1 if mine > theirs else -1
    return 0


def is_newer(remote: Version, local: Version) -> bool:
    """Return ``True`` only when ``remote`` is strictly newer than ``local``."""

    return compare_versions(remote, local) > 0
