"""Result type returned by launcher operations that can fail expectedly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar


T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True, slots=True)
class Result(Generic[T, E]):
    """Either a success value or the exception describing the failure."""

    value: Optional[T] = None
    error: Optional[E] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the value, re-raising the stored error on failure."""

        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value

    def unwrap_err(self) -> E:
        if self.error is None:
            raise RuntimeError(f"Tried to unwrap error of ok result: {self.value!r}")
        return self.error


__all__ = ["Result"]
