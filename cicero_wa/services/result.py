from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a validator or lookup that reports errors to the user instead of raising."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.ok

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value, error="")

    @staticmethod
    def failure(error: str, code: str = "invalid_input") -> "Result[T]":
        return Result(ok=False, value=None, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
