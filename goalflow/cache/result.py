from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """
    Outcome of a single cache operation.

    ``failed`` results carry the store error; they are consumed inside
    ``GoalsCache`` and reach callers only as "not found".
    """

    value: T | None = None
    found: bool = False
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, value: Any) -> "CacheResult[Any]":
        return cls(value=value, found=value is not None)

    @classmethod
    def miss(cls) -> "CacheResult[Any]":
        return cls()

    @classmethod
    def from_error(cls, error: Exception) -> "CacheResult[Any]":
        return cls(error=error)
