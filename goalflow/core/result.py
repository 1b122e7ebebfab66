"""
Explicit success/failure results for use cases.

Expected business conditions (missing goal, bad cron expression, store
outage) are returned as a failed ``Result`` with a machine-readable code
instead of being raised, so the HTTP layer maps them in one place.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

GOAL_NOT_FOUND = "Goal.NotFound"
REMINDER_NOT_FOUND = "Reminder.NotFound"
REMINDER_INVALID_CRON = "Reminder.InvalidCron"
STORE_UNAVAILABLE = "Store.Unavailable"


@dataclass(frozen=True)
class Error:
    code: str
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: Error | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, code: str, message: str) -> "Result[T]":
        return cls(error=Error(code=code, message=message))
