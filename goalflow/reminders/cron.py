from datetime import datetime, timezone

from croniter import CroniterError, croniter


class InvalidCronExpression(ValueError):
    """Raised when a reminder's cron expression cannot be parsed."""

    def __init__(self, expr: str, reason: str = "") -> None:
        self.expr = expr
        super().__init__(f"Invalid cron expression {expr!r}: {reason}".rstrip(": "))


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CronSchedule:
    """A parsed five-field cron expression evaluated in UTC."""

    def __init__(self, expr: str):
        self.expr = expr

    @classmethod
    def parse(cls, expr: str) -> "CronSchedule":
        expr = (expr or "").strip()
        if len(expr.split()) != 5:
            raise InvalidCronExpression(expr, "expected 5 fields")
        try:
            valid = croniter.is_valid(expr)
        except (CroniterError, ValueError) as e:
            raise InvalidCronExpression(expr, str(e)) from e
        if not valid:
            raise InvalidCronExpression(expr)
        return cls(expr)

    def next_after(self, after: datetime) -> datetime:
        """
        First occurrence strictly after ``after``.

        Raises ``InvalidCronExpression`` for well-formed expressions that
        never occur, such as ``0 0 31 2 *``.
        """
        after = as_utc(after)
        try:
            it = croniter(self.expr, after)
            nxt = it.get_next(datetime)
            while nxt <= after:
                nxt = it.get_next(datetime)
        except CroniterError as e:
            raise InvalidCronExpression(self.expr, "no upcoming occurrence") from e
        return as_utc(nxt)
