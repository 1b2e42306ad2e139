"""Task schedules: fixed intervals, times of day, and cron expressions.

All schedules work on timezone-aware datetimes and return UTC.  ``next_after``
receives the run that just came due and the current time.  It must return a
time strictly after ``now`` so missed runs are skipped instead of replayed.
Time-of-day and cron schedules without an explicit ``tz`` take the
scheduler's zone when they are added to it, and UTC otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, time, timedelta
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from croniter import croniter

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@runtime_checkable
class Schedule(Protocol):
    def first_run(self, now: datetime) -> datetime: ...

    def next_after(self, previous: datetime, now: datetime) -> datetime: ...

    def describe(self) -> str: ...


@runtime_checkable
class ZonedSchedule(Schedule, Protocol):
    """A schedule that works in local time and accepts a fallback zone."""

    def use_default_zone(self, tz: str | ZoneInfo) -> None: ...


def _zone(tz: str | ZoneInfo | None) -> ZoneInfo:
    if tz is None:
        return ZoneInfo("UTC")
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


class IntervalSchedule:
    """Runs every ``interval``, anchored to the first run rather than completion."""

    def __init__(self, interval: timedelta | float) -> None:
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        if interval <= timedelta(0):
            raise ValueError(f"Interval must be positive, got {interval}")
        self.interval = interval

    @classmethod
    def minutely(cls) -> IntervalSchedule:
        return cls(timedelta(minutes=1))

    @classmethod
    def hourly(cls) -> IntervalSchedule:
        return cls(timedelta(hours=1))

    @classmethod
    def daily(cls) -> IntervalSchedule:
        return cls(timedelta(days=1))

    def first_run(self, now: datetime) -> datetime:
        return now + self.interval

    def next_after(self, previous: datetime, now: datetime) -> datetime:
        # Smallest previous + n*interval strictly after now, n >= 1.
        steps = max(1, (now - previous) // self.interval + 1)
        return previous + steps * self.interval

    def describe(self) -> str:
        return f"every {self.interval}"

    def __repr__(self) -> str:
        return f"IntervalSchedule({self.interval!r})"


def _parse_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    try:
        return time.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid time of day: {value!r}") from exc


def _parse_weekday(value: str | int) -> int:
    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise ValueError(f"Weekday must be 0 (Monday) to 6 (Sunday), got {value}")
        return value
    key = value.strip().lower()[:3]
    if key not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {value!r}")
    return WEEKDAYS.index(key)


class AtSchedule:
    """Runs at one or more times of day, optionally only on some weekdays.

    ``times`` accepts ``datetime.time`` objects or ``"HH:MM[:SS]"`` strings.
    ``weekdays`` accepts ints (0 is Monday) or names such as ``"mon"``.
    """

    def __init__(
        self,
        times: Iterable[str | time] | str | time,
        weekdays: Iterable[str | int] | None = None,
        tz: str | ZoneInfo | None = None,
    ) -> None:
        if isinstance(times, (str, time)):
            times = [times]
        self.times = tuple(sorted({_parse_time(t) for t in times}))
        if not self.times:
            raise ValueError("At least one time of day is required")
        self.weekdays = (
            frozenset(_parse_weekday(d) for d in weekdays) if weekdays else None
        )
        self.tz = _zone(tz)
        self.explicit_tz = tz is not None

    @classmethod
    def at_midnight(cls, tz: str | ZoneInfo | None = None) -> AtSchedule:
        return cls([time(0, 0)], tz=tz)

    def use_default_zone(self, tz: str | ZoneInfo) -> None:
        if not self.explicit_tz:
            self.tz = _zone(tz)

    def first_run(self, now: datetime) -> datetime:
        return self._next_match(now)

    def next_after(self, previous: datetime, now: datetime) -> datetime:
        return self._next_match(max(previous, now))

    def _next_match(self, after: datetime) -> datetime:
        local = after.astimezone(self.tz)
        for offset in range(8):
            day = local.date() + timedelta(days=offset)
            if self.weekdays is not None and day.weekday() not in self.weekdays:
                continue
            for at in self.times:
                candidate = datetime.combine(day, at, tzinfo=self.tz)
                if candidate > after:
                    return candidate.astimezone(UTC)
        raise RuntimeError(f"No matching time found after {after}")

    def describe(self) -> str:
        times = ", ".join(t.isoformat(timespec="minutes") for t in self.times)
        if self.weekdays is None:
            return f"daily at {times} ({self.tz.key})"
        days = ", ".join(WEEKDAYS[d] for d in sorted(self.weekdays))
        return f"at {times} on {days} ({self.tz.key})"

    def __repr__(self) -> str:
        return f"AtSchedule({self.describe()!r})"


class CronSchedule:
    """Runs on every match of a five-field cron expression."""

    def __init__(self, expression: str, tz: str | ZoneInfo | None = None) -> None:
        if not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression}")
        self.expression = expression
        self.tz = _zone(tz)
        self.explicit_tz = tz is not None

    def use_default_zone(self, tz: str | ZoneInfo) -> None:
        if not self.explicit_tz:
            self.tz = _zone(tz)

    def first_run(self, now: datetime) -> datetime:
        return self._next_match(now)

    def next_after(self, previous: datetime, now: datetime) -> datetime:
        return self._next_match(max(previous, now))

    def _next_match(self, after: datetime) -> datetime:
        it = croniter(self.expression, after.astimezone(self.tz))
        return it.get_next(datetime).astimezone(UTC)

    def describe(self) -> str:
        return f"cron '{self.expression}' ({self.tz.key})"

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"
