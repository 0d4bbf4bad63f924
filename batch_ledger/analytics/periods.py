"""Date bucketing helpers shared by the time-series style reports."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from ..exceptions import InvalidReportParameterError

_SECONDS_PER_DAY = 86_400


class TimeAggregation(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def parse_aggregation(value: TimeAggregation | str | None) -> TimeAggregation:
    """Return a ``TimeAggregation`` from user input, defaulting to daily."""

    if value is None or value == "":
        return TimeAggregation.DAILY
    if isinstance(value, TimeAggregation):
        return value
    try:
        return TimeAggregation(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidReportParameterError(
            f"Unknown aggregation {value!r}; expected one of "
            + ", ".join(member.value for member in TimeAggregation)
        ) from exc


def _as_utc_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def date_key(value: date | datetime, aggregation: TimeAggregation) -> str:
    """Return the bucket key ``value`` falls into.

    Keys are zero-padded so plain string ordering is chronological. Weekly
    buckets start on Sunday and are keyed by that Sunday's ISO date.
    """

    day = _as_utc_date(value)
    if aggregation is TimeAggregation.WEEKLY:
        # ``weekday()`` is 0 for Monday, so Sunday lands on offset 0.
        week_start = day - timedelta(days=(day.weekday() + 1) % 7)
        return week_start.isoformat()
    if aggregation is TimeAggregation.MONTHLY:
        return f"{day.year:04d}-{day.month:02d}"
    if aggregation is TimeAggregation.YEARLY:
        return f"{day.year:04d}"
    return day.isoformat()


def _as_datetime(value: date | datetime, reference: datetime) -> datetime:
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.combine(value, time.min, tzinfo=reference.tzinfo)
    if (moment.tzinfo is None) != (reference.tzinfo is None):
        # Mixed naive and aware values are both read as UTC.
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        else:
            moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def days_until(target: date | datetime, now: datetime) -> int:
    """Whole days from ``now`` until ``target``, rounded up."""

    delta = _as_datetime(target, now) - now
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def days_since(origin: date | datetime, now: datetime) -> int:
    """Whole days elapsed since ``origin``, rounded down."""

    delta = now - _as_datetime(origin, now)
    return math.floor(delta.total_seconds() / _SECONDS_PER_DAY)


@dataclass(frozen=True)
class DateRange:
    """Closed interval ``[start, end]`` used to filter records by date."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "end", _as_utc(self.end))
        if self.end < self.start:
            raise InvalidReportParameterError(
                f"Date range ends ({self.end.isoformat()}) before it starts "
                f"({self.start.isoformat()})"
            )

    @classmethod
    def from_bounds(
        cls, start: date | datetime | None, end: date | datetime | None
    ) -> DateRange | None:
        """Build a range only when both bounds are present."""

        if start is None or end is None:
            return None
        return cls(_coerce_bound(start), _coerce_bound(end, end_of_day=True))

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def contains(self, value: date | datetime) -> bool:
        moment = _as_datetime(value, self.start)
        return self.start <= moment <= self.end

    def previous(self) -> DateRange:
        """Equal-length period immediately preceding this one.

        A range closed at the last microsecond of a day counts as ending at the
        next midnight, so whole-day ranges step back by whole days.
        """

        span = self.length
        if self.end.time() == time.max:
            span += timedelta(microseconds=1)
        return DateRange(self.start - span, self.start)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_bound(value: date | datetime, *, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max if end_of_day else time.min)


def previous_period(current: DateRange) -> DateRange:
    return current.previous()


__all__ = [
    "DateRange",
    "TimeAggregation",
    "date_key",
    "days_since",
    "days_until",
    "parse_aggregation",
    "previous_period",
]
