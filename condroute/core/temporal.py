"""
Temporal Model
==============

Immutable value types describing *when* a conditional restriction is in
force: a set of weekdays, a set of months and an optional time-of-day range.

Evaluation semantics:
- Empty day set = every day, empty month set = every month.
- Time ranges are start-inclusive and end-exclusive (``07:00-19:00`` is
  active at 07:00:00 and inactive at 19:00:00).
- A range whose end precedes its start wraps past midnight
  (``22:00-06:00``).
- A range whose start equals its end (``00:00-00:00``, i.e. ``00:00-24:00``)
  covers the full day.
"""

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator


class Weekday(str, Enum):
    """Two-letter OSM weekday abbreviations, in week order."""

    MONDAY = "Mo"
    TUESDAY = "Tu"
    WEDNESDAY = "We"
    THURSDAY = "Th"
    FRIDAY = "Fr"
    SATURDAY = "Sa"
    SUNDAY = "Su"

    @classmethod
    def of(cls, moment: datetime) -> "Weekday":
        """Weekday of a datetime."""
        return WEEKDAYS[moment.weekday()]


class Month(str, Enum):
    """Three-letter OSM month abbreviations, in calendar order."""

    JANUARY = "Jan"
    FEBRUARY = "Feb"
    MARCH = "Mar"
    APRIL = "Apr"
    MAY = "May"
    JUNE = "Jun"
    JULY = "Jul"
    AUGUST = "Aug"
    SEPTEMBER = "Sep"
    OCTOBER = "Oct"
    NOVEMBER = "Nov"
    DECEMBER = "Dec"

    @classmethod
    def of(cls, moment: datetime) -> "Month":
        """Month of a datetime."""
        return MONTHS[moment.month - 1]


WEEKDAYS: tuple[Weekday, ...] = tuple(Weekday)
MONTHS: tuple[Month, ...] = tuple(Month)

WORKING_DAYS = frozenset(WEEKDAYS[:5])
WEEKEND = frozenset(WEEKDAYS[5:])

MINUTES_PER_DAY = 24 * 60

_T = TypeVar("_T")


def _walk_forward(order: tuple[_T, ...], start: _T, end: _T) -> frozenset[_T]:
    """Collect members from start to end inclusive, wrapping around the cycle."""
    index = order.index(start)
    collected = []
    while True:
        member = order[index]
        collected.append(member)
        if member == end:
            break
        index = (index + 1) % len(order)
    return frozenset(collected)


def expand_day_range(start: Weekday, end: Weekday) -> frozenset[Weekday]:
    """
    Expand an inclusive weekday range.

    >>> sorted(d.value for d in expand_day_range(Weekday.FRIDAY, Weekday.MONDAY))
    ['Fr', 'Mo', 'Sa', 'Su']
    """
    return _walk_forward(WEEKDAYS, start, end)


def expand_month_range(start: Month, end: Month) -> frozenset[Month]:
    """Expand an inclusive month range, wrapping past December."""
    return _walk_forward(MONTHS, start, end)


def _compress(order: tuple[_T, ...], members: Iterable[_T]) -> list[str]:
    """Render members as runs: [Mo, Tu, We, Fr] -> ["Mo-We", "Fr"]."""
    present = set(members)
    runs: list[str] = []
    run: list[_T] = []
    for item in order:
        if item in present:
            run.append(item)
            continue
        if run:
            runs.append(_format_run(run))
            run = []
    if run:
        runs.append(_format_run(run))
    return runs


def _format_run(run: list) -> str:
    if len(run) == 1:
        return run[0].value
    return f"{run[0].value}-{run[-1].value}"


class TimeWindow(BaseModel):
    """
    A compiled day/month/time-of-day predicate.

    Produced by the condition compiler; read-only afterwards.

    Example
    -------
    >>> window = TimeWindow(
    ...     days=WORKING_DAYS,
    ...     start_time=time(7, 0),
    ...     end_time=time(19, 0),
    ... )
    >>> window.is_active_at(datetime(2023, 10, 16, 10, 0))
    True
    """

    model_config = ConfigDict(frozen=True)

    days: frozenset[Weekday] = frozenset()
    """Weekdays the window applies to. Empty means every day."""

    months: frozenset[Month] = frozenset()
    """Months the window applies to. Empty means every month."""

    start_time: Optional[time] = None
    """Inclusive start of the daily range. None means all hours."""

    end_time: Optional[time] = None
    """Exclusive end of the daily range. None means all hours."""

    @model_validator(mode="after")
    def _validate_bounds(self) -> "TimeWindow":
        """Start and end are set together or not at all."""
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must both be set or both be absent")
        return self

    @property
    def spans_midnight(self) -> bool:
        """True when the daily range wraps past 00:00 (e.g. 22:00-06:00)."""
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time > self.end_time
        )

    @property
    def spans_all_day(self) -> bool:
        """True when every time of day is covered."""
        return self.start_time is None or self.start_time == self.end_time

    def is_active_at(self, moment: datetime) -> bool:
        """Check whether this window covers the given local date/time."""
        if self.months and Month.of(moment) not in self.months:
            return False

        if self.days and Weekday.of(moment) not in self.days:
            return False

        if self.spans_all_day:
            return True

        now = moment.time()
        if self.spans_midnight:
            return now >= self.start_time or now < self.end_time
        return self.start_time <= now < self.end_time

    def minute_intervals(self) -> list[tuple[int, int]]:
        """Daily coverage as half-open minute intervals within [0, 1440)."""
        if self.spans_all_day:
            return [(0, MINUTES_PER_DAY)]

        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        if self.spans_midnight:
            intervals = [(start, MINUTES_PER_DAY)]
            if end > 0:
                intervals.append((0, end))
            return intervals
        return [(start, end)]

    def next_activation(
        self,
        after: datetime,
        horizon: timedelta = timedelta(days=31),
    ) -> Optional[datetime]:
        """
        Find the next moment this window becomes active.

        Parameters
        ----------
        after : datetime
            Search start. Returned unchanged when already active.
        horizon : timedelta
            How far ahead to search.

        Returns
        -------
        datetime or None
            First active minute boundary, or None if none within the horizon.
        """
        if self.is_active_at(after):
            return after

        candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = after + horizon
        while candidate <= limit:
            if self.is_active_at(candidate):
                return candidate
            candidate += timedelta(minutes=1)
        return None

    def activation_end(
        self,
        at: datetime,
        horizon: timedelta = timedelta(hours=24),
    ) -> Optional[datetime]:
        """
        Find when a currently active window stops being active.

        Returns None when the window is not active at ``at`` or stays active
        for the whole horizon.
        """
        if not self.is_active_at(at):
            return None

        candidate = at.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = at + horizon
        while candidate <= limit:
            if not self.is_active_at(candidate):
                return candidate
            candidate += timedelta(minutes=1)
        return None

    def describe(self) -> str:
        """Human-readable form, e.g. ``"Apr-Oct Mo-Fr 07:00-19:00"``."""
        parts: list[str] = []

        if self.months and len(self.months) < len(MONTHS):
            parts.append(",".join(_compress(MONTHS, self.months)))

        if self.days:
            if len(self.days) == len(WEEKDAYS):
                parts.append("Every day")
            else:
                parts.append(",".join(_compress(WEEKDAYS, self.days)))

        if self.start_time is not None:
            # A range ending at midnight is stored as 00:00 but written 24:00
            end = (
                "24:00" if self.end_time == time(0) and self.start_time != self.end_time
                else self.end_time.strftime("%H:%M")
            )
            parts.append(f"{self.start_time.strftime('%H:%M')}-{end}")

        return " ".join(parts) if parts else "Always"

    def __repr__(self) -> str:
        return f"TimeWindow({self.describe()})"


def windows_overlap(first: TimeWindow, second: TimeWindow) -> bool:
    """
    Best-effort check whether two windows can be active at the same time.

    Compares day sets, month sets and daily minute intervals. Spill-over of a
    midnight-wrapping range into the following day is not modelled, so this
    is a diagnostic heuristic rather than a proof.
    """
    if first.days and second.days and not first.days & second.days:
        return False

    if first.months and second.months and not first.months & second.months:
        return False

    for start_a, end_a in first.minute_intervals():
        for start_b, end_b in second.minute_intervals():
            if start_a < end_b and start_b < end_a:
                return True
    return False


_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y %H:%M",
)


def parse_local_datetime(text: str) -> datetime:
    """
    Parse a query timestamp.

    ISO-8601 is tried first, then the common editor formats
    ``YYYY-MM-DD HH:MM[:SS]``, ``DD.MM.YYYY HH:MM``, ``DD/MM/YYYY HH:MM``
    and ``MM/DD/YYYY HH:MM``.

    Raises
    ------
    ValueError
        If no format matches.
    """
    if text is None or not str(text).strip():
        raise ValueError("Empty date/time string")

    normalized = str(text).strip()
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        pass

    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue

    raise ValueError(f"Unable to parse date/time: {text!r}")


COMMON_WINDOWS: dict[str, TimeWindow] = {
    "business_hours": TimeWindow(
        days=WORKING_DAYS,
        start_time=time(9, 0),
        end_time=time(17, 0),
    ),
    "weekends": TimeWindow(days=WEEKEND),
    "night_hours": TimeWindow(start_time=time(22, 0), end_time=time(6, 0)),
}


def common_window(name: str) -> TimeWindow:
    """Look up one of the predefined windows in COMMON_WINDOWS."""
    try:
        return COMMON_WINDOWS[name.lower()]
    except KeyError:
        available = ", ".join(sorted(COMMON_WINDOWS))
        raise ValueError(f"Unknown window '{name}'. Available: {available}") from None
