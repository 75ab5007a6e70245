"""
Quarter Calendar

Builds the week and sprint calendar of a quarter. Sprint numbers are counted
from a global sprint anchor so sprint boundaries stay put across quarters.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional, Union

from .errors import ConfigurationError


logger = logging.getLogger(__name__)

QUARTER_START_MONTHS = {1: 1, 2: 4, 3: 7, 4: 10}


@dataclass(frozen=True)
class WeekInfo:
    """One column of the allocation grid."""
    start_date: date
    week_number: int  # 1-based within the quarter
    sprint_number: int  # 1-based, anchor relative
    is_sprint_start: bool

    @property
    def end_date(self) -> date:
        """Sunday closing the week."""
        return self.start_date + timedelta(days=6)

    @property
    def week_label(self) -> str:
        return f"Week {self.week_number}"

    @property
    def sprint_label(self) -> str:
        return f"Sprint {self.sprint_number}"

    def date_label(self) -> str:
        """Short header label, e.g. "Jan 6"."""
        return f"{self.start_date.strftime('%b')} {self.start_date.day}"

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "week_number": self.week_number,
            "sprint_number": self.sprint_number,
            "is_sprint_start": self.is_sprint_start,
            "label": self.week_label,
            "date_label": self.date_label()
        }


def _require_positive_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


def week_offset(week_start: date, sprint_anchor: date) -> int:
    """Whole weeks between the anchor and a week start (floored)."""
    return (week_start - sprint_anchor).days // 7


def sprint_index(week_start: date, sprint_anchor: date, sprint_length: int) -> int:
    """0-based sprint index relative to the anchor; negative before it."""
    _require_positive_int(sprint_length, "sprint_length")
    return week_offset(week_start, sprint_anchor) // sprint_length


def is_sprint_start(week_start: date, sprint_anchor: date, sprint_length: int) -> bool:
    _require_positive_int(sprint_length, "sprint_length")
    return week_offset(week_start, sprint_anchor) % sprint_length == 0


class WeekSequence:
    """
    Restartable, lazily computed sequence of WeekInfo.

    Every iteration recomputes the weeks from the configuration values, so
    the sequence can be walked any number of times.

    Usage:
        weeks = generate_weeks(date(2025, 1, 6), 13, date(2024, 1, 1), 2)
        for week in weeks:
            print(week.week_label, week.sprint_label)
    """

    def __init__(
        self,
        quarter_start: date,
        week_count: int,
        sprint_anchor: date,
        sprint_length: int
    ):
        self.week_count = _require_positive_int(week_count, "week_count")
        self.sprint_length = _require_positive_int(sprint_length, "sprint_length")
        self.sprint_anchor = sprint_anchor
        self.quarter_start = week_start_of(quarter_start)

        if self.quarter_start != quarter_start:
            logger.debug(
                "Quarter start %s is not a Monday, using %s",
                quarter_start.isoformat(), self.quarter_start.isoformat()
            )

    def _week_at(self, index: int) -> WeekInfo:
        start = self.quarter_start + timedelta(days=7 * index)
        return WeekInfo(
            start_date=start,
            week_number=index + 1,
            sprint_number=sprint_index(start, self.sprint_anchor, self.sprint_length) + 1,
            is_sprint_start=is_sprint_start(start, self.sprint_anchor, self.sprint_length)
        )

    def __iter__(self) -> Iterator[WeekInfo]:
        return (self._week_at(i) for i in range(self.week_count))

    def __len__(self) -> int:
        return self.week_count

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return [self._week_at(i) for i in range(*index.indices(self.week_count))]
        if index < 0:
            index += self.week_count
        if not 0 <= index < self.week_count:
            raise IndexError("week index out of range")
        return self._week_at(index)

    def __contains__(self, item) -> bool:
        if isinstance(item, WeekInfo):
            item = item.start_date
        return self.find(item) is not None

    @property
    def start_dates(self) -> list[date]:
        return [w.start_date for w in self]

    @property
    def end_date(self) -> date:
        """Last Sunday of the quarter."""
        return self[-1].end_date

    def find(self, week_start: date) -> Optional[WeekInfo]:
        """WeekInfo starting on the given date, or None."""
        days = (week_start - self.quarter_start).days
        if days % 7 != 0:
            return None
        index = days // 7
        if not 0 <= index < self.week_count:
            return None
        return self._week_at(index)

    def sprint_starts(self) -> list[WeekInfo]:
        return [w for w in self if w.is_sprint_start]

    def to_list(self) -> list[dict]:
        return [w.to_dict() for w in self]


def generate_weeks(
    quarter_start: date,
    week_count: int,
    sprint_anchor: date,
    sprint_length: int
) -> WeekSequence:
    """
    Generate the weeks of a quarter.

    Args:
        quarter_start: First day of the quarter (normalized to its Monday)
        week_count: Number of weeks, at least 1
        sprint_anchor: Global date all sprint boundaries are measured from
        sprint_length: Sprint length in weeks, at least 1

    Returns:
        WeekSequence of WeekInfo

    Raises:
        ConfigurationError: invalid week count or sprint length
    """
    return WeekSequence(quarter_start, week_count, sprint_anchor, sprint_length)


def week_start_of(day: date) -> date:
    """Monday of the week containing the date."""
    return day - timedelta(days=day.weekday())


def first_monday_on_or_after(day: date) -> date:
    return day + timedelta(days=(7 - day.weekday()) % 7)


def quarter_start_date(year: int, quarter: int) -> Optional[date]:
    """First calendar day of a quarter (Jan 1, Apr 1, Jul 1, Oct 1)."""
    month = QUARTER_START_MONTHS.get(quarter)
    if month is None:
        return None
    return date(year, month, 1)


def next_quarter_info(today: date) -> tuple[int, int, date, str]:
    """
    The first quarter starting on or after today.

    Returns:
        (year, quarter, start_date, name), e.g. (2025, 1, date(2025, 1, 1), "Q1 2025")
    """
    for quarter in range(1, 5):
        start = quarter_start_date(today.year, quarter)
        if start >= today:
            return (today.year, quarter, start, f"Q{quarter} {today.year}")

    year = today.year + 1
    return (year, 1, quarter_start_date(year, 1), f"Q1 {year}")


def weeks_between(start: date, end: date) -> float:
    return (end - start).days / 7


def sprint_boundaries(
    week_start: date,
    sprint_anchor: date,
    sprint_length: int
) -> tuple[date, date]:
    """
    First Monday and last Sunday of the sprint containing a week.

    Anchor relative, so weeks before the anchor land in negative sprints.
    """
    index = sprint_index(week_start, sprint_anchor, sprint_length)
    start = sprint_anchor + timedelta(weeks=index * sprint_length)
    end = start + timedelta(weeks=sprint_length) - timedelta(days=1)
    return (start, end)
