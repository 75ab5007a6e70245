"""
Multi-week Span Detection

Groups a team member's consecutive full weeks on the same project into spans
so the grid can draw them as one connected bar.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from .calendar import WeekSequence
from .errors import AllocationInvariantError
from .models import Allocation


logger = logging.getLogger(__name__)

ONE_WEEK = timedelta(days=7)


class CellPosition(Enum):
    """Position of a week inside a span."""
    STANDALONE = "standalone"
    FIRST = "first"
    MIDDLE = "middle"
    LAST = "last"


@dataclass(frozen=True)
class Span:
    """A maximal run of consecutive 100% weeks on one project."""
    team_member_id: UUID
    project_id: UUID
    week_starts: tuple[date, ...]

    @property
    def length(self) -> int:
        return len(self.week_starts)

    @property
    def first_week(self) -> date:
        return self.week_starts[0]

    @property
    def last_week(self) -> date:
        return self.week_starts[-1]

    @property
    def is_multi_week(self) -> bool:
        return self.length >= 2

    def __contains__(self, week_start: date) -> bool:
        return week_start in self.week_starts

    def position_of(self, week_start: date) -> CellPosition:
        """
        Position marker for a week of this span.

        Raises:
            ValueError: the week is not part of the span
        """
        if week_start not in self:
            raise ValueError(f"Week {week_start.isoformat()} is not part of this span")
        if self.length == 1:
            return CellPosition.STANDALONE
        if week_start == self.first_week:
            return CellPosition.FIRST
        if week_start == self.last_week:
            return CellPosition.LAST
        return CellPosition.MIDDLE

    @property
    def positions(self) -> dict[date, CellPosition]:
        return {w: self.position_of(w) for w in self.week_starts}

    def week_range(self, weeks: WeekSequence) -> Optional[tuple[int, int]]:
        """1-based (first, last) week numbers in the quarter, if both are in it."""
        first = weeks.find(self.first_week)
        last = weeks.find(self.last_week)
        if first is None or last is None:
            return None
        return (first.week_number, last.week_number)

    def to_dict(self) -> dict:
        return {
            "team_member_id": str(self.team_member_id),
            "project_id": str(self.project_id),
            "first_week": self.first_week.isoformat(),
            "last_week": self.last_week.isoformat(),
            "length": self.length,
            "positions": {w.isoformat(): p.value for w, p in self.positions.items()}
        }


def detect_spans(
    allocations: Iterable[Allocation],
    weeks: Optional[WeekSequence] = None
) -> list[Span]:
    """
    Detect spans in team members' allocations.

    Only allocations with exactly one 100% non-oncall assignment take part;
    split, partial and oncall weeks end a span. Two eligible weeks join when
    they belong to the same member, are on the same project and are exactly
    seven days apart. Input order does not matter.

    Args:
        allocations: Allocations of one or more team members
        weeks: Optional quarter calendar; allocations outside it are ignored

    Returns:
        Spans grouped by member and ordered by first week, single-week
        spans included

    Raises:
        AllocationInvariantError: two allocations share a member and week
    """
    seen: set[tuple[UUID, date]] = set()
    eligible: list[Allocation] = []

    for allocation in allocations:
        if allocation.key in seen:
            raise AllocationInvariantError(
                f"Duplicate allocation for week {allocation.week_start_date.isoformat()}",
                team_member_id=allocation.team_member_id,
                week_start_date=allocation.week_start_date
            )
        seen.add(allocation.key)

        if weeks is not None and weeks.find(allocation.week_start_date) is None:
            continue
        if allocation.is_single_full_week:
            eligible.append(allocation)

    eligible.sort(key=lambda a: (str(a.team_member_id), a.week_start_date))

    spans: list[Span] = []
    run: list[Allocation] = []

    def close_run():
        if run:
            spans.append(Span(
                team_member_id=run[0].team_member_id,
                project_id=run[0].assignments[0].technical_project_id,
                week_starts=tuple(a.week_start_date for a in run)
            ))

    for allocation in eligible:
        if run:
            previous = run[-1]
            same_project = (
                previous.assignments[0].technical_project_id
                == allocation.assignments[0].technical_project_id
            )
            adjacent = allocation.week_start_date - previous.week_start_date == ONE_WEEK
            same_member = previous.team_member_id == allocation.team_member_id
            if same_project and adjacent and same_member:
                run.append(allocation)
                continue
            close_run()
        run = [allocation]
    close_run()

    logger.debug(
        "Detected %d spans (%d multi-week) in %d eligible weeks",
        len(spans), sum(1 for s in spans if s.is_multi_week), len(eligible)
    )
    return spans


def span_index(spans: Iterable[Span]) -> dict[date, Span]:
    """Map every week start to the span covering it; spans of one member."""
    return {week: span for span in spans for week in span.week_starts}
