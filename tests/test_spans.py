"""
Tests for multi-week span detection.
"""

import pytest
from datetime import date, timedelta
from uuid import uuid4

from quarter_planner.calendar import generate_weeks
from quarter_planner.errors import AllocationInvariantError
from quarter_planner.models import Allocation, Assignment
from quarter_planner.spans import CellPosition, Span, detect_spans, span_index


ANCHOR = date(2024, 1, 1)
MEMBER = uuid4()
PROJECT_A = uuid4()
PROJECT_B = uuid4()


def week(n: int) -> date:
    """Start of week n (1-based) of a quarter beginning 2025-01-06."""
    return date(2025, 1, 6) + timedelta(weeks=n - 1)


def full(n: int, project=PROJECT_A, member=MEMBER) -> Allocation:
    return Allocation(member, week(n), [Assignment(project, 100.0)])


class TestDetectSpans:
    """Tests for detect_spans."""

    def test_three_week_span(self):
        """Test three consecutive full weeks form one span."""
        spans = detect_spans([full(1), full(2), full(3)])

        assert len(spans) == 1
        span = spans[0]
        assert span.week_starts == (week(1), week(2), week(3))
        assert span.project_id == PROJECT_A
        assert span.team_member_id == MEMBER
        assert span.length == 3
        assert span.is_multi_week

    def test_order_independent(self):
        """Test shuffled input gives the same spans."""
        ordered = detect_spans([full(1), full(2), full(3), full(5)])
        shuffled = detect_spans([full(5), full(3), full(1), full(2)])

        assert ordered == shuffled

    def test_idempotent(self):
        """Test detecting twice gives equal results."""
        allocations = [full(1), full(2), full(4, PROJECT_B)]

        assert detect_spans(allocations) == detect_spans(allocations)

    def test_single_weeks_are_spans_of_one(self):
        """Test isolated weeks come back as single-week spans."""
        spans = detect_spans([full(1), full(3)])

        assert [s.length for s in spans] == [1, 1]
        assert not any(s.is_multi_week for s in spans)

    def test_gap_breaks_span(self):
        """Test a missing week ends the span."""
        spans = detect_spans([full(1), full(2), full(4), full(5)])

        assert [s.week_starts for s in spans] == [(week(1), week(2)), (week(4), week(5))]

    def test_project_change_breaks_span(self):
        """Test a different project ends the span."""
        spans = detect_spans([full(1), full(2), full(3, PROJECT_B), full(4, PROJECT_B)])

        assert len(spans) == 2
        assert spans[0].project_id == PROJECT_A
        assert spans[1].project_id == PROJECT_B

    def test_split_week_breaks_span(self):
        """Test a split week is excluded and ends the span."""
        split = Allocation(MEMBER, week(2), [Assignment(PROJECT_A, 50.0), Assignment(PROJECT_B, 50.0)])

        spans = detect_spans([full(1), split, full(3)])

        assert [s.week_starts for s in spans] == [(week(1),), (week(3),)]

    def test_oncall_week_breaks_span(self):
        """Test an oncall week ends the span."""
        oncall = Allocation(MEMBER, week(2), [Assignment.oncall()])

        spans = detect_spans([full(1), oncall, full(3)])

        assert all(s.length == 1 for s in spans)
        assert week(2) not in span_index(spans)

    def test_partial_week_excluded(self):
        """Test a single assignment below 100% never joins a span."""
        partial = Allocation(MEMBER, week(2), [Assignment(PROJECT_A, 60.0)])

        spans = detect_spans([full(1), partial, full(3)])

        assert len(spans) == 2

    def test_empty_input(self):
        """Test no allocations gives no spans."""
        assert detect_spans([]) == []

    def test_duplicate_week_raises(self):
        """Test two allocations for one week raise."""
        with pytest.raises(AllocationInvariantError) as exc:
            detect_spans([full(1), full(1, PROJECT_B)])

        assert exc.value.team_member_id == MEMBER
        assert exc.value.week_start_date == week(1)

    def test_several_members(self):
        """Test interleaved members each keep their own spans."""
        other = uuid4()
        allocations = [
            full(1), full(1, member=other),
            full(2), full(2, member=other),
            full(3), full(3, member=other),
        ]

        spans = detect_spans(allocations)

        assert len(spans) == 2
        assert all(s.length == 3 for s in spans)
        assert {s.team_member_id for s in spans} == {MEMBER, other}

    def test_same_week_for_two_members_allowed(self):
        """Test one week per member is not a duplicate."""
        spans = detect_spans([full(1), full(1, member=uuid4())])

        assert len(spans) == 2

    def test_weeks_outside_quarter_ignored(self):
        """Test allocations outside the calendar are dropped."""
        weeks = generate_weeks(week(1), 3, ANCHOR, 2)

        spans = detect_spans([full(2), full(3), full(4)], weeks)

        assert len(spans) == 1
        assert spans[0].week_starts == (week(2), week(3))


class TestSpan:
    """Tests for Span."""

    def test_positions(self):
        """Test first, middle and last markers."""
        span = Span(MEMBER, PROJECT_A, (week(1), week(2), week(3)))

        assert span.position_of(week(1)) == CellPosition.FIRST
        assert span.position_of(week(2)) == CellPosition.MIDDLE
        assert span.position_of(week(3)) == CellPosition.LAST

    def test_standalone_position(self):
        """Test a one-week span is standalone."""
        span = Span(MEMBER, PROJECT_A, (week(1),))

        assert span.position_of(week(1)) == CellPosition.STANDALONE

    def test_position_of_foreign_week(self):
        """Test asking for a week outside the span raises."""
        span = Span(MEMBER, PROJECT_A, (week(1), week(2)))

        with pytest.raises(ValueError):
            span.position_of(week(5))

    def test_week_range(self):
        """Test 1-based week numbers of a span in the quarter."""
        weeks = generate_weeks(week(1), 13, ANCHOR, 2)
        span = Span(MEMBER, PROJECT_A, (week(4), week(5), week(6)))

        assert span.week_range(weeks) == (4, 6)
        assert Span(MEMBER, PROJECT_A, (week(14),)).week_range(weeks) is None

    def test_to_dict(self):
        """Test serialization."""
        span = Span(MEMBER, PROJECT_A, (week(1), week(2)))
        data = span.to_dict()

        assert data["length"] == 2
        assert data["first_week"] == "2025-01-06"
        assert data["positions"]["2025-01-13"] == "last"

    def test_span_index(self):
        """Test every covered week maps back to its span."""
        spans = detect_spans([full(1), full(2), full(4)])
        index = span_index(spans)

        assert index[week(1)] is index[week(2)]
        assert index[week(4)].length == 1
        assert week(3) not in index
