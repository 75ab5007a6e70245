"""
Tests for the allocation cell resolver.
"""

import pytest
from datetime import date, timedelta
from uuid import uuid4

from quarter_planner.calendar import generate_weeks
from quarter_planner.cells import (
    CellKind,
    EmptyCell,
    MultiWeekSpanCell,
    OncallCell,
    ProjectLookup,
    SingleProjectCell,
    SplitCell,
    resolve_cell
)
from quarter_planner.errors import AllocationInvariantError, ReferentialIntegrityError
from quarter_planner.models import (
    ONCALL_PROJECT_ID,
    Allocation,
    Assignment,
    ProjectColor,
    RoadmapProject,
    TechnicalProject
)
from quarter_planner.spans import CellPosition, detect_spans, span_index


ANCHOR = date(2024, 1, 1)
QUARTER_START = date(2025, 1, 6)
MEMBER = uuid4()

ROADMAP = RoadmapProject(
    name="Checkout Revamp",
    start_date=date(2025, 1, 1),
    launch_date=date(2025, 6, 30),
    color=ProjectColor.PURPLE
)
API = TechnicalProject(name="Payments API", start_date=date(2025, 1, 1), roadmap_project_id=ROADMAP.id)
MODEL = TechnicalProject(name="Fraud Model", start_date=date(2025, 1, 1))
LATE = TechnicalProject(name="Migration", start_date=date(2025, 2, 3))


@pytest.fixture
def weeks():
    return generate_weeks(QUARTER_START, 13, ANCHOR, 2)


@pytest.fixture
def lookup():
    return ProjectLookup([API, MODEL, LATE], [ROADMAP])


def full(week_start: date, project=API) -> Allocation:
    return Allocation(MEMBER, week_start, [Assignment(project.id, 100.0)])


def resolve_row(weeks, allocations, lookup):
    """Resolve a whole row the way the grid does."""
    spans = span_index(detect_spans(allocations, weeks))
    by_week = {a.week_start_date: a for a in allocations}
    return [
        resolve_cell(MEMBER, w, by_week.get(w.start_date), spans.get(w.start_date), lookup)
        for w in weeks
    ]


class TestResolveCell:
    """Tests for resolve_cell."""

    def test_no_allocation_is_empty(self, weeks, lookup):
        """Test a week without an allocation is empty."""
        state = resolve_cell(MEMBER, weeks[0], None, None, lookup)

        assert isinstance(state, EmptyCell)
        assert state.kind == CellKind.EMPTY

    def test_no_assignments_is_empty(self, weeks, lookup):
        """Test an allocation without assignments is empty."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [])

        assert isinstance(resolve_cell(MEMBER, weeks[0], allocation, None, lookup), EmptyCell)

    def test_oncall(self, weeks, lookup):
        """Test a single oncall assignment."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [Assignment.oncall()])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert isinstance(state, OncallCell)
        assert state.percentage == 100.0

    def test_two_way_split(self, weeks, lookup):
        """Test two assignments summing to 100 give a split in order."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [
            Assignment(MODEL.id, 60.0),
            Assignment(API.id, 40.0)
        ])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert isinstance(state, SplitCell)
        assert state.is_two_way
        assert [p.name for p in state.parts] == ["Fraud Model", "Payments API"]
        assert [p.percentage for p in state.parts] == [60.0, 40.0]

    def test_split_colors(self, weeks, lookup):
        """Test split parts use the roadmap color or a positional fallback."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [
            Assignment(API.id, 50.0),
            Assignment(MODEL.id, 50.0)
        ])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert state.parts[0].color == ProjectColor.PURPLE
        assert state.parts[1].color == ProjectColor.GREEN

    def test_split_with_oncall(self, weeks, lookup):
        """Test an oncall part of a split resolves without a project record."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [
            Assignment(API.id, 50.0),
            Assignment(ONCALL_PROJECT_ID, 50.0)
        ])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert isinstance(state, SplitCell)
        assert state.is_two_way
        assert state.parts[1].project_id == ONCALL_PROJECT_ID
        assert state.parts[1].name == "Oncall"
        assert state.parts[1].color == ProjectColor.ORANGE
        assert not state.parts[1].is_before_project_start

    def test_uneven_split_is_not_two_way(self, weeks, lookup):
        """Test other multi-assignment weeks still resolve to a split."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [
            Assignment(API.id, 30.0),
            Assignment(MODEL.id, 30.0),
            Assignment(LATE.id, 20.0)
        ])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert isinstance(state, SplitCell)
        assert len(state.parts) == 3
        assert not state.is_two_way

    def test_single_project(self, weeks, lookup):
        """Test an isolated full week."""
        state = resolve_cell(MEMBER, weeks[0], full(weeks[0].start_date), None, lookup)

        assert isinstance(state, SingleProjectCell)
        assert state.project.name == "Payments API"
        assert state.project.color == ProjectColor.PURPLE
        assert state.percentage == 100.0

    def test_partial_single_assignment(self, weeks, lookup):
        """Test a single partial assignment is a single-project cell."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [Assignment(MODEL.id, 50.0)])

        state = resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert isinstance(state, SingleProjectCell)
        assert state.percentage == 50.0
        assert state.project.color == ProjectColor.BLUE

    def test_before_project_start(self, weeks, lookup):
        """Test weeks before a project's start date are flagged."""
        state = resolve_cell(MEMBER, weeks[0], full(weeks[0].start_date, LATE), None, lookup)
        later = resolve_cell(MEMBER, weeks[4], full(weeks[4].start_date, LATE), None, lookup)

        assert state.is_before_project_start
        assert not later.is_before_project_start

    def test_unknown_project_raises(self, weeks, lookup):
        """Test an assignment to an unknown project raises."""
        missing = uuid4()
        allocation = Allocation(MEMBER, weeks[0].start_date, [Assignment(missing, 100.0)])

        with pytest.raises(ReferentialIntegrityError) as exc:
            resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

        assert exc.value.project_id == missing

    def test_over_allocated_week_raises(self, weeks, lookup):
        """Test assignments above 100% in total raise."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [
            Assignment(API.id, 70.0),
            Assignment(MODEL.id, 50.0)
        ])

        with pytest.raises(AllocationInvariantError):
            resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

    def test_negative_percentage_raises(self, weeks, lookup):
        """Test a negative percentage raises."""
        allocation = Allocation(MEMBER, weeks[0].start_date, [Assignment(API.id, -10.0)])

        with pytest.raises(AllocationInvariantError):
            resolve_cell(MEMBER, weeks[0], allocation, None, lookup)

    def test_allocation_for_other_week_rejected(self, weeks, lookup):
        """Test an allocation keyed to another week is refused."""
        with pytest.raises(ValueError):
            resolve_cell(MEMBER, weeks[0], full(weeks[1].start_date), None, lookup)


class TestRowResolution:
    """Tests resolving whole rows with spans."""

    def test_three_week_span_positions(self, weeks, lookup):
        """Test weeks 1-3 on one project render First, Middle, Last."""
        allocations = [full(w.start_date) for w in weeks[0:3]]

        states = resolve_row(weeks, allocations, lookup)

        assert all(isinstance(s, MultiWeekSpanCell) for s in states[0:3])
        assert [s.position for s in states[0:3]] == [
            CellPosition.FIRST, CellPosition.MIDDLE, CellPosition.LAST
        ]
        assert states[0].total_weeks is None
        assert states[1].total_weeks is None
        assert states[2].total_weeks == 3
        assert all(isinstance(s, EmptyCell) for s in states[3:])

    def test_split_in_the_middle(self, weeks, lookup):
        """Test a split in week 2 leaves weeks 1 and 3 as single cells."""
        allocations = [
            full(weeks[0].start_date),
            Allocation(MEMBER, weeks[1].start_date, [
                Assignment(API.id, 50.0),
                Assignment(MODEL.id, 50.0)
            ]),
            full(weeks[2].start_date)
        ]

        states = resolve_row(weeks, allocations, lookup)

        assert isinstance(states[0], SingleProjectCell)
        assert isinstance(states[1], SplitCell)
        assert isinstance(states[2], SingleProjectCell)

    def test_oncall_between_project_weeks(self, weeks, lookup):
        """Test oncall splits a run into two single cells."""
        allocations = [
            full(weeks[0].start_date),
            Allocation(MEMBER, weeks[1].start_date, [Assignment.oncall()]),
            full(weeks[2].start_date)
        ]

        kinds = [s.kind for s in resolve_row(weeks, allocations, lookup)[0:3]]

        assert kinds == [CellKind.SINGLE_PROJECT, CellKind.ONCALL, CellKind.SINGLE_PROJECT]

    def test_resolution_is_repeatable(self, weeks, lookup):
        """Test resolving the same row twice gives equal states."""
        allocations = [full(w.start_date) for w in weeks[0:4]]

        assert resolve_row(weeks, allocations, lookup) == resolve_row(weeks, allocations, lookup)

    def test_to_dict(self, weeks, lookup):
        """Test serialized span cells carry position and total."""
        allocations = [full(w.start_date) for w in weeks[0:2]]

        data = resolve_row(weeks, allocations, lookup)[1].to_dict()

        assert data["kind"] == "multi_week_span"
        assert data["position"] == "last"
        assert data["total_weeks"] == 2
        assert data["project"]["color"] == "purple"


class TestProjectLookup:
    """Tests for ProjectLookup."""

    def test_contains_and_get(self, lookup):
        """Test lookups by id."""
        assert API.id in lookup
        assert lookup.get(MODEL.id) is MODEL

    def test_get_unknown(self, lookup):
        """Test ReferentialIntegrityError is a LookupError."""
        with pytest.raises(LookupError):
            lookup.get(uuid4())

    def test_color_of_unlinked(self, lookup):
        """Test the fallback color for projects without a roadmap link."""
        assert lookup.color_of(MODEL, ProjectColor.TEAL) == ProjectColor.TEAL
        assert lookup.color_of(API) == ProjectColor.PURPLE
