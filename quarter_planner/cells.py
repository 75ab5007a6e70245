"""
Allocation Cell Resolver

Turns the allocation of one (team member, week) pair into the state the grid
draws. States are derived on every call and never stored.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union
from uuid import UUID

from .calendar import WeekInfo
from .errors import ReferentialIntegrityError
from .models import (
    Allocation,
    PlanState,
    ProjectColor,
    RoadmapProject,
    TechnicalProject,
    ONCALL_PROJECT_ID,
    PERCENTAGE_EPSILON,
)
from .spans import CellPosition, Span


class CellKind(Enum):
    """Cell variant tag."""
    EMPTY = "empty"
    ONCALL = "oncall"
    SPLIT = "split"
    MULTI_WEEK_SPAN = "multi_week_span"
    SINGLE_PROJECT = "single_project"


# Fallback colors for unlinked projects, by position in a split
FALLBACK_COLORS = (ProjectColor.BLUE, ProjectColor.GREEN)

ONCALL_NAME = "Oncall"
ONCALL_COLOR = ProjectColor.ORANGE


class ProjectLookup:
    """
    Technical project and color lookup for the resolver.

    Usage:
        lookup = ProjectLookup.from_plan(plan)
        project = lookup.get(project_id)
    """

    def __init__(
        self,
        technical_projects: list[TechnicalProject],
        roadmap_projects: Optional[list[RoadmapProject]] = None
    ):
        self._technical = {p.id: p for p in technical_projects}
        self._roadmap = {p.id: p for p in (roadmap_projects or [])}

    @classmethod
    def from_plan(cls, plan: PlanState) -> "ProjectLookup":
        return cls(plan.technical_projects, plan.roadmap_projects)

    def __contains__(self, project_id: UUID) -> bool:
        return project_id in self._technical

    def get(self, project_id: UUID) -> TechnicalProject:
        """
        Raises:
            ReferentialIntegrityError: no technical project with this id
        """
        try:
            return self._technical[project_id]
        except KeyError:
            raise ReferentialIntegrityError(project_id) from None

    def color_of(
        self,
        project: TechnicalProject,
        fallback: ProjectColor = ProjectColor.BLUE
    ) -> ProjectColor:
        """Color of the linked roadmap project, or the fallback."""
        roadmap = self._roadmap.get(project.roadmap_project_id) if project.roadmap_project_id else None
        return roadmap.color if roadmap else fallback


@dataclass(frozen=True)
class ProjectShare:
    """A project's part of a cell."""
    project_id: UUID
    name: str
    percentage: float
    color: ProjectColor
    is_before_project_start: bool = False

    def to_dict(self) -> dict:
        return {
            "project_id": str(self.project_id),
            "name": self.name,
            "percentage": self.percentage,
            "color": self.color.value,
            "color_hex": self.color.hex,
            "is_before_project_start": self.is_before_project_start
        }


@dataclass(frozen=True)
class EmptyCell:
    """No allocation this week."""
    is_before_project_start: bool = False

    kind = CellKind.EMPTY

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "is_before_project_start": False}


@dataclass(frozen=True)
class OncallCell:
    """Week spent on call."""
    percentage: float = 100.0
    is_before_project_start: bool = False

    kind = CellKind.ONCALL

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "percentage": self.percentage,
            "is_before_project_start": False
        }


@dataclass(frozen=True)
class SplitCell:
    """Week divided between projects, in assignment order."""
    parts: tuple[ProjectShare, ...]

    kind = CellKind.SPLIT

    @property
    def is_before_project_start(self) -> bool:
        return any(p.is_before_project_start for p in self.parts)

    @property
    def is_two_way(self) -> bool:
        total = sum(p.percentage for p in self.parts)
        return len(self.parts) == 2 and abs(total - 100.0) < PERCENTAGE_EPSILON

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "parts": [p.to_dict() for p in self.parts],
            "is_two_way": self.is_two_way,
            "is_before_project_start": self.is_before_project_start
        }


@dataclass(frozen=True)
class SingleProjectCell:
    """Standalone week on one project."""
    project: ProjectShare

    kind = CellKind.SINGLE_PROJECT

    @property
    def percentage(self) -> float:
        return self.project.percentage

    @property
    def is_before_project_start(self) -> bool:
        return self.project.is_before_project_start

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "project": self.project.to_dict(),
            "percentage": self.percentage,
            "is_before_project_start": self.is_before_project_start
        }


@dataclass(frozen=True)
class MultiWeekSpanCell:
    """One week of a multi-week span."""
    project: ProjectShare
    position: CellPosition
    total_weeks: Optional[int] = None  # only set on the last cell

    kind = CellKind.MULTI_WEEK_SPAN

    @property
    def percentage(self) -> float:
        return self.project.percentage

    @property
    def is_before_project_start(self) -> bool:
        return self.project.is_before_project_start

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "project": self.project.to_dict(),
            "percentage": self.percentage,
            "position": self.position.value,
            "total_weeks": self.total_weeks,
            "is_before_project_start": self.is_before_project_start
        }


CellState = Union[EmptyCell, OncallCell, SplitCell, SingleProjectCell, MultiWeekSpanCell]


def _share(
    project_id: UUID,
    percentage: float,
    week_start: date,
    lookup: ProjectLookup,
    fallback: ProjectColor = ProjectColor.BLUE
) -> ProjectShare:
    # Oncall has no project record
    if project_id == ONCALL_PROJECT_ID:
        return ProjectShare(
            project_id=ONCALL_PROJECT_ID,
            name=ONCALL_NAME,
            percentage=percentage,
            color=ONCALL_COLOR
        )
    project = lookup.get(project_id)
    return ProjectShare(
        project_id=project.id,
        name=project.name,
        percentage=percentage,
        color=lookup.color_of(project, fallback),
        is_before_project_start=week_start < project.start_date
    )


def resolve_cell(
    team_member_id: UUID,
    week: WeekInfo,
    allocation: Optional[Allocation],
    span: Optional[Span],
    project_lookup: ProjectLookup
) -> CellState:
    """
    Resolve the state of one grid cell.

    First match wins:
        1. no allocation (or no assignments) -> EmptyCell
        2. single oncall assignment -> OncallCell
        3. two assignments summing to 100% -> SplitCell
        4. single assignment inside a span of 2+ weeks -> MultiWeekSpanCell
        5. single assignment -> SingleProjectCell

    Any other multi-assignment week resolves to a SplitCell holding all parts.
    Oncall parts of a split need no project record.

    Raises:
        ReferentialIntegrityError: an assignment references an unknown project
        AllocationInvariantError: percentages out of range or above 100% in total
        ValueError: allocation or span belongs to another member or week
    """
    week_start = week.start_date

    if allocation is None:
        return EmptyCell()

    if allocation.key != (team_member_id, week_start):
        raise ValueError(
            f"Allocation for {allocation.week_start_date.isoformat()} does not belong "
            f"to cell ({team_member_id}, {week_start.isoformat()})"
        )
    allocation.validate()

    assignments = allocation.assignments
    if not assignments:
        return EmptyCell()

    if allocation.is_oncall:
        return OncallCell(percentage=assignments[0].percentage)

    if len(assignments) >= 2:
        parts = tuple(
            _share(
                a.technical_project_id,
                a.percentage,
                week_start,
                project_lookup,
                FALLBACK_COLORS[i] if i < len(FALLBACK_COLORS) else ProjectColor.BLUE
            )
            for i, a in enumerate(assignments)
        )
        return SplitCell(parts=parts)

    assignment = assignments[0]
    share = _share(assignment.technical_project_id, assignment.percentage, week_start, project_lookup)

    if span is not None:
        if span.team_member_id != team_member_id or week_start not in span:
            raise ValueError(f"Span does not cover cell ({team_member_id}, {week_start.isoformat()})")
        if span.is_multi_week and span.project_id == assignment.technical_project_id:
            position = span.position_of(week_start)
            return MultiWeekSpanCell(
                project=share,
                position=position,
                total_weeks=span.length if position == CellPosition.LAST else None
            )

    return SingleProjectCell(project=share)
