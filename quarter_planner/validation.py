"""
Plan Validation

Batch checks over a preferences + plan snapshot. The grid engine raises on
the first bad cell; this module lists every problem at once so an import or
an edit can be reviewed before it is accepted.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from .calendar import week_start_of
from .capacity import allocated_weeks
from .errors import AllocationInvariantError
from .models import PlanState, Preferences


class IssueKind(Enum):
    """Validation issue types."""
    UNKNOWN_TEAM_MEMBER = "unknown_team_member"
    UNKNOWN_PROJECT = "unknown_project"
    UNKNOWN_ROADMAP_PROJECT = "unknown_roadmap_project"
    DUPLICATE_ALLOCATION = "duplicate_allocation"
    INVALID_PERCENTAGE = "invalid_percentage"
    OVER_ALLOCATED_WEEK = "over_allocated_week"
    OVER_CAPACITY = "over_capacity"
    BEFORE_PROJECT_START = "before_project_start"
    OUTSIDE_GRID = "outside_grid"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


SEVERITIES = {
    IssueKind.UNKNOWN_TEAM_MEMBER: Severity.ERROR,
    IssueKind.UNKNOWN_PROJECT: Severity.ERROR,
    IssueKind.UNKNOWN_ROADMAP_PROJECT: Severity.ERROR,
    IssueKind.DUPLICATE_ALLOCATION: Severity.ERROR,
    IssueKind.INVALID_PERCENTAGE: Severity.ERROR,
    IssueKind.OVER_ALLOCATED_WEEK: Severity.ERROR,
    IssueKind.OUTSIDE_GRID: Severity.ERROR,
    IssueKind.OVER_CAPACITY: Severity.WARNING,
    IssueKind.BEFORE_PROJECT_START: Severity.WARNING,
}


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in a plan."""
    kind: IssueKind
    message: str
    team_member_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    week_start_date: Optional[date] = None

    @property
    def severity(self) -> Severity:
        return SEVERITIES[self.kind]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "team_member_id": str(self.team_member_id) if self.team_member_id else None,
            "project_id": str(self.project_id) if self.project_id else None,
            "week_start_date": self.week_start_date.isoformat() if self.week_start_date else None
        }


def _grid_placement_problem(week: date, quarter_start: date, num_weeks: int) -> Optional[str]:
    """Why an allocation date has no grid column, or None."""
    if week.weekday() != 0:
        return "does not start on a Monday"
    if not 0 <= (week - quarter_start).days // 7 < num_weeks:
        return "is outside the quarter"
    return None


def validate_plan(preferences: Preferences, plan: PlanState) -> list[ValidationIssue]:
    """
    List every integrity and capacity problem in a plan.

    Oncall assignments need no project record and are never "before start".

    Returns:
        Issues in discovery order; empty when the plan is clean
    """
    issues: list[ValidationIssue] = []
    members = {m.id: m for m in preferences.team_members}
    projects = {p.id: p for p in plan.technical_projects}
    roadmap_ids = {p.id for p in plan.roadmap_projects}
    quarter_start = week_start_of(plan.quarter_start_date)

    for project in plan.technical_projects:
        if project.roadmap_project_id and project.roadmap_project_id not in roadmap_ids:
            issues.append(ValidationIssue(
                kind=IssueKind.UNKNOWN_ROADMAP_PROJECT,
                message=f"{project.name} links to unknown roadmap project {project.roadmap_project_id}",
                project_id=project.id
            ))

    seen = set()
    for allocation in plan.allocations:
        member_id = allocation.team_member_id
        week = allocation.week_start_date

        if allocation.key in seen:
            issues.append(ValidationIssue(
                kind=IssueKind.DUPLICATE_ALLOCATION,
                message=f"More than one allocation for week {week.isoformat()}",
                team_member_id=member_id,
                week_start_date=week
            ))
        seen.add(allocation.key)

        problem = _grid_placement_problem(week, quarter_start, plan.num_weeks)
        if problem:
            issues.append(ValidationIssue(
                kind=IssueKind.OUTSIDE_GRID,
                message=f"Allocation for week {week.isoformat()} {problem}",
                team_member_id=member_id,
                week_start_date=week
            ))

        member = members.get(member_id)
        if member is None:
            issues.append(ValidationIssue(
                kind=IssueKind.UNKNOWN_TEAM_MEMBER,
                message=f"Allocation references unknown team member {member_id}",
                team_member_id=member_id,
                week_start_date=week
            ))

        try:
            allocation.validate()
        except AllocationInvariantError as e:
            kind = (
                IssueKind.OVER_ALLOCATED_WEEK
                if all(0.0 <= a.percentage <= 100.0 for a in allocation.assignments)
                else IssueKind.INVALID_PERCENTAGE
            )
            issues.append(ValidationIssue(
                kind=kind,
                message=str(e),
                team_member_id=member_id,
                week_start_date=week
            ))

        for assignment in allocation.assignments:
            if assignment.is_oncall:
                continue
            project = projects.get(assignment.technical_project_id)
            if project is None:
                issues.append(ValidationIssue(
                    kind=IssueKind.UNKNOWN_PROJECT,
                    message=f"Assignment references unknown technical project {assignment.technical_project_id}",
                    team_member_id=member_id,
                    project_id=assignment.technical_project_id,
                    week_start_date=week
                ))
            elif week < project.start_date:
                who = member.name if member else str(member_id)
                issues.append(ValidationIssue(
                    kind=IssueKind.BEFORE_PROJECT_START,
                    message=(
                        f"{who} is allocated to {project.name} on {week.isoformat()}, "
                        f"before its start on {project.start_date.isoformat()}"
                    ),
                    team_member_id=member_id,
                    project_id=project.id,
                    week_start_date=week
                ))

    for member in preferences.team_members:
        allocated = allocated_weeks(member.id, plan.allocations)
        if allocated > member.capacity:
            issues.append(ValidationIssue(
                kind=IssueKind.OVER_CAPACITY,
                message=f"{member.name} has {allocated:g} weeks allocated against a capacity of {member.capacity:g}",
                team_member_id=member.id
            ))

    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(i.severity == Severity.ERROR for i in issues)
