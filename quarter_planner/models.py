"""
Planner Data Model

Team roster, projects and weekly allocations. The grid engine only reads these
records; roster management and plan storage own them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .calendar import sprint_boundaries
from .errors import AllocationInvariantError, ConfigurationError


# Reserved project id used for on-call weeks
ONCALL_PROJECT_ID = UUID(int=0)

# Tolerance for floating point percentage comparisons
PERCENTAGE_EPSILON = 0.01

DEFAULT_SPRINT_ANCHOR = date(2024, 1, 1)
DEFAULT_SPRINT_LENGTH_WEEKS = 2
DEFAULT_CAPACITY_WEEKS = 12.0
DEFAULT_TEAM_NAME = "My Team"
MAX_SPRINT_LENGTH_WEEKS = 4
PLAN_FORMAT_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(Enum):
    """Team member role."""
    ENGINEERING = "eng"
    SCIENCE = "sci"

    @property
    def short_name(self) -> str:
        """Badge label, e.g. "SDE"."""
        return {
            Role.ENGINEERING: "SDE",
            Role.SCIENCE: "AS"
        }[self]


class ProjectColor(Enum):
    """Project color palette for the allocation grid."""
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"
    PURPLE = "purple"
    PINK = "pink"
    TEAL = "teal"
    INDIGO = "indigo"

    @property
    def hex(self) -> str:
        return {
            ProjectColor.BLUE: "#5AC8FA",
            ProjectColor.GREEN: "#4ADE80",
            ProjectColor.YELLOW: "#FBBF24",
            ProjectColor.ORANGE: "#FB923C",
            ProjectColor.RED: "#F472B6",
            ProjectColor.PURPLE: "#A78BFA",
            ProjectColor.PINK: "#E879F9",
            ProjectColor.TEAL: "#2DD4BF",
            ProjectColor.INDIGO: "#818CF8"
        }[self]


@dataclass
class TeamMember:
    """An engineer or scientist with a quarterly capacity in weeks."""
    name: str
    role: Role = Role.ENGINEERING
    capacity: float = DEFAULT_CAPACITY_WEEKS
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "role": self.role.value,
            "role_short": self.role.short_name,
            "capacity": self.capacity
        }


@dataclass
class RoadmapProject:
    """High-level initiative; carries the color its technical projects inherit."""
    name: str
    start_date: date
    launch_date: date
    eng_estimate: float = 0.0
    sci_estimate: float = 0.0
    color: ProjectColor = ProjectColor.BLUE
    notes: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    @property
    def total_estimate(self) -> float:
        return self.eng_estimate + self.sci_estimate

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "eng_estimate": self.eng_estimate,
            "sci_estimate": self.sci_estimate,
            "start_date": self.start_date.isoformat(),
            "launch_date": self.launch_date.isoformat(),
            "color": self.color.value,
            "notes": self.notes
        }


@dataclass
class TechnicalProject:
    """Implementation work that allocations are made against."""
    name: str
    start_date: date
    roadmap_project_id: Optional[UUID] = None
    eng_estimate: float = 0.0
    sci_estimate: float = 0.0
    expected_completion: Optional[date] = None
    notes: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    @property
    def total_estimate(self) -> float:
        return self.eng_estimate + self.sci_estimate

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "roadmap_project_id": str(self.roadmap_project_id) if self.roadmap_project_id else None,
            "eng_estimate": self.eng_estimate,
            "sci_estimate": self.sci_estimate,
            "start_date": self.start_date.isoformat(),
            "expected_completion": self.expected_completion.isoformat() if self.expected_completion else None,
            "notes": self.notes
        }


@dataclass
class Assignment:
    """Share of one week given to a technical project (0-100)."""
    technical_project_id: UUID
    percentage: float = 100.0

    @classmethod
    def oncall(cls) -> "Assignment":
        return cls(technical_project_id=ONCALL_PROJECT_ID, percentage=100.0)

    @property
    def is_oncall(self) -> bool:
        return self.technical_project_id == ONCALL_PROJECT_ID

    @property
    def is_full_week(self) -> bool:
        return abs(self.percentage - 100.0) < PERCENTAGE_EPSILON

    def to_dict(self) -> dict:
        return {
            "technical_project_id": str(self.technical_project_id),
            "percentage": self.percentage
        }


@dataclass
class Allocation:
    """
    One team member's assignments for one week.

    Keyed by (team_member_id, week_start_date). Usually a single 100%
    assignment or two assignments that add up to 100.
    """
    team_member_id: UUID
    week_start_date: date
    assignments: list[Assignment] = field(default_factory=list)

    @property
    def key(self) -> tuple[UUID, date]:
        return (self.team_member_id, self.week_start_date)

    @property
    def total_percentage(self) -> float:
        return sum(a.percentage for a in self.assignments)

    @property
    def is_empty(self) -> bool:
        return not self.assignments

    @property
    def is_full(self) -> bool:
        return abs(self.total_percentage - 100.0) < PERCENTAGE_EPSILON

    @property
    def is_oncall(self) -> bool:
        return len(self.assignments) == 1 and self.assignments[0].is_oncall

    @property
    def is_single_full_week(self) -> bool:
        """Exactly one non-oncall assignment at 100%."""
        return (
            len(self.assignments) == 1
            and not self.assignments[0].is_oncall
            and self.assignments[0].is_full_week
        )

    @property
    def allocated_weeks(self) -> float:
        return self.total_percentage / 100.0

    def validate(self) -> None:
        """Raise AllocationInvariantError when percentages are out of range."""
        for assignment in self.assignments:
            if not 0.0 <= assignment.percentage <= 100.0:
                raise AllocationInvariantError(
                    f"Assignment percentage must be between 0 and 100, got {assignment.percentage}",
                    team_member_id=self.team_member_id,
                    week_start_date=self.week_start_date
                )
        if self.total_percentage > 100.0 + PERCENTAGE_EPSILON:
            raise AllocationInvariantError(
                f"Assignments for week {self.week_start_date.isoformat()} sum to "
                f"{self.total_percentage:g}%, more than 100%",
                team_member_id=self.team_member_id,
                week_start_date=self.week_start_date
            )

    def to_dict(self) -> dict:
        return {
            "team_member_id": str(self.team_member_id),
            "week_start_date": self.week_start_date.isoformat(),
            "assignments": [a.to_dict() for a in self.assignments]
        }


@dataclass
class Preferences:
    """Long-lived team settings shared across quarters."""
    team_name: str = DEFAULT_TEAM_NAME
    team_members: list[TeamMember] = field(default_factory=list)
    sprint_anchor_date: date = DEFAULT_SPRINT_ANCHOR
    sprint_length_weeks: int = DEFAULT_SPRINT_LENGTH_WEEKS
    default_capacity: float = DEFAULT_CAPACITY_WEEKS

    def get_team_member(self, member_id: UUID) -> Optional[TeamMember]:
        return next((m for m in self.team_members if m.id == member_id), None)

    def role_of(self, member_id: UUID) -> Optional[Role]:
        member = self.get_team_member(member_id)
        return member.role if member else None

    def validate(self) -> None:
        """Raise ConfigurationError for unusable settings."""
        if not self.team_name.strip():
            raise ConfigurationError("Team name must not be empty")
        if (
            not isinstance(self.sprint_length_weeks, int)
            or not 1 <= self.sprint_length_weeks <= MAX_SPRINT_LENGTH_WEEKS
        ):
            raise ConfigurationError(
                f"Sprint length must be between 1 and {MAX_SPRINT_LENGTH_WEEKS} weeks, "
                f"got {self.sprint_length_weeks}"
            )
        if self.default_capacity <= 0:
            raise ConfigurationError(
                f"Default capacity must be positive, got {self.default_capacity}"
            )

    def to_dict(self) -> dict:
        return {
            "team_name": self.team_name,
            "team_members": [m.to_dict() for m in self.team_members],
            "sprint_anchor_date": self.sprint_anchor_date.isoformat(),
            "sprint_length_weeks": self.sprint_length_weeks,
            "default_capacity": self.default_capacity
        }


@dataclass
class PlanMetadata:
    """Format version and audit timestamps for a plan."""
    version: str = PLAN_FORMAT_VERSION
    created_at: datetime = field(default_factory=_utcnow)
    modified_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat()
        }


@dataclass
class PlanState:
    """Planning data for a single quarter."""
    quarter_name: str
    quarter_start_date: date
    num_weeks: int = 13
    roadmap_projects: list[RoadmapProject] = field(default_factory=list)
    technical_projects: list[TechnicalProject] = field(default_factory=list)
    allocations: list[Allocation] = field(default_factory=list)
    metadata: PlanMetadata = field(default_factory=PlanMetadata)

    def get_roadmap_project(self, project_id: UUID) -> Optional[RoadmapProject]:
        return next((p for p in self.roadmap_projects if p.id == project_id), None)

    def get_technical_project(self, project_id: UUID) -> Optional[TechnicalProject]:
        return next((p for p in self.technical_projects if p.id == project_id), None)

    def allocations_for_member(self, team_member_id: UUID) -> list[Allocation]:
        return [a for a in self.allocations if a.team_member_id == team_member_id]

    def allocation_map(self) -> dict[tuple[UUID, date], Allocation]:
        """
        Index allocations by (team member, week start).

        Raises:
            AllocationInvariantError: two allocations share a key
        """
        index: dict[tuple[UUID, date], Allocation] = {}
        for allocation in self.allocations:
            if allocation.key in index:
                raise AllocationInvariantError(
                    f"Duplicate allocation for week {allocation.week_start_date.isoformat()}",
                    team_member_id=allocation.team_member_id,
                    week_start_date=allocation.week_start_date
                )
            index[allocation.key] = allocation
        return index

    def assigned_team_members(self, technical_project_id: UUID) -> list[UUID]:
        """Unique ids of members with any assignment to the project, sorted."""
        member_ids = {
            a.team_member_id
            for a in self.allocations
            if any(x.technical_project_id == technical_project_id for x in a.assignments)
        }
        return sorted(member_ids)

    def project_allocation_date_range(
        self,
        technical_project_id: UUID
    ) -> Optional[tuple[date, date]]:
        """First and last allocated week for a project, or None."""
        weeks = [
            a.week_start_date
            for a in self.allocations
            if any(x.technical_project_id == technical_project_id for x in a.assignments)
        ]
        if not weeks:
            return None
        return (min(weeks), max(weeks))

    def project_sprint_window(
        self,
        technical_project_id: UUID,
        sprint_anchor: date,
        sprint_length: int
    ) -> Optional[tuple[date, date]]:
        """
        Start of the sprint holding the project's first allocated week and end
        of the sprint holding its last one.

        Returns:
            (start_date, expected_completion), or None without allocations
        """
        allocated = self.project_allocation_date_range(technical_project_id)
        if allocated is None:
            return None
        first_week, last_week = allocated
        start, _ = sprint_boundaries(first_week, sprint_anchor, sprint_length)
        _, end = sprint_boundaries(last_week, sprint_anchor, sprint_length)
        return (start, end)

    def update_technical_project_dates(
        self,
        technical_project_id: UUID,
        sprint_anchor: date,
        sprint_length: int
    ) -> bool:
        """
        Move a project's start_date and expected_completion to its sprint window.

        Call after editing the project's allocations. Dates are left alone when
        the project has no allocations.

        Returns:
            True if the project was updated
        """
        project = self.get_technical_project(technical_project_id)
        window = self.project_sprint_window(technical_project_id, sprint_anchor, sprint_length)
        if project is None or window is None:
            return False
        project.start_date, project.expected_completion = window
        self.metadata.modified_at = _utcnow()
        return True

    def assigned_project_names(self, team_member_id: UUID) -> list[str]:
        """Sorted names of the technical projects a member works on."""
        names = set()
        for allocation in self.allocations_for_member(team_member_id):
            for assignment in allocation.assignments:
                project = self.get_technical_project(assignment.technical_project_id)
                if project:
                    names.add(project.name)
        return sorted(names)

    def to_dict(self) -> dict:
        return {
            "quarter_name": self.quarter_name,
            "quarter_start_date": self.quarter_start_date.isoformat(),
            "num_weeks": self.num_weeks,
            "roadmap_projects": [p.to_dict() for p in self.roadmap_projects],
            "technical_projects": [p.to_dict() for p in self.technical_projects],
            "allocations": [a.to_dict() for a in self.allocations],
            "metadata": self.metadata.to_dict()
        }
