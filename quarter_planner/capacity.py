"""
Capacity Calculator

Allocated weeks, utilization and health for team members and projects.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterable, Optional
from uuid import UUID

from .models import (
    Allocation,
    PlanState,
    Preferences,
    Role,
    RoadmapProject,
    TeamMember,
    TechnicalProject,
)


# Allowed deviation (in weeks) from capacity or estimate per bucket
HEALTHY_TOLERANCE = 0.5
WARNING_TOLERANCE = 1.0
_FLOAT_SLACK = 1e-9


class HealthStatus(Enum):
    """Allocation health."""
    HEALTHY = "healthy"    # within 0.5 weeks
    WARNING = "warning"    # within 1 week
    CRITICAL = "critical"  # more than 1 week off

    @property
    def emoji(self) -> str:
        return {
            HealthStatus.HEALTHY: "🟢",
            HealthStatus.WARNING: "🟡",
            HealthStatus.CRITICAL: "🔴"
        }[self]


def classify_health(allocated: float, target: float) -> HealthStatus:
    """
    Classify allocated weeks against a capacity or an estimate.

    Both under and over allocation count as deviation.
    """
    diff = abs(allocated - target)
    if diff <= HEALTHY_TOLERANCE + _FLOAT_SLACK:
        return HealthStatus.HEALTHY
    elif diff <= WARNING_TOLERANCE + _FLOAT_SLACK:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL


def allocated_weeks(team_member_id: UUID, allocations: Iterable[Allocation]) -> float:
    """Total weeks allocated to a team member, oncall included."""
    return sum(
        a.total_percentage / 100.0
        for a in allocations
        if a.team_member_id == team_member_id
    )


def project_allocated_weeks(technical_project_id: UUID, allocations: Iterable[Allocation]) -> float:
    """Total weeks allocated to a technical project across all members."""
    return sum(
        assignment.percentage / 100.0
        for allocation in allocations
        for assignment in allocation.assignments
        if assignment.technical_project_id == technical_project_id
    )


def utilization_percentage(allocated: float, capacity: float) -> float:
    """Width of the utilization bar, capped at 100."""
    if capacity <= 0:
        return 0.0
    return min(allocated / capacity, 1.0) * 100


def utilization_ratio(allocated: float, capacity: float) -> float:
    """Uncapped utilization in percent, for the numeric badge."""
    if capacity <= 0:
        return 0.0
    return allocated / capacity * 100


def project_allocated_by_role(
    technical_project_id: UUID,
    allocations: Iterable[Allocation],
    role_of: Callable[[UUID], Optional[Role]]
) -> tuple[float, float, float]:
    """
    Weeks on a technical project split by member role.

    Allocations of members unknown to ``role_of`` are skipped.

    Returns:
        (eng_allocated, sci_allocated, total_allocated)
    """
    eng = 0.0
    sci = 0.0
    for allocation in allocations:
        role = role_of(allocation.team_member_id)
        if role is None:
            continue
        for assignment in allocation.assignments:
            if assignment.technical_project_id != technical_project_id:
                continue
            weeks = assignment.percentage / 100.0
            if role == Role.ENGINEERING:
                eng += weeks
            else:
                sci += weeks
    return (eng, sci, eng + sci)


def roadmap_allocated_by_role(
    roadmap_project_id: UUID,
    technical_projects: Iterable[TechnicalProject],
    allocations: Iterable[Allocation],
    role_of: Callable[[UUID], Optional[Role]]
) -> tuple[float, float, float]:
    """Sum of project_allocated_by_role over linked technical projects."""
    allocations = list(allocations)
    eng = 0.0
    sci = 0.0
    for project in technical_projects:
        if project.roadmap_project_id != roadmap_project_id:
            continue
        p_eng, p_sci, _ = project_allocated_by_role(project.id, allocations, role_of)
        eng += p_eng
        sci += p_sci
    return (eng, sci, eng + sci)


def total_capacity_by_role(team_members: Iterable[TeamMember]) -> tuple[float, float, float]:
    """(eng_capacity, sci_capacity, total_capacity)"""
    eng = sum(m.capacity for m in team_members if m.role == Role.ENGINEERING)
    sci = sum(m.capacity for m in team_members if m.role == Role.SCIENCE)
    return (eng, sci, eng + sci)


def total_allocated_by_role(
    allocations: Iterable[Allocation],
    role_of: Callable[[UUID], Optional[Role]]
) -> tuple[float, float, float]:
    """(eng_allocated, sci_allocated, total_allocated) over known members."""
    eng = 0.0
    sci = 0.0
    for allocation in allocations:
        role = role_of(allocation.team_member_id)
        if role == Role.ENGINEERING:
            eng += allocation.allocated_weeks
        elif role == Role.SCIENCE:
            sci += allocation.allocated_weeks
    return (eng, sci, eng + sci)


@dataclass
class MemberCapacity:
    """Capacity picture for one team member."""
    team_member_id: UUID
    name: str
    role: Role
    capacity: float
    allocated: float

    @property
    def health(self) -> HealthStatus:
        return classify_health(self.allocated, self.capacity)

    @property
    def remaining(self) -> float:
        return self.capacity - self.allocated

    @property
    def utilization_percentage(self) -> float:
        return utilization_percentage(self.allocated, self.capacity)

    @property
    def utilization_ratio(self) -> float:
        return utilization_ratio(self.allocated, self.capacity)

    @property
    def is_over_allocated(self) -> bool:
        return self.allocated > self.capacity

    def to_dict(self) -> dict:
        return {
            "team_member_id": str(self.team_member_id),
            "name": self.name,
            "role": self.role.value,
            "capacity": self.capacity,
            "allocated": round(self.allocated, 2),
            "remaining": round(self.remaining, 2),
            "utilization": {
                "bar_percentage": round(self.utilization_percentage, 1),
                "percentage": round(self.utilization_ratio, 1)
            },
            "health": self.health.value,
            "emoji": self.health.emoji
        }


@dataclass
class ProjectProgress:
    """Allocated vs estimated weeks for a technical project."""
    project_id: UUID
    name: str
    eng_estimate: float
    sci_estimate: float
    eng_allocated: float = 0.0
    sci_allocated: float = 0.0
    # Weeks from members outside the roster still count towards the total
    unattributed_allocated: float = 0.0
    team_member_ids: list[UUID] = field(default_factory=list)
    # First sprint start and last sprint end around the allocated weeks
    sprint_window: Optional[tuple[date, date]] = None

    @property
    def estimate(self) -> float:
        return self.eng_estimate + self.sci_estimate

    @property
    def allocated(self) -> float:
        return self.eng_allocated + self.sci_allocated + self.unattributed_allocated

    @property
    def health(self) -> HealthStatus:
        return classify_health(self.allocated, self.estimate)

    def to_dict(self) -> dict:
        return {
            "project_id": str(self.project_id),
            "name": self.name,
            "estimate": {
                "eng": self.eng_estimate,
                "sci": self.sci_estimate,
                "total": self.estimate
            },
            "allocated": {
                "eng": round(self.eng_allocated, 2),
                "sci": round(self.sci_allocated, 2),
                "total": round(self.allocated, 2)
            },
            "assigned_members": len(self.team_member_ids),
            "sprint_window": {
                "start_date": self.sprint_window[0].isoformat(),
                "end_date": self.sprint_window[1].isoformat()
            } if self.sprint_window else None,
            "health": self.health.value
        }


@dataclass
class RoadmapProgress:
    """Allocated vs estimated weeks for a roadmap project, per role."""
    project_id: UUID
    name: str
    eng_estimate: float
    sci_estimate: float
    eng_allocated: float = 0.0
    sci_allocated: float = 0.0

    @property
    def estimate(self) -> float:
        return self.eng_estimate + self.sci_estimate

    @property
    def allocated(self) -> float:
        return self.eng_allocated + self.sci_allocated

    @property
    def eng_health(self) -> HealthStatus:
        return classify_health(self.eng_allocated, self.eng_estimate)

    @property
    def sci_health(self) -> HealthStatus:
        return classify_health(self.sci_allocated, self.sci_estimate)

    @property
    def health(self) -> HealthStatus:
        return classify_health(self.allocated, self.estimate)

    def to_dict(self) -> dict:
        return {
            "project_id": str(self.project_id),
            "name": self.name,
            "eng": {
                "estimate": self.eng_estimate,
                "allocated": round(self.eng_allocated, 2),
                "health": self.eng_health.value
            },
            "sci": {
                "estimate": self.sci_estimate,
                "allocated": round(self.sci_allocated, 2),
                "health": self.sci_health.value
            },
            "total": {
                "estimate": self.estimate,
                "allocated": round(self.allocated, 2),
                "health": self.health.value
            }
        }


@dataclass
class CapacitySummary:
    """Team-wide capacity summary for header badges."""
    members: list[MemberCapacity] = field(default_factory=list)
    projects: list[ProjectProgress] = field(default_factory=list)
    roadmap: list[RoadmapProgress] = field(default_factory=list)
    capacity_by_role: tuple[float, float, float] = (0.0, 0.0, 0.0)
    allocated_by_role: tuple[float, float, float] = (0.0, 0.0, 0.0)
    calculated_at: datetime = field(default_factory=datetime.now)

    @property
    def team_size(self) -> int:
        return len(self.members)

    def count(self, status: HealthStatus) -> int:
        return len([m for m in self.members if m.health == status])

    @property
    def healthy_count(self) -> int:
        return self.count(HealthStatus.HEALTHY)

    @property
    def warning_count(self) -> int:
        return self.count(HealthStatus.WARNING)

    @property
    def critical_count(self) -> int:
        return self.count(HealthStatus.CRITICAL)

    @property
    def total_capacity(self) -> float:
        return self.capacity_by_role[2]

    @property
    def total_allocated(self) -> float:
        return self.allocated_by_role[2]

    @property
    def team_utilization(self) -> float:
        return utilization_ratio(self.total_allocated, self.total_capacity)

    def get_member(self, team_member_id: UUID) -> Optional[MemberCapacity]:
        return next((m for m in self.members if m.team_member_id == team_member_id), None)

    def get_most_over_allocated(self, n: int = 3) -> list[MemberCapacity]:
        """The N members with the least remaining capacity."""
        return sorted(self.members, key=lambda m: m.remaining)[:n]

    def get_available_capacity(self, n: int = 3) -> list[MemberCapacity]:
        """The N members with the most remaining capacity."""
        return sorted(self.members, key=lambda m: m.remaining, reverse=True)[:n]

    def to_dict(self) -> dict:
        eng_cap, sci_cap, total_cap = self.capacity_by_role
        eng_alloc, sci_alloc, total_alloc = self.allocated_by_role
        return {
            "calculated_at": self.calculated_at.isoformat(),
            "summary": {
                "team_size": self.team_size,
                "healthy": self.healthy_count,
                "warning": self.warning_count,
                "critical": self.critical_count,
                "capacity": {"eng": eng_cap, "sci": sci_cap, "total": total_cap},
                "allocated": {
                    "eng": round(eng_alloc, 2),
                    "sci": round(sci_alloc, 2),
                    "total": round(total_alloc, 2)
                },
                "utilization": round(self.team_utilization, 1)
            },
            "members": [m.to_dict() for m in self.members],
            "projects": [p.to_dict() for p in self.projects],
            "roadmap": [r.to_dict() for r in self.roadmap]
        }


class CapacityCalculator:
    """
    Summarizes a plan's allocations against the team roster.

    Usage:
        calculator = CapacityCalculator()
        summary = calculator.summarize(preferences, plan)
    """

    def member_capacity(self, member: TeamMember, allocations: Iterable[Allocation]) -> MemberCapacity:
        return MemberCapacity(
            team_member_id=member.id,
            name=member.name,
            role=member.role,
            capacity=member.capacity,
            allocated=allocated_weeks(member.id, allocations)
        )

    def project_progress(
        self,
        project: TechnicalProject,
        allocations: Iterable[Allocation],
        role_of: Callable[[UUID], Optional[Role]]
    ) -> ProjectProgress:
        allocations = list(allocations)
        eng, sci, attributed = project_allocated_by_role(project.id, allocations, role_of)
        total = project_allocated_weeks(project.id, allocations)
        return ProjectProgress(
            project_id=project.id,
            name=project.name,
            eng_estimate=project.eng_estimate,
            sci_estimate=project.sci_estimate,
            eng_allocated=eng,
            sci_allocated=sci,
            unattributed_allocated=max(0.0, total - attributed)
        )

    def roadmap_progress(
        self,
        roadmap_project: RoadmapProject,
        plan: PlanState,
        role_of: Callable[[UUID], Optional[Role]]
    ) -> RoadmapProgress:
        eng, sci, _ = roadmap_allocated_by_role(
            roadmap_project.id, plan.technical_projects, plan.allocations, role_of
        )
        return RoadmapProgress(
            project_id=roadmap_project.id,
            name=roadmap_project.name,
            eng_estimate=roadmap_project.eng_estimate,
            sci_estimate=roadmap_project.sci_estimate,
            eng_allocated=eng,
            sci_allocated=sci
        )

    def summarize(self, preferences: Preferences, plan: PlanState) -> CapacitySummary:
        """
        Build the capacity summary for a roster and a quarter plan.

        Members keep roster order; projects keep plan order.
        """
        role_of = preferences.role_of

        projects = []
        for project in plan.technical_projects:
            progress = self.project_progress(project, plan.allocations, role_of)
            progress.team_member_ids = plan.assigned_team_members(project.id)
            progress.sprint_window = plan.project_sprint_window(
                project.id, preferences.sprint_anchor_date, preferences.sprint_length_weeks
            )
            projects.append(progress)

        return CapacitySummary(
            members=[self.member_capacity(m, plan.allocations) for m in preferences.team_members],
            projects=projects,
            roadmap=[self.roadmap_progress(r, plan, role_of) for r in plan.roadmap_projects],
            capacity_by_role=total_capacity_by_role(preferences.team_members),
            allocated_by_role=total_allocated_by_role(plan.allocations, role_of)
        )


# Convenience function
def summarize_capacity(preferences: Preferences, plan: PlanState) -> CapacitySummary:
    """
    Quick function to summarize team capacity.

    Example:
        summary = summarize_capacity(preferences, plan)
        for member in summary.get_most_over_allocated():
            print(f"  {member.name}: {member.allocated}/{member.capacity} weeks")
    """
    return CapacityCalculator().summarize(preferences, plan)
