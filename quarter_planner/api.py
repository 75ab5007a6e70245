"""
FastAPI Backend for Quarter Planner

Serves the allocation grid, week calendar and capacity figures for plan
snapshots posted by the client. Nothing is stored server side.
"""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .calendar import generate_weeks
from .capacity import CapacityCalculator
from .config import Config
from .errors import (
    AllocationInvariantError,
    ConfigurationError,
    GridEngineError,
    ReferentialIntegrityError,
)
from .grid import GridBuilder
from .models import (
    DEFAULT_CAPACITY_WEEKS,
    Allocation,
    Assignment,
    PlanState,
    Preferences,
    ProjectColor,
    RoadmapProject,
    Role,
    TeamMember,
    TechnicalProject,
)
from .validation import has_errors, validate_plan


logger = logging.getLogger(__name__)

# Global instances
config = Config()
calculator = CapacityCalculator()


# Pydantic models for API
class TeamMemberIn(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    role: Role = Role.ENGINEERING
    capacity: float = Field(default=DEFAULT_CAPACITY_WEEKS, ge=0)

    def to_domain(self) -> TeamMember:
        return TeamMember(id=self.id, name=self.name, role=self.role, capacity=self.capacity)


class RoadmapProjectIn(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    eng_estimate: float = 0.0
    sci_estimate: float = 0.0
    start_date: date
    launch_date: date
    color: ProjectColor = ProjectColor.BLUE
    notes: Optional[str] = None

    def to_domain(self) -> RoadmapProject:
        return RoadmapProject(**self.model_dump())


class TechnicalProjectIn(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    roadmap_project_id: Optional[UUID] = None
    eng_estimate: float = 0.0
    sci_estimate: float = 0.0
    start_date: date
    expected_completion: Optional[date] = None
    notes: Optional[str] = None

    def to_domain(self) -> TechnicalProject:
        return TechnicalProject(**self.model_dump())


class AssignmentIn(BaseModel):
    technical_project_id: UUID
    percentage: float = 100.0


class AllocationIn(BaseModel):
    team_member_id: UUID
    week_start_date: date
    assignments: list[AssignmentIn] = Field(default_factory=list)

    def to_domain(self) -> Allocation:
        return Allocation(
            team_member_id=self.team_member_id,
            week_start_date=self.week_start_date,
            assignments=[
                Assignment(technical_project_id=a.technical_project_id, percentage=a.percentage)
                for a in self.assignments
            ]
        )


class PreferencesIn(BaseModel):
    team_name: Optional[str] = None
    team_members: list[TeamMemberIn] = Field(default_factory=list)
    sprint_anchor_date: Optional[date] = None
    sprint_length_weeks: Optional[int] = None
    default_capacity: Optional[float] = None

    def to_domain(self) -> Preferences:
        """Missing settings fall back to the configured defaults."""
        preferences = Preferences(
            team_name=self.team_name if self.team_name is not None else config.team_name,
            team_members=[m.to_domain() for m in self.team_members],
            sprint_anchor_date=self.sprint_anchor_date or config.sprint_anchor_date,
            sprint_length_weeks=(
                self.sprint_length_weeks
                if self.sprint_length_weeks is not None
                else config.sprint_length_weeks
            ),
            default_capacity=(
                self.default_capacity
                if self.default_capacity is not None
                else config.default_capacity
            )
        )
        preferences.validate()
        return preferences


class PlanIn(BaseModel):
    quarter_name: str
    quarter_start_date: date
    num_weeks: Optional[int] = None
    roadmap_projects: list[RoadmapProjectIn] = Field(default_factory=list)
    technical_projects: list[TechnicalProjectIn] = Field(default_factory=list)
    allocations: list[AllocationIn] = Field(default_factory=list)

    def to_domain(self) -> PlanState:
        return PlanState(
            quarter_name=self.quarter_name,
            quarter_start_date=self.quarter_start_date,
            num_weeks=self.num_weeks if self.num_weeks is not None else config.weeks_in_quarter,
            roadmap_projects=[p.to_domain() for p in self.roadmap_projects],
            technical_projects=[p.to_domain() for p in self.technical_projects],
            allocations=[a.to_domain() for a in self.allocations]
        )


class PlanSnapshot(BaseModel):
    preferences: PreferencesIn = Field(default_factory=PreferencesIn)
    plan: PlanIn


class WeeksRequest(BaseModel):
    quarter_start: date
    week_count: Optional[int] = None
    sprint_anchor: Optional[date] = None
    sprint_length: Optional[int] = None


def _to_http_error(e: GridEngineError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ReferentialIntegrityError):
        return HTTPException(
            status_code=422,
            detail={"error": "unknown_project", "project_id": str(e.project_id), "message": str(e)}
        )
    if isinstance(e, AllocationInvariantError):
        return HTTPException(
            status_code=422,
            detail={
                "error": "invalid_allocation",
                "team_member_id": str(e.team_member_id) if e.team_member_id else None,
                "week_start_date": e.week_start_date.isoformat() if e.week_start_date else None,
                "message": str(e)
            }
        )
    return HTTPException(status_code=500, detail=str(e))


# Lifespan context manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    config.configure_logging()
    logger.info("Quarter Planner API starting up (team %s)", config.team_name)
    yield
    logger.info("Quarter Planner API shutting down")


# Create FastAPI app
app = FastAPI(
    title="Quarter Planner",
    description="Allocation grid, sprint calendar and capacity health for quarterly team plans",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "config": {
            "team_name": config.team_name,
            "sprint_length_weeks": config.sprint_length_weeks
        }
    }


@app.post("/api/weeks")
async def get_weeks(request: WeeksRequest):
    """Week and sprint calendar for a quarter."""
    try:
        weeks = generate_weeks(
            request.quarter_start,
            request.week_count if request.week_count is not None else config.weeks_in_quarter,
            request.sprint_anchor or config.sprint_anchor_date,
            request.sprint_length if request.sprint_length is not None else config.sprint_length_weeks
        )
        return {"weeks": weeks.to_list()}
    except GridEngineError as e:
        raise _to_http_error(e)


@app.post("/api/grid")
async def get_grid(snapshot: PlanSnapshot, best_effort: bool = False):
    """Resolve every cell of the allocation grid."""
    try:
        preferences = snapshot.preferences.to_domain()
        plan = snapshot.plan.to_domain()
        grid = GridBuilder(best_effort=best_effort).build(preferences, plan)
        return grid.to_dict()
    except GridEngineError as e:
        raise _to_http_error(e)


@app.post("/api/capacity")
async def get_capacity(snapshot: PlanSnapshot):
    """Capacity and health per member and project."""
    try:
        preferences = snapshot.preferences.to_domain()
        plan = snapshot.plan.to_domain()
        return calculator.summarize(preferences, plan).to_dict()
    except GridEngineError as e:
        raise _to_http_error(e)


@app.post("/api/validate")
async def validate(snapshot: PlanSnapshot):
    """List integrity and capacity issues in a plan."""
    try:
        preferences = snapshot.preferences.to_domain()
        plan = snapshot.plan.to_domain()
    except GridEngineError as e:
        raise _to_http_error(e)

    issues = validate_plan(preferences, plan)
    return {
        "valid": not has_errors(issues),
        "count": len(issues),
        "issues": [i.to_dict() for i in issues]
    }


# Run with: uvicorn quarter_planner.api:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
