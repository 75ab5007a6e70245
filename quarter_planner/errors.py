"""
Errors raised by the allocation grid engine.

All of them are local and recoverable: callers decide whether to reject an
edit, show an inline message, or skip the cell.
"""

from datetime import date
from typing import Optional
from uuid import UUID


class GridEngineError(Exception):
    """Base class for planner engine errors."""


class ConfigurationError(GridEngineError, ValueError):
    """Invalid calendar or preferences configuration (sprint length, week count...)."""


class ReferentialIntegrityError(GridEngineError, LookupError):
    """An assignment points at a project that does not exist."""

    def __init__(self, project_id: UUID, message: Optional[str] = None):
        self.project_id = project_id
        super().__init__(message or f"Unknown technical project: {project_id}")


class AllocationInvariantError(GridEngineError, ValueError):
    """An allocation breaks the percentage or uniqueness invariants."""

    def __init__(
        self,
        message: str,
        team_member_id: Optional[UUID] = None,
        week_start_date: Optional[date] = None
    ):
        self.team_member_id = team_member_id
        self.week_start_date = week_start_date
        super().__init__(message)
