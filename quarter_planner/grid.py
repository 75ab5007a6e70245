"""
Allocation Grid

Runs the calendar, span detector, cell resolver and capacity calculator over
a preferences + plan snapshot and returns the full grid.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from uuid import UUID

from .calendar import WeekInfo, WeekSequence, generate_weeks
from .capacity import CapacityCalculator, MemberCapacity
from .cells import CellState, ProjectLookup, resolve_cell
from .errors import GridEngineError
from .models import Allocation, PlanState, Preferences, TeamMember
from .spans import Span, detect_spans, span_index


logger = logging.getLogger(__name__)


@dataclass
class GridCell:
    """A resolved cell; ``error`` is set instead of ``state`` in best-effort mode."""
    week: WeekInfo
    state: Optional[CellState] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        return {
            "week_start": self.week.start_date.isoformat(),
            "state": self.state.to_dict() if self.state is not None else None,
            "error": self.error
        }


@dataclass
class GridRow:
    """One team member's row."""
    member: TeamMember
    capacity: MemberCapacity
    cells: list[GridCell] = field(default_factory=list)
    spans: list[Span] = field(default_factory=list)
    project_names: list[str] = field(default_factory=list)

    def cell_for(self, week_start: date) -> Optional[GridCell]:
        return next((c for c in self.cells if c.week.start_date == week_start), None)

    def to_dict(self) -> dict:
        return {
            "member": self.member.to_dict(),
            "capacity": self.capacity.to_dict(),
            "cells": [c.to_dict() for c in self.cells],
            "spans": [s.to_dict() for s in self.spans if s.is_multi_week],
            "projects": self.project_names
        }


@dataclass
class AllocationGrid:
    """Weeks across, team members down."""
    weeks: WeekSequence
    rows: list[GridRow] = field(default_factory=list)

    @property
    def errors(self) -> list[tuple[UUID, GridCell]]:
        return [
            (row.member.id, cell)
            for row in self.rows
            for cell in row.cells
            if cell.is_error
        ]

    def row_for(self, team_member_id: UUID) -> Optional[GridRow]:
        return next((r for r in self.rows if r.member.id == team_member_id), None)

    def cell(self, team_member_id: UUID, week_start: date) -> Optional[GridCell]:
        row = self.row_for(team_member_id)
        return row.cell_for(week_start) if row else None

    def to_dict(self) -> dict:
        return {
            "weeks": self.weeks.to_list(),
            "rows": [r.to_dict() for r in self.rows],
            "error_count": len(self.errors)
        }


class GridBuilder:
    """
    Builds the allocation grid for a quarter.

    Usage:
        builder = GridBuilder()
        grid = builder.build(preferences, plan)

    In strict mode the first engine error propagates. With best_effort=True
    a failing cell records the error, is logged and the rest of the grid is
    still built.
    """

    def __init__(self, best_effort: bool = False):
        self.best_effort = best_effort
        self.calculator = CapacityCalculator()

    def weeks_for(self, preferences: Preferences, plan: PlanState) -> WeekSequence:
        return generate_weeks(
            plan.quarter_start_date,
            plan.num_weeks,
            preferences.sprint_anchor_date,
            preferences.sprint_length_weeks
        )

    def build_row(
        self,
        member: TeamMember,
        weeks: WeekSequence,
        allocations: list[Allocation],
        lookup: ProjectLookup
    ) -> GridRow:
        """Resolve every cell of one member's row."""
        row = GridRow(
            member=member,
            capacity=self.calculator.member_capacity(member, allocations)
        )
        by_week = {a.week_start_date: a for a in allocations}

        for allocation in allocations:
            if weeks.find(allocation.week_start_date) is None:
                logger.warning(
                    "Allocation for %s on %s is not on a week of the quarter",
                    member.name, allocation.week_start_date.isoformat()
                )

        try:
            row.spans = detect_spans(allocations, weeks)
        except GridEngineError as e:
            if not self.best_effort:
                raise
            logger.warning("Span detection failed for %s: %s", member.name, e)
            row.spans = []
        spans = span_index(row.spans)

        for week in weeks:
            try:
                state = resolve_cell(
                    member.id,
                    week,
                    by_week.get(week.start_date),
                    spans.get(week.start_date),
                    lookup
                )
                row.cells.append(GridCell(week=week, state=state))
            except GridEngineError as e:
                if not self.best_effort:
                    raise
                logger.warning(
                    "Skipping cell (%s, %s): %s",
                    member.name, week.start_date.isoformat(), e
                )
                row.cells.append(GridCell(week=week, error=str(e)))

        return row

    def build(self, preferences: Preferences, plan: PlanState) -> AllocationGrid:
        """
        Build the grid for every team member in roster order.

        Raises:
            ConfigurationError: invalid quarter or sprint configuration
            ReferentialIntegrityError: unknown project (strict mode)
            AllocationInvariantError: bad percentages or duplicate weeks (strict mode)
        """
        weeks = self.weeks_for(preferences, plan)
        lookup = ProjectLookup.from_plan(plan)

        # Duplicate (member, week) keys fail before any row is built
        if not self.best_effort:
            plan.allocation_map()

        grid = AllocationGrid(weeks=weeks)
        for member in preferences.team_members:
            row = self.build_row(
                member,
                weeks,
                plan.allocations_for_member(member.id),
                lookup
            )
            row.project_names = plan.assigned_project_names(member.id)
            grid.rows.append(row)

        if grid.errors:
            logger.warning("Built grid for %s with %d unresolved cells", plan.quarter_name, len(grid.errors))
        else:
            logger.debug("Built grid for %s: %d rows x %d weeks", plan.quarter_name, len(grid.rows), len(weeks))
        return grid


# Convenience function
def build_allocation_grid(
    preferences: Preferences,
    plan: PlanState,
    best_effort: bool = False
) -> AllocationGrid:
    """
    Quick function to build the allocation grid.

    Example:
        grid = build_allocation_grid(preferences, plan)
        for row in grid.rows:
            print(row.member.name, [c.state.kind.value for c in row.cells])
    """
    return GridBuilder(best_effort=best_effort).build(preferences, plan)
