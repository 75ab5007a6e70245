"""
Quarter Planner

Allocation grid engine for quarterly team planning: sprint calendar, multi-week
spans, cell states and capacity health.
"""

__version__ = "1.0.0"

from .errors import (
    GridEngineError,
    ConfigurationError,
    ReferentialIntegrityError,
    AllocationInvariantError
)

from .models import (
    ONCALL_PROJECT_ID,
    Role,
    ProjectColor,
    TeamMember,
    RoadmapProject,
    TechnicalProject,
    Assignment,
    Allocation,
    Preferences,
    PlanMetadata,
    PlanState
)

from .calendar import (
    WeekInfo,
    WeekSequence,
    generate_weeks,
    sprint_boundaries
)

from .spans import (
    CellPosition,
    Span,
    detect_spans,
    span_index
)

from .cells import (
    CellKind,
    CellState,
    EmptyCell,
    OncallCell,
    SplitCell,
    SingleProjectCell,
    MultiWeekSpanCell,
    ProjectShare,
    ProjectLookup,
    resolve_cell
)

from .capacity import (
    HealthStatus,
    CapacityCalculator,
    CapacitySummary,
    MemberCapacity,
    ProjectProgress,
    RoadmapProgress,
    allocated_weeks,
    project_allocated_weeks,
    classify_health,
    utilization_percentage,
    utilization_ratio,
    summarize_capacity
)

from .grid import (
    AllocationGrid,
    GridBuilder,
    GridCell,
    GridRow,
    build_allocation_grid
)

from .validation import (
    IssueKind,
    Severity,
    ValidationIssue,
    validate_plan
)

__all__ = [
    # Version
    "__version__",

    # Errors
    "GridEngineError",
    "ConfigurationError",
    "ReferentialIntegrityError",
    "AllocationInvariantError",

    # Models
    "ONCALL_PROJECT_ID",
    "Role",
    "ProjectColor",
    "TeamMember",
    "RoadmapProject",
    "TechnicalProject",
    "Assignment",
    "Allocation",
    "Preferences",
    "PlanMetadata",
    "PlanState",

    # Calendar
    "WeekInfo",
    "WeekSequence",
    "generate_weeks",
    "sprint_boundaries",

    # Spans
    "CellPosition",
    "Span",
    "detect_spans",
    "span_index",

    # Cells
    "CellKind",
    "CellState",
    "EmptyCell",
    "OncallCell",
    "SplitCell",
    "SingleProjectCell",
    "MultiWeekSpanCell",
    "ProjectShare",
    "ProjectLookup",
    "resolve_cell",

    # Capacity
    "HealthStatus",
    "CapacityCalculator",
    "CapacitySummary",
    "MemberCapacity",
    "ProjectProgress",
    "RoadmapProgress",
    "allocated_weeks",
    "project_allocated_weeks",
    "classify_health",
    "utilization_percentage",
    "utilization_ratio",
    "summarize_capacity",

    # Grid
    "AllocationGrid",
    "GridBuilder",
    "GridCell",
    "GridRow",
    "build_allocation_grid",

    # Validation
    "IssueKind",
    "Severity",
    "ValidationIssue",
    "validate_plan",
]
