"""Domain models for Productive sprint report processing.

Entity dataclasses model only the subset of JSON:API attributes and
relationships required for aggregation. Result dataclasses carry the engine's
outputs to the row builders and renderers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional


@dataclass(frozen=True, slots=True)
class Task:
    """Represents one work item in a task list."""

    id: str
    title: str
    initial_estimate_minutes: int = 0
    remaining_time_minutes: int = 0
    created_at: Optional[datetime] = None
    responsible_person_id: Optional[str] = None
    assignee_person_id: Optional[str] = None
    workflow_status_id: Optional[str] = None
    task_list_id: Optional[str] = None

    @property
    def has_estimate(self) -> bool:
        return self.initial_estimate_minutes > 0


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """Represents logged work against a task."""

    id: str
    date: date
    minutes: int
    person_id: Optional[str] = None
    task_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Person:
    """Represents a Productive person with the name fields used for display."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def name_rank(self) -> int:
        """Completeness of the display name: 3 first name, 2 last name, 1 email, 0 none."""
        if self.first_name:
            return 3
        if self.last_name:
            return 2
        if self.email:
            return 1
        return 0

    @property
    def display_name(self) -> str:
        return self.first_name or self.last_name or self.email or f"#{self.id}"


@dataclass(frozen=True, slots=True)
class WorkflowStatus:
    """Represents a workflow status id to name mapping."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class TaskList:
    """Represents a task list (sprint) whose name encodes its date range."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Project:
    """Represents a Productive project available for selection."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Board:
    """Represents a board (folder) grouping task lists within a project."""

    id: str
    name: str
    project_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SprintWindow:
    """Inclusive calendar date range of a sprint."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True, slots=True)
class EffortTotals:
    """Per-person initial estimate, worked and remaining minutes."""

    initial: int = 0
    worked: int = 0
    remaining: int = 0


@dataclass(frozen=True, slots=True)
class ScopeSplit:
    """Estimate minutes and task counts planned before vs added after sprint start."""

    planned_minutes: int = 0
    added_minutes: int = 0
    planned_tasks: int = 0
    added_tasks: int = 0


@dataclass(frozen=True, slots=True)
class StatusBreakdown:
    """Worked and remaining minutes per workflow status at sprint end."""

    worked_minutes: Dict[str, int] = field(default_factory=dict)
    remaining_minutes: Dict[str, int] = field(default_factory=dict)
    remaining_task_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.worked_minutes and not self.remaining_minutes


@dataclass(frozen=True, slots=True)
class RemainingByStatus:
    """Open task count and remaining minutes for one workflow status."""

    task_count: int
    remaining_minutes: int


@dataclass(frozen=True, slots=True)
class BurndownPoint:
    """One business date of a burndown series, in minutes."""

    date: date
    estimated: float
    actual: Optional[float] = None


@dataclass(frozen=True, slots=True)
class CompletionRatio:
    """Numerator/denominator pair shown as a KPI with its rounded percentage."""

    done: float
    total: float

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        return int(math.floor(self.done / self.total * 100 + 0.5))


@dataclass(frozen=True, slots=True)
class SprintKpis:
    """Completion KPIs of a sprint for one burndown mode."""

    days: CompletionRatio
    tasks: CompletionRatio
    hours: CompletionRatio
    scope_added_hours: float
    scope_planned_hours: float
    scope: ScopeSplit


@dataclass(frozen=True, slots=True)
class DevRisk:
    """Capacity risk classification of one person."""

    person: str
    remaining_hours: float
    capacity_left_hours: float
    days_left: int
    status: str


@dataclass(frozen=True, slots=True)
class TaskRisk:
    """A task that makes up a large share of an at-risk person's remaining work."""

    task_id: str
    task_name: str
    person: str
    task_remaining_hours: float
    dev_remaining_hours: float
    share_of_dev_remaining: float
    severity: str


@dataclass(frozen=True, slots=True)
class RiskReport:
    """Person-level and task-level risk callouts for the remaining sprint days."""

    dev_risks: List[DevRisk]
    task_risks: List[TaskRisk]
    days_left: int
    capacity_per_day_hours: float

