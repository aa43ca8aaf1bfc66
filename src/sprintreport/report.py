"""Fetch-and-aggregate pipeline for one or many sprints (task lists).

A single pipeline serves both the current-sprint dashboard and the
multi-sprint history: loading one task list is the one-element case of
loading many.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .config import Config
from .engine import (
    MODE_SPRINT,
    MODE_TOTAL,
    aggregate_effort_by_person,
    breakdown_by_status,
    burndown_floor,
    burndown_series,
    estimate_minutes_by_person,
    remaining_by_status,
    scope_split,
    split_worked_minutes_by_task,
    sprint_kpis,
    velocity_minutes_by_person,
    worked_minutes_by_date,
    worked_minutes_by_person_by_date,
)
from .identity import IdentityResolver, PersonDirectory, missing_person_ids, status_names_by_id
from .models import RiskReport, SprintKpis, SprintWindow, Task, TaskList, TimeEntry
from .productive_client import ProductiveClient
from .risk import compute_risk
from .rows import (
    Row,
    average_velocity,
    build_accuracy_rows,
    build_breakdown_row,
    build_burndown_rows,
    build_effort_rows,
    build_person_daily_rows,
    build_person_velocity_rows,
    build_remaining_rows,
    build_velocity_point,
    breakdown_statuses,
    natural_key,
)
from .window import business_dates, parse_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SprintData:
    """Everything fetched for one task list, plus its inferred window."""

    task_list: TaskList
    tasks: List[Task]
    closed_tasks_count: int
    entries: List[TimeEntry]
    resolver: IdentityResolver
    window: Optional[SprintWindow]
    dates: List[date] = field(default_factory=list)


@dataclass(frozen=True)
class BurndownView:
    """Burndown rows, KPIs and effort table for one mode ("sprint" or "total")."""

    mode: str
    rows: List[Row]
    floor_hours: float
    auto_min: bool
    kpis: SprintKpis
    effort_rows: List[Row]


@dataclass(frozen=True)
class SprintReport:
    """Current-sprint dashboard for a single task list."""

    sprint_name: str
    window: Optional[SprintWindow]
    business_dates: List[date]
    sprint: BurndownView
    total: BurndownView
    risk: RiskReport
    remaining_rows: List[Row]
    daily_worked_rows: List[Row] = field(default_factory=list)


@dataclass(frozen=True)
class HistoryReport:
    """Cross-sprint velocity, accuracy and status breakdown tables."""

    sprint_names: List[str]
    velocity_points: List[Row]
    average_velocity_hours: float
    person_velocity_rows: List[Row]
    accuracy_rows: List[Row]
    accuracy_averages: List[Row]
    breakdown_rows: List[Row]
    breakdown_statuses: List[str]


def load_sprint(client: ProductiveClient, task_list: TaskList, config: Config, today: date) -> SprintData:
    """Fetch tasks, time entries and people for one task list and build its resolver.

    Time entries are requested by this task list's task ids, so entries of
    other sprints never leak in. People referenced by tasks but missing from
    every sideloaded payload are fetched in one supplemental request.

    Raises:
        UpstreamFetchError: If any page request fails.
    """
    window = parse_window(task_list.name, today.year, wrap_days=config.year_wrap_days)
    dates = business_dates(window.start, window.end) if window else []
    if window is None:
        logger.info(
            "Sprint name has no date range; window-dependent metrics are disabled",
            extra={"task_list_id": task_list.id, "sprint_name": task_list.name},
        )

    tasks, statuses, task_people = client.list_tasks(task_list.id)
    closed_tasks = client.list_closed_tasks(task_list.id)
    entries, entry_people = client.list_time_entries(task.id for task in tasks)

    directory = PersonDirectory.from_people(task_people).merged(entry_people)
    missing = missing_person_ids(tasks, directory)
    if missing:
        directory = directory.merged(client.list_people(missing))

    logger.info(
        "Loaded sprint data",
        extra={
            "task_list_id": task_list.id,
            "tasks": len(tasks),
            "closed_tasks": len(closed_tasks),
            "time_entries": len(entries),
            "supplemental_people": len(missing),
        },
    )

    return SprintData(
        task_list=task_list,
        tasks=tasks,
        closed_tasks_count=len(closed_tasks),
        entries=entries,
        resolver=IdentityResolver(directory, status_names_by_id(statuses)),
        window=window,
        dates=dates,
    )


def load_sprints(
    client: ProductiveClient,
    task_list_ids: Sequence[str],
    config: Config,
    today: date,
    max_workers: Optional[int] = None,
) -> List[SprintData]:
    """Load several task lists concurrently and return them sorted by sprint name.

    The first failure cancels loads that have not started yet and is
    re-raised, so callers get either every sprint or an error.
    """
    task_lists = client.list_task_lists(ids=task_list_ids)
    if not task_lists:
        return []

    workers = max(1, min(max_workers or config.max_workers, len(task_lists)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(load_sprint, client, task_list, config, today) for task_list in task_lists]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        # Re-raise the first failure in submission order.
        for future in futures:
            if future in done:
                error = future.exception()
                if error is not None:
                    raise error
        results = [future.result() for future in futures]

    return sorted(results, key=lambda data: natural_key(data.task_list.name))


def _burndown_view(data: SprintData, mode: str, today: date, done_tasks: int) -> BurndownView:
    estimated_minutes = sum(task.initial_estimate_minutes for task in data.tasks)
    sprint_worked, total_worked = split_worked_minutes_by_task(data.entries, data.window)

    if mode == MODE_SPRINT:
        worked_by_date = worked_minutes_by_date(data.entries, data.window)
        worked_by_task = sprint_worked
    else:
        worked_by_date = worked_minutes_by_date(data.entries)
        worked_by_task = total_worked

    points = burndown_series(estimated_minutes, data.dates, worked_by_date, today, mode)
    floor_hours, auto_min = burndown_floor(points)
    kpis = sprint_kpis(
        data.tasks,
        data.dates,
        worked_minutes=sum(worked_by_date.values()),
        done_tasks=done_tasks,
        scope=scope_split(data.tasks, data.window),
        today=today,
    )
    effort = aggregate_effort_by_person(data.tasks, data.resolver, worked_by_task)

    return BurndownView(
        mode=mode,
        rows=build_burndown_rows(points),
        floor_hours=floor_hours,
        auto_min=auto_min,
        kpis=kpis,
        effort_rows=build_effort_rows(effort),
    )


def build_sprint_report(
    data: SprintData,
    today: date,
    capacity_per_day_hours: float,
    complete_status_names: FrozenSet[str] = frozenset(),
    count_complete_as_done: bool = True,
) -> SprintReport:
    """Aggregate one sprint into the current-sprint dashboard.

    When ``count_complete_as_done`` is set, tasks whose status is one of
    ``complete_status_names`` count as done in the task KPI and are hidden
    from the remaining-work table.
    """
    remaining = remaining_by_status(data.tasks, data.resolver)
    completed_via_status = 0
    excluded_statuses: Iterable[str] = ()
    if count_complete_as_done:
        completed_via_status = sum(
            value.task_count for status, value in remaining.items() if status.strip() in complete_status_names
        )
        excluded_statuses = complete_status_names
    done_tasks = data.closed_tasks_count + completed_via_status

    risk = compute_risk(
        data.tasks,
        data.resolver.resolve_responsible_or_assignee,
        data.dates,
        today,
        capacity_per_day_hours=capacity_per_day_hours,
    )

    return SprintReport(
        sprint_name=data.task_list.name,
        window=data.window,
        business_dates=list(data.dates),
        sprint=_burndown_view(data, MODE_SPRINT, today, done_tasks),
        total=_burndown_view(data, MODE_TOTAL, today, done_tasks),
        risk=risk,
        remaining_rows=build_remaining_rows(remaining, exclude_statuses=excluded_statuses),
        daily_worked_rows=build_person_daily_rows(
            worked_minutes_by_person_by_date(data.entries, data.resolver, data.window), data.dates
        ),
    )


def build_history_report(sprints: Sequence[SprintData]) -> HistoryReport:
    """Aggregate several sprints into velocity, accuracy and breakdown tables.

    Sprints are ordered by natural name order whatever order they arrive in.
    """
    ordered = sorted(sprints, key=lambda data: natural_key(data.task_list.name))
    sprint_names = [data.task_list.name for data in ordered]

    velocity_points: List[Row] = []
    worked_by_sprint: Dict[str, Dict[str, int]] = {}
    estimates_by_sprint: Dict[str, Dict[str, int]] = {}
    breakdown_rows: List[Row] = []

    for data in ordered:
        name = data.task_list.name
        worked = velocity_minutes_by_person(data.entries, data.resolver, data.window)
        worked_by_sprint[name] = worked
        estimates_by_sprint[name] = estimate_minutes_by_person(data.tasks, data.resolver)

        velocity_points.append(
            build_velocity_point(
                data.task_list.id,
                name,
                scope_split(data.tasks, data.window),
                completed_minutes=sum(worked.values()),
            )
        )
        breakdown_rows.append(
            build_breakdown_row(name, breakdown_by_status(data.tasks, data.entries, data.window, data.resolver))
        )

    accuracy_rows, accuracy_averages = build_accuracy_rows(estimates_by_sprint, worked_by_sprint, sprint_names)

    return HistoryReport(
        sprint_names=sprint_names,
        velocity_points=velocity_points,
        average_velocity_hours=average_velocity(velocity_points),
        person_velocity_rows=build_person_velocity_rows(worked_by_sprint, sprint_names),
        accuracy_rows=accuracy_rows,
        accuracy_averages=accuracy_averages,
        breakdown_rows=breakdown_rows,
        breakdown_statuses=breakdown_statuses(breakdown_rows),
    )
