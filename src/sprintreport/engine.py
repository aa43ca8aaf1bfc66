"""Temporal bucketing and aggregation of tasks and time entries.

Every function here is a pure stage: it takes tasks, time entries, an
optional sprint window and an ``IdentityResolver``, and returns a new mapping
or dataclass. Durations are minutes unless a name says hours.

Temporal predicates used throughout:

- sprint-scoped: ``window.start <= entry.date <= window.end``
- total-to-date: ``entry.date <= window.end``
- planned task: created on or before ``window.start`` (calendar day)
- plotted burndown date: on or before ``today``

Without a window (sprint name without a date range) the window-dependent
stages degrade to whole-collection totals: no burndown, no status breakdown,
every estimated task counted as planned.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .identity import IdentityResolver
from .models import (
    BurndownPoint,
    CompletionRatio,
    EffortTotals,
    RemainingByStatus,
    ScopeSplit,
    SprintKpis,
    SprintWindow,
    StatusBreakdown,
    Task,
    TimeEntry,
)

logger = logging.getLogger(__name__)

MODE_SPRINT = "sprint"
MODE_TOTAL = "total"
BURNDOWN_MODES = (MODE_SPRINT, MODE_TOTAL)


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like ``Math.round`` does: halves go towards positive infinity."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def to_hours(minutes: float) -> float:
    """Convert minutes to hours rounded to one decimal."""
    return round_half_up((minutes or 0) / 60, 1)


def is_planned(task: Task, window: SprintWindow) -> bool:
    """Return True when the task was created on or before the window start day."""
    if task.created_at is None:
        return False
    return task.created_at.date() <= window.start


def worked_minutes_by_date(
    entries: Iterable[TimeEntry],
    window: Optional[SprintWindow] = None,
) -> Dict[date, int]:
    """Sum worked minutes per calendar date.

    With a window only entries dated within ``[start, end]`` are counted
    (sprint-scoped); without one every entry is counted (total-to-date).
    """
    totals: Dict[date, int] = defaultdict(int)
    for entry in entries:
        if window is not None and not window.contains(entry.date):
            continue
        totals[entry.date] += entry.minutes
    return dict(totals)


def worked_minutes_by_person_by_date(
    entries: Iterable[TimeEntry],
    resolver: IdentityResolver,
    window: Optional[SprintWindow] = None,
) -> Dict[str, Dict[date, int]]:
    """Sum worked minutes per worker per calendar date.

    Sprint-scoped when a window is given, every entry otherwise.
    """
    totals: Dict[str, Dict[date, int]] = defaultdict(lambda: defaultdict(int))
    for entry in entries:
        if window is not None and not window.contains(entry.date):
            continue
        totals[resolver.resolve_person_name(entry.person_id)][entry.date] += entry.minutes
    return {person: dict(by_date) for person, by_date in totals.items()}


def worked_minutes_by_task(
    entries: Iterable[TimeEntry],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Dict[str, int]:
    """Sum worked minutes per task id for entries dated within the optional bounds."""
    totals: Dict[str, int] = defaultdict(int)
    for entry in entries:
        if not entry.task_id:
            continue
        if start is not None and entry.date < start:
            continue
        if end is not None and entry.date > end:
            continue
        totals[entry.task_id] += entry.minutes
    return dict(totals)


def split_worked_minutes_by_task(
    entries: Sequence[TimeEntry],
    window: Optional[SprintWindow],
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """Return ``(sprint, total)`` worked minutes per task.

    Sprint counts entries within ``[start, end]``; total counts entries
    dated on or before ``end``. The two maps are computed independently.
    Without a window both maps cover every entry.
    """
    if window is None:
        everything = worked_minutes_by_task(entries)
        return everything, dict(everything)
    sprint = worked_minutes_by_task(entries, start=window.start, end=window.end)
    total = worked_minutes_by_task(entries, end=window.end)
    return sprint, total


def worked_minutes_before(worked_by_date: Mapping[date, int], start: date) -> int:
    """Sum the minutes logged on dates strictly before ``start``."""
    return sum(minutes for day, minutes in worked_by_date.items() if day < start)


def burndown_series(
    estimated_minutes: float,
    dates: Sequence[date],
    worked_by_date: Mapping[date, int],
    today: date,
    mode: str = MODE_SPRINT,
) -> List[BurndownPoint]:
    """Build the ideal and actual remaining-work series over business ``dates``.

    The ideal line falls linearly from ``estimated_minutes`` to zero. The
    actual line starts at the estimate ("sprint" mode) or at the estimate less
    all work logged before the first date ("total" mode), and on every date up
    to ``today`` drops by that date's worked minutes, floored at zero. Dates
    after ``today`` carry no actual value.

    The "total" starting point is an approximation: work logged before the
    sprint on tasks added mid-sprint is also subtracted from the estimate.
    """
    if mode not in BURNDOWN_MODES:
        raise ValueError(f"Unknown burndown mode '{mode}'; expected one of {BURNDOWN_MODES}.")
    if not dates:
        return []

    remaining = float(estimated_minutes)
    if mode == MODE_TOTAL:
        remaining = max(0.0, remaining - worked_minutes_before(worked_by_date, dates[0]))

    steps = len(dates) - 1
    points: List[BurndownPoint] = []
    for index, day in enumerate(dates):
        ideal = estimated_minutes - index * estimated_minutes / steps if steps else float(estimated_minutes)

        actual: Optional[float] = None
        if day <= today:
            remaining = max(0.0, remaining - worked_by_date.get(day, 0))
            actual = remaining

        points.append(BurndownPoint(date=day, estimated=ideal, actual=actual))

    return points


def burndown_floor(points: Sequence[BurndownPoint]) -> Tuple[float, bool]:
    """Return the lowest plotted actual value in hours and whether the axis auto-scales.

    The axis auto-scales from zero when the floor is not positive, including
    when nothing has been plotted yet.
    """
    plotted = [to_hours(point.actual) for point in points if point.actual is not None]
    floor = min(plotted) if plotted else 0.0
    return floor, floor <= 0


def aggregate_effort_by_person(
    tasks: Iterable[Task],
    resolver: IdentityResolver,
    worked_by_task: Mapping[str, int],
) -> Dict[str, EffortTotals]:
    """Sum initial estimate, worked and remaining minutes per responsible person."""
    initial: Dict[str, int] = defaultdict(int)
    worked: Dict[str, int] = defaultdict(int)
    remaining: Dict[str, int] = defaultdict(int)
    people: List[str] = []

    for task in tasks:
        person = resolver.resolve_responsible_or_assignee(task)
        if person not in initial:
            people.append(person)
        initial[person] += task.initial_estimate_minutes
        remaining[person] += task.remaining_time_minutes
        worked[person] += worked_by_task.get(task.id, 0)

    return {
        person: EffortTotals(initial=initial[person], worked=worked[person], remaining=remaining[person])
        for person in people
    }


def estimate_minutes_by_person(tasks: Iterable[Task], resolver: IdentityResolver) -> Dict[str, int]:
    """Sum initial estimates per responsible person, skipping tasks without an estimate."""
    totals: Dict[str, int] = defaultdict(int)
    for task in tasks:
        if task.has_estimate:
            totals[resolver.resolve_responsible_or_assignee(task)] += task.initial_estimate_minutes
    return dict(totals)


def velocity_minutes_by_person(
    entries: Iterable[TimeEntry],
    resolver: IdentityResolver,
    window: Optional[SprintWindow],
) -> Dict[str, int]:
    """Sum worked minutes per worker from one sprint's own time entries.

    Entries are restricted to the window when one exists.
    """
    totals: Dict[str, int] = defaultdict(int)
    for entry in entries:
        if window is not None and not window.contains(entry.date):
            continue
        totals[resolver.resolve_person_name(entry.person_id)] += entry.minutes
    return dict(totals)


def accuracy_components(estimate_minutes: int, worked_minutes: int) -> Tuple[int, int, int]:
    """Split worked time against an estimate into ``(worked, remaining, overrun)`` minutes."""
    return (
        min(worked_minutes, estimate_minutes),
        max(estimate_minutes - worked_minutes, 0),
        max(worked_minutes - estimate_minutes, 0),
    )


def average_accuracy_pct(pairs: Iterable[Tuple[int, int]]) -> float:
    """Average ``min(worked, estimate) / estimate`` over ``(estimate, worked)`` pairs, as a percent.

    Pairs without an estimate are skipped; overruns count as 100%.
    Returns 0 when no pair has an estimate.
    """
    ratios = [min(worked, estimate) / estimate for estimate, worked in pairs if estimate > 0]
    if not ratios:
        return 0.0
    return round_half_up(sum(ratios) / len(ratios) * 100, 1)


def breakdown_by_status(
    tasks: Iterable[Task],
    entries: Iterable[TimeEntry],
    window: Optional[SprintWindow],
    resolver: IdentityResolver,
) -> StatusBreakdown:
    """Bucket worked and remaining minutes of planned tasks by workflow status at sprint end.

    For each estimated task created on or before the window start, worked
    time within the window and ``max(estimate - worked, 0)`` are added to its
    current status when positive. Without a window the breakdown is empty.
    """
    if window is None:
        logger.debug("No sprint window; status breakdown is empty")
        return StatusBreakdown()

    worked_in_window = worked_minutes_by_task(entries, start=window.start, end=window.end)
    worked: Dict[str, int] = defaultdict(int)
    remaining: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)

    for task in tasks:
        if not task.has_estimate or not is_planned(task, window):
            continue

        status = resolver.resolve_status_name(task)
        task_worked = worked_in_window.get(task.id, 0)
        task_remaining = max(task.initial_estimate_minutes - task_worked, 0)

        if task_worked > 0:
            worked[status] += task_worked
        if task_remaining > 0:
            remaining[status] += task_remaining
            counts[status] += 1

    return StatusBreakdown(
        worked_minutes=dict(worked),
        remaining_minutes=dict(remaining),
        remaining_task_counts=dict(counts),
    )


def scope_split(tasks: Iterable[Task], window: Optional[SprintWindow]) -> ScopeSplit:
    """Split estimated tasks into planned (created on/before start) and added scope.

    Tasks without an estimate are not counted. Tasks whose creation time is
    unknown count as added. Without a window every estimated task is planned.
    """
    planned_minutes = added_minutes = planned_tasks = added_tasks = 0
    for task in tasks:
        if not task.has_estimate:
            continue
        if window is None or is_planned(task, window):
            planned_minutes += task.initial_estimate_minutes
            planned_tasks += 1
        else:
            added_minutes += task.initial_estimate_minutes
            added_tasks += 1

    return ScopeSplit(
        planned_minutes=planned_minutes,
        added_minutes=added_minutes,
        planned_tasks=planned_tasks,
        added_tasks=added_tasks,
    )


def remaining_by_status(tasks: Iterable[Task], resolver: IdentityResolver) -> Dict[str, RemainingByStatus]:
    """Count tasks and sum remaining minutes per current workflow status.

    Negative remaining time (overrun) is kept as reported upstream.
    """
    counts: Dict[str, int] = defaultdict(int)
    minutes: Dict[str, int] = defaultdict(int)
    for task in tasks:
        status = resolver.resolve_status_name(task)
        counts[status] += 1
        minutes[status] += task.remaining_time_minutes

    return {
        status: RemainingByStatus(task_count=counts[status], remaining_minutes=minutes[status])
        for status in counts
    }


def elapsed_business_days(dates: Sequence[date], today: date) -> int:
    """Count business dates on or before ``today``."""
    return sum(1 for day in dates if day <= today)


def sprint_kpis(
    tasks: Sequence[Task],
    dates: Sequence[date],
    worked_minutes: int,
    done_tasks: int,
    scope: ScopeSplit,
    today: date,
) -> SprintKpis:
    """Build the completion KPIs shown above the burndown."""
    estimated_minutes = sum(task.initial_estimate_minutes for task in tasks)
    return SprintKpis(
        days=CompletionRatio(done=elapsed_business_days(dates, today), total=len(dates)),
        tasks=CompletionRatio(done=done_tasks, total=len(tasks)),
        hours=CompletionRatio(done=to_hours(worked_minutes), total=to_hours(estimated_minutes)),
        scope_added_hours=to_hours(scope.added_minutes),
        scope_planned_hours=to_hours(scope.planned_minutes),
        scope=scope,
    )
