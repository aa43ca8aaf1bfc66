"""Flatten engine results into wide-format row tables for charts and tables.

Rows are plain dictionaries: one row per category (sprint or person) with
series columns namespaced as ``"<category>::<series>"``, e.g.
``"In Progress::worked"`` or ``"Sprint 3::Overrun"``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .engine import accuracy_components, average_accuracy_pct, round_half_up, to_hours
from .models import BurndownPoint, EffortTotals, RemainingByStatus, ScopeSplit, StatusBreakdown

Row = Dict[str, Any]

# Workflow order: not started, in progress, review, done, edge cases.
CANONICAL_STATUS_ORDER: Tuple[str, ...] = (
    "Not Started",
    "UI/UX Completed",
    "In Progress",
    "Questions / Blocked",
    "UI/UX in Progress",
    "Initial Code Complete",
    "Pending PR Review",
    "PR Approved",
    "Ready for Kalon QA",
    "Ready for Client Review",
    "In Client Review",
    "Approved for Production",
    "Complete",
    "Closed",
    "Not applicable",
)
OVERFLOW_STATUS = "Spillover"

_STATUS_INDEX = {name: index for index, name in enumerate(CANONICAL_STATUS_ORDER)}
_DIGITS = re.compile(r"(\d+)")


def natural_key(value: str) -> Tuple[Any, ...]:
    """Sort key comparing digit runs numerically, so "Sprint 2" precedes "Sprint 10"."""
    parts = _DIGITS.split(str(value).casefold())
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in parts if part != "")


def status_sort_key(status: str) -> Tuple[int, int, Tuple[Any, ...]]:
    """Canonical statuses first in workflow order, then unknown ones by name, overflow last."""
    if status == OVERFLOW_STATUS:
        return (2, 0, ())
    if status in _STATUS_INDEX:
        return (0, _STATUS_INDEX[status], ())
    return (1, 0, natural_key(status))


def ordered_statuses(statuses: Iterable[str]) -> List[str]:
    return sorted(set(statuses), key=status_sort_key)


def build_burndown_rows(points: Sequence[BurndownPoint]) -> List[Row]:
    """Convert a burndown series to ``Date``/``Estimated``/``Actual`` rows in hours."""
    rows: List[Row] = []
    for point in points:
        row: Row = {"Date": point.date.isoformat(), "Estimated": to_hours(point.estimated)}
        if point.actual is not None:
            row["Actual"] = to_hours(point.actual)
        rows.append(row)
    return rows


def build_effort_rows(effort: Mapping[str, EffortTotals]) -> List[Row]:
    """Per-person effort in hours, largest initial estimate first."""
    rows = [
        {
            "person": person,
            "Initial estimate": to_hours(totals.initial),
            "Worked time": to_hours(totals.worked),
            "Time to complete": to_hours(totals.remaining),
        }
        for person, totals in effort.items()
    ]
    rows.sort(key=lambda row: row["Initial estimate"], reverse=True)
    return rows


def build_person_daily_rows(
    minutes_by_person: Mapping[str, Mapping[date, int]],
    dates: Sequence[date] = (),
) -> List[Row]:
    """One row per date with each worker's logged hours as a column.

    Rows follow ``dates`` when given, otherwise every date with logged time.
    People without time on a date get ``0.0``.
    """
    people = sorted(minutes_by_person, key=natural_key)
    days = list(dates) or sorted({day for by_date in minutes_by_person.values() for day in by_date})
    rows: List[Row] = []
    for day in days:
        row: Row = {"Date": day.isoformat()}
        for person in people:
            row[person] = to_hours(minutes_by_person[person].get(day, 0))
        rows.append(row)
    return rows


def build_remaining_rows(
    remaining: Mapping[str, RemainingByStatus],
    exclude_statuses: Iterable[str] = (),
) -> List[Row]:
    """Remaining work per status sorted by remaining minutes, largest first.

    Negative remaining values are kept.
    """
    excluded = {status.strip() for status in exclude_statuses}
    rows = [
        {"status": status, "taskCount": value.task_count, "remainingMinutes": value.remaining_minutes}
        for status, value in remaining.items()
        if status.strip() not in excluded
    ]
    rows.sort(key=lambda row: row["remainingMinutes"], reverse=True)
    return rows


def build_velocity_point(sprint_id: str, sprint_name: str, scope: ScopeSplit, completed_minutes: int) -> Row:
    return {
        "sprintId": sprint_id,
        "sprintName": sprint_name,
        "plannedHours": to_hours(scope.planned_minutes),
        "scopeChangeHours": to_hours(scope.added_minutes),
        "completedHours": to_hours(completed_minutes),
    }


def average_velocity(points: Sequence[Row]) -> float:
    if not points:
        return 0.0
    return round_half_up(sum(point["completedHours"] for point in points) / len(points), 1)


def build_person_velocity_rows(
    minutes_by_sprint: Mapping[str, Mapping[str, int]],
    sprint_names: Sequence[str],
) -> List[Row]:
    """Hours per person per sprint plus the person's mean over all selected sprints.

    ``minutes_by_sprint`` maps sprint name to worker to minutes. Sprints in
    which a person logged nothing count as zero in the mean.
    """
    people = {person for by_person in minutes_by_sprint.values() for person in by_person}
    rows: List[Row] = []
    for person in sorted(people, key=natural_key):
        row: Row = {"person": person}
        total = 0.0
        for sprint in sprint_names:
            hours = to_hours(minutes_by_sprint.get(sprint, {}).get(person, 0))
            row[sprint] = hours
            total += hours
        row["avg"] = round_half_up(total / len(sprint_names), 1) if sprint_names else 0.0
        rows.append(row)
    return rows


def build_accuracy_rows(
    estimates_by_sprint: Mapping[str, Mapping[str, int]],
    worked_by_sprint: Mapping[str, Mapping[str, int]],
    sprint_names: Sequence[str],
) -> Tuple[List[Row], List[Row]]:
    """Build per-sprint Worked/Remaining/Overrun rows and per-person average accuracy.

    Both inputs map sprint name to person to minutes. Averages are sorted by
    distance from 100%, closest first, ties broken by name.
    """
    people = {
        person
        for source in (estimates_by_sprint, worked_by_sprint)
        for by_person in source.values()
        for person in by_person
    }

    rows: List[Row] = []
    averages: List[Row] = []
    for person in sorted(people, key=natural_key):
        row: Row = {"person": person}
        pairs: List[Tuple[int, int]] = []
        for sprint in sprint_names:
            estimate = estimates_by_sprint.get(sprint, {}).get(person, 0)
            worked = worked_by_sprint.get(sprint, {}).get(person, 0)
            worked_part, remaining_part, overrun_part = accuracy_components(estimate, worked)
            row[f"{sprint}::Worked"] = to_hours(worked_part)
            row[f"{sprint}::Remaining"] = to_hours(remaining_part)
            row[f"{sprint}::Overrun"] = to_hours(overrun_part)
            pairs.append((estimate, worked))
        rows.append(row)
        averages.append({"person": person, "avgPct": average_accuracy_pct(pairs)})

    averages.sort(key=lambda item: (abs(item["avgPct"] - 100), natural_key(item["person"])))
    return rows, averages


def build_breakdown_row(sprint_name: str, breakdown: StatusBreakdown) -> Row:
    """One sprint's breakdown row with ``<status>::worked`` / ``<status>::remaining`` hours.

    A status appears when it has worked or remaining time; zero-valued
    series are omitted from the row.
    """
    row: Row = {"sprint": sprint_name, "__counts": dict(breakdown.remaining_task_counts)}
    statuses = ordered_statuses(list(breakdown.worked_minutes) + list(breakdown.remaining_minutes))
    for status in statuses:
        worked = breakdown.worked_minutes.get(status, 0)
        remaining = breakdown.remaining_minutes.get(status, 0)
        if worked > 0:
            row[f"{status}::worked"] = to_hours(worked)
        if remaining > 0:
            row[f"{status}::remaining"] = to_hours(remaining)
    return row


def breakdown_statuses(rows: Iterable[Row]) -> List[str]:
    """Statuses present in breakdown rows, in display order."""
    present = set()
    for row in rows:
        for key in row:
            if key.endswith("::worked") or key.endswith("::remaining"):
                present.add(key.rsplit("::", 1)[0])
    return ordered_statuses(present)
