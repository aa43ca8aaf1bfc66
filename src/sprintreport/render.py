"""Text and JSON rendering of sprint reports.

This module provides utilities for:
- Formatting minute durations as signed ``H:MM`` strings.
- Building a human-readable current-sprint report.
- Building a human-readable multi-sprint history report.
- Listing projects, boards and task lists for id lookup.
- Serializing either report to JSON for downstream chart tooling.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date
from typing import Any, List, Sequence, Union

from .models import Board, Project, TaskList
from .report import BurndownView, HistoryReport, SprintReport
from .rows import Row


def format_minutes(minutes: float) -> str:
    """Format minutes as ``H:MM``, keeping the sign of negative values.

    Args:
        minutes: Duration in minutes; negative values represent overrun.

    Returns:
        Formatted string such as ``"2:05"`` or ``"-0:30"``.
    """
    value = int(round(minutes or 0))
    sign = "-" if value < 0 else ""
    hours, remainder = divmod(abs(value), 60)
    return f"{sign}{hours}:{remainder:02d}"


def _format_hours(hours: float) -> str:
    return f"{hours:.1f} h"


def _view_lines(view: BurndownView) -> List[str]:
    kpis = view.kpis
    lines = [
        f"Mode: {view.mode}",
        f"   Days:  {kpis.days.done:g} / {kpis.days.total:g} business days ({kpis.days.percent}%)",
        f"   Tasks: {kpis.tasks.done:g} / {kpis.tasks.total:g} tasks ({kpis.tasks.percent}%)",
        f"   Time:  {kpis.hours.done:g} h / {kpis.hours.total:g} h ({kpis.hours.percent}%)",
        f"   Scope: {kpis.scope_planned_hours:g} h initial ({kpis.scope.planned_tasks} tasks), "
        f"{kpis.scope_added_hours:g} h added ({kpis.scope.added_tasks} tasks)",
        "   Burndown (estimated / actual hours):",
    ]
    for row in view.rows:
        actual = _format_hours(row["Actual"]) if "Actual" in row else "-"
        lines.append(f"     {row['Date']}  {_format_hours(row['Estimated'])}  {actual}")
    lines.append("   Effort by responsible (initial / worked / to complete):")
    for row in view.effort_rows:
        lines.append(
            f"     {row['person']}: {_format_hours(row['Initial estimate'])} / "
            f"{_format_hours(row['Worked time'])} / {_format_hours(row['Time to complete'])}"
        )
    return lines


def generate_sprint_report(report: SprintReport) -> str:
    """Generate a human-readable current-sprint report."""
    if report.window is not None:
        window = f"{report.window.start.isoformat()} to {report.window.end.isoformat()}"
    else:
        window = "no date range in sprint name"

    lines = [
        f"Sprint: {report.sprint_name}",
        f"Window: {window} ({len(report.business_dates)} business days)",
        "",
    ]
    lines.extend(_view_lines(report.sprint))
    lines.append("")
    lines.extend(_view_lines(report.total))
    lines.append("")

    risk = report.risk
    lines.append(
        f"At risk ({risk.days_left} days left at {risk.capacity_per_day_hours:g} h/day):"
    )
    for dev in risk.dev_risks:
        lines.append(
            f"   [{dev.status}] {dev.person}: {_format_hours(dev.remaining_hours)} remaining "
            f"of {_format_hours(dev.capacity_left_hours)} capacity"
        )
    for task in risk.task_risks:
        lines.append(
            f"   [{task.severity}] {task.task_name} ({task.person}): "
            f"{_format_hours(task.task_remaining_hours)}, {round(task.share_of_dev_remaining * 100)}% of remaining"
        )

    lines.append("")
    lines.append("Worked per day by person:")
    for row in report.daily_worked_rows:
        people = [f"{key} {_format_hours(value)}" for key, value in row.items() if key != "Date" and value]
        lines.append(f"   {row['Date']}: {', '.join(people) if people else '-'}")

    lines.append("")
    lines.append("Time to complete by status:")
    if not report.remaining_rows:
        lines.append("   No open work.")
    for row in report.remaining_rows:
        lines.append(
            f"   {row['status']}: {row['taskCount']} tasks, {format_minutes(row['remainingMinutes'])}"
        )

    return "\n".join(lines)


def _sprint_columns(row: Row, sprint_names: List[str]) -> str:
    return ", ".join(f"{name} {_format_hours(row.get(name, 0))}" for name in sprint_names)


def generate_history_report(report: HistoryReport) -> str:
    """Generate a human-readable multi-sprint history report."""
    lines = [f"Sprints: {', '.join(report.sprint_names)}", "", "1) Team velocity"]
    for point in report.velocity_points:
        lines.append(
            f"   {point['sprintName']}: planned {_format_hours(point['plannedHours'])}, "
            f"added {_format_hours(point['scopeChangeHours'])}, "
            f"completed {_format_hours(point['completedHours'])}"
        )
    lines.append(f"   Average completed: {_format_hours(report.average_velocity_hours)}")

    lines.extend(["", "2) Velocity by person"])
    for row in report.person_velocity_rows:
        lines.append(
            f"   {row['person']}: {_sprint_columns(row, report.sprint_names)} (avg {_format_hours(row['avg'])})"
        )

    lines.extend(["", "3) Estimation accuracy by person"])
    for average in report.accuracy_averages:
        lines.append(f"   {average['person']}: {average['avgPct']:.1f}%")

    lines.extend(["", "4) Breakdown by status (worked / remaining)"])
    for row in report.breakdown_rows:
        parts = []
        for status in report.breakdown_statuses:
            worked = row.get(f"{status}::worked")
            remaining = row.get(f"{status}::remaining")
            if worked is None and remaining is None:
                continue
            parts.append(f"{status} {_format_hours(worked or 0)} / {_format_hours(remaining or 0)}")
        lines.append(f"   {row['sprint']}: {'; '.join(parts) if parts else 'no data'}")

    return "\n".join(lines)


def generate_listing(records: Sequence[Union[Project, Board, TaskList]]) -> str:
    """One ``id  name`` line per record, or a note when nothing matched."""
    if not records:
        return "No matching records."
    width = max(len(record.id) for record in records)
    return "\n".join(f"{record.id.ljust(width)}  {record.name}" for record in records)


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(
    report: Union[SprintReport, HistoryReport, Sequence[Union[SprintReport, Project, Board, TaskList]]],
) -> str:
    """Serialize a report dataclass, or a list of dataclasses, to indented JSON."""
    if isinstance(report, (SprintReport, HistoryReport)):
        payload: Any = dataclasses.asdict(report)
    else:
        payload = [dataclasses.asdict(item) for item in report]
    return json.dumps(payload, default=_json_default, indent=2)
