"""Capacity risk callouts for the remaining days of a sprint.

Cheap and synchronous so it can be recomputed for every capacity setting
without refetching data.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Callable, Dict, List, Sequence

from .config import DEFAULT_CAPACITY_PER_DAY_HOURS
from .engine import round_half_up
from .models import DevRisk, RiskReport, Task, TaskRisk

STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_RISK = "risk"

SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"

WARNING_CAPACITY_SHARE = 0.8
CRITICAL_TASK_SHARE = 0.5
WARNING_TASK_SHARE = 0.33


def days_left(dates: Sequence[date], today: date) -> int:
    """Count business dates on or after ``today``."""
    return sum(1 for day in dates if day >= today)


def classify_dev(remaining_hours: float, capacity_left_hours: float) -> str:
    if remaining_hours >= capacity_left_hours:
        return STATUS_RISK
    if remaining_hours >= WARNING_CAPACITY_SHARE * capacity_left_hours:
        return STATUS_WARNING
    return STATUS_OK


def classify_task(share: float) -> str:
    """Return the severity for a task's share of its person's remaining work, or ``""``."""
    if share >= CRITICAL_TASK_SHARE:
        return SEVERITY_CRITICAL
    if share >= WARNING_TASK_SHARE:
        return SEVERITY_WARNING
    return ""


def compute_risk(
    tasks: Sequence[Task],
    person_for_task: Callable[[Task], str],
    dates: Sequence[date],
    today: date,
    capacity_per_day_hours: float = DEFAULT_CAPACITY_PER_DAY_HOURS,
) -> RiskReport:
    """Classify each person and their biggest tasks against remaining capacity.

    A person is ``risk`` when their remaining hours reach the capacity left
    (business days from today inclusive times hours per day) and ``warning``
    at 80% of it. For people at ``risk`` only, each task holding at least half
    (``critical``) or a third (``warning``) of their remaining hours is
    reported.
    """
    left = days_left(dates, today)
    capacity_left_hours = left * capacity_per_day_hours

    remaining_by_person: Dict[str, float] = defaultdict(float)
    for task in tasks:
        remaining_by_person[person_for_task(task)] += task.remaining_time_minutes / 60

    dev_risks = sorted(
        (
            DevRisk(
                person=person,
                remaining_hours=round_half_up(remaining_hours, 1),
                capacity_left_hours=round_half_up(capacity_left_hours, 1),
                days_left=left,
                status=classify_dev(remaining_hours, capacity_left_hours),
            )
            for person, remaining_hours in remaining_by_person.items()
        ),
        key=lambda risk: risk.remaining_hours,
        reverse=True,
    )
    at_risk = {risk.person for risk in dev_risks if risk.status == STATUS_RISK}

    task_risks: List[TaskRisk] = []
    for task in tasks:
        person = person_for_task(task)
        if person not in at_risk:
            continue

        task_hours = task.remaining_time_minutes / 60
        dev_hours = remaining_by_person[person]
        share = task_hours / dev_hours if dev_hours > 0 else 0.0
        severity = classify_task(share)
        if not severity:
            continue

        task_risks.append(
            TaskRisk(
                task_id=task.id,
                task_name=task.title,
                person=person,
                task_remaining_hours=round_half_up(task_hours, 1),
                dev_remaining_hours=round_half_up(dev_hours, 1),
                share_of_dev_remaining=round_half_up(share, 2),
                severity=severity,
            )
        )

    task_risks.sort(key=lambda risk: risk.share_of_dev_remaining, reverse=True)

    return RiskReport(
        dev_risks=dev_risks,
        task_risks=task_risks,
        days_left=left,
        capacity_per_day_hours=capacity_per_day_hours,
    )
