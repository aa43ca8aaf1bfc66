"""Tests for burndown, effort, scope and status aggregation."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprintreport.engine import (
    MODE_SPRINT,
    MODE_TOTAL,
    accuracy_components,
    aggregate_effort_by_person,
    average_accuracy_pct,
    breakdown_by_status,
    burndown_floor,
    burndown_series,
    elapsed_business_days,
    estimate_minutes_by_person,
    remaining_by_status,
    round_half_up,
    scope_split,
    split_worked_minutes_by_task,
    sprint_kpis,
    to_hours,
    velocity_minutes_by_person,
    worked_minutes_by_date,
    worked_minutes_by_person_by_date,
)
from sprintreport.identity import IdentityResolver, PersonDirectory, status_names_by_id
from sprintreport.models import EffortTotals, Person, SprintWindow, Task, TimeEntry, WorkflowStatus
from sprintreport.window import business_dates

WINDOW = SprintWindow(start=date(2024, 7, 29), end=date(2024, 8, 2))
DATES = business_dates(WINDOW.start, WINDOW.end)


def _created(day: int, month: int = 7) -> datetime:
    return datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)


def _resolver() -> IdentityResolver:
    people = [Person(id="1", first_name="Ana"), Person(id="2", first_name="Ben")]
    statuses = [
        WorkflowStatus(id="11", name="In Progress"),
        WorkflowStatus(id="12", name="Pending PR Review"),
        WorkflowStatus(id="13", name="Complete"),
    ]
    return IdentityResolver(PersonDirectory.from_people(people), status_names_by_id(statuses))


def _entry(entry_id: str, day: date, minutes: int, task_id: str = "t1", person_id: str = "1") -> TimeEntry:
    return TimeEntry(id=entry_id, date=day, minutes=minutes, person_id=person_id, task_id=task_id)


def test_round_half_up_rounds_halves_upwards():
    """Verify halves round towards positive infinity like Math.round."""
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(-0.25, 1) == -0.2
    assert to_hours(90) == 1.5
    assert to_hours(None) == 0.0


def test_burndown_series_ideal_line_and_future_dates():
    """Verify the ideal line falls linearly and dates after today have no actual."""
    points = burndown_series(600, DATES, {DATES[0]: 100}, today=DATES[2], mode=MODE_SPRINT)

    assert [point.estimated for point in points] == [600, 450, 300, 150, 0]
    assert [point.actual for point in points] == [500, 500, 500, None, None]


def test_burndown_series_actual_never_negative():
    """Verify overspent work floors the actual remaining line at zero."""
    worked = {DATES[0]: 700, DATES[1]: 50}

    points = burndown_series(600, DATES, worked, today=DATES[-1], mode=MODE_SPRINT)

    assert all(point.actual >= 0 for point in points)
    assert points[0].actual == 0
    assert points[-1].actual == 0


def test_burndown_series_total_mode_subtracts_earlier_work():
    """Verify total mode starts from the estimate less work logged before the first date."""
    worked = {date(2024, 7, 26): 200, DATES[0]: 100}

    points = burndown_series(600, DATES, worked, today=DATES[0], mode=MODE_TOTAL)

    assert points[0].estimated == 600
    assert points[0].actual == 300


def test_burndown_series_total_mode_start_is_floored():
    """Verify the total mode starting point is never negative."""
    points = burndown_series(60, DATES, {date(2024, 7, 1): 500}, today=DATES[0], mode=MODE_TOTAL)

    assert points[0].actual == 0


def test_burndown_series_single_date_and_no_dates():
    """Verify a one-day sprint keeps the estimate as ideal and no dates yield no points."""
    single = burndown_series(120, DATES[:1], {}, today=DATES[0])

    assert single[0].estimated == 120
    assert single[0].actual == 120
    assert burndown_series(120, [], {}, today=DATES[0]) == []


def test_burndown_series_rejects_unknown_mode():
    """Verify an unknown burndown mode raises ValueError."""
    with pytest.raises(ValueError):
        burndown_series(120, DATES, {}, today=DATES[0], mode="weekly")


def test_burndown_floor_auto_scales_when_not_positive():
    """Verify the axis floor is the lowest plotted value and zero floors auto-scale."""
    points = burndown_series(600, DATES, {DATES[0]: 60}, today=DATES[1])

    assert burndown_floor(points) == (9.0, False)
    assert burndown_floor(burndown_series(600, DATES, {DATES[0]: 600}, today=DATES[1])) == (0.0, True)
    assert burndown_floor([]) == (0.0, True)


def test_worked_minutes_by_date_with_and_without_window():
    """Verify entries outside the window only count without a window."""
    entries = [_entry("1", date(2024, 7, 26), 30), _entry("2", DATES[0], 45), _entry("3", DATES[0], 15)]

    assert worked_minutes_by_date(entries, WINDOW) == {DATES[0]: 60}
    assert worked_minutes_by_date(entries) == {date(2024, 7, 26): 30, DATES[0]: 60}


def test_split_worked_minutes_by_task_sprint_and_total():
    """Verify sprint counts in-window work while total counts everything up to the end."""
    entries = [
        _entry("1", date(2024, 7, 26), 30),
        _entry("2", DATES[1], 45),
        _entry("3", date(2024, 8, 5), 60),
        _entry("4", DATES[1], 10, task_id=None),
    ]

    sprint, total = split_worked_minutes_by_task(entries, WINDOW)

    assert sprint == {"t1": 45}
    assert total == {"t1": 75}


def test_split_worked_minutes_by_task_without_window_covers_everything():
    """Verify both maps cover all entries when no window is known."""
    entries = [_entry("1", date(2024, 7, 26), 30), _entry("2", date(2024, 8, 5), 60)]

    sprint, total = split_worked_minutes_by_task(entries, None)

    assert sprint == total == {"t1": 90}


def test_aggregate_effort_by_person_uses_responsible_then_assignee():
    """Verify effort is summed per resolved person including negative remaining time."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120, remaining_time_minutes=30, responsible_person_id="1"),
        Task(id="t2", title="B", initial_estimate_minutes=60, remaining_time_minutes=-15, assignee_person_id="1"),
        Task(id="t3", title="C", initial_estimate_minutes=30, remaining_time_minutes=30),
    ]

    effort = aggregate_effort_by_person(tasks, _resolver(), {"t1": 90, "t2": 75})

    assert effort["Ana"] == EffortTotals(initial=180, worked=165, remaining=15)
    assert effort["Unassigned"] == EffortTotals(initial=30, worked=0, remaining=30)


def test_estimate_and_velocity_minutes_by_person():
    """Verify estimates skip unestimated tasks and velocity counts in-window work by worker."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120, responsible_person_id="1"),
        Task(id="t2", title="B", initial_estimate_minutes=0, responsible_person_id="2"),
    ]
    entries = [
        _entry("1", DATES[0], 60, person_id="1"),
        _entry("2", DATES[1], 30, person_id="2"),
        _entry("3", date(2024, 8, 6), 30, person_id="2"),
        _entry("4", DATES[1], 15, person_id="99"),
    ]

    assert estimate_minutes_by_person(tasks, _resolver()) == {"Ana": 120}
    assert velocity_minutes_by_person(entries, _resolver(), WINDOW) == {"Ana": 60, "Ben": 30, "Person #99": 15}


def test_accuracy_components_clip_overrun():
    """Verify worked time over the estimate is split into worked and overrun."""
    assert accuracy_components(600, 900) == (600, 0, 300)
    assert accuracy_components(600, 240) == (240, 360, 0)
    assert average_accuracy_pct([(600, 900)]) == 100.0
    assert average_accuracy_pct([(600, 900), (600, 300), (0, 100)]) == 75.0
    assert average_accuracy_pct([(0, 100)]) == 0.0


def test_breakdown_by_status_keeps_remaining_only_status():
    """Verify a status with only remaining work appears without a worked bucket."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120, created_at=_created(20), workflow_status_id="11"),
        Task(id="t2", title="B", initial_estimate_minutes=60, created_at=_created(29), workflow_status_id="12"),
        Task(id="t3", title="C", initial_estimate_minutes=60, created_at=_created(31), workflow_status_id="12"),
        Task(id="t4", title="D", initial_estimate_minutes=0, created_at=_created(20), workflow_status_id="13"),
    ]
    entries = [_entry("1", DATES[0], 120, task_id="t1"), _entry("2", date(2024, 7, 26), 30, task_id="t2")]

    breakdown = breakdown_by_status(tasks, entries, WINDOW, _resolver())

    assert breakdown.worked_minutes == {"In Progress": 120}
    assert breakdown.remaining_minutes == {"Pending PR Review": 60}
    assert breakdown.remaining_task_counts == {"Pending PR Review": 1}


def test_breakdown_by_status_empty_without_window():
    """Verify no window yields an empty breakdown."""
    tasks = [Task(id="t1", title="A", initial_estimate_minutes=120, created_at=_created(20))]

    assert breakdown_by_status(tasks, [], None, _resolver()).is_empty


def test_scope_split_counts_each_estimated_task_once():
    """Verify every estimated task is either planned or added, and unestimated tasks are ignored."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120, created_at=_created(29)),
        Task(id="t2", title="B", initial_estimate_minutes=60, created_at=_created(30)),
        Task(id="t3", title="C", initial_estimate_minutes=30, created_at=None),
        Task(id="t4", title="D", initial_estimate_minutes=0, created_at=_created(1)),
    ]

    scope = scope_split(tasks, WINDOW)

    assert (scope.planned_minutes, scope.planned_tasks) == (120, 1)
    assert (scope.added_minutes, scope.added_tasks) == (90, 2)
    assert scope.planned_tasks + scope.added_tasks == sum(1 for task in tasks if task.has_estimate)


def test_scope_split_without_window_counts_all_as_planned():
    """Verify all estimated tasks are planned when there is no window."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120, created_at=_created(29)),
        Task(id="t2", title="B", initial_estimate_minutes=60),
    ]

    scope = scope_split(tasks, None)

    assert (scope.planned_minutes, scope.planned_tasks, scope.added_tasks) == (180, 2, 0)


def test_remaining_by_status_keeps_negative_remaining():
    """Verify remaining time is summed per status without clamping overruns."""
    tasks = [
        Task(id="t1", title="A", remaining_time_minutes=-30, workflow_status_id="11"),
        Task(id="t2", title="B", remaining_time_minutes=10, workflow_status_id="11"),
        Task(id="t3", title="C", remaining_time_minutes=60),
    ]

    remaining = remaining_by_status(tasks, _resolver())

    assert remaining["In Progress"].task_count == 2
    assert remaining["In Progress"].remaining_minutes == -20
    assert remaining["Unknown"].remaining_minutes == 60


def test_sprint_kpis_completion_ratios():
    """Verify day, task and hour KPIs with their rounded percentages."""
    tasks = [
        Task(id="t1", title="A", initial_estimate_minutes=120),
        Task(id="t2", title="B", initial_estimate_minutes=60),
        Task(id="t3", title="C", initial_estimate_minutes=60),
    ]
    scope = scope_split(tasks, None)

    kpis = sprint_kpis(tasks, DATES, worked_minutes=90, done_tasks=1, scope=scope, today=DATES[1])

    assert elapsed_business_days(DATES, DATES[1]) == 2
    assert (kpis.days.done, kpis.days.total, kpis.days.percent) == (2, 5, 40)
    assert (kpis.tasks.done, kpis.tasks.total, kpis.tasks.percent) == (1, 3, 33)
    assert (kpis.hours.done, kpis.hours.total, kpis.hours.percent) == (1.5, 4.0, 38)
    assert kpis.scope_planned_hours == 4.0
    assert kpis.scope_added_hours == 0.0


def test_worked_minutes_by_person_by_date_scoped_to_window():
    """Verify daily worked minutes are split by worker and limited to the window."""
    entries = [
        _entry("1", DATES[0], 60, person_id="1"),
        _entry("2", DATES[0], 30, person_id="1"),
        _entry("3", DATES[1], 45, person_id="2"),
        _entry("4", date(2024, 7, 26), 20, person_id="2"),
        _entry("5", DATES[2], 15, person_id=None),
    ]

    in_window = worked_minutes_by_person_by_date(entries, _resolver(), WINDOW)
    everything = worked_minutes_by_person_by_date(entries, _resolver())

    assert in_window == {"Ana": {DATES[0]: 90}, "Ben": {DATES[1]: 45}, "Unassigned": {DATES[2]: 15}}
    assert everything["Ben"] == {DATES[1]: 45, date(2024, 7, 26): 20}
