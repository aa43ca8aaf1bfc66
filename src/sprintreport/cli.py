"""Command-line argument parsing for the sprint report generator."""

from __future__ import annotations

import argparse
import datetime as dt
from typing import Optional, Sequence

from .config import (
    DEFAULT_CAPACITY_PER_DAY_HOURS,
    MAX_CAPACITY_PER_DAY_HOURS,
    MIN_CAPACITY_PER_DAY_HOURS,
)

VIEW_SPRINT = "sprint"
VIEW_HISTORY = "history"
VIEW_PROJECTS = "projects"
VIEW_BOARDS = "boards"
VIEW_TASK_LISTS = "task-lists"

REPORT_VIEWS = (VIEW_SPRINT, VIEW_HISTORY)
DISCOVERY_VIEWS = (VIEW_PROJECTS, VIEW_BOARDS, VIEW_TASK_LISTS)


def _capacity(value: str) -> float:
    """Parse and validate a capacity in hours per day.

    Raises:
        argparse.ArgumentTypeError: If value is not a number between 1 and 10.
    """
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a number") from exc

    if not MIN_CAPACITY_PER_DAY_HOURS <= parsed <= MAX_CAPACITY_PER_DAY_HOURS:
        raise argparse.ArgumentTypeError(
            f"must be between {MIN_CAPACITY_PER_DAY_HOURS:g} and {MAX_CAPACITY_PER_DAY_HOURS:g}"
        )

    return parsed


def _iso_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a date in YYYY-MM-DD format") from exc


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for report generation.

    Returns:
        Parsed CLI arguments containing the task list ids, organization id,
        report view, capacity, reference date and output options.
    """
    parser = argparse.ArgumentParser(
        prog="sprint-report",
        description=(
            "Generate sprint burndown, velocity, estimation accuracy and capacity "
            "risk reports from Productive.io task lists."
        ),
    )

    parser.add_argument(
        "--task-list-id",
        dest="task_list_ids",
        action="append",
        default=None,
        help="Productive task list (sprint) id. Repeat to select several sprints. Required for the sprint and history views.",
    )
    parser.add_argument(
        "--org-id",
        default=None,
        help="Productive organization id (default: PRODUCTIVE_ORG_ID environment variable).",
    )
    parser.add_argument(
        "--view",
        choices=REPORT_VIEWS + DISCOVERY_VIEWS,
        default=VIEW_SPRINT,
        help=(
            "'sprint' for the current-sprint dashboard, 'history' for cross-sprint trends, "
            "'projects', 'boards' or 'task-lists' to look up ids (default: sprint)."
        ),
    )
    parser.add_argument(
        "--project-id",
        default=None,
        help="Restrict the boards and task-lists views to one project.",
    )
    parser.add_argument(
        "--board-id",
        default=None,
        help="Restrict the task-lists view to one board.",
    )
    parser.add_argument(
        "--capacity",
        type=_capacity,
        default=DEFAULT_CAPACITY_PER_DAY_HOURS,
        help="Working hours per person per business day, 1-10 (default: 6).",
    )
    parser.add_argument(
        "--today",
        type=_iso_date,
        default=None,
        help="Reference date in YYYY-MM-DD format (default: current date).",
    )
    parser.add_argument(
        "--no-count-complete",
        dest="count_complete_as_done",
        action="store_false",
        help="Do not count tasks in 'complete' statuses as done.",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default="text",
        help="Output format (default: text).",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    args = parser.parse_args(argv)
    if args.view in REPORT_VIEWS and not args.task_list_ids:
        parser.error(f"--task-list-id is required for the '{args.view}' view")

    return args
