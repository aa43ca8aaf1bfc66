"""Entry point orchestration for the sprint report generator."""

from __future__ import annotations

import datetime as dt
import logging
import sys
from typing import List, Optional, Sequence, Union

from .cli import DISCOVERY_VIEWS, VIEW_BOARDS, VIEW_HISTORY, VIEW_PROJECTS, parse_args
from .config import load_config
from .errors import AuthenticationError, ConfigurationError, UpstreamFetchError
from .models import Board, Project, TaskList
from .productive_client import ProductiveClient
from .render import generate_history_report, generate_listing, generate_sprint_report, to_json
from .report import build_history_report, build_sprint_report, load_sprints

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_UPSTREAM = 4


def list_records(
    client: ProductiveClient,
    view: str,
    project_id: Optional[str] = None,
    board_id: Optional[str] = None,
) -> List[Union[Project, Board, TaskList]]:
    """Fetch the projects, boards or task lists used to pick report ids."""
    if view == VIEW_PROJECTS:
        return client.list_projects()
    if view == VIEW_BOARDS:
        return client.list_boards(project_id=project_id)
    return client.list_task_lists(project_id=project_id, board_id=board_id)


def orchestrate_report_generation(argv: Optional[Sequence[str]] = None) -> int:
    """Run the report workflow and map failures to exit codes.

    Returns:
        ``0`` on success, ``2`` for configuration errors, ``3`` for missing
        credentials, ``4`` for Productive API failures and ``1`` otherwise.
    """
    try:
        args = parse_args(argv)
        logging.basicConfig(level=getattr(logging, args.log_level, logging.WARNING))

        config = load_config(
            organization_id=args.org_id,
            capacity_per_day_hours=args.capacity,
        )
        today = args.today or dt.date.today()
        client = ProductiveClient(config=config)

        if args.view in DISCOVERY_VIEWS:
            records = list_records(client, args.view, project_id=args.project_id, board_id=args.board_id)
            print(to_json(records) if args.output_format == "json" else generate_listing(records))
            return EXIT_OK

        print(f"Fetching {len(args.task_list_ids)} task list(s) from Productive...", file=sys.stderr)
        sprints = load_sprints(client, args.task_list_ids, config, today)
        if not sprints:
            print("No report available: none of the selected task lists were found.", file=sys.stderr)
            return EXIT_OK

        if args.view == VIEW_HISTORY:
            history = build_history_report(sprints)
            output = to_json(history) if args.output_format == "json" else generate_history_report(history)
            print(output)
            return EXIT_OK

        reports = [
            build_sprint_report(
                data,
                today=today,
                capacity_per_day_hours=config.capacity_per_day_hours,
                complete_status_names=config.complete_status_names,
                count_complete_as_done=args.count_complete_as_done,
            )
            for data in sprints
        ]
        if args.output_format == "json":
            print(to_json(reports[0] if len(reports) == 1 else reports))
        else:
            print("\n\n".join(generate_sprint_report(report) for report in reports))
        return EXIT_OK
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION
    except UpstreamFetchError as exc:
        print(f"No report available: {exc}", file=sys.stderr)
        return EXIT_UPSTREAM
    except Exception:
        logger.exception("Unexpected error while generating sprint report")
        return EXIT_UNEXPECTED


def main(argv: Optional[Sequence[str]] = None) -> int:
    return orchestrate_report_generation(argv)


if __name__ == "__main__":
    raise SystemExit(main())
