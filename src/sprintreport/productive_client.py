"""Productive.io JSON:API client for sprint report data retrieval."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from .config import Config
from .errors import UpstreamFetchError
from .models import Board, Person, Project, Task, TaskList, TimeEntry, WorkflowStatus

logger = logging.getLogger(__name__)

JsonRecord = Dict[str, Any]

# Productive's workflow status category for closed tasks.
CLOSED_STATUS_CATEGORY_ID = 3


def relationship_id(record: JsonRecord, name: str) -> Optional[str]:
    """Return the related record id for relationship ``name``, or ``None`` when absent."""
    relationship = (record.get("relationships") or {}).get(name) or {}
    data = relationship.get("data")
    if not isinstance(data, dict):
        return None
    related_id = data.get("id")
    return str(related_id) if related_id not in (None, "") else None


def _attributes(record: JsonRecord) -> Dict[str, Any]:
    return record.get("attributes") or {}


def _int_attribute(attributes: Dict[str, Any], name: str) -> int:
    value = attributes.get(name)
    if value in (None, ""):
        return 0
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return 0


class ProductiveClient:
    """Small, typed client for the Productive.io REST API."""

    _PAGE_SIZE = 200

    def __init__(self, config: Config, timeout_seconds: Optional[int] = None) -> None:
        """Initialize an authenticated Productive API client.

        Args:
            config: Validated runtime configuration including organization and token.
            timeout_seconds: Per-request timeout in seconds; defaults to
                ``config.timeout_seconds``.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds or config.timeout_seconds
        self._base_url = config.base_url.rstrip("/")

        self._headers = {
            "X-Auth-Token": config.api_token,
            "X-Organization-Id": config.organization_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._local = threading.local()

    @property
    def _session(self) -> requests.Session:
        """The calling thread's session; sessions are not shared between threads."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below ``/api/v2``."""
        return f"{self._base_url}/{path.lstrip('/')}"

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        """Parse Productive ISO8601 timestamps into timezone-aware datetimes."""
        if not value:
            return None

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            logger.debug("Ignoring unparseable timestamp", extra={"value": value})
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _parse_date(self, value: Optional[str]) -> Optional[date]:
        if not value:
            return None
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            logger.debug("Ignoring unparseable date", extra={"value": value})
            return None

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a single GET request and return the decoded JSON object.

        Raises:
            UpstreamFetchError: If the request fails, times out, returns
                HTTP >= 400, or does not return a JSON object.
        """
        url = self._build_url(path)

        try:
            response = self._session.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamFetchError(f"Productive request failed: GET {url}") from exc

        if response.status_code >= 400:
            raise UpstreamFetchError(
                "Productive API request failed: "
                f"GET {url} returned {response.status_code} - {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(f"Productive API returned invalid JSON: GET {url}") from exc

        if not isinstance(payload, dict):
            raise UpstreamFetchError(f"Productive API returned unexpected payload shape: GET {url}")

        return payload

    def fetch_all_with_included(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[List[JsonRecord], List[JsonRecord]]:
        """Fetch every page of a collection together with its sideloaded records.

        Pages of ``_PAGE_SIZE`` records are requested sequentially from page 1.
        A page shorter than the page size is the last one; no total-count header
        is consulted. Either the full accumulated result is returned or
        ``UpstreamFetchError`` propagates.

        Returns:
            ``(data, included)`` in page order.
        """
        data: List[JsonRecord] = []
        included: List[JsonRecord] = []
        page = 1

        while True:
            query = dict(params or {})
            query["page[number]"] = page
            query["page[size]"] = self._PAGE_SIZE

            payload = self._get_json(endpoint, params=query)

            page_items = payload.get("data") or []
            data.extend(page_items)
            included.extend(payload.get("included") or [])

            if len(page_items) < self._PAGE_SIZE:
                break

            page += 1

        logger.debug(
            "Fetched collection",
            extra={"endpoint": endpoint, "pages": page, "records": len(data), "included": len(included)},
        )
        return data, included

    def fetch_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[JsonRecord]:
        """Fetch every page of a collection, discarding sideloaded records."""
        data, _ = self.fetch_all_with_included(endpoint, params)
        return data

    def parse_task(self, item: JsonRecord) -> Task:
        """Decode a ``tasks`` record, reading the responsible person from its custom field."""
        attributes = _attributes(item)
        task_id = str(item.get("id"))
        custom_fields = attributes.get("custom_fields") or {}
        responsible = custom_fields.get(self._config.responsible_custom_field_id)
        # Person custom fields can arrive as a list of ids; the first one is the responsible.
        if isinstance(responsible, list):
            responsible = responsible[0] if responsible else None

        return Task(
            id=task_id,
            title=attributes.get("title") or attributes.get("name") or f"Task {task_id}",
            initial_estimate_minutes=max(0, _int_attribute(attributes, "initial_estimate")),
            remaining_time_minutes=_int_attribute(attributes, "remaining_time"),
            created_at=self._parse_datetime(attributes.get("created_at")),
            responsible_person_id=str(responsible) if responsible not in (None, "") else None,
            assignee_person_id=relationship_id(item, "assignee"),
            workflow_status_id=relationship_id(item, "workflow_status"),
            task_list_id=relationship_id(item, "task_list"),
        )

    def parse_time_entry(self, item: JsonRecord) -> Optional[TimeEntry]:
        """Decode a ``time_entries`` record; entries without a date are skipped."""
        attributes = _attributes(item)
        entry_date = self._parse_date(attributes.get("date"))
        if entry_date is None:
            logger.debug("Skipping time entry without date", extra={"time_entry_id": item.get("id")})
            return None

        task_id = relationship_id(item, "task")
        if task_id is None and attributes.get("task_id") not in (None, ""):
            task_id = str(attributes["task_id"])

        return TimeEntry(
            id=str(item.get("id")),
            date=entry_date,
            minutes=max(0, _int_attribute(attributes, "time")),
            person_id=relationship_id(item, "person"),
            task_id=task_id,
        )

    def parse_person(self, item: JsonRecord) -> Person:
        attributes = _attributes(item)
        return Person(
            id=str(item.get("id")),
            first_name=attributes.get("first_name") or "",
            last_name=attributes.get("last_name") or "",
            email=attributes.get("email") or "",
        )

    def _included_of_type(self, included: Iterable[JsonRecord], record_type: str) -> List[JsonRecord]:
        return [record for record in included if record.get("type") == record_type]

    def _statuses_from_included(self, included: Iterable[JsonRecord]) -> List[WorkflowStatus]:
        return [
            WorkflowStatus(id=str(record.get("id")), name=_attributes(record).get("name") or "Unknown")
            for record in self._included_of_type(included, "workflow_statuses")
        ]

    def _people_from_included(self, included: Iterable[JsonRecord]) -> List[Person]:
        return [self.parse_person(record) for record in self._included_of_type(included, "people")]

    def list_projects(self) -> List[Project]:
        """List active client projects."""
        items = self.fetch_all("projects", {"filter[project_type]": 2, "filter[status]": 1})
        return [
            Project(id=str(item.get("id")), name=_attributes(item).get("name") or f"Project {item.get('id')}")
            for item in items
        ]

    def list_boards(self, project_id: Optional[str] = None) -> List[Board]:
        """List active boards (folders), optionally restricted to one project."""
        params: Dict[str, Any] = {"filter[status]": 1}
        if project_id:
            params["filter[project_id]"] = project_id

        return [
            Board(
                id=str(item.get("id")),
                name=_attributes(item).get("name") or f"Board {item.get('id')}",
                project_id=relationship_id(item, "project"),
            )
            for item in self.fetch_all("boards", params)
        ]

    def list_task_lists(
        self,
        ids: Optional[Iterable[str]] = None,
        project_id: Optional[str] = None,
        board_id: Optional[str] = None,
    ) -> List[TaskList]:
        """List task lists by id, or the active task lists of a project/board."""
        params: Dict[str, Any] = {"fields[task_lists]": "name"}
        id_list = [str(task_list_id) for task_list_id in ids or []]
        if id_list:
            params["filter[id]"] = ",".join(id_list)
        else:
            params["filter[status]"] = 1
        if project_id:
            params["filter[project_id]"] = project_id
        if board_id:
            params["filter[board_id]"] = board_id

        return [
            TaskList(id=str(item.get("id")), name=_attributes(item).get("name") or f"Sprint {item.get('id')}")
            for item in self.fetch_all("task_lists", params)
        ]

    def list_tasks(self, task_list_id: str) -> Tuple[List[Task], List[WorkflowStatus], List[Person]]:
        """List the tasks of a task list with their workflow statuses and assignees.

        Returns:
            ``(tasks, statuses, people)`` where statuses and people come from the
            sideloaded ``included`` records.
        """
        data, included = self.fetch_all_with_included(
            "tasks",
            {
                "filter[task_list_id]": task_list_id,
                "fields[tasks]": (
                    "title,initial_estimate,remaining_time,workflow_status,created_at,"
                    "custom_fields,assignee,task_list"
                ),
                "fields[workflow_statuses]": "name",
                "include": "workflow_status,assignee",
            },
        )
        tasks = [self.parse_task(item) for item in data]
        return tasks, self._statuses_from_included(included), self._people_from_included(included)

    def list_closed_tasks(self, task_list_id: str) -> List[Task]:
        """List the tasks of a task list whose workflow status is in the closed category."""
        items = self.fetch_all(
            "tasks",
            {
                "filter[task_list_id]": task_list_id,
                "filter[workflow_status_category_id]": CLOSED_STATUS_CATEGORY_ID,
            },
        )
        return [self.parse_task(item) for item in items]

    def list_time_entries(self, task_ids: Iterable[str]) -> Tuple[List[TimeEntry], List[Person]]:
        """List time entries logged against ``task_ids`` with the people who logged them.

        No request is made for an empty id list.
        """
        id_list = [str(task_id) for task_id in task_ids]
        if not id_list:
            return [], []

        data, included = self.fetch_all_with_included(
            "time_entries",
            {
                "filter[task_id]": ",".join(id_list),
                "include": "person,task",
                "fields[time_entries]": "date,time,person,task",
            },
        )
        entries = [entry for entry in (self.parse_time_entry(item) for item in data) if entry is not None]
        return entries, self._people_from_included(included)

    def list_people(self, ids: Iterable[str]) -> List[Person]:
        """Fetch people by id; no request is made for an empty id list."""
        id_list = [str(person_id) for person_id in ids]
        if not id_list:
            return []

        items = self.fetch_all(
            "people",
            {"filter[id]": ",".join(id_list), "fields[people]": "first_name,last_name,email"},
        )
        return [self.parse_person(item) for item in items]
