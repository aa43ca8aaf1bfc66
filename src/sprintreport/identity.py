"""Person and workflow-status name resolution.

Person data reaches a report from several places: people sideloaded with
tasks (assignees), people sideloaded with time entries (workers), and a
supplemental ``/people`` fetch for ids referenced by tasks but never
sideloaded. ``PersonDirectory`` merges those sources without ever replacing a
known name with a less complete one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from .models import Person, Task, WorkflowStatus

UNASSIGNED = "Unassigned"
UNKNOWN_STATUS = "Unknown"


def _freeze(values: Dict[str, object]) -> Mapping:
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class PersonDirectory:
    """Immutable id -> Person mapping built by merging partial sources."""

    people: Mapping[str, Person] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_people(cls, people: Iterable[Person]) -> "PersonDirectory":
        return cls().merged(people)

    def merged(self, people: Iterable[Person]) -> "PersonDirectory":
        """Return a new directory with ``people`` merged in.

        A record replaces a known one only when its display name is more
        complete (first name > last name > email > none).
        """
        combined: Dict[str, Person] = dict(self.people)
        for person in people:
            known = combined.get(person.id)
            if known is None or person.name_rank > known.name_rank:
                combined[person.id] = person
        return PersonDirectory(people=_freeze(combined))

    def name_for(self, person_id: Optional[str]) -> Optional[str]:
        """Return the resolved display name for ``person_id``, or ``None`` if no name is known."""
        if not person_id:
            return None
        person = self.people.get(person_id)
        if person is None or person.name_rank == 0:
            return None
        return person.display_name

    def __contains__(self, person_id: object) -> bool:
        return isinstance(person_id, str) and self.name_for(person_id) is not None


def referenced_person_ids(tasks: Iterable[Task]) -> List[str]:
    """Return responsible and assignee ids referenced by ``tasks``, deduplicated in first-seen order."""
    seen: Dict[str, None] = {}
    for task in tasks:
        for person_id in (task.responsible_person_id, task.assignee_person_id):
            if person_id:
                seen.setdefault(person_id, None)
    return list(seen)


def missing_person_ids(tasks: Iterable[Task], directory: PersonDirectory) -> List[str]:
    """Return referenced person ids that have no resolved name in ``directory``."""
    return [person_id for person_id in referenced_person_ids(tasks) if person_id not in directory]


def status_names_by_id(statuses: Iterable[WorkflowStatus]) -> Mapping[str, str]:
    return _freeze({status.id: status.name for status in statuses})


class IdentityResolver:
    """Pure lookups of person and status display names for tasks and time entries."""

    def __init__(self, directory: PersonDirectory, status_names: Mapping[str, str]) -> None:
        self._directory = directory
        self._status_names = status_names

    @property
    def directory(self) -> PersonDirectory:
        return self._directory

    def resolve_person_name(self, person_id: Optional[str]) -> str:
        """Resolve a person id to a known name, ``Person #<id>``, or ``Unassigned``."""
        name = self._directory.name_for(person_id)
        if name:
            return name
        if person_id:
            return f"Person #{person_id}"
        return UNASSIGNED

    def resolve_responsible_or_assignee(self, task: Task) -> str:
        """Resolve the person a task is attributed to.

        Precedence: responsible name, assignee name, responsible placeholder,
        assignee placeholder, ``Unassigned``.
        """
        for person_id in (task.responsible_person_id, task.assignee_person_id):
            name = self._directory.name_for(person_id)
            if name:
                return name
        return self.resolve_person_name(task.responsible_person_id or task.assignee_person_id)

    def resolve_status_name(self, task: Task) -> str:
        if not task.workflow_status_id:
            return UNKNOWN_STATUS
        return self._status_names.get(task.workflow_status_id, UNKNOWN_STATUS)
