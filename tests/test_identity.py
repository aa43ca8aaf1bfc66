"""Tests for person directory merging and name resolution."""

import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprintreport.identity import (
    UNASSIGNED,
    UNKNOWN_STATUS,
    IdentityResolver,
    PersonDirectory,
    missing_person_ids,
    referenced_person_ids,
    status_names_by_id,
)
from sprintreport.models import Person, Task, WorkflowStatus


def _resolver(people=(), statuses=()) -> IdentityResolver:
    return IdentityResolver(PersonDirectory.from_people(people), status_names_by_id(statuses))


def test_directory_merge_never_downgrades_known_name():
    """Verify a less complete record never replaces a known first name."""
    directory = PersonDirectory.from_people([Person(id="1", first_name="Ana", email="ana@example.com")])

    merged = directory.merged([Person(id="1", email="other@example.com"), Person(id="1")])

    assert merged.name_for("1") == "Ana"


def test_directory_merge_upgrades_to_more_complete_name():
    """Verify an email-only record is replaced by one with a last name."""
    directory = PersonDirectory.from_people([Person(id="1", email="dev@example.com")])

    merged = directory.merged([Person(id="1", last_name="Novak")])

    assert directory.name_for("1") == "dev@example.com"
    assert merged.name_for("1") == "Novak"


def test_directory_treats_nameless_record_as_unknown():
    """Verify a record without any name field does not count as resolved."""
    directory = PersonDirectory.from_people([Person(id="1")])

    assert directory.name_for("1") is None
    assert "1" not in directory


def test_resolve_person_name_placeholders():
    """Verify unknown ids get a placeholder and missing ids are unassigned."""
    resolver = _resolver([Person(id="1", first_name="Ana")])

    assert resolver.resolve_person_name("1") == "Ana"
    assert resolver.resolve_person_name("2") == "Person #2"
    assert resolver.resolve_person_name(None) == UNASSIGNED


def test_resolve_responsible_or_assignee_precedence():
    """Verify known names win over placeholders and responsible wins over assignee."""
    resolver = _resolver([Person(id="1", first_name="Ana"), Person(id="2", first_name="Ben")])

    assert resolver.resolve_responsible_or_assignee(
        Task(id="t", title="t", responsible_person_id="1", assignee_person_id="2")
    ) == "Ana"
    assert resolver.resolve_responsible_or_assignee(
        Task(id="t", title="t", responsible_person_id="9", assignee_person_id="2")
    ) == "Ben"
    assert resolver.resolve_responsible_or_assignee(
        Task(id="t", title="t", responsible_person_id="9", assignee_person_id="8")
    ) == "Person #9"
    assert resolver.resolve_responsible_or_assignee(Task(id="t", title="t", assignee_person_id="8")) == "Person #8"
    assert resolver.resolve_responsible_or_assignee(Task(id="t", title="t")) == UNASSIGNED


def test_resolve_status_name_falls_back_to_unknown():
    """Verify missing or unmapped workflow statuses resolve to Unknown."""
    resolver = _resolver(statuses=[WorkflowStatus(id="11", name="In Progress")])

    assert resolver.resolve_status_name(Task(id="t", title="t", workflow_status_id="11")) == "In Progress"
    assert resolver.resolve_status_name(Task(id="t", title="t", workflow_status_id="12")) == UNKNOWN_STATUS
    assert resolver.resolve_status_name(Task(id="t", title="t")) == UNKNOWN_STATUS


def test_missing_person_ids_lists_unresolved_references_once():
    """Verify only referenced ids without a known name are reported, deduplicated."""
    tasks = [
        Task(id="a", title="a", responsible_person_id="1", assignee_person_id="2"),
        Task(id="b", title="b", responsible_person_id="3", assignee_person_id="2"),
    ]
    directory = PersonDirectory.from_people([Person(id="1", first_name="Ana")])

    assert referenced_person_ids(tasks) == ["1", "2", "3"]
    assert missing_person_ids(tasks, directory) == ["2", "3"]
