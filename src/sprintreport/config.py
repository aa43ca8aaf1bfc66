"""Configuration parsing and validation for the sprint report generator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .errors import AuthenticationError, ConfigurationError

DEFAULT_BASE_URL = "https://api.productive.io/api/v2"
DEFAULT_RESPONSIBLE_CUSTOM_FIELD_ID = "45468"
DEFAULT_CAPACITY_PER_DAY_HOURS = 6.0
MIN_CAPACITY_PER_DAY_HOURS = 1.0
MAX_CAPACITY_PER_DAY_HOURS = 10.0
DEFAULT_YEAR_WRAP_DAYS = 15

# Statuses whose tasks count as done for the "tasks completed" KPI.
DEFAULT_COMPLETE_STATUS_NAMES: FrozenSet[str] = frozenset(
    {
        "Not applicable",
        "Complete",
        "Approved for Production",
        "In Client Review",
        "Ready for Client Review",
        "Spillover",
    }
)


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the report generator."""

    organization_id: str
    api_token: str
    base_url: str = DEFAULT_BASE_URL
    responsible_custom_field_id: str = DEFAULT_RESPONSIBLE_CUSTOM_FIELD_ID
    capacity_per_day_hours: float = DEFAULT_CAPACITY_PER_DAY_HOURS
    year_wrap_days: int = DEFAULT_YEAR_WRAP_DAYS
    timeout_seconds: int = 30
    max_workers: int = 6
    complete_status_names: FrozenSet[str] = field(default=DEFAULT_COMPLETE_STATUS_NAMES)


def validate_capacity(capacity_per_day_hours: float) -> float:
    """Return ``capacity_per_day_hours`` if it lies within the supported 1-10 h range.

    Raises:
        ConfigurationError: If the value is outside ``[1, 10]``.
    """
    if not MIN_CAPACITY_PER_DAY_HOURS <= capacity_per_day_hours <= MAX_CAPACITY_PER_DAY_HOURS:
        raise ConfigurationError(
            "Invalid value for 'capacity': expected hours per day between "
            f"{MIN_CAPACITY_PER_DAY_HOURS:g} and {MAX_CAPACITY_PER_DAY_HOURS:g}."
        )
    return float(capacity_per_day_hours)


def load_config(
    organization_id: Optional[str] = None,
    capacity_per_day_hours: float = DEFAULT_CAPACITY_PER_DAY_HOURS,
    responsible_custom_field_id: Optional[str] = None,
    year_wrap_days: int = DEFAULT_YEAR_WRAP_DAYS,
) -> Config:
    """Build and validate application configuration.

    Args:
        organization_id: Productive organization id. Falls back to the
            ``PRODUCTIVE_ORG_ID`` environment variable.
        capacity_per_day_hours: Working hours per developer per business day.
        responsible_custom_field_id: Task custom field holding the responsible
            person id. Falls back to ``PRODUCTIVE_RESPONSIBLE_FIELD_ID`` and then
            to the built-in default.
        year_wrap_days: Days added to a sprint end date parsed before its start.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If the organization id is missing or numeric
            settings are out of range.
        AuthenticationError: If ``PRODUCTIVE_API_TOKEN`` is not configured.
    """
    org_id = (organization_id or os.getenv("PRODUCTIVE_ORG_ID", "")).strip()
    if not org_id:
        raise ConfigurationError(
            "Missing Productive organization id. Pass --org-id or set 'PRODUCTIVE_ORG_ID'."
        )

    capacity = validate_capacity(capacity_per_day_hours)

    if year_wrap_days <= 0:
        raise ConfigurationError("Invalid value for 'year_wrap_days': expected an integer greater than 0.")

    api_token: str = os.getenv("PRODUCTIVE_API_TOKEN", "").strip()
    if not api_token:
        raise AuthenticationError(
            "Missing required Productive API token. "
            "Set the 'PRODUCTIVE_API_TOKEN' environment variable before generating reports."
        )

    field_id = (
        responsible_custom_field_id
        or os.getenv("PRODUCTIVE_RESPONSIBLE_FIELD_ID", "")
        or DEFAULT_RESPONSIBLE_CUSTOM_FIELD_ID
    ).strip()

    return Config(
        organization_id=org_id,
        api_token=api_token,
        responsible_custom_field_id=field_id,
        capacity_per_day_hours=capacity,
        year_wrap_days=year_wrap_days,
    )
