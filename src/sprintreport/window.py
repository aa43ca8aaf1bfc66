"""Sprint date-window inference and business-date helpers.

Task lists do not store their date range. It is read from the name instead,
e.g. ``"Sprint 14 (28.07 - 11.08)"``, where each date is ``day.month`` and the
year is assumed to be the reference year.

An end date before the start date is moved forward by a fixed number of
days. When that is still not after the start, as for a sprint spanning New
Year, the end is placed in the following year instead.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import List, Optional

from .config import DEFAULT_YEAR_WRAP_DAYS
from .models import SprintWindow

logger = logging.getLogger(__name__)

_WINDOW_PATTERN = re.compile(r"(\d{1,2})[./-](\d{1,2})\s*[–-]\s*(\d{1,2})[./-](\d{1,2})")


def _strict_date(year: int, month: str, day: str) -> Optional[date]:
    try:
        return date(year, int(month), int(day))
    except ValueError:
        return None


def parse_window(
    name: str,
    reference_year: int,
    wrap_days: int = DEFAULT_YEAR_WRAP_DAYS,
) -> Optional[SprintWindow]:
    """Extract a start/end date pair from a sprint name.

    Both dates are placed in ``reference_year``. When the parsed end falls
    before the start, the end is moved forward by ``wrap_days``; this is an
    approximation for ranges typed out of order. If the end is still before
    the start the range spans a year boundary and the end is placed in the
    following year.

    Returns:
        The parsed window, or ``None`` when the name has no date range or
        either date is not a valid calendar date.
    """
    match = _WINDOW_PATTERN.search(name or "")
    if not match:
        logger.debug("No date range in sprint name", extra={"sprint_name": name})
        return None

    start_day, start_month, end_day, end_month = match.groups()
    start = _strict_date(reference_year, start_month, start_day)
    end = _strict_date(reference_year, end_month, end_day)
    if start is None or end is None:
        logger.debug("Invalid date in sprint name", extra={"sprint_name": name})
        return None

    if end < start:
        naive_end = end
        end = naive_end + timedelta(days=wrap_days)
        if end <= start:
            end = _strict_date(reference_year + 1, end_month, end_day) or naive_end.replace(
                year=reference_year + 1, day=28
            )
        logger.debug(
            "Adjusted sprint end date before start",
            extra={"sprint_name": name, "start": start.isoformat(), "end": end.isoformat()},
        )

    return SprintWindow(start=start, end=end)


def business_dates(start: date, end: date) -> List[date]:
    """Return the weekdays of the closed interval ``[start, end]`` in ascending order."""
    days: List[date] = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days
