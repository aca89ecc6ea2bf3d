"""Forecast date normalization.

Upstream forecasts often carry month/day only (``"01/03"``). The year is
picked so the date lands within six months of the reference date, which
handles season boundaries (a late-December fetch returning January days).
"""

import re
from datetime import date, datetime
from typing import Optional, Union

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_US_FULL_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_SHORT_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})$")

# Maximum distance (in months) between a resolved date and the reference
MAX_MONTH_DISTANCE = 6


def normalize_forecast_date(
    value: Union[str, date],
    reference: Optional[Union[date, datetime]] = None,
) -> date:
    """Resolve a forecast date string to an absolute calendar date.

    Args:
        value: ``MM/DD`` short date, ``YYYY-MM-DD`` or ``MM/DD/YYYY``
        reference: Date the forecast was fetched (defaults to today)

    Returns:
        Absolute date

    Raises:
        ValueError: If the value is not a recognised date

    Example:
        >>> normalize_forecast_date("01/03", date(2025, 12, 28))
        datetime.date(2026, 1, 3)
        >>> normalize_forecast_date("12/30", date(2026, 1, 3))
        datetime.date(2025, 12, 30)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day, value)

    match = _US_FULL_DATE.match(text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        return _build_date(year, month, day, value)

    match = _SHORT_DATE.match(text)
    if not match:
        raise ValueError(f"Invalid forecast date {value!r}. Expected MM/DD or YYYY-MM-DD")

    month, day = (int(g) for g in match.groups())
    if reference is None:
        reference = date.today()
    elif isinstance(reference, datetime):
        reference = reference.date()

    year = reference.year
    month_distance = month - reference.month
    if month_distance < -MAX_MONTH_DISTANCE:
        year += 1
    elif month_distance > MAX_MONTH_DISTANCE:
        year -= 1

    return _build_date(year, month, day, value)


def _build_date(year: int, month: int, day: int, original: object) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid forecast date {original!r}: {e}") from e
