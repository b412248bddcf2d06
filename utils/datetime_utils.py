"""
Timezone-aware datetime utilities for the listings CRM.

All helpers return timezone-aware UTC values so model timestamps and
import bookkeeping never mix naive and aware datetimes.
"""

import re
from datetime import datetime, date, timezone
from typing import Optional, Union

# Strict calendar date used by CSV imports (YYYY-MM-DD)
ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def utc_now() -> datetime:
    """
    Get the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone information
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return utc_now().date()


def parse_strict_date(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD string into a date.

    Args:
        value: Date string

    Returns:
        date: Parsed date

    Raises:
        ValueError: If the value is not exactly YYYY-MM-DD or not a real date
    """
    if not value or not ISO_DATE_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid date '{value}' (expected YYYY-MM-DD)")
    return datetime.strptime(value.strip(), '%Y-%m-%d').date()


def parse_iso_date(value: Union[str, datetime, date, None]) -> Optional[date]:
    """
    Best-effort conversion of an ISO 8601 timestamp to its date portion.

    Listing APIs return values such as ``2024-05-01T00:00:00.000Z``; only
    the calendar date is kept. Unparseable input returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if len(text) < 10:
        return None
    try:
        return datetime.strptime(text[:10], '%Y-%m-%d').date()
    except ValueError:
        return None

