"""Time Utilities - UTC timestamps and formatting"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    MongoDB hands back naive datetimes that are implicitly UTC; comparing those
    with aware values raises, so every datetime entering the domain goes through here.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime to ISO 8601 string with Z suffix for UTC"""
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """Parse ISO 8601 string to a UTC datetime"""
    return ensure_utc(date_parser.isoparse(iso_string))


def is_overdue(due_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Check if a due date has passed"""
    if due_date is None:
        return False
    return ensure_utc(now or utc_now()) > ensure_utc(due_date)
