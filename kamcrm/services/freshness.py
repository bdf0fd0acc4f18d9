"""
Freshness gate: skip re-enrichment while the last good result is recent.
"""
from datetime import datetime, timedelta, timezone

SKIP = 'skip'
PROCEED = 'proceed'


def _as_utc(value):
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def check_freshness(last_refreshed_at, window_hours: float = 24, now=None) -> str:
    """
    Return SKIP if last_refreshed_at is less than window_hours old, else PROCEED.

    last_refreshed_at may be None (never enriched), a datetime (naive values
    are taken as UTC) or an ISO-8601 string. The clock is read on every call
    unless `now` is passed explicitly.
    """
    if last_refreshed_at is None:
        return PROCEED

    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    age = current - _as_utc(last_refreshed_at)
    if age < timedelta(hours=window_hours):
        return SKIP
    return PROCEED


def is_fresh(last_refreshed_at, window_hours: float = 24, now=None) -> bool:
    return check_freshness(last_refreshed_at, window_hours, now=now) == SKIP


def hours_since(last_refreshed_at, now=None) -> float:
    """Age in hours, for log lines."""
    if last_refreshed_at is None:
        return 0.0
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return (current - _as_utc(last_refreshed_at)).total_seconds() / 3600
