"""Timezone-aware UTC timestamps.

claimed_at, completed_at, ledger and audit rows are written as aware UTC.
SQLite (tests) hands them back naive, so repositories pass every datetime
they read through ensure_utc before building DTOs.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (column defaults and transitions)."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to a naive value, convert an aware one; None stays None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
