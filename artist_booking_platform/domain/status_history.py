"""
Append-only status history kept on each booking.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..models.booking import BookingStatus

StatusHistoryEntry = Dict[str, Any]


def _timestamp(timestamp: Optional[datetime]) -> str:
    moment = timestamp or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def append_status(
    history: Optional[Iterable[StatusHistoryEntry]],
    status: BookingStatus,
    timestamp: Optional[datetime] = None
) -> List[StatusHistoryEntry]:
    """Return a new history with ``status`` appended; ``history`` is left untouched."""
    existing = [dict(entry) for entry in (history or [])]
    existing.append({"status": status.value, "timestamp": _timestamp(timestamp)})
    return existing


def initial_history(timestamp: Optional[datetime] = None) -> List[StatusHistoryEntry]:
    return append_status(None, BookingStatus.PENDING, timestamp)
