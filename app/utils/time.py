"""Time utilities (epoch millis, export stamps)."""

from datetime import date, datetime, timezone
from typing import Optional


def now_epoch_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def epoch_ms_to_iso(ts: int) -> str:
    """Render an epoch-millis timestamp as a UTC ISO string."""
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).isoformat()


def today_stamp(today: Optional[date] = None) -> str:
    """YYYY-MM-DD for the given day (UTC today by default)."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.isoformat()
