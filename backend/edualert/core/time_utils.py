from datetime import datetime
from typing import Optional
import pytz

GUYANA = pytz.timezone('America/Guyana')
UTC = pytz.utc

def get_utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)

def get_local_now() -> datetime:
    """Current wall-clock time in Guyana."""
    return get_utc_now().astimezone(GUYANA)

def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def time_ago(dt: datetime, now: Optional[datetime] = None) -> str:
    """Human label like '5 minutes ago' for dashboard listings."""
    now = ensure_utc(now) if now else get_utc_now()
    diff = now - ensure_utc(dt)
    minutes = int(diff.total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if minutes < 60:
        return "Just now" if minutes <= 1 else f"{minutes} minutes ago"
    if hours < 24:
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    return "1 day ago" if days == 1 else f"{days} days ago"
