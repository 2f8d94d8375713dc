"""Business timezone helpers."""

from datetime import datetime
from zoneinfo import ZoneInfo

from app.core.config import settings


def local_time(value: datetime) -> datetime:
    """Express a timestamp in the business timezone (naive means already local)."""
    zone = ZoneInfo(settings.TIMEZONE)
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)
