import datetime
from typing import Optional
from zoneinfo import ZoneInfo

WINDOW = datetime.timedelta(hours=24)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def digest_date(now: Optional[datetime.datetime] = None, tz_name: str = "Asia/Almaty") -> str:
    """
    Calendar date (YYYY-MM-DD) of `now` in the reference timezone.
    Computed once per invocation and passed down.
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date().isoformat()


def window_start(now: datetime.datetime) -> datetime.datetime:
    """Oldest publish time still accepted at ingestion."""
    return now - WINDOW
