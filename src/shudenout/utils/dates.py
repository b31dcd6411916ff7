"""Japan Standard Time date helpers."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

JST = timezone(timedelta(hours=9), name="JST")


def now_jst() -> datetime:
    return datetime.now(JST)


def today_tomorrow_jst(now: Optional[datetime] = None) -> tuple[date, date]:
    current = (now or now_jst()).astimezone(JST)
    today = current.date()
    return today, today + timedelta(days=1)


def is_after_last_train(now: Optional[datetime] = None) -> bool:
    """22:00 to 05:00 JST counts as after the last train."""
    hour = (now or now_jst()).astimezone(JST).hour
    return hour >= 22 or hour < 5
