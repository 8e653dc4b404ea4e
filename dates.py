# dates.py
from datetime import datetime, timezone
from typing import Any, Optional

_EVENT_FMT = "%Y-%m-%dT%H:%M:%S.%f%z"


def _aware(dt: datetime) -> datetime:
    # naive -> 按本地时区解释
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def _offset(dt: datetime) -> str:
    off = dt.utcoffset()
    if not off:
        return "Z"
    total = int(off.total_seconds())
    sign = "+" if total >= 0 else "-"
    hh, rem = divmod(abs(total), 3600)
    return f"{sign}{hh:02d}:{rem // 60:02d}"


def iso8601_string(dt: datetime) -> str:
    """
    2019-03-02T14:05:09Z / 2019-03-02T14:05:09-05:00
    Used for order purchase dates.
    """
    dt = _aware(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + _offset(dt)


def event_iso8601_string(dt: datetime) -> str:
    """Same as iso8601_string with milliseconds: 2019-03-02T14:05:09.123Z"""
    dt = _aware(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}" + _offset(dt)


def event_date_from(s: Any) -> Optional[datetime]:
    if not isinstance(s, str) or not s.strip():
        return None
    ss = s.strip()
    if ss.endswith("Z"):
        ss = ss[:-1] + "+00:00"
    try:
        return datetime.strptime(ss, _EVENT_FMT)
    except ValueError:
        return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
