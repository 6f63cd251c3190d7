"""Regular trading hours classification anchored in the session timezone"""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from signal_engine.config.defaults import SessionParams
from signal_engine.utils.time import as_utc


def session_timezone(params: SessionParams) -> tzinfo:
    """Resolve the configured session timezone."""
    if params.timezone.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(params.timezone)


def is_regular_hours(ts: datetime, params: SessionParams) -> bool:
    """
    Weekday between the session open and close (close exclusive).

    Args:
        ts: Bar time; naive values are read as UTC
        params: Session parameters

    Returns:
        True inside regular trading hours
    """
    local = as_utc(ts).astimezone(session_timezone(params))
    if local.weekday() >= 5:
        return False

    minutes = local.hour * 60 + local.minute
    open_minutes = params.rth_open_hour * 60 + params.rth_open_minute
    close_minutes = params.rth_close_hour * 60
    return open_minutes <= minutes < close_minutes


def minutes_since_open(ts: datetime, params: SessionParams) -> int:
    """Minutes elapsed since the session open, 0 outside regular hours."""
    if not is_regular_hours(ts, params):
        return 0

    local = as_utc(ts).astimezone(session_timezone(params))
    return (local.hour - params.rth_open_hour) * 60 + (local.minute - params.rth_open_minute)
