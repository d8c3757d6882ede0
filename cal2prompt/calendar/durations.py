"""Named date ranges (today, this week, ...) resolved in a time zone."""

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum


class EventDuration(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    NEXT_WEEK = "next_week"


def get_duration(
    tz: tzinfo,
    duration: EventDuration,
    now: datetime | None = None,
) -> tuple[date, date]:
    """
    Resolve a duration to an inclusive (since, until) pair of local dates.

    Weeks run Monday through Sunday. ``now`` defaults to the current time;
    a naive ``now`` is taken as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(tz).date()

    if duration is EventDuration.TODAY:
        return today, today

    if duration is EventDuration.THIS_WEEK:
        monday = today - timedelta(days=today.weekday())
        return monday, monday + timedelta(days=6)

    if duration is EventDuration.THIS_MONTH:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)

    if duration is EventDuration.NEXT_WEEK:
        next_monday = today + timedelta(days=7 - today.weekday())
        return next_monday, next_monday + timedelta(days=6)

    raise ValueError(f"Unknown duration: {duration!r}")
