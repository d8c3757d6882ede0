"""
Tool: Calendar Aggregator
Purpose: Fetch events across calendars and bucket them into local days

Handles:
- UTC fetch window for an inclusive range of local dates
- Concurrent per-calendar fetches; one failing calendar does not fail the rest
- Day bucketing with multi-day all-day events and time zone conversion
- Event insertion into an account's first calendar

Usage:
    aggregator = CalendarAggregator(GoogleCalendarClient(), ZoneInfo("Asia/Tokyo"))
    days = await aggregator.fetch_days("2025-01-05", "2025-01-06", targets)
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any

from cal2prompt.errors import InvalidDateRangeError, InvalidEventTimeError, NoCalendarIdError
from cal2prompt.google.accounts import Account
from cal2prompt.google.calendar_client import GoogleCalendarClient
from cal2prompt.google.models import EventLink, RawEvent, Token
from cal2prompt.logging_config import get_logger

logger = get_logger(__name__)

NO_SUMMARY = "(no summary)"

EVENT_TIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


# =============================================================================
# Views
# =============================================================================


@dataclass
class EventView:
    """Render-ready projection of one event on one day."""

    summary: str
    start: str
    end: str
    location: str | None = None
    description: str | None = None
    attendees: list[str] = field(default_factory=list)
    html_link: str | None = None
    all_day: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Day:
    date: str
    all_day_events: list[EventView] = field(default_factory=list)
    timed_events: list[EventView] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "all_day_events": [e.to_dict() for e in self.all_day_events],
            "timed_events": [e.to_dict() for e in self.timed_events],
        }


@dataclass(frozen=True)
class FetchTarget:
    """One calendar to read, with the bearer token that can read it."""

    calendar_id: str
    access_token: str
    account: str | None = None


# =============================================================================
# Pure helpers
# =============================================================================


def _start_of_day_utc(day: date, tz: tzinfo) -> str:
    local_midnight = datetime.combine(day, time.min).replace(tzinfo=tz)
    return local_midnight.astimezone(timezone.utc).isoformat()


def fetch_window(since: date, until: date, tz: tzinfo) -> tuple[str, str]:
    """
    RFC 3339 UTC bounds covering local dates ``since`` through ``until``.

    2023-01-02..2023-01-02 in Asia/Tokyo ->
    ("2023-01-01T15:00:00+00:00", "2023-01-02T15:00:00+00:00")
    """
    return _start_of_day_utc(since, tz), _start_of_day_utc(until + timedelta(days=1), tz)


def parse_date(value: str | date, name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise InvalidDateRangeError(f"Invalid {name} '{value}'; expected YYYY-MM-DD") from e


def _sort_key(event: RawEvent) -> tuple[bool, datetime]:
    start = event.start_time_utc
    if start is None:
        return False, datetime.min.replace(tzinfo=timezone.utc)
    return True, start


def _project(event: RawEvent, start: str, end: str, all_day: bool) -> EventView:
    return EventView(
        summary=event.summary or NO_SUMMARY,
        start=start,
        end=end,
        location=event.location,
        description=event.description,
        attendees=event.attendee_emails,
        html_link=event.html_link,
        all_day=all_day,
    )


def bucket_events(
    events: list[RawEvent],
    since: date,
    until: date,
    tz: tzinfo,
) -> list[Day]:
    """
    Group events into local days, in ascending date order.

    All-day events are repeated on every day of their span that falls
    inside [since, until] (the provider's end date is exclusive). Timed
    events are placed on the local date of their start.
    """
    buckets: dict[date, Day] = {}

    def day_for(key: date) -> Day:
        if key not in buckets:
            buckets[key] = Day(date=key.isoformat())
        return buckets[key]

    for event in sorted(events, key=_sort_key):
        if event.is_all_day:
            start_date = event.start.to_date() if event.start else None
            if start_date is None:
                logger.debug("skipping all-day event with unparseable date", event_id=event.id)
                continue
            end_date = event.end.to_date() if event.end else None
            if end_date is None or end_date <= start_date:
                end_date = start_date + timedelta(days=1)

            start_label = event.start.date or start_date.isoformat()
            end_label = (event.end.date if event.end and event.end.date else None) or end_date.isoformat()

            current = max(start_date, since)
            last = min(end_date - timedelta(days=1), until)
            while current <= last:
                day_for(current).all_day_events.append(
                    _project(event, start_label, end_label, all_day=True)
                )
                current += timedelta(days=1)
            continue

        start_utc = event.start_time_utc
        if start_utc is None:
            logger.debug("skipping event without a start time", event_id=event.id)
            continue
        end_utc = event.end_time_utc or start_utc

        local_start = start_utc.astimezone(tz)
        local_end = end_utc.astimezone(tz)
        day_for(local_start.date()).timed_events.append(
            _project(
                event,
                local_start.strftime("%H:%M"),
                local_end.strftime("%H:%M"),
                all_day=False,
            )
        )

    return [buckets[key] for key in sorted(buckets)]


def _parse_event_time(value: str, name: str, tz: tzinfo) -> datetime:
    for fmt in EVENT_TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=tz)
        except (AttributeError, ValueError):
            continue
    raise InvalidEventTimeError(
        f"Invalid {name} time '{value}'; expected 'YYYY-MM-DD HH:MM'",
        context={"field": name, "value": value},
    )


def _zone_name(tz: tzinfo) -> str:
    return getattr(tz, "key", None) or str(tz)


# =============================================================================
# Aggregator
# =============================================================================


class CalendarAggregator:
    def __init__(self, client: GoogleCalendarClient, tz: tzinfo):
        self.client = client
        self.tz = tz

    async def fetch(
        self,
        since: date,
        until: date,
        targets: list[FetchTarget],
    ) -> list[RawEvent]:
        """Fetch every target concurrently; failed calendars are logged and skipped."""
        time_min, time_max = fetch_window(since, until, self.tz)
        logger.debug("fetching events", calendars=len(targets), time_min=time_min, time_max=time_max)

        results = await asyncio.gather(
            *(
                self.client.list_events(t.calendar_id, t.access_token, time_min, time_max)
                for t in targets
            ),
            return_exceptions=True,
        )

        events: list[RawEvent] = []
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "failed to fetch calendar",
                    calendar_id=target.calendar_id,
                    account=target.account,
                    error=str(result),
                )
                continue
            events.extend(result)
        return events

    async def fetch_days(
        self,
        since: str | date,
        until: str | date,
        targets: list[FetchTarget],
    ) -> list[Day]:
        since_date = parse_date(since, "since")
        until_date = parse_date(until, "until")
        if since_date > until_date:
            raise InvalidDateRangeError(
                f"since ({since_date}) must not be after until ({until_date})"
            )
        events = await self.fetch(since_date, until_date, targets)
        return bucket_events(events, since_date, until_date, self.tz)

    async def create_event(
        self,
        account: Account,
        token: Token,
        summary: str,
        description: str | None,
        start: str,
        end: str,
    ) -> EventLink:
        """
        Insert an event into the account's first configured calendar.

        ``start``/``end`` are local wall-clock times in the configured zone.

        Raises:
            NoCalendarIdError: Account has no calendar configured
            InvalidEventTimeError: Unparseable times or end before start
        """
        calendar_id = account.insert_calendar_id
        if calendar_id is None:
            raise NoCalendarIdError(account.name)

        start_at = _parse_event_time(start, "start", self.tz)
        end_at = _parse_event_time(end, "end", self.tz)
        if end_at < start_at:
            raise InvalidEventTimeError(f"End time {end} is before start time {start}")

        zone = _zone_name(self.tz)
        body: dict[str, Any] = {
            "summary": summary,
            "start": {"dateTime": start_at.isoformat(), "timeZone": zone},
            "end": {"dateTime": end_at.isoformat(), "timeZone": zone},
        }
        if description:
            body["description"] = description

        link = await self.client.create_event(calendar_id, token.access_token, body)
        logger.info("created event", account=account.name, calendar_id=calendar_id, event_id=link.id)
        return link
