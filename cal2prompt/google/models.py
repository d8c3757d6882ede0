"""
Tool: Google Models
Purpose: Data structures for Google credentials and Calendar events

Usage:
    from cal2prompt.google.models import Token, RawEvent, EventLink

RawEvent mirrors the Calendar API v3 event resource closely; only the
fields needed to build a prompt are kept.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass
class Token:
    """
    OAuth2 credential for one account.

    ``expires_at`` is absolute epoch seconds. A credential without an
    expiry never expires.
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        if now is None:
            now = time.time()
        return self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        if not isinstance(data, dict) or not data.get("access_token"):
            raise ValueError("credential is missing 'access_token'")
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
        )

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        now: float | None = None,
        previous_refresh_token: str | None = None,
    ) -> Token:
        """Build from a token endpoint reply (``expires_in`` is relative)."""
        if now is None:
            now = time.time()
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expires_at=int(now) + int(expires_in) if expires_in is not None else None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class EventDateTime:
    """Either ``date`` (all-day) or ``date_time`` plus an optional zone."""

    date: str | None = None
    date_time: str | None = None
    time_zone: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EventDateTime | None:
        if not data:
            return None
        return cls(
            date=data.get("date"),
            date_time=data.get("dateTime"),
            time_zone=data.get("timeZone"),
        )

    def to_utc(self) -> datetime | None:
        """Instant in UTC, or None for date-only or unparseable values."""
        if not self.date_time:
            return None
        raw = self.date_time
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            zone: Any = timezone.utc
            if self.time_zone:
                try:
                    zone = ZoneInfo(self.time_zone)
                except (ZoneInfoNotFoundError, ValueError):
                    zone = timezone.utc
            parsed = parsed.replace(tzinfo=zone)
        return parsed.astimezone(timezone.utc)

    def to_date(self) -> date | None:
        if not self.date:
            return None
        try:
            return date.fromisoformat(self.date)
        except ValueError:
            return None


@dataclass(frozen=True)
class Attendee:
    email: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Attendee:
        if isinstance(data, dict):
            return cls(email=data.get("email"))
        return cls()


@dataclass(frozen=True)
class RawEvent:
    """Calendar API event as returned by ``events.list``."""

    id: str | None = None
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: EventDateTime | None = None
    end: EventDateTime | None = None
    attendees: tuple[Attendee, ...] = field(default_factory=tuple)
    html_link: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawEvent:
        return cls(
            id=data.get("id"),
            summary=data.get("summary"),
            description=data.get("description"),
            location=data.get("location"),
            start=EventDateTime.from_dict(data.get("start")),
            end=EventDateTime.from_dict(data.get("end")),
            attendees=tuple(Attendee.from_dict(a) for a in data.get("attendees") or []),
            html_link=data.get("htmlLink"),
        )

    @property
    def is_all_day(self) -> bool:
        return self.start is not None and self.start.date is not None

    @property
    def start_time_utc(self) -> datetime | None:
        return self.start.to_utc() if self.start else None

    @property
    def end_time_utc(self) -> datetime | None:
        return self.end.to_utc() if self.end else None

    @property
    def attendee_emails(self) -> list[str]:
        return [a.email for a in self.attendees if a.email]


@dataclass
class EventLink:
    """Result of inserting an event."""

    id: str | None
    summary: str | None
    html_link: str | None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventLink:
        return cls(
            id=data.get("id"),
            summary=data.get("summary"),
            html_link=data.get("htmlLink"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
