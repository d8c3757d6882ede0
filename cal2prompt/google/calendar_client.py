"""
Tool: Google Calendar Client
Purpose: Thin Calendar API v3 wrapper (list and insert events)

Stateless: every call takes the bearer token to use, so one client is
shared across accounts.

Usage:
    client = GoogleCalendarClient()
    events = await client.list_events("primary", token, time_min, time_max)
    link = await client.create_event("primary", token, body)

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from cal2prompt.errors import CalendarAPIError
from cal2prompt.google.models import EventLink, RawEvent

logger = logging.getLogger(__name__)


CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"

# Page-follow ceiling for one calendar listing
MAX_PAGES = 50


class GoogleCalendarClient:
    def __init__(self, api_base: str = CALENDAR_API_BASE, timeout: float | None = 30.0):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def events_url(self, calendar_id: str) -> str:
        return f"{self.api_base}/calendars/{quote(calendar_id, safe='')}/events"

    @staticmethod
    def _get_headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        data: dict | None = None,
        params: dict | None = None,
        calendar_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated API request.

        Returns:
            Decoded JSON body

        Raises:
            CalendarAPIError: Non-2xx status or transport failure
        """
        headers = self._get_headers(access_token)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=headers, json=data, params=params
                ) as resp:
                    return await self._handle_response(resp, calendar_id)
        except aiohttp.ClientError as e:
            raise CalendarAPIError(
                f"Calendar API request failed: {e!s}", calendar_id=calendar_id
            ) from e

    @staticmethod
    async def _handle_response(resp: aiohttp.ClientResponse, calendar_id: str | None) -> dict[str, Any]:
        if resp.status == 204:
            return {}

        try:
            data = await resp.json(content_type=None)
        except ValueError:
            data = None

        if 200 <= resp.status < 300:
            return data if isinstance(data, dict) else {}

        if resp.status == 401:
            message = "Authentication failed - token may be expired"
        elif resp.status == 403:
            message = "Permission denied - insufficient scopes"
        elif resp.status == 404:
            message = "Calendar not found"
        else:
            message = f"HTTP {resp.status}"
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message") or message
        raise CalendarAPIError(message, status=resp.status, calendar_id=calendar_id)

    async def list_events(
        self,
        calendar_id: str,
        access_token: str,
        time_min: str,
        time_max: str,
    ) -> list[RawEvent]:
        """
        List single (expanded) events between ``time_min`` and ``time_max``.

        Follows ``nextPageToken`` until the listing is exhausted.
        """
        url = self.events_url(calendar_id)
        params: dict[str, str] = {
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": "true",
            "orderBy": "startTime",
        }

        events: list[RawEvent] = []
        for _ in range(MAX_PAGES):
            data = await self._request(
                "GET", url, access_token, params=params, calendar_id=calendar_id
            )
            events.extend(RawEvent.from_dict(item) for item in data.get("items") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}
        else:
            logger.warning(f"Stopped paging {calendar_id} after {MAX_PAGES} pages")

        logger.debug(f"Fetched {len(events)} events from {calendar_id}")
        return events

    async def create_event(
        self,
        calendar_id: str,
        access_token: str,
        body: dict[str, Any],
    ) -> EventLink:
        url = self.events_url(calendar_id)
        data = await self._request("POST", url, access_token, data=body, calendar_id=calendar_id)
        return EventLink.from_dict(data)
