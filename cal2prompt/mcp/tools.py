"""Tool catalog returned by ``tools/list``."""

from typing import Any


LIST_CALENDAR_EVENTS = "list_calendar_events"
INSERT_CALENDAR_EVENT = "insert_calendar_event"

_ACCOUNT_PROPERTY = {
    "type": "string",
    "description": "Configured account name. Defaults to the default account.",
}

TOOLS: list[dict[str, Any]] = [
    {
        "name": LIST_CALENDAR_EVENTS,
        "description": (
            "List Google Calendar events between two dates (inclusive), grouped by day "
            "in the configured time zone."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "since": {"type": "string", "description": "First day, YYYY-MM-DD"},
                "until": {"type": "string", "description": "Last day, YYYY-MM-DD"},
                "account": _ACCOUNT_PROPERTY,
            },
            "required": ["since", "until"],
        },
    },
    {
        "name": INSERT_CALENDAR_EVENT,
        "description": (
            "Create an event in the account's first configured calendar. Times are local "
            "to the configured time zone."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "summary": {"type": "string", "description": "Event title"},
                "description": {"type": "string", "description": "Event description"},
                "start": {"type": "string", "description": "Start, YYYY-MM-DD HH:MM"},
                "end": {"type": "string", "description": "End, YYYY-MM-DD HH:MM"},
                "account": _ACCOUNT_PROPERTY,
            },
            "required": ["summary", "start", "end"],
        },
    },
]


def required_arguments(tool_name: str) -> list[str]:
    for tool in TOOLS:
        if tool["name"] == tool_name:
            return list(tool["inputSchema"].get("required", []))
    return []
