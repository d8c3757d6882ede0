"""Shared test fixtures for cal2prompt tests.

This module provides common fixtures used across all test modules:
- Minimal valid configuration (dict, file and model)
- Raw Calendar API event builders
- Time zones used by the scenarios

Usage:
    def test_something(config):
        # config is a validated Config whose credentials live under tmp_path
        ...
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest
import yaml

from cal2prompt.config_models import Config
from cal2prompt.google.models import RawEvent


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "cal2prompt"


# ─────────────────────────────────────────────────────────────────────────────
# Configuration Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def config_data(tmp_path: Path) -> dict[str, Any]:
    """Raw configuration mapping with two accounts."""
    return {
        "source": {
            "google": {
                "oauth2": {
                    "client_id": "test-client-id",
                    "client_secret": "test-client-secret",
                    "redirect_url": "http://127.0.0.1:9004",
                },
                "accounts": [
                    {
                        "name": "work",
                        "authorize_account": "me@work.example",
                        "calendar_ids": ["work@example.com", "team@group.calendar.google.com"],
                    },
                    {
                        "name": "personal",
                        "authorize_account": "me@example.com",
                        "calendar_ids": ["primary"],
                    },
                ],
            }
        },
        "settings": {
            "tz": "Asia/Tokyo",
            "oauth2_path": str(tmp_path / "oauth2"),
        },
    }


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    """Factory writing a mapping to a YAML config file under tmp_path."""

    def _write(data: dict[str, Any], name: str = "config.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config(config_data: dict[str, Any]) -> Config:
    return Config.model_validate(config_data)


# ─────────────────────────────────────────────────────────────────────────────
# Event Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def tokyo() -> ZoneInfo:
    return ZoneInfo("Asia/Tokyo")


@pytest.fixture
def los_angeles() -> ZoneInfo:
    return ZoneInfo("America/Los_Angeles")


@pytest.fixture
def timed_event() -> Callable[..., RawEvent]:
    """Build a timed RawEvent from RFC 3339 start/end strings."""

    def _make(summary: str | None, start: str, end: str | None = None, **extra: Any) -> RawEvent:
        data: dict[str, Any] = {"start": {"dateTime": start}, **extra}
        if summary is not None:
            data["summary"] = summary
        if end is not None:
            data["end"] = {"dateTime": end}
        return RawEvent.from_dict(data)

    return _make


@pytest.fixture
def all_day_event() -> Callable[..., RawEvent]:
    """Build an all-day RawEvent; ``end`` is exclusive, as the API returns it."""

    def _make(summary: str | None, start: str, end: str | None = None, **extra: Any) -> RawEvent:
        data: dict[str, Any] = {"start": {"date": start}, **extra}
        if summary is not None:
            data["summary"] = summary
        if end is not None:
            data["end"] = {"date": end}
        return RawEvent.from_dict(data)

    return _make
