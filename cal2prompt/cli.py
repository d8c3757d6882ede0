#!/usr/bin/env python3
"""
cal2prompt Command Line Interface

Main entry point for the `cal2prompt` command.

Usage:
    cal2prompt                                   # Today's schedule as a prompt
    cal2prompt --this-week                       # Monday..Sunday of this week
    cal2prompt --since 2025-01-06 --until 2025-01-10 --profile work
    cal2prompt mcp                               # Serve MCP over stdin/stdout
    cal2prompt --version                         # Show version
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from jinja2 import TemplateError

from cal2prompt import __version__
from cal2prompt.calendar.aggregator import CalendarAggregator, FetchTarget
from cal2prompt.calendar.durations import EventDuration, get_duration
from cal2prompt.calendar.template import render, resolve_template
from cal2prompt.config_models import Config, load_config
from cal2prompt.errors import Cal2PromptError
from cal2prompt.google.accounts import AccountStore, TokenManager
from cal2prompt.google.calendar_client import GoogleCalendarClient
from cal2prompt.google.oauth_manager import OAuth2Client
from cal2prompt.logging_config import get_logger, setup_logging
from cal2prompt.mcp.server import McpServer
from cal2prompt.mcp.transport import StdioTransport

logger = get_logger(__name__)


def _build(config: Config) -> tuple[AccountStore, TokenManager, CalendarAggregator]:
    store = AccountStore.from_config(config)
    tokens = TokenManager(store, OAuth2Client.from_config(config.oauth2))
    aggregator = CalendarAggregator(GoogleCalendarClient(), config.settings.zone)
    return store, tokens, aggregator


def resolve_range(args: argparse.Namespace, config: Config) -> tuple[str, str]:
    """Explicit --since/--until win; otherwise a duration flag (default: today)."""
    if args.since and args.until:
        return args.since, args.until

    if args.this_week:
        duration = EventDuration.THIS_WEEK
    elif args.this_month:
        duration = EventDuration.THIS_MONTH
    elif args.next_week:
        duration = EventDuration.NEXT_WEEK
    else:
        duration = EventDuration.TODAY

    since, until = get_duration(config.settings.zone, duration)
    return since.isoformat(), until.isoformat()


async def build_prompt(config: Config, since: str, until: str, profile: str | None = None) -> str:
    store, tokens, aggregator = _build(config)
    accounts = [store.get(profile)] if profile else list(store)

    # Sequential: each account may need its own browser authorization
    targets: list[FetchTarget] = []
    for account in accounts:
        token = await tokens.ensure_valid(account.name)
        targets.extend(
            FetchTarget(calendar_id=cid, access_token=token.access_token, account=account.name)
            for cid in account.calendar_ids
        )

    days = await aggregator.fetch_days(since, until, targets)
    return render(resolve_template(config.prompt.template), days)


def cmd_prompt(args: argparse.Namespace) -> int:
    """Render the schedule for the requested range to stdout."""
    config = load_config(args.config)
    since, until = resolve_range(args, config)
    logger.debug("rendering prompt", since=since, until=until, profile=args.profile)
    text = asyncio.run(build_prompt(config, since, until, args.profile))
    print(text)
    return 0


def cmd_mcp(args: argparse.Namespace) -> int:
    """Run the MCP server on stdin/stdout until input ends."""
    config = load_config(args.config)
    store, tokens, aggregator = _build(config)
    server = McpServer(store, tokens, aggregator)
    asyncio.run(server.serve(StdioTransport.from_stdio()))
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(f"cal2prompt {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cal2prompt",
        description="Fetch your Google Calendar schedule and render it as an LLM prompt",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging (stderr)"
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Config file (default: $CAL2PROMPT_CONFIG_FILE_PATH or ~/.config/cal2prompt/config.yaml)",
    )
    parser.add_argument("--since", help="First day (YYYY-MM-DD); requires --until")
    parser.add_argument("--until", help="Last day (YYYY-MM-DD); requires --since")
    parser.add_argument("--profile", help="Only use this account (default: all accounts)")

    durations = parser.add_mutually_exclusive_group()
    durations.add_argument("--today", action="store_true", help="Today (default)")
    durations.add_argument("--this-week", action="store_true", help="Monday..Sunday of this week")
    durations.add_argument("--this-month", action="store_true", help="First..last day of this month")
    durations.add_argument("--next-week", action="store_true", help="Monday..Sunday of next week")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    mcp_parser = subparsers.add_parser(
        "mcp", help="Run as an MCP server over stdin/stdout"
    )
    mcp_parser.set_defaults(func=cmd_mcp)

    parser.set_defaults(func=cmd_prompt)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle --version at top level
    if args.version:
        return cmd_version(args)

    if bool(args.since) != bool(args.until):
        parser.error("--since and --until must be given together")
    if args.since and (args.today or args.this_week or args.this_month or args.next_week):
        parser.error("--since/--until cannot be combined with a duration flag")

    setup_logging(level="DEBUG" if args.verbose else None)

    try:
        return args.func(args)
    except (Cal2PromptError, TemplateError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
