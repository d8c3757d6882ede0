"""
Tool: MCP Server
Purpose: JSON-RPC tool server exposing calendar listing and event creation

Requests other than ``initialize`` are rejected until the client has
initialized. Authorization is lazy: the first tool call for an account
runs the OAuth flow if no valid credential is stored.

Usage:
    server = McpServer(store, token_manager, aggregator)
    await server.serve(StdioTransport.from_stdio())
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from enum import IntEnum
from typing import Any

from cal2prompt import __version__
from cal2prompt.calendar.aggregator import CalendarAggregator, FetchTarget, parse_date
from cal2prompt.errors import (
    AccountNotFoundError,
    AuthorizationError,
    Cal2PromptError,
    InvalidDateRangeError,
    InvalidEventTimeError,
    NoCalendarIdError,
    PortInUseError,
    TransportError,
)
from cal2prompt.google.accounts import AccountStore, TokenManager
from cal2prompt.logging_config import get_logger
from cal2prompt.mcp.tools import INSERT_CALENDAR_EVENT, LIST_CALENDAR_EVENTS, TOOLS, required_arguments
from cal2prompt.mcp.transport import Notification, Request, Response, StdioTransport

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "cal2prompt"


class ErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    PORT_IN_USE = -32001
    AUTHORIZATION_FAILED = -32002


class McpError(Exception):
    """Raised inside handlers to produce a specific JSON-RPC error."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


_INVALID_PARAMS_ERRORS = (
    AccountNotFoundError,
    NoCalendarIdError,
    InvalidDateRangeError,
    InvalidEventTimeError,
)


def error_code_for(exc: BaseException) -> ErrorCode:
    if isinstance(exc, McpError):
        return exc.code
    if isinstance(exc, PortInUseError):
        return ErrorCode.PORT_IN_USE
    if isinstance(exc, AuthorizationError):
        return ErrorCode.AUTHORIZATION_FAILED
    if isinstance(exc, _INVALID_PARAMS_ERRORS):
        return ErrorCode.INVALID_PARAMS
    return ErrorCode.INTERNAL_ERROR


def _text_content(payload: Any) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload, ensure_ascii=False)}]}


Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class McpServer:
    def __init__(
        self,
        store: AccountStore,
        tokens: TokenManager,
        aggregator: CalendarAggregator,
    ):
        self.store = store
        self.tokens = tokens
        self.aggregator = aggregator
        self.initialized = False

        self._methods: dict[str, Handler] = {
            "initialize": self._initialize,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }
        self._tools: dict[str, Handler] = {
            LIST_CALENDAR_EVENTS: self._list_calendar_events,
            INSERT_CALENDAR_EVENT: self._insert_calendar_event,
        }

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    async def serve(self, transport: StdioTransport) -> None:
        """Process messages one at a time until input ends."""
        transport.start()
        logger.info("mcp server started", version=__version__)
        try:
            while True:
                message = await transport.receive()
                if message is None:
                    break
                response = await self.handle_message(message)
                if response is None:
                    continue
                try:
                    await transport.send(response)
                except TransportError as e:
                    logger.error("failed to send response", error=str(e), id=response.id)
        finally:
            await transport.close()
            logger.info("mcp server stopped")

    async def handle_message(self, message: Any) -> Response | None:
        if isinstance(message, Request):
            return await self.handle_request(message)
        if isinstance(message, Notification):
            logger.debug("notification", method=message.method)
            return None
        logger.debug("ignoring incoming response", id=getattr(message, "id", None))
        return None

    async def handle_request(self, request: Request) -> Response:
        if not self.initialized and request.method != "initialize":
            return Response.failure(
                request.id,
                ErrorCode.INVALID_REQUEST,
                "Server not initialized. Send 'initialize' request first.",
            )

        handler = self._methods.get(request.method)
        if handler is None:
            return Response.failure(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )

        params = request.params if request.params is not None else {}
        if not isinstance(params, dict):
            return Response.failure(request.id, ErrorCode.INVALID_PARAMS, "params must be an object")

        try:
            result = await handler(params)
        except (McpError, Cal2PromptError) as e:
            code = error_code_for(e)
            logger.warning("request failed", method=request.method, code=int(code), error=str(e))
            return Response.failure(request.id, code, str(e))
        except Exception as e:
            logger.exception("unexpected error handling request", method=request.method)
            return Response.failure(request.id, ErrorCode.INTERNAL_ERROR, f"Internal error: {e!s}")

        return Response(id=request.id, result=result)

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        logger.info(
            "initialize",
            client=client.get("name") if isinstance(client, dict) else None,
            client_protocol=params.get("protocolVersion"),
        )
        self.initialized = True
        return {
            "capabilities": {
                "experimental": {},
                "prompts": {"listChanged": False},
                "resources": {"listChanged": False, "subscribe": False},
                "tools": {"listChanged": False},
            },
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def _list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": TOOLS}

    async def _call_tool(self, params: dict[str, Any]) -> Any:
        name = params.get("name")
        if not name or not isinstance(name, str):
            raise McpError(ErrorCode.INVALID_PARAMS, "Missing tool name")

        tool = self._tools.get(name)
        if tool is None:
            raise McpError(ErrorCode.INVALID_PARAMS, f"Unknown tool: {name}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise McpError(ErrorCode.INVALID_PARAMS, "arguments must be an object")

        missing = [arg for arg in required_arguments(name) if arguments.get(arg) in (None, "")]
        if missing:
            raise McpError(
                ErrorCode.INVALID_PARAMS,
                f"Missing required argument(s) for {name}: {', '.join(missing)}",
            )

        return await tool(arguments)

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    @staticmethod
    def _account_argument(arguments: dict[str, Any]) -> str | None:
        # "profile" is accepted as an alias of "account"
        return arguments.get("account") or arguments.get("profile") or None

    async def _list_calendar_events(self, arguments: dict[str, Any]) -> dict[str, Any]:
        account = self.store.resolve(self._account_argument(arguments))
        since = parse_date(str(arguments["since"]), "since")
        until = parse_date(str(arguments["until"]), "until")

        token = await self.tokens.ensure_valid(account.name)
        targets = [
            FetchTarget(calendar_id=cid, access_token=token.access_token, account=account.name)
            for cid in account.calendar_ids
        ]
        days = await self.aggregator.fetch_days(since, until, targets)
        return _text_content({"days": [day.to_dict() for day in days]})

    async def _insert_calendar_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        account = self.store.resolve(self._account_argument(arguments))
        if account.insert_calendar_id is None:
            raise NoCalendarIdError(account.name)

        token = await self.tokens.ensure_valid(account.name)
        link = await self.aggregator.create_event(
            account,
            token,
            summary=str(arguments["summary"]),
            description=arguments.get("description"),
            start=str(arguments["start"]),
            end=str(arguments["end"]),
        )
        return _text_content(link.to_dict())
