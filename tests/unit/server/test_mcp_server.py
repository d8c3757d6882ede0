"""Tests for cal2prompt/mcp/server.py"""

import asyncio
import io
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from cal2prompt import __version__
from cal2prompt.calendar.aggregator import CalendarAggregator
from cal2prompt.config_models import Config
from cal2prompt.errors import ConsentDeniedError, PortInUseError
from cal2prompt.google.accounts import AccountStore
from cal2prompt.google.models import EventLink, RawEvent, Token
from cal2prompt.mcp.server import ErrorCode, McpServer, error_code_for
from cal2prompt.mcp.transport import Notification, Request, Response, StdioTransport


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.list_events = AsyncMock(
        return_value=[
            RawEvent.from_dict(
                {
                    "summary": "Standup",
                    "start": {"dateTime": "2025-01-06T10:00:00+09:00"},
                    "end": {"dateTime": "2025-01-06T10:15:00+09:00"},
                }
            )
        ]
    )
    client.create_event = AsyncMock(
        return_value=EventLink(id="e1", summary="Lunch", html_link="https://cal/e1")
    )
    return client


@pytest.fixture
def tokens() -> MagicMock:
    manager = MagicMock()
    manager.ensure_valid = AsyncMock(return_value=Token(access_token="tok"))
    return manager


def _server(config: Config, tokens: MagicMock, client: MagicMock) -> McpServer:
    store = AccountStore.from_config(config)
    return McpServer(store, tokens, CalendarAggregator(client, config.settings.zone))


@pytest.fixture
def server(config, tokens, client) -> McpServer:
    return _server(config, tokens, client)


async def _initialize(server: McpServer) -> None:
    response = await server.handle_request(Request(id=0, method="initialize", params={}))
    assert response.error is None


def _call(name: str, arguments: dict | None = None, id: int = 1) -> Request:
    params: dict = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return Request(id=id, method="tools/call", params=params)


class TestInitializationGate:
    @pytest.mark.asyncio
    async def test_tools_call_before_initialize_rejected(self, server, tokens):
        response = await server.handle_request(
            _call("list_calendar_events", {"since": "2025-01-06", "until": "2025-01-06"}, id=5)
        )

        assert response.id == 5
        assert response.error.code == ErrorCode.INVALID_REQUEST
        assert response.error.message == "Server not initialized. Send 'initialize' request first."
        assert server.initialized is False
        tokens.ensure_valid.assert_not_called()

    @pytest.mark.asyncio
    async def test_tools_list_before_initialize_rejected(self, server):
        response = await server.handle_request(Request(id=1, method="tools/list"))
        assert response.error.code == ErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_initialize_result(self, server):
        response = await server.handle_request(
            Request(
                id=1,
                method="initialize",
                params={"protocolVersion": "2024-11-05", "clientInfo": {"name": "test"}},
            )
        )

        assert server.initialized is True
        assert response.result["protocolVersion"] == "2024-11-05"
        assert response.result["serverInfo"] == {"name": "cal2prompt", "version": __version__}
        assert response.result["capabilities"]["tools"] == {"listChanged": False}
        assert response.result["capabilities"]["resources"] == {
            "listChanged": False,
            "subscribe": False,
        }


class TestDispatch:
    @pytest.mark.asyncio
    async def test_unknown_method(self, server):
        await _initialize(server)
        response = await server.handle_request(Request(id=2, method="resources/list"))
        assert response.error.code == ErrorCode.METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_tools_list(self, server):
        await _initialize(server)
        response = await server.handle_request(Request(id=2, method="tools/list"))
        names = [tool["name"] for tool in response.result["tools"]]
        assert names == ["list_calendar_events", "insert_calendar_event"]
        for tool in response.result["tools"]:
            assert tool["inputSchema"]["type"] == "object"

    @pytest.mark.asyncio
    async def test_params_must_be_object(self, server):
        await _initialize(server)
        response = await server.handle_request(Request(id=2, method="tools/call", params=[1]))
        assert response.error.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_missing_tool_name(self, server):
        await _initialize(server)
        response = await server.handle_request(Request(id=2, method="tools/call", params={}))
        assert response.error.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server):
        await _initialize(server)
        response = await server.handle_request(_call("delete_everything", {}))
        assert response.error.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, server, tokens):
        await _initialize(server)
        response = await server.handle_request(_call("list_calendar_events", {"since": "2025-01-06"}))
        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert "until" in response.error.message
        tokens.ensure_valid.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifications_and_responses_get_no_reply(self, server):
        assert await server.handle_message(Notification(method="notifications/initialized")) is None
        assert await server.handle_message(Response(id=9, result={})) is None


class TestListCalendarEvents:
    @pytest.mark.asyncio
    async def test_default_account_is_first_configured(self, server, tokens, client):
        await _initialize(server)

        response = await server.handle_request(
            _call("list_calendar_events", {"since": "2025-01-06", "until": "2025-01-06"})
        )

        assert response.error is None
        tokens.ensure_valid.assert_awaited_once_with("work")
        queried = [c.args[0] for c in client.list_events.await_args_list]
        assert queried == ["work@example.com", "team@group.calendar.google.com"]

        content = response.result["content"]
        assert content[0]["type"] == "text"
        payload = json.loads(content[0]["text"])
        assert [d["date"] for d in payload["days"]] == ["2025-01-06"]
        assert [e["summary"] for e in payload["days"][0]["timed_events"]] == ["Standup", "Standup"]

    @pytest.mark.asyncio
    async def test_named_account(self, server, tokens, client):
        await _initialize(server)

        await server.handle_request(
            _call(
                "list_calendar_events",
                {"since": "2025-01-06", "until": "2025-01-06", "account": "personal"},
            )
        )

        tokens.ensure_valid.assert_awaited_once_with("personal")
        assert [c.args[0] for c in client.list_events.await_args_list] == ["primary"]

    @pytest.mark.asyncio
    async def test_unknown_account(self, server):
        await _initialize(server)
        response = await server.handle_request(
            _call(
                "list_calendar_events",
                {"since": "2025-01-06", "until": "2025-01-06", "account": "ghost"},
            )
        )
        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert "ghost" in response.error.message

    @pytest.mark.asyncio
    async def test_bad_dates_checked_before_authorization(self, server, tokens):
        await _initialize(server)
        response = await server.handle_request(
            _call("list_calendar_events", {"since": "yesterday", "until": "2025-01-06"})
        )
        assert response.error.code == ErrorCode.INVALID_PARAMS
        tokens.ensure_valid.assert_not_called()

    @pytest.mark.asyncio
    async def test_port_in_use(self, server, tokens):
        await _initialize(server)
        tokens.ensure_valid.side_effect = PortInUseError("127.0.0.1", 9004)

        response = await server.handle_request(
            _call("list_calendar_events", {"since": "2025-01-06", "until": "2025-01-06"}, id=11)
        )

        assert response.id == 11
        assert response.error.code == ErrorCode.PORT_IN_USE
        assert "9004" in response.error.message

    @pytest.mark.asyncio
    async def test_authorization_failure(self, server, tokens):
        await _initialize(server)
        tokens.ensure_valid.side_effect = ConsentDeniedError("access_denied")

        response = await server.handle_request(
            _call("list_calendar_events", {"since": "2025-01-06", "until": "2025-01-06"})
        )

        assert response.error.code == ErrorCode.AUTHORIZATION_FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, server, client):
        await _initialize(server)
        server.aggregator.fetch_days = AsyncMock(side_effect=RuntimeError("boom"))

        response = await server.handle_request(
            _call("list_calendar_events", {"since": "2025-01-06", "until": "2025-01-06"})
        )

        assert response.error.code == ErrorCode.INTERNAL_ERROR
        assert "boom" in response.error.message


class TestInsertCalendarEvent:
    @pytest.mark.asyncio
    async def test_creates_event_in_first_calendar(self, server, client):
        await _initialize(server)

        response = await server.handle_request(
            _call(
                "insert_calendar_event",
                {"summary": "Lunch", "start": "2025-01-06 12:00", "end": "2025-01-06 13:00"},
            )
        )

        assert response.error is None
        assert client.create_event.await_args.args[0] == "work@example.com"
        payload = json.loads(response.result["content"][0]["text"])
        assert payload == {"id": "e1", "summary": "Lunch", "html_link": "https://cal/e1"}

    @pytest.mark.asyncio
    async def test_no_calendar_id(self, config_data, tokens, client):
        config_data["source"]["google"]["accounts"][0]["calendar_ids"] = []
        server = _server(Config.model_validate(config_data), tokens, client)
        await _initialize(server)

        response = await server.handle_request(
            _call(
                "insert_calendar_event",
                {"summary": "Lunch", "start": "2025-01-06 12:00", "end": "2025-01-06 13:00"},
            )
        )

        assert response.error.code == ErrorCode.INVALID_PARAMS
        tokens.ensure_valid.assert_not_called()
        client.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_time(self, server):
        await _initialize(server)
        response = await server.handle_request(
            _call(
                "insert_calendar_event",
                {"summary": "Lunch", "start": "2025-01-06 13:00", "end": "2025-01-06 12:00"},
            )
        )
        assert response.error.code == ErrorCode.INVALID_PARAMS


class TestErrorCodeMapping:
    def test_mapping(self):
        assert error_code_for(PortInUseError("h", 1)) == ErrorCode.PORT_IN_USE
        assert error_code_for(ConsentDeniedError("x")) == ErrorCode.AUTHORIZATION_FAILED
        assert error_code_for(ValueError("x")) == ErrorCode.INTERNAL_ERROR

    def test_codes(self):
        assert ErrorCode.PARSE_ERROR == -32700
        assert ErrorCode.INVALID_REQUEST == -32600
        assert ErrorCode.METHOD_NOT_FOUND == -32601
        assert ErrorCode.INVALID_PARAMS == -32602
        assert ErrorCode.INTERNAL_ERROR == -32603


class TestServe:
    @pytest.mark.asyncio
    async def test_serves_until_eof(self, server):
        reader = asyncio.StreamReader()
        for message in (
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            {"jsonrpc": "2.0", "id": 2, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 3, "method": "tools/list"},
        ):
            reader.feed_data((json.dumps(message) + "\n").encode())
        reader.feed_data(b"this is not json\n")
        reader.feed_eof()
        output = io.BytesIO()

        await server.serve(StdioTransport(reader.readline, output))

        replies = [json.loads(line) for line in output.getvalue().decode().splitlines()]
        assert [r["id"] for r in replies] == [1, 2, 3]
        assert replies[0]["error"]["code"] == -32600
        assert replies[1]["result"]["protocolVersion"] == "2024-11-05"
        assert len(replies[2]["result"]["tools"]) == 2
