"""
Tool: Stdio Transport
Purpose: Newline-delimited JSON-RPC 2.0 messages over a byte stream

A background task reads lines into a bounded queue; the server pulls one
message at a time. Writes go through a single lock so responses never
interleave.

Usage:
    transport = StdioTransport.from_stdio()
    transport.start()
    message = await transport.receive()   # None at end of input
    await transport.send(Response(id=1, result={}))
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, BinaryIO, Union

from cal2prompt.errors import TransportError
from cal2prompt.logging_config import get_logger

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"
QUEUE_SIZE = 100


# =============================================================================
# Messages
# =============================================================================


@dataclass
class Request:
    id: Any
    method: str
    params: Any = None
    jsonrpc: str = JSONRPC_VERSION


@dataclass
class Notification:
    method: str
    params: Any = None
    jsonrpc: str = JSONRPC_VERSION


@dataclass
class ErrorObject:
    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            d["data"] = self.data
        return d


@dataclass
class Response:
    id: Any
    result: Any = None
    error: ErrorObject | None = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            d["error"] = self.error.to_dict()
        else:
            d["result"] = self.result if self.result is not None else {}
        return d

    @classmethod
    def failure(cls, id: Any, code: int, message: str, data: Any = None) -> Response:
        return cls(id=id, error=ErrorObject(code=int(code), message=message, data=data))


Message = Union[Request, Notification, Response]


def parse_message(line: str | bytes) -> Message:
    """
    Decode one line into a Request, Notification or Response.

    Raises:
        TransportError: Not JSON, not an object, or no recognizable shape
    """
    try:
        obj = json.loads(line)
    except (ValueError, RecursionError) as e:
        raise TransportError(f"Invalid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise TransportError("JSON-RPC message must be an object")

    if "method" in obj:
        method = obj["method"]
        if not isinstance(method, str):
            raise TransportError("'method' must be a string")
        if "id" in obj:
            return Request(id=obj["id"], method=method, params=obj.get("params"))
        return Notification(method=method, params=obj.get("params"))

    if "id" in obj and ("result" in obj or "error" in obj):
        error = obj.get("error")
        return Response(
            id=obj["id"],
            result=obj.get("result"),
            error=(
                ErrorObject(
                    code=error.get("code", 0),
                    message=error.get("message", ""),
                    data=error.get("data"),
                )
                if isinstance(error, dict)
                else None
            ),
        )

    raise TransportError("Unrecognized JSON-RPC message")


# =============================================================================
# Transport
# =============================================================================


class StdioTransport:
    def __init__(
        self,
        readline: Callable[[], Awaitable[bytes]],
        output: BinaryIO,
        queue_size: int = QUEUE_SIZE,
    ):
        self._readline = readline
        self._output = output
        self._queue: asyncio.Queue[Message | None] = asyncio.Queue(maxsize=queue_size)
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task | None = None

    @classmethod
    def from_stdio(cls) -> StdioTransport:
        stdin = sys.stdin.buffer

        async def readline() -> bytes:
            return await asyncio.to_thread(stdin.readline)

        return cls(readline, sys.stdout.buffer)

    def start(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            while True:
                line = await self._readline()
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    message = parse_message(line)
                except TransportError as e:
                    logger.warning("skipping malformed message", error=str(e))
                    continue
                await self._queue.put(message)
        except OSError as e:
            logger.error("input stream failed", error=str(e))
        except Exception:
            logger.exception("input reader stopped")
        # End of input; cancellation from close() skips this
        await self._queue.put(None)

    async def receive(self) -> Message | None:
        """Next message, or None once input is exhausted."""
        return await self._queue.get()

    async def send(self, response: Response) -> None:
        data = (json.dumps(response.to_dict(), ensure_ascii=False) + "\n").encode("utf-8")
        async with self._write_lock:
            try:
                self._output.write(data)
                self._output.flush()
            except OSError as e:
                raise TransportError(f"Failed to write response: {e}") from e

    async def close(self) -> None:
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None
