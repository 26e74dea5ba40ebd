import asyncio
import json
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from autoheal.utils.error_handling import ToolTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCallResult:
    """Normalized result of one remote tool call."""
    is_error: bool
    payload: Any
    text: str


class ToolTransport(Protocol):
    async def call(self, tool_name: str, args: dict[str, Any]) -> ToolCallResult:
        ...

    async def close(self) -> None:
        ...


def _extract_first_text(result: Any) -> str:
    content = getattr(result, "content", None)
    if isinstance(result, dict):
        content = result.get("content", []) or []

    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict) and "text" in item:
                return str(item["text"])
            text = getattr(item, "text", None)
            if isinstance(text, str):
                return text

    return ""


def _extract_first_json(result: Any) -> Any:
    structured = getattr(result, "structuredContent", None)
    if isinstance(structured, dict):
        return structured

    text = _extract_first_text(result).strip()
    if text.startswith("{") or text.startswith("["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
    return None


class MCPStdioTransport:
    """MCP client session over a stdio tool server subprocess."""

    def __init__(self, command: str, args: Optional[list[str]] = None, env: Optional[dict[str, str]] = None):
        self._params = StdioServerParameters(command=command, args=list(args or []), env=env or None)
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    async def connect(self) -> "MCPStdioTransport":
        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(self._params))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception as exc:
            await stack.aclose()
            raise ToolTransportError(
                f"Failed to start MCP tool server '{self._params.command}': {exc}"
            ) from exc
        except BaseException:
            # Cancelled mid-connect: still tear down the stdio server subprocess
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        logger.info(f"Connected to MCP tool server: {self._params.command} {' '.join(self._params.args)}")
        return self

    async def call(self, tool_name: str, args: dict[str, Any]) -> ToolCallResult:
        if self._session is None:
            raise ToolTransportError("MCP session is not connected")
        try:
            result = await self._session.call_tool(tool_name, arguments=args)
        except Exception as exc:
            raise ToolTransportError(f"MCP call '{tool_name}' failed: {exc}") from exc

        return ToolCallResult(
            is_error=bool(getattr(result, "isError", False)),
            payload=_extract_first_json(result),
            text=_extract_first_text(result),
        )

    async def close(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            try:
                await stack.aclose()
            except Exception as exc:
                logger.warning(f"Error while closing MCP session: {exc}")


class ToolConnectionManager:
    """
    Lazily establishes one tool transport and reuses it.

    The lock is held only while initializing. Callers that were waiting on
    an initialization attempt observe its outcome: the shared transport, or
    the same exception. A later call after a failure starts a new attempt.
    """

    def __init__(self, connector: Callable[[], Awaitable[ToolTransport]]):
        self._connector = connector
        self._transport: Optional[ToolTransport] = None
        self._lock = asyncio.Lock()
        self._failures = 0
        self._last_error: Optional[BaseException] = None

    @property
    def is_ready(self) -> bool:
        return self._transport is not None

    async def get_or_init(self) -> ToolTransport:
        transport = self._transport
        if transport is not None:
            return transport

        seen_failures = self._failures
        async with self._lock:
            if self._transport is not None:
                return self._transport
            if self._failures != seen_failures:
                # The attempt we waited on failed; share its error
                raise self._last_error

            try:
                self._transport = await self._connector()
            except Exception as exc:
                self._failures += 1
                self._last_error = exc
                logger.error(f"Tool connection initialization failed: {exc}")
                raise
            self._last_error = None
            return self._transport

    async def close(self) -> None:
        async with self._lock:
            transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()


def stdio_connector(command: str, args: Optional[list[str]] = None) -> Callable[[], Awaitable[ToolTransport]]:
    """Build a connector that spawns the MCP tool server over stdio."""

    async def _connect() -> ToolTransport:
        return await MCPStdioTransport(command, args).connect()

    return _connect
