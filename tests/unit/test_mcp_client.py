"""
Unit Tests for the MCP tool transport helpers and ToolConnectionManager

Tests:
- Result extraction (structuredContent, JSON text, plain text)
- Once-only lazy initialization under concurrent first callers
- Shared failure and later retry
- Server teardown when connecting fails or is cancelled
"""

import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, Mock, patch

from autoheal.tools.mcp_client import (
    MCPStdioTransport,
    ToolConnectionManager,
    _extract_first_json,
    _extract_first_text,
)
from autoheal.utils.error_handling import ToolTransportError


def _result(text=None, structured=None, is_error=False):
    content = [SimpleNamespace(type="text", text=text)] if text is not None else []
    return SimpleNamespace(content=content, structuredContent=structured, isError=is_error)


def test_extract_json_from_text():
    assert _extract_first_json(_result('{"zone": "us-central1-a"}')) == {"zone": "us-central1-a"}


def test_structured_content_preferred():
    assert _extract_first_json(_result("ignored", structured={"success": True})) == {"success": True}


def test_plain_text_has_no_json():
    result = _result("Error: instance not found")

    assert _extract_first_json(result) is None
    assert _extract_first_text(result) == "Error: instance not found"


def test_dict_results_supported():
    assert _extract_first_text({"content": [{"type": "text", "text": "hi"}]}) == "hi"


@pytest.mark.asyncio
async def test_transport_call_normalizes_result():
    transport = MCPStdioTransport("node", ["server.js"])
    transport._session = Mock()
    transport._session.call_tool = AsyncMock(return_value=_result('{"error": "nope"}', is_error=True))

    result = await transport.call("discover_instance_metadata", {"instanceName": "vm"})

    assert result.is_error is True
    assert result.payload == {"error": "nope"}
    transport._session.call_tool.assert_awaited_once_with(
        "discover_instance_metadata", arguments={"instanceName": "vm"}
    )


@pytest.mark.asyncio
async def test_transport_call_without_session_fails():
    with pytest.raises(ToolTransportError):
        await MCPStdioTransport("node").call("x", {})


def _fake_stdio(events):
    @asynccontextmanager
    async def fake_stdio_client(params):
        events.append("spawned")
        try:
            yield Mock(), Mock()
        finally:
            events.append("terminated")

    return fake_stdio_client


def _fake_session(initialize):
    session = Mock()
    session.initialize = initialize
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return Mock(return_value=session)


@pytest.mark.asyncio
async def test_connect_failure_tears_down_server():
    events = []
    with patch("autoheal.tools.mcp_client.stdio_client", _fake_stdio(events)), \
            patch("autoheal.tools.mcp_client.ClientSession", _fake_session(AsyncMock(side_effect=OSError("boom")))):
        with pytest.raises(ToolTransportError, match="boom"):
            await MCPStdioTransport("node", ["server.js"]).connect()

    assert events == ["spawned", "terminated"]


@pytest.mark.asyncio
async def test_cancelled_connect_tears_down_server():
    events = []
    started = asyncio.Event()

    async def slow_initialize():
        started.set()
        await asyncio.sleep(10)

    with patch("autoheal.tools.mcp_client.stdio_client", _fake_stdio(events)), \
            patch("autoheal.tools.mcp_client.ClientSession", _fake_session(slow_initialize)):
        task = asyncio.create_task(MCPStdioTransport("node", ["server.js"]).connect())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert events == ["spawned", "terminated"]


# ============================================================================
# ToolConnectionManager
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_first_callers_share_one_transport():
    transport = Mock()
    calls = 0

    async def connector():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return transport

    manager = ToolConnectionManager(connector)

    results = await asyncio.gather(*[manager.get_or_init() for _ in range(5)])

    assert calls == 1
    assert all(r is transport for r in results)
    assert manager.is_ready


@pytest.mark.asyncio
async def test_concurrent_first_callers_share_failure_then_retry():
    calls = 0
    error = ToolTransportError("spawn failed")
    transport = Mock()

    async def connector():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        if calls == 1:
            raise error
        return transport

    manager = ToolConnectionManager(connector)

    results = await asyncio.gather(*[manager.get_or_init() for _ in range(4)], return_exceptions=True)

    assert calls == 1
    assert all(r is error for r in results)
    assert not manager.is_ready

    assert await manager.get_or_init() is transport
    assert calls == 2


@pytest.mark.asyncio
async def test_close_resets_connection():
    transport = Mock()
    transport.close = AsyncMock()

    async def connector():
        return transport

    manager = ToolConnectionManager(connector)
    await manager.get_or_init()

    await manager.close()

    transport.close.assert_awaited_once()
    assert not manager.is_ready
