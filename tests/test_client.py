"""Tests for QortexMcpClient: result decoding, error surfacing, both modes."""

from __future__ import annotations

import asyncio
import json
import threading
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helpers import mock_response
from langchain_qortex.client import (
    QortexMcpClient,
    QortexToolError,
    decode_tool_result,
    raise_for_error,
)

# =============================================================================
# Decoding
# =============================================================================


class TestDecodeToolResult:
    def test_json_text(self):
        assert decode_tool_result(mock_response({"ids": ["a"]})) == {"ids": ["a"]}

    def test_concatenates_text_parts(self):
        result = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"a": '),
                SimpleNamespace(type="text", text="1}"),
            ]
        )
        assert decode_tool_result(result) == {"a": 1}

    def test_skips_non_text_parts(self):
        result = SimpleNamespace(
            content=[
                SimpleNamespace(type="image", data="..."),
                SimpleNamespace(type="text", text="[1, 2]"),
            ]
        )
        assert decode_tool_result(result) == [1, 2]

    def test_no_content_is_none(self):
        assert decode_tool_result(SimpleNamespace(content=[])) is None

    def test_plain_content_list(self):
        assert decode_tool_result([SimpleNamespace(type="text", text="null")]) is None

    def test_malformed_json_propagates(self):
        result = SimpleNamespace(content=[SimpleNamespace(type="text", text="not json")])
        with pytest.raises(json.JSONDecodeError):
            decode_tool_result(result)


class TestRaiseForError:
    def test_error_field(self):
        with pytest.raises(QortexToolError) as exc_info:
            raise_for_error("qortex_query", {"error": "No domains"})
        assert str(exc_info.value) == "No domains"
        assert exc_info.value.tool == "qortex_query"

    def test_is_runtime_error(self):
        assert issubclass(QortexToolError, RuntimeError)

    @pytest.mark.parametrize("result", [None, [], {}, {"error": None}, {"error": ""}, {"ok": 1}])
    def test_passes(self, result):
        raise_for_error("qortex_status", result)


# =============================================================================
# Injected mode
# =============================================================================


class TestInjectedClient:
    def test_defaults(self):
        client = QortexMcpClient()
        assert client.server_command == "uvx"
        assert client.server_args == ["qortex", "mcp-serve"]
        assert client.env is None
        assert not client.connected
        assert not client.injected

    def test_injected_is_connected(self):
        client = QortexMcpClient(mcp_client=MagicMock())
        assert client.connected
        assert client.injected

    def test_call_tool_decodes(self):
        mcp = MagicMock()
        mcp.call_tool = AsyncMock(return_value=mock_response({"status": "ok"}))
        client = QortexMcpClient(mcp_client=mcp)
        try:
            assert client.call_tool("qortex_status", {}) == {"status": "ok"}
        finally:
            client.disconnect()
        mcp.call_tool.assert_awaited_once_with("qortex_status", {})

    def test_call_tool_does_not_raise_on_error_field(self):
        mcp = MagicMock()
        mcp.call_tool = AsyncMock(return_value=mock_response({"error": "nope"}))
        with QortexMcpClient(mcp_client=mcp) as client:
            assert client.call_tool("qortex_query", {}) == {"error": "nope"}

    def test_transport_errors_propagate(self):
        mcp = MagicMock()
        mcp.call_tool = AsyncMock(side_effect=ConnectionError("pipe closed"))
        with QortexMcpClient(mcp_client=mcp) as client:
            with pytest.raises(ConnectionError, match="pipe closed"):
                client.call_tool("qortex_status", {})

    def test_disconnect_never_closes_injected(self):
        mcp = MagicMock()
        mcp.call_tool = AsyncMock(return_value=mock_response({}))
        client = QortexMcpClient(mcp_client=mcp)
        client.call_tool("qortex_status", {})
        client.disconnect()
        assert client.connected
        mcp.__aexit__.assert_not_called()

    @pytest.mark.asyncio
    async def test_acall_tool_awaits_directly(self):
        mcp = MagicMock()
        mcp.call_tool = AsyncMock(return_value=mock_response({"domains": []}))
        client = QortexMcpClient(mcp_client=mcp)
        assert await client.acall_tool("qortex_domains", {}) == {"domains": []}
        assert client._runner is None


# =============================================================================
# Spawned mode
# =============================================================================


def _fake_session(*responses):
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.call_tool = AsyncMock(side_effect=[mock_response(r) for r in responses])
    return session


class TestSpawnedClient:
    def test_connect_and_disconnect(self):
        session = _fake_session()
        client = QortexMcpClient()
        with patch.object(QortexMcpClient, "_build_client", return_value=session) as build:
            client.connect()
            client.connect()
            assert client.connected
            build.assert_called_once()
            session.__aenter__.assert_awaited_once()

            client.disconnect()
        assert not client.connected
        session.__aexit__.assert_awaited_once()

    def test_lazy_connect_on_first_call(self):
        session = _fake_session({"status": "ok"})
        with patch.object(QortexMcpClient, "_build_client", return_value=session):
            with QortexMcpClient() as client:
                assert client.call_tool("qortex_status", {}) == {"status": "ok"}
        session.call_tool.assert_awaited_once_with("qortex_status", {})

    def test_call_without_connect(self):
        session = _fake_session({"status": "ok"})
        client = QortexMcpClient()
        with patch.object(QortexMcpClient, "_build_client", return_value=session):
            try:
                assert client.call_tool("qortex_status", {}) == {"status": "ok"}
                assert client.connected
            finally:
                client.disconnect()

    @pytest.mark.asyncio
    async def test_async_lifecycle(self):
        session = _fake_session({"status": "ok"})
        with patch.object(QortexMcpClient, "_build_client", return_value=session):
            async with QortexMcpClient() as client:
                assert await client.acall_tool("qortex_status", {}) == {"status": "ok"}
        session.__aexit__.assert_awaited_once()

    def test_build_client_merges_env(self, monkeypatch):
        monkeypatch.setenv("EXISTING", "1")
        client = QortexMcpClient(
            server_command="python", server_args=["-m", "qortex"], env={"QORTEX_VEC": "sqlite"}
        )
        with patch("fastmcp.client.transports.StdioTransport") as transport, patch(
            "fastmcp.Client"
        ) as fast_client:
            client._build_client()
        kwargs = transport.call_args.kwargs
        assert kwargs["command"] == "python"
        assert kwargs["args"] == ["-m", "qortex"]
        assert kwargs["env"]["QORTEX_VEC"] == "sqlite"
        assert kwargs["env"]["EXISTING"] == "1"
        fast_client.assert_called_once_with(transport.return_value)

    def test_disconnect_without_connect(self):
        QortexMcpClient().disconnect()

    def test_concurrent_first_calls_open_one_session(self):
        session = MagicMock()

        async def slow_enter():
            await asyncio.sleep(0.2)
            return session

        session.__aenter__ = AsyncMock(side_effect=slow_enter)
        session.__aexit__ = AsyncMock(return_value=None)
        session.call_tool = AsyncMock(return_value=mock_response({"status": "ok"}))
        client = QortexMcpClient()
        results = []

        with patch.object(QortexMcpClient, "_build_client", return_value=session) as build:
            threads = [
                threading.Thread(
                    target=lambda: results.append(client.call_tool("qortex_status", {}))
                )
                for _ in range(2)
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            client.disconnect()

        assert results == [{"status": "ok"}, {"status": "ok"}]
        assert build.call_count == 1
        session.__aenter__.assert_awaited_once()
        session.__aexit__.assert_awaited_once()
        assert not client.connected

    @pytest.mark.asyncio
    async def test_concurrent_async_first_calls_open_one_session(self):
        session = MagicMock()

        async def slow_enter():
            await asyncio.sleep(0.1)
            return session

        session.__aenter__ = AsyncMock(side_effect=slow_enter)
        session.__aexit__ = AsyncMock(return_value=None)
        session.call_tool = AsyncMock(return_value=mock_response({"domains": []}))
        client = QortexMcpClient()

        with patch.object(QortexMcpClient, "_build_client", return_value=session) as build:
            results = await asyncio.gather(
                client.acall_tool("qortex_domains", {}),
                client.acall_tool("qortex_domains", {}),
            )
            await client.adisconnect()

        assert results == [{"domains": []}, {"domains": []}]
        assert build.call_count == 1
        session.__aexit__.assert_awaited_once()
