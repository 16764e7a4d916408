"""QortexMcpClient: talks to the qortex MCP server.

The server is spawned as a subprocess over stdio (``uvx qortex mcp-serve``
by default), or an already-built MCP client is injected. Every qortex
operation is one named tool call with a JSON-shaped argument mapping; the
tool's text content is JSON and is decoded here.

LangChain's VectorStore API is synchronous with async twins, while MCP
clients are async-only. The client therefore owns a private event loop on
a daemon thread: sync calls block on it, async calls await it, and one MCP
session serves both.

Usage:
    from langchain_qortex.client import QortexMcpClient

    with QortexMcpClient(server_args=["qortex", "mcp-serve"]) as mcp:
        status = mcp.call_tool("qortex_status", {})
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
import time
from collections.abc import Coroutine, Mapping
from typing import Any

from langchain_qortex.observability import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER_COMMAND = "uvx"
DEFAULT_SERVER_ARGS = ("qortex", "mcp-serve")


class QortexToolError(RuntimeError):
    """A qortex tool answered with an ``error`` field.

    str(err) is exactly the message the server sent.
    """

    def __init__(self, message: str, tool: str | None = None) -> None:
        super().__init__(message)
        self.tool = tool


def raise_for_error(tool: str, result: Any) -> None:
    """Raise QortexToolError if a decoded tool result carries an error."""
    if isinstance(result, Mapping) and result.get("error"):
        raise QortexToolError(str(result["error"]), tool=tool)


def decode_tool_result(result: Any) -> Any:
    """Decode an MCP CallToolResult into its JSON payload.

    Text parts are concatenated and parsed as JSON. A result without any
    text part (the server returned None) decodes to None. Malformed JSON
    raises json.JSONDecodeError.
    """
    content = getattr(result, "content", result)
    texts = [
        part.text
        for part in content or []
        if getattr(part, "type", "text") == "text" and getattr(part, "text", None) is not None
    ]
    if not texts:
        return None
    return json.loads("".join(texts))


class _LoopThread:
    """A private asyncio loop running forever on a daemon thread."""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        # Serializes session opening; only ever awaited on this loop
        self.open_lock = asyncio.Lock()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="qortex-mcp", daemon=True
        )
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run a coroutine on the loop and block for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    async def arun(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run a coroutine on the loop from another loop."""
        return await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(coro, self._loop))

    def stop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()


class QortexMcpClient:
    """MCP connection to a qortex server.

    Two modes:
        spawned  -- server_command/server_args launch the server over stdio
                    via fastmcp; connect() opens the session.
        injected -- mcp_client is any object with an awaitable
                    call_tool(name, arguments). It is used as-is and never
                    opened or closed here.
    """

    def __init__(
        self,
        server_command: str | None = None,
        server_args: list[str] | None = None,
        env: Mapping[str, str] | None = None,
        mcp_client: Any = None,
    ) -> None:
        """Initialize QortexMcpClient.

        Args:
            server_command: Executable that starts the server (default "uvx").
            server_args: Arguments for it (default ["qortex", "mcp-serve"]).
            env: Environment overrides for the spawned server, merged over
                the current process environment.
            mcp_client: A pre-built MCP client. Takes precedence over the
                spawn settings.
        """
        self.server_command = server_command or DEFAULT_SERVER_COMMAND
        self.server_args = list(server_args) if server_args is not None else list(DEFAULT_SERVER_ARGS)
        self.env = dict(env) if env else None
        self._injected = mcp_client
        self._session: Any = mcp_client
        self._runner: _LoopThread | None = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._session is not None

    @property
    def injected(self) -> bool:
        return self._injected is not None

    # -- lifecycle --

    def _ensure_runner(self) -> _LoopThread:
        with self._lock:
            if self._runner is None:
                self._runner = _LoopThread()
            return self._runner

    def _build_client(self) -> Any:
        from fastmcp import Client
        from fastmcp.client.transports import StdioTransport

        env = {**os.environ, **self.env} if self.env else None
        transport = StdioTransport(command=self.server_command, args=self.server_args, env=env)
        return Client(transport)

    async def _open(self) -> None:
        if self._session is not None:
            return
        async with self._ensure_runner().open_lock:
            # Another first call may have connected while this one waited
            if self._session is not None:
                return
            client = self._build_client()
            await client.__aenter__()
            self._session = client
        logger.info(
            "mcp.connected",
            command=self.server_command,
            args=self.server_args,
        )

    async def _close(self) -> None:
        if self._session is None or self.injected:
            return
        client, self._session = self._session, None
        await client.__aexit__(None, None, None)
        logger.info("mcp.disconnected", command=self.server_command)

    def connect(self) -> None:
        """Spawn the server and open the MCP session. Idempotent."""
        if self._session is not None:
            return
        self._ensure_runner().run(self._open())

    async def aconnect(self) -> None:
        if self._session is not None:
            return
        await self._ensure_runner().arun(self._open())

    def disconnect(self) -> None:
        """Close the spawned session and stop the private loop."""
        runner = self._runner
        if runner is None:
            return
        try:
            runner.run(self._close())
        finally:
            self._runner = None
            runner.stop()

    async def adisconnect(self) -> None:
        runner = self._runner
        if runner is None:
            return
        try:
            await runner.arun(self._close())
        finally:
            self._runner = None
            runner.stop()

    def __enter__(self) -> QortexMcpClient:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.disconnect()

    async def __aenter__(self) -> QortexMcpClient:
        await self.aconnect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.adisconnect()

    # -- tool calls --

    async def _call(self, name: str, arguments: dict[str, Any]) -> Any:
        await self._open()
        started = time.perf_counter()
        raw = await self._session.call_tool(name, arguments)
        result = decode_tool_result(raw)
        logger.debug(
            "mcp.call_tool",
            tool=name,
            arguments=sorted(arguments),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result

    def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a qortex tool and return its decoded JSON result.

        Connects on first use. Transport and decoding errors propagate.
        """
        return self._ensure_runner().run(self._call(name, arguments))

    async def acall_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Async twin of call_tool().

        An injected client is awaited on the caller's loop; a spawned
        session lives on the private loop and is reached through it.
        """
        if self.injected:
            return await self._call(name, arguments)
        return await self._ensure_runner().arun(self._call(name, arguments))
