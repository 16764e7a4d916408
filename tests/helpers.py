"""Test helpers: fake MCP responses and deterministic embeddings."""

from __future__ import annotations

import hashlib
import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from langchain_core.embeddings import Embeddings

DIMS = 8


def mock_response(data: Any) -> SimpleNamespace:
    """Build an MCP CallToolResult-shaped object carrying JSON text."""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=json.dumps(data))])


def respond(mcp: MagicMock, *responses: Any) -> None:
    """Queue decoded responses for successive call_tool invocations."""
    mcp.call_tool.side_effect = [mock_response(r) for r in responses]


def sent(mcp: MagicMock, index: int = -1) -> tuple[str, dict]:
    """(tool name, arguments) of a recorded call_tool invocation."""
    call = mcp.call_tool.call_args_list[index]
    return call.args[0], call.args[1]


class FakeEmbedding:
    """Deterministic hash-based qortex-style embedding."""

    @property
    def dimensions(self) -> int:
        return DIMS

    def embed(self, texts: list[str]) -> list[list[float]]:
        result = []
        for text in texts:
            h = hashlib.sha256(text.encode()).digest()
            vec = [float(b) / 255.0 for b in h[:DIMS]]
            norm = sum(v * v for v in vec) ** 0.5
            result.append([v / norm for v in vec])
        return result


class FakeLangChainEmbedding(Embeddings):
    """LangChain Embeddings that records embed_documents batches."""

    def __init__(self) -> None:
        self._model = FakeEmbedding()
        self.document_calls: list[list[str]] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return self._model.embed(texts)

    def embed_query(self, text: str) -> list[float]:
        return self._model.embed([text])[0]


def fake_session(*responses: Any) -> MagicMock:
    """A spawned-mode fastmcp Client stand-in answering responses in turn."""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.call_tool = AsyncMock(side_effect=[mock_response(r) for r in responses])
    return session
