"""Shared fixtures: fake MCP client, deterministic embeddings, isolated config."""

from __future__ import annotations

import logging
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpers import FakeLangChainEmbedding
from langchain_qortex.observability.logging import shutdown_logging
from langchain_qortex.vectorstores import QortexVectorStore


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Point config at a missing temp file, clear QORTEX_* env vars, restore logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for key in list(os.environ):
        if key.startswith("QORTEX_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("QORTEX_LANGCHAIN_CONFIG", str(tmp_path / "langchain.yaml"))
    yield
    shutdown_logging()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture()
def embedding() -> FakeLangChainEmbedding:
    return FakeLangChainEmbedding()


@pytest.fixture()
def mcp() -> MagicMock:
    """Fake MCP client. Queue answers with helpers.respond()."""
    client = MagicMock()
    client.call_tool = AsyncMock()
    return client


@pytest.fixture()
def store(mcp, embedding):
    vs = QortexVectorStore(embedding, mcp_client=mcp, index_name="docs", domain="security")
    yield vs
    vs.close()
