"""End-to-end: the vector store against a real qortex MCP server.

Opt-in. Needs uvx and network access to fetch qortex:

    QORTEX_E2E=1 pytest -m e2e
"""

from __future__ import annotations

import os
import shutil
import uuid

import pytest
from langchain_core.documents import Document

from langchain_qortex import QortexEmbeddings, QortexToolError, QortexVectorStore
from langchain_qortex.cli.dogfood import DIMS, HashEmbedding

E2E_ENABLED = os.environ.get("QORTEX_E2E") == "1" and shutil.which("uvx") is not None

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        not E2E_ENABLED,
        reason="Set QORTEX_E2E=1 with uvx on PATH to run against a real qortex server",
    ),
]


@pytest.fixture(scope="module")
def live_store():
    store = QortexVectorStore(
        QortexEmbeddings(HashEmbedding()),
        index_name=f"e2e-{uuid.uuid4().hex[:8]}",
        domain="e2e",
        feedback_source="langchain-e2e",
    )
    store.connect()
    store.create_index(DIMS)
    yield store
    store.close()


class TestLiveServer:
    def test_status(self, live_store):
        assert live_store.status().get("status")

    def test_add_and_vector_search(self, live_store):
        docs = [
            Document(page_content="OAuth2 is an authorization framework", metadata={"topic": "auth"}),
            Document(page_content="Circuit breakers stop cascading failures", metadata={"topic": "infra"}),
        ]
        ids = live_store.add_documents(docs, ids=["e2e-1", "e2e-2"])
        assert ids == ["e2e-1", "e2e-2"]

        query = live_store.embeddings.embed_query("OAuth2 is an authorization framework")
        [(doc, score)] = live_store.similarity_search_with_score_by_vector(query, k=1)
        assert doc.id == "e2e-1"
        assert doc.page_content == "OAuth2 is an authorization framework"
        assert doc.metadata["topic"] == "auth"
        assert score == pytest.approx(1.0, abs=1e-3)

    def test_text_search_and_feedback(self, live_store):
        try:
            results = live_store.similarity_search_with_score("authentication", k=2)
        except QortexToolError as err:
            if "embedding" in str(err).lower():
                pytest.skip(f"server has no embedding model: {err}")
            raise
        assert isinstance(results, list)
        if results:
            doc = results[0][0]
            ack = live_store.feedback({doc.id: "accepted"})
            assert ack is not None

    def test_explore_missing_node(self, live_store):
        assert live_store.explore("e2e:does-not-exist") is None

    def test_domains(self, live_store):
        assert isinstance(live_store.domains(), list)
