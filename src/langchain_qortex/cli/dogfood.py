"""Dogfood: run a full LangChain workflow against a real qortex MCP server.

Not a test. A consumer-side script that proves the package works end to end:
spawn the server, index documents, search both ways, build a retriever, and
close the feedback loop.
"""

from __future__ import annotations

import hashlib
from typing import Callable

import typer
from langchain_core.documents import Document

from langchain_qortex.cli._config import CliSettings, open_store
from langchain_qortex.cli._errors import server_errors
from langchain_qortex.embeddings import QortexEmbeddings
from langchain_qortex.observability import get_logger
from langchain_qortex.vectorstores import QortexVectorStore

logger = get_logger(__name__)

DIMS = 32

DOGFOOD_DOCS = [
    Document(
        page_content="OAuth2 is an authorization framework for delegated access control",
        metadata={"source": "rfc6749", "topic": "auth"},
    ),
    Document(
        page_content="JWT tokens carry signed claims between two parties",
        metadata={"source": "rfc7519", "topic": "auth"},
    ),
    Document(
        page_content="Rate limiting prevents abuse of API endpoints through request throttling",
        metadata={"source": "best-practices", "topic": "infra"},
    ),
    Document(
        page_content="Circuit breakers prevent cascading failures in distributed systems",
        metadata={"source": "best-practices", "topic": "infra"},
    ),
]
DOGFOOD_IDS = ["df-1", "df-2", "df-3", "df-4"]


class HashEmbedding:
    """Deterministic embedding for reproducible runs. No API key needed."""

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


def run_dogfood(store: QortexVectorStore, echo: Callable[[str], None] = typer.echo) -> None:
    """Drive a connected store through every LangChain pattern it supports."""
    embedding = store.embeddings
    if embedding is None:
        raise ValueError("dogfood needs a store with an embedding")

    echo("1. Creating vector index...")
    created = store.create_index(DIMS)
    echo(f"   {store.index_name}: {created.get('status', 'ok')}\n")

    echo("2. Adding documents...")
    ids = store.add_documents(DOGFOOD_DOCS, ids=DOGFOOD_IDS)
    echo(f"   Added {len(ids)} documents: {', '.join(ids)}\n")

    echo("3. Vector search (similarity_search_with_score_by_vector)...")
    query_vec = embedding.embed_query("authentication")
    for doc, score in store.similarity_search_with_score_by_vector(query_vec, k=3):
        echo(f"   [{score:.3f}] {doc.page_content[:60]}...")
    echo("")

    echo("4. Text search (similarity_search_with_score)...")
    results = store.similarity_search_with_score("authentication", k=3)
    for doc, score in results:
        echo(f"   [{score:.3f}] {doc.metadata.get('node_id')}: {doc.page_content[:60]}")
    echo(f"   {len(results)} results, query_id={store.last_query_id}\n")

    echo("5. Creating retriever (as_retriever)...")
    retriever = store.as_retriever(search_kwargs={"k": 3})
    echo(f"   Retriever created with k={retriever.search_kwargs['k']}\n")

    echo("6. Feedback...")
    if results:
        first = results[0][0]
        ack = store.feedback({first.id or first.metadata.get("node_id"): "accepted"})
        echo(f"   {ack}\n")
    else:
        echo("   Skipped: text search returned nothing to rate.\n")

    echo(f"7. VectorStore type: {store._vectorstore_type()}")
    echo(f"   Has embeddings: {store.embeddings is not None}\n")
    logger.info("dogfood.completed", index_name=store.index_name, results=len(results))


@server_errors
def dogfood(ctx: typer.Context) -> None:
    """Run a full workflow against a real qortex server."""
    settings: CliSettings = ctx.obj
    typer.echo("=== langchain-qortex dogfood ===\n")

    store = open_store(
        settings,
        QortexEmbeddings(HashEmbedding()),
        index_name=settings.index_name or "dogfood-langchain",
        domain=settings.domain or "dogfood",
        feedback_source="langchain-dogfood",
    )
    try:
        run_dogfood(store)
    finally:
        typer.echo("8. Disconnecting...")
        store.close()

    typer.echo("=== Dogfood complete. All LangChain patterns work. ===")
