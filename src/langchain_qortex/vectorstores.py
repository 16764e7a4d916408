"""LangChain VectorStore: qortex as a drop-in VectorStore.

Same API as Chroma, FAISS or Pinecone. Same chains, same retriever. Plus
graph structure, rules, and feedback-driven learning.

Text-level search (similarity_search, similarity_search_with_score) runs
qortex's full server-side pipeline: embedding + graph PPR + rules, via the
qortex_query tool. Vector-level search
(similarity_search_with_score_by_vector) is raw LangChain compatibility via
qortex_vector_query against a named index.

Usage:
    from langchain_qortex import QortexVectorStore

    # Spawns `uvx qortex mcp-serve` and indexes the texts
    vs = QortexVectorStore.from_texts(
        texts=["OAuth2 is...", "JWT tokens..."],
        embedding=my_embedding,
        metadatas=[{"source": "docs"}, {"source": "docs"}],
        index_name="docs",
        domain="security",
    )

    # Standard VectorStore API
    docs = vs.similarity_search("authentication", k=5)
    retriever = vs.as_retriever(search_kwargs={"k": 10})

    # qortex extras: graph exploration + rules + feedback
    explore = vs.explore(docs[0].metadata["node_id"])
    rules = vs.get_rules(concept_ids=[d.metadata["node_id"] for d in docs])
    vs.feedback({docs[0].id: "accepted"})
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import VectorStore

from langchain_qortex.client import QortexMcpClient, raise_for_error
from langchain_qortex.config import QortexStoreConfig
from langchain_qortex.observability import get_logger

if TYPE_CHECKING:
    from langchain_qortex.types import (
        ExploreResult,
        FeedbackOutcome,
        FeedbackResult,
        LinkedRule,
        QortexDomainInfo,
        QortexRule,
        RulesResult,
        StatusResult,
    )

logger = get_logger(__name__)

VECTOR_CREATE_INDEX = "qortex_vector_create_index"
VECTOR_UPSERT = "qortex_vector_upsert"
VECTOR_QUERY = "qortex_vector_query"
QUERY = "qortex_query"
EXPLORE = "qortex_explore"
RULES = "qortex_rules"
FEEDBACK = "qortex_feedback"
DOMAINS = "qortex_domains"
STATUS = "qortex_status"


def _linked_rules(rules: list[QortexRule], node_id: str | None) -> list[LinkedRule]:
    """Rules whose source concepts include node_id, reduced to id/text/relevance."""
    return [
        {"id": r["id"], "text": r["text"], "relevance": r["relevance"]}
        for r in rules
        if node_id in (r.get("source_concepts") or [])
    ]


def _normalize_metadatas(
    texts: list[str], metadatas: list[dict] | dict | None
) -> list[dict]:
    if metadatas is None:
        return [{} for _ in texts]
    if isinstance(metadatas, Mapping):
        return [dict(metadatas) for _ in texts]
    if len(metadatas) != len(texts):
        raise ValueError(
            f"metadatas ({len(metadatas)}) and texts ({len(texts)}) must have the same length"
        )
    return [dict(m or {}) for m in metadatas]


class QortexVectorStore(VectorStore):
    """qortex as a LangChain VectorStore.

    Unlike plain vector stores, text-search results carry graph structure:
    - Documents include node_id in metadata for graph navigation
    - explore() traverses typed edges from any retrieved concept
    - get_rules() returns projected rules linked to retrieved concepts
    - feedback() closes the learning loop for the last text search
    """

    def __init__(
        self,
        embedding: Embeddings | None = None,
        *,
        client: QortexMcpClient | None = None,
        mcp_client: Any = None,
        server_command: str | None = None,
        server_args: list[str] | None = None,
        env: dict[str, str] | None = None,
        index_name: str | None = None,
        domain: str | None = None,
        feedback_source: str | None = None,
        config: QortexStoreConfig | None = None,
    ) -> None:
        """Initialize QortexVectorStore.

        Args:
            embedding: LangChain Embeddings used by add_documents/add_texts.
                Text-level search embeds server-side and does not need it.
            client: A ready QortexMcpClient. Overrides every spawn setting.
            mcp_client: A pre-built MCP client with an awaitable
                call_tool(name, arguments).
            server_command: Executable that starts the qortex MCP server.
            server_args: Arguments for server_command.
            env: Environment overrides for the spawned server.
            index_name: Vector index for vector-level operations.
            domain: Default domain for text-level search.
            feedback_source: Source identifier sent with feedback.
            config: Base settings; defaults to QortexStoreConfig.load().
                Explicit arguments above take precedence.
        """
        cfg = (config or QortexStoreConfig.load()).replace(
            server_command=server_command,
            server_args=server_args,
            env=env,
            index_name=index_name,
            domain=domain,
            feedback_source=feedback_source,
        )
        self._embedding = embedding
        self._client = client or QortexMcpClient(
            server_command=cfg.server_command,
            server_args=cfg.server_args,
            env=cfg.env,
            mcp_client=mcp_client,
        )
        self._index_name = cfg.index_name
        self._domain = cfg.domain
        self._feedback_source = cfg.feedback_source
        self._last_query_id: str | None = None

    @staticmethod
    def _vectorstore_type() -> str:
        return "qortex"

    @property
    def embeddings(self) -> Embeddings | None:
        return self._embedding

    @property
    def client(self) -> QortexMcpClient:
        return self._client

    @property
    def index_name(self) -> str:
        return self._index_name

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def feedback_source(self) -> str:
        return self._feedback_source

    @property
    def last_query_id(self) -> str | None:
        """The query_id from the most recent text-level search."""
        return self._last_query_id

    # -- lifecycle --

    def connect(self) -> None:
        """Ensure the MCP connection is established."""
        self._client.connect()

    async def aconnect(self) -> None:
        await self._client.aconnect()

    def close(self) -> None:
        """Disconnect from the MCP server."""
        self._client.disconnect()

    async def aclose(self) -> None:
        await self._client.adisconnect()

    def __enter__(self) -> QortexVectorStore:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def __aenter__(self) -> QortexVectorStore:
        await self.aconnect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    def _call(self, tool: str, arguments: dict[str, Any]) -> Any:
        result = self._client.call_tool(tool, arguments)
        raise_for_error(tool, result)
        return {} if result is None else result

    async def _acall(self, tool: str, arguments: dict[str, Any]) -> Any:
        result = await self._client.acall_tool(tool, arguments)
        raise_for_error(tool, result)
        return {} if result is None else result

    def _require_embedding(self) -> Embeddings:
        if self._embedding is None:
            raise ValueError(
                "QortexVectorStore needs an embedding to add documents: "
                "pass embedding=... when constructing it"
            )
        return self._embedding

    # -- index management --

    def create_index(self, dimension: int, metric: str = "cosine") -> dict[str, Any]:
        """Create the named vector index if it doesn't exist yet.

        The server rejects upserts into an unknown index. Creating an index
        that already exists with the same dimension is a no-op ("exists");
        a dimension mismatch raises QortexToolError.
        """
        return self._call(
            VECTOR_CREATE_INDEX,
            {"index_name": self._index_name, "dimension": dimension, "metric": metric},
        )

    async def acreate_index(self, dimension: int, metric: str = "cosine") -> dict[str, Any]:
        return await self._acall(
            VECTOR_CREATE_INDEX,
            {"index_name": self._index_name, "dimension": dimension, "metric": metric},
        )

    # -- add: vectors, documents, texts --

    def _upsert_payload(
        self,
        vectors: list[list[float]],
        documents: list[Document],
        ids: list[str] | None,
    ) -> dict[str, Any]:
        if ids is None:
            ids = [doc.id for doc in documents if doc.id]
        payload: dict[str, Any] = {
            "index_name": self._index_name,
            "vectors": [list(v) for v in vectors],
            "metadata": [{"text": doc.page_content, **doc.metadata} for doc in documents],
        }
        # No ids at all lets the server generate them
        if ids:
            payload["ids"] = list(ids)
        return payload

    def add_vectors(
        self,
        vectors: list[list[float]],
        documents: list[Document],
        *,
        ids: list[str] | None = None,
    ) -> list[str]:
        """Upsert pre-computed vectors with their documents.

        Each document's page_content is stored under metadata["text"]
        alongside its own metadata.

        Returns:
            IDs the server assigned or confirmed, in input order.
        """
        result = self._call(VECTOR_UPSERT, self._upsert_payload(vectors, documents, ids))
        return list(result.get("ids") or [])

    async def aadd_vectors(
        self,
        vectors: list[list[float]],
        documents: list[Document],
        *,
        ids: list[str] | None = None,
    ) -> list[str]:
        result = await self._acall(VECTOR_UPSERT, self._upsert_payload(vectors, documents, ids))
        return list(result.get("ids") or [])

    def add_documents(
        self, documents: list[Document], *, ids: list[str] | None = None, **kwargs: Any
    ) -> list[str]:
        """Embed documents with the configured embedding, then upsert."""
        documents = list(documents)
        vectors = self._require_embedding().embed_documents(
            [doc.page_content for doc in documents]
        )
        return self.add_vectors(vectors, documents, ids=ids)

    async def aadd_documents(
        self, documents: list[Document], *, ids: list[str] | None = None, **kwargs: Any
    ) -> list[str]:
        documents = list(documents)
        vectors = await self._require_embedding().aembed_documents(
            [doc.page_content for doc in documents]
        )
        return await self.aadd_vectors(vectors, documents, ids=ids)

    def add_texts(
        self,
        texts: Iterable[str],
        metadatas: list[dict] | dict | None = None,
        *,
        ids: list[str] | None = None,
        **kwargs: Any,
    ) -> list[str]:
        """Add texts to the vector index.

        Args:
            texts: Texts to add.
            metadatas: Metadata per text, or one mapping shared by all.
            ids: Optional IDs. Generated server-side if not provided.
        """
        texts = list(texts)
        docs = [
            Document(page_content=text, metadata=meta)
            for text, meta in zip(texts, _normalize_metadatas(texts, metadatas))
        ]
        return self.add_documents(docs, ids=ids)

    async def aadd_texts(
        self,
        texts: Iterable[str],
        metadatas: list[dict] | dict | None = None,
        *,
        ids: list[str] | None = None,
        **kwargs: Any,
    ) -> list[str]:
        texts = list(texts)
        docs = [
            Document(page_content=text, metadata=meta)
            for text, meta in zip(texts, _normalize_metadatas(texts, metadatas))
        ]
        return await self.aadd_documents(docs, ids=ids)

    # -- vector-level search --

    def _vector_query_payload(
        self, embedding: list[float], k: int, filter: dict | None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index_name": self._index_name,
            "query_vector": list(embedding),
            "top_k": k,
            "include_vector": False,
        }
        if filter is not None:
            payload["filter"] = filter
        return payload

    @staticmethod
    def _vector_results(result: dict[str, Any]) -> list[tuple[Document, float]]:
        docs_and_scores = []
        for item in result.get("results") or []:
            meta = dict(item.get("metadata") or {})
            text = meta.pop("text", None)
            score = item["score"]
            meta["score"] = score
            doc = Document(
                page_content="" if text is None else str(text),
                metadata=meta,
                id=item.get("id"),
            )
            docs_and_scores.append((doc, score))
        return docs_and_scores

    def similarity_search_with_score_by_vector(
        self,
        embedding: list[float],
        k: int = 4,
        filter: dict | None = None,
        **kwargs: Any,
    ) -> list[tuple[Document, float]]:
        """Raw vector search against the named index.

        Args:
            embedding: Query vector.
            k: Number of results.
            filter: MongoDB-style metadata filter, evaluated server-side.

        Returns:
            (Document, score) pairs in the order the server ranked them.
        """
        result = self._call(VECTOR_QUERY, self._vector_query_payload(embedding, k, filter))
        return self._vector_results(result)

    async def asimilarity_search_with_score_by_vector(
        self,
        embedding: list[float],
        k: int = 4,
        filter: dict | None = None,
        **kwargs: Any,
    ) -> list[tuple[Document, float]]:
        result = await self._acall(VECTOR_QUERY, self._vector_query_payload(embedding, k, filter))
        return self._vector_results(result)

    def similarity_search_by_vector(
        self, embedding: list[float], k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[Document]:
        return [
            doc for doc, _ in self.similarity_search_with_score_by_vector(embedding, k, filter)
        ]

    async def asimilarity_search_by_vector(
        self, embedding: list[float], k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[Document]:
        pairs = await self.asimilarity_search_with_score_by_vector(embedding, k, filter)
        return [doc for doc, _ in pairs]

    # -- text-level search: embedding + graph PPR + rules, server-side --

    def _query_payload(
        self, query: str, k: int, filter: dict | None, kwargs: dict[str, Any]
    ) -> dict[str, Any]:
        opts = dict(filter or {})
        for key in ("domains", "min_confidence"):
            if key in kwargs:
                opts[key] = kwargs[key]

        domains = opts.get("domains")
        if domains is None:
            domains = [self._domain]
        elif isinstance(domains, str):
            domains = [domains]
        min_confidence = opts.get("min_confidence")
        if isinstance(min_confidence, bool) or not isinstance(min_confidence, (int, float)):
            min_confidence = 0.0

        return {
            "context": query,
            "domains": list(domains),
            "top_k": k,
            "min_confidence": min_confidence,
            "mode": "auto",
        }

    def _query_results(self, result: dict[str, Any]) -> list[tuple[Document, float]]:
        self._last_query_id = result.get("query_id") or None
        rules = result.get("rules") or []

        docs_and_scores = []
        for item in result.get("items") or []:
            meta: dict[str, Any] = {
                "score": item["score"],
                "domain": item.get("domain"),
                "node_id": item.get("node_id"),
            }
            meta.update(item.get("metadata") or {})

            linked = _linked_rules(rules, item.get("node_id"))
            if linked:
                meta["rules"] = linked

            doc = Document(page_content=item["content"], metadata=meta, id=item.get("id"))
            docs_and_scores.append((doc, item["score"]))

        logger.debug(
            "vectorstore.query",
            query_id=self._last_query_id,
            items=len(docs_and_scores),
            rules=len(rules),
        )
        return docs_and_scores

    def similarity_search_with_score(
        self, query: str, k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[tuple[Document, float]]:
        """Graph-enhanced text search, with scores.

        Args:
            query: Input text. Embedded by the server.
            k: Number of documents to return.
            filter: Optional {"domains": [...], "min_confidence": float}.
                Both may also be passed as keyword arguments.

        Returns:
            (Document, score) pairs. Metadata carries score, domain, node_id,
            the item's own metadata, and "rules" when rules link to the node.
        """
        result = self._call(QUERY, self._query_payload(query, k, filter, kwargs))
        return self._query_results(result)

    async def asimilarity_search_with_score(
        self, query: str, k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[tuple[Document, float]]:
        result = await self._acall(QUERY, self._query_payload(query, k, filter, kwargs))
        return self._query_results(result)

    def similarity_search(
        self, query: str, k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[Document]:
        """Return docs most similar to query (graph-enhanced)."""
        return [doc for doc, _ in self.similarity_search_with_score(query, k, filter, **kwargs)]

    async def asimilarity_search(
        self, query: str, k: int = 4, filter: dict | None = None, **kwargs: Any
    ) -> list[Document]:
        pairs = await self.asimilarity_search_with_score(query, k, filter, **kwargs)
        return [doc for doc, _ in pairs]

    def _select_relevance_score_fn(self) -> Callable[[float], float]:
        """qortex scores are already cosine similarity in [0, 1]."""
        return lambda score: score

    # -- constructors --

    @classmethod
    def from_texts(
        cls,
        texts: list[str],
        embedding: Embeddings,
        metadatas: list[dict] | dict | None = None,
        *,
        ids: list[str] | None = None,
        **kwargs: Any,
    ) -> QortexVectorStore:
        """Connect to qortex and index texts in one call.

        Args:
            texts: Texts to add.
            embedding: LangChain Embeddings instance.
            metadatas: Metadata per text, or one mapping shared by all.
            ids: Optional IDs.
            **kwargs: Constructor arguments (index_name, domain, mcp_client, ...).
        """
        store = cls(embedding, **kwargs)
        try:
            store.connect()
            store.add_texts(texts, metadatas, ids=ids)
        except Exception:
            store.close()
            raise
        return store

    @classmethod
    async def afrom_texts(
        cls,
        texts: list[str],
        embedding: Embeddings,
        metadatas: list[dict] | dict | None = None,
        *,
        ids: list[str] | None = None,
        **kwargs: Any,
    ) -> QortexVectorStore:
        store = cls(embedding, **kwargs)
        try:
            await store.aconnect()
            await store.aadd_texts(texts, metadatas, ids=ids)
        except Exception:
            await store.aclose()
            raise
        return store

    @classmethod
    def from_documents(
        cls, documents: list[Document], embedding: Embeddings, **kwargs: Any
    ) -> QortexVectorStore:
        """Connect to qortex and index pre-built documents, keeping their ids."""
        ids = kwargs.pop("ids", None)
        store = cls(embedding, **kwargs)
        try:
            store.connect()
            store.add_documents(documents, ids=ids)
        except Exception:
            store.close()
            raise
        return store

    @classmethod
    async def afrom_documents(
        cls, documents: list[Document], embedding: Embeddings, **kwargs: Any
    ) -> QortexVectorStore:
        ids = kwargs.pop("ids", None)
        store = cls(embedding, **kwargs)
        try:
            await store.aconnect()
            await store.aadd_documents(documents, ids=ids)
        except Exception:
            await store.aclose()
            raise
        return store

    # -- qortex extras: graph exploration + rules + feedback --

    def explore(self, node_id: str, depth: int = 1) -> ExploreResult | None:
        """Explore a concept's graph neighborhood.

        Call this on a node_id from search results to see typed edges,
        neighbors, and linked rules. Returns None if the node doesn't exist.
        """
        result = self._call(EXPLORE, {"node_id": node_id, "depth": depth})
        if not result or result.get("node") is None:
            return None
        return result

    async def aexplore(self, node_id: str, depth: int = 1) -> ExploreResult | None:
        result = await self._acall(EXPLORE, {"node_id": node_id, "depth": depth})
        if not result or result.get("node") is None:
            return None
        return result

    @staticmethod
    def _rules_payload(
        domains: list[str] | None,
        concept_ids: list[str] | None,
        categories: list[str] | None,
        include_derived: bool,
        min_confidence: float,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "include_derived": include_derived,
            "min_confidence": min_confidence,
        }
        for key, value in (
            ("domains", domains),
            ("concept_ids", concept_ids),
            ("categories", categories),
        ):
            if value is not None:
                payload[key] = list(value)
        return payload

    def get_rules(
        self,
        *,
        domains: list[str] | None = None,
        concept_ids: list[str] | None = None,
        categories: list[str] | None = None,
        include_derived: bool = True,
        min_confidence: float = 0.0,
    ) -> RulesResult:
        """Get projected rules from the knowledge graph.

        Args:
            domains: Only rules in these domains. None = all.
            concept_ids: Only rules linked to these concepts.
            categories: Only rules in these categories.
            include_derived: Include rules derived from edge templates.
            min_confidence: Minimum rule confidence.
        """
        return self._call(
            RULES,
            self._rules_payload(domains, concept_ids, categories, include_derived, min_confidence),
        )

    async def aget_rules(
        self,
        *,
        domains: list[str] | None = None,
        concept_ids: list[str] | None = None,
        categories: list[str] | None = None,
        include_derived: bool = True,
        min_confidence: float = 0.0,
    ) -> RulesResult:
        return await self._acall(
            RULES,
            self._rules_payload(domains, concept_ids, categories, include_derived, min_confidence),
        )

    def rules(self, **kwargs: Any) -> RulesResult:
        """Alias for get_rules()."""
        return self.get_rules(**kwargs)

    def _feedback_payload(self, outcomes: Mapping[str, FeedbackOutcome]) -> dict[str, Any]:
        return {
            "query_id": self._last_query_id,
            "outcomes": dict(outcomes),
            "source": self._feedback_source,
        }

    def feedback(self, outcomes: Mapping[str, FeedbackOutcome]) -> FeedbackResult | None:
        """Report feedback for the last text search. Closes the learning loop.

        Accepted items get higher PPR teleportation probability, rejected
        lower. Returns None, without calling the server, if no text search
        has run yet.
        """
        if self._last_query_id is None:
            return None
        return self._call(FEEDBACK, self._feedback_payload(outcomes))

    async def afeedback(
        self, outcomes: Mapping[str, FeedbackOutcome]
    ) -> FeedbackResult | None:
        if self._last_query_id is None:
            return None
        return await self._acall(FEEDBACK, self._feedback_payload(outcomes))

    def domains(self) -> list[QortexDomainInfo]:
        """List knowledge domains and their sizes."""
        return list(self._call(DOMAINS, {}).get("domains") or [])

    async def adomains(self) -> list[QortexDomainInfo]:
        return list((await self._acall(DOMAINS, {})).get("domains") or [])

    def status(self) -> StatusResult:
        """Server health and active capabilities."""
        return self._call(STATUS, {})

    async def astatus(self) -> StatusResult:
        return await self._acall(STATUS, {})
