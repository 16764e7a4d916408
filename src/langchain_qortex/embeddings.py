"""Embedding bridges between qortex and LangChain.

QortexEmbeddings wraps a qortex-style embedding model (anything with
``.embed(texts) -> list[list[float]]``) in LangChain's Embeddings interface.
This is a thin utility: most users bring their own LangChain embeddings
(OpenAI, HuggingFace, ...) and pass them to QortexVectorStore directly.

LangChainEmbeddingWrapper goes the other way, for code that expects a
qortex embedding model.
"""

from __future__ import annotations

import inspect
from typing import Any

from langchain_core.embeddings import Embeddings


class QortexEmbeddings(Embeddings):
    """Wrap a qortex embedding model in LangChain's Embeddings interface.

    The model's embed() may be sync or return an awaitable. Awaitable
    models only work through the async methods.
    """

    def __init__(self, model: Any) -> None:
        self._model = model

    @property
    def model(self) -> Any:
        return self._model

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        result = self._model.embed(texts)
        if inspect.isawaitable(result):
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise TypeError(
                f"{type(self._model).__name__}.embed() is async; "
                "use aembed_documents()/aembed_query() instead"
            )
        return result

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        result = self._model.embed(texts)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def aembed_query(self, text: str) -> list[float]:
        return (await self.aembed_documents([text]))[0]


class LangChainEmbeddingWrapper:
    """Wrap a LangChain Embeddings instance in qortex's embed() interface."""

    def __init__(self, lc_embedding: Embeddings) -> None:
        self._lc = lc_embedding
        self._dimensions: int | None = None

    @property
    def dimensions(self) -> int:
        # Probed once, on first access
        if self._dimensions is None:
            self._dimensions = len(self._lc.embed_query("test"))
        return self._dimensions

    def embed(self, texts: list[str]) -> list[list[float]]:
        return self._lc.embed_documents(texts)
