"""CLI settings shared by every command."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from langchain_qortex.config import QortexStoreConfig
from langchain_qortex.vectorstores import QortexVectorStore


@dataclass
class CliSettings:
    """Global options, resolved over QortexStoreConfig (env > YAML > defaults)."""

    server_command: str | None = None
    server_args: list[str] | None = None
    index_name: str | None = None
    domain: str | None = None
    store_config: QortexStoreConfig = field(default_factory=QortexStoreConfig.load)

    def resolved(self) -> QortexStoreConfig:
        return self.store_config.replace(
            server_command=self.server_command,
            server_args=self.server_args,
            index_name=self.index_name,
            domain=self.domain,
        )


def open_store(settings: CliSettings, embedding: Any = None, **overrides: Any) -> QortexVectorStore:
    """Build a QortexVectorStore from CLI settings and connect it."""
    store = QortexVectorStore(embedding, config=settings.resolved().replace(**overrides))
    try:
        store.connect()
    except Exception:
        store.close()
        raise
    return store
