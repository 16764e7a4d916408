"""Payload shapes of the qortex MCP tools.

These mirror what the qortex server returns. The vector store hands them
back verbatim, so they are TypedDicts rather than copied into classes.
Field names are the wire contract with the server: do not rename.
"""

from __future__ import annotations

from typing import Any, Literal, TypedDict

FeedbackOutcome = Literal["accepted", "rejected", "partial"]


class QortexNode(TypedDict):
    id: str
    name: str
    description: str
    domain: str
    confidence: float
    properties: dict[str, Any]


class QortexEdge(TypedDict):
    source_id: str
    target_id: str
    relation_type: str
    confidence: float
    properties: dict[str, Any]


class QortexRule(TypedDict):
    id: str
    text: str
    domain: str
    category: str
    confidence: float
    relevance: float
    derivation: str
    source_concepts: list[str]
    metadata: dict[str, Any]


class LinkedRule(TypedDict):
    """A rule as attached to a search result's metadata["rules"]."""

    id: str
    text: str
    relevance: float


class QortexQueryItem(TypedDict):
    id: str
    content: str
    score: float
    domain: str
    node_id: str
    metadata: dict[str, Any]


class QortexQueryResult(TypedDict, total=False):
    items: list[QortexQueryItem]
    query_id: str
    rules: list[QortexRule]
    error: str


class ExploreResult(TypedDict):
    node: QortexNode
    edges: list[QortexEdge]
    neighbors: list[QortexNode]
    rules: list[QortexRule]


class RulesResult(TypedDict):
    rules: list[QortexRule]
    domain_count: int
    projection: str


class FeedbackResult(TypedDict, total=False):
    status: str
    query_id: str
    outcome_count: int
    source: str
    credit: dict[str, int]


class QortexDomainInfo(TypedDict, total=False):
    name: str
    description: str | None
    concept_count: int
    edge_count: int
    rule_count: int


class StatusResult(TypedDict, total=False):
    status: str
    backend: str
    vector_index: str | None
    vector_search: bool
    graph_algorithms: bool
    domain_count: int
    embedding_model: str | None
    interoception: dict[str, Any] | None
