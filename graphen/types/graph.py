"""
Graph Types

The resolved, document-spanning graph produced by GraphResolver.

Models:
    - GraphNode: Merged entity (many chunk mentions -> one node)
    - GraphEdge: Merged relation between two node ids
    - ResolvedGraph: Nodes + edges with no dangling edge
"""

from pydantic import BaseModel, Field


class GraphNode(BaseModel):
    """
    A resolved entity.

    Attributes:
        id: Deterministic identifier (uuid5 of document id + identity key)
        name: Preferred surface name
        type: Entity type
        description: Longest non-empty description seen
        confidence: Maximum confidence over all mentions
        aliases: Every surface name that resolved to this node
        source_chunk_ids: Chunks that mentioned the entity
        embedding: Attached by the embedding phase
    """

    id: str
    name: str
    type: str
    description: str = ""
    confidence: float = 0.0
    aliases: list[str] = Field(default_factory=list)
    source_document_ids: list[str] = Field(default_factory=list)
    source_chunk_ids: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class GraphEdge(BaseModel):
    """
    A resolved relation.

    ``weight`` is the number of mentions that contributed to the edge.
    """

    id: str
    source_node_id: str
    target_node_id: str
    relation_type: str
    description: str = ""
    weight: int = 1
    confidence: float = 0.0
    source_document_ids: list[str] = Field(default_factory=list)
    source_chunk_ids: list[str] = Field(default_factory=list)
    created_at: str | None = None


class ResolvedGraph(BaseModel):
    """
    Deduplicated node/edge set for one document.

    Invariant: every edge's endpoints are ids of nodes in ``nodes``.
    ``dropped_relations`` counts relation mentions discarded during
    resolution (unresolved endpoint or self-loop).
    """

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    dropped_relations: int = 0

    def dangling_edges(self) -> list[GraphEdge]:
        """Edges whose source or target is not a node of this graph."""
        node_ids = {node.id for node in self.nodes}
        return [
            edge
            for edge in self.edges
            if edge.source_node_id not in node_ids or edge.target_node_id not in node_ids
        ]
