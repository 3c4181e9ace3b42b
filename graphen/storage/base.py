"""
Abstract Graph Store Interface

Defines the contract the ingestion pipeline persists through.

Lifecycle:
    store = ParquetGraphStore(path)
    await store.connect()
    # ... operations ...
    await store.disconnect()

Or using context manager:
    async with ParquetGraphStore(path) as store:
        await store.save_nodes(nodes)

Writes are batch upserts keyed by id. No cross-call transaction is assumed;
the PersistenceAdapter's write order (nodes, edges, chunks, document) is what
keeps a completed document from pointing at a partial graph.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphen.types import Document, DocumentChunk, GraphEdge, GraphNode


class GraphStore(ABC):
    """Abstract interface for graph stores."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the store (create directories, connections)."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release resources."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the store can currently serve reads and writes."""
        ...

    async def __aenter__(self) -> "GraphStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_nodes(self, nodes: list["GraphNode"]) -> None:
        """Upsert graph nodes in batch."""
        ...

    @abstractmethod
    async def save_edges(self, edges: list["GraphEdge"]) -> None:
        """Upsert graph edges in batch. Endpoints must already be saved."""
        ...

    @abstractmethod
    async def save_chunks(self, chunks: list["DocumentChunk"]) -> None:
        """Upsert document chunks (with embeddings) in batch."""
        ...

    @abstractmethod
    async def save_document(self, document: "Document") -> None:
        """Upsert a document record."""
        ...

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_document(self, document_id: str) -> "Document | None":
        ...

    @abstractmethod
    async def count_nodes(self) -> int:
        ...

    @abstractmethod
    async def count_edges(self) -> int:
        ...

    @abstractmethod
    async def count_chunks(self) -> int:
        ...

    @abstractmethod
    async def count_documents(self) -> int:
        ...
