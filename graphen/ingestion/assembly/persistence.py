"""
Persistence Adapter

Final phase that writes the embedded graph to the graph store.

Write order:
    1. Nodes - No dependencies
    2. Edges - Reference node ids
    3. Chunks - Reference the document id
    4. Document - Saved last with status "completed", so a reader never sees
       a completed document whose graph is partially written

The store offers no cross-call transaction. If any write fails the document
record is not written and the run can be repeated: ids are deterministic,
so a re-run overwrites the partial rows.
"""

import logging

from graphen.errors import PersistenceError
from graphen.storage.base import GraphStore
from graphen.types.documents import Document, DocumentChunk, utc_now
from graphen.types.graph import ResolvedGraph
from graphen.types.results import PersistenceResult

logger = logging.getLogger(__name__)

PHASE = "saving"


def completed_document(
    document: Document,
    chunks: list[DocumentChunk],
    graph: ResolvedGraph,
) -> Document:
    """Copy of the document marked completed, with graph counts in metadata."""
    metadata = {
        **document.metadata,
        "chunk_count": len(chunks),
        "entity_count": len(graph.nodes),
        "edge_count": len(graph.edges),
        "dropped_relations": graph.dropped_relations,
    }
    return document.model_copy(
        update={
            "status": "completed",
            "parsed_at": utc_now(),
            "metadata": metadata,
            "error_message": None,
        }
    )


class PersistenceAdapter:
    """
    Writes a document's graph, chunks and record to a GraphStore.

    Usage:
        adapter = PersistenceAdapter(store)
        result = await adapter.persist(document, chunks, graph)
    """

    def __init__(self, store: GraphStore):
        self.store = store

    async def persist(
        self,
        document: Document,
        chunks: list[DocumentChunk],
        graph: ResolvedGraph,
    ) -> PersistenceResult:
        """
        Write nodes, edges, chunks, then the completed document.

        Returns:
            PersistenceResult with counts and the saved document

        Raises:
            PersistenceError: If the graph has dangling edges or any write fails
        """
        dangling = graph.dangling_edges()
        if dangling:
            raise PersistenceError(
                f"Refusing to persist {len(dangling)} dangling edges "
                f"(first: {dangling[0].id})",
                phase=PHASE,
                document_id=document.id,
            )

        result = PersistenceResult()
        try:
            await self.store.save_nodes(graph.nodes)
            result.nodes_written = len(graph.nodes)

            await self.store.save_edges(graph.edges)
            result.edges_written = len(graph.edges)

            await self.store.save_chunks(chunks)
            result.chunks_written = len(chunks)

            saved = completed_document(document, chunks, graph)
            await self.store.save_document(saved)
            result.document_written = True
            result.document = saved

        except Exception as e:
            logger.error(
                f"Persistence failed after writing: nodes={result.nodes_written}, "
                f"edges={result.edges_written}, chunks={result.chunks_written}, "
                f"document={result.document_written}. Error: {e}"
            )
            raise PersistenceError(
                f"Graph store write failed: {e}",
                phase=PHASE,
                document_id=document.id,
                original_error=e,
            ) from e

        logger.info(
            f"Persisted {result.nodes_written} nodes, {result.edges_written} edges, "
            f"{result.chunks_written} chunks for {document.id}"
        )
        return result
