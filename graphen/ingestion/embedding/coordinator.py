"""
Embedding Coordinator

Fans out one embedding call per resolved node and per chunk, through the
shared LLMRateLimiter, and attaches the vectors in place.

Node text is ``"{name}\\n{description}"``; chunk text is the chunk content.
Vectors are attached only once every call has succeeded, so a failed phase
leaves the graph and chunks untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from graphen.errors import EmbeddingError, PipelineCancelledError
from graphen.ingestion.fanout import FanOutCancelled, bounded_map
from graphen.types.documents import DocumentChunk
from graphen.types.graph import GraphNode, ResolvedGraph

if TYPE_CHECKING:
    from graphen.providers.base import LLMService
    from graphen.providers.rate_limiter import LLMRateLimiter

logger = logging.getLogger(__name__)

PHASE = "embedding"


def node_embedding_text(node: GraphNode) -> str:
    return f"{node.name}\n{node.description}"


class EmbeddingCoordinator:
    """
    Bounded, order-preserving embedding of nodes and chunks.

    Args:
        llm: Service performing the embedding call
        rate_limiter: Shared limiter every call is submitted to
        concurrency: Max calls in flight for one document
        embed_nodes: Embed resolved graph nodes
        embed_chunks: Embed document chunks
    """

    def __init__(
        self,
        llm: LLMService,
        rate_limiter: LLMRateLimiter,
        *,
        concurrency: int = 5,
        embed_nodes: bool = True,
        embed_chunks: bool = True,
    ) -> None:
        self._llm = llm
        self._rate_limiter = rate_limiter
        self._concurrency = max(1, concurrency)
        self._embed_nodes = embed_nodes
        self._embed_chunks = embed_chunks

    async def embed(
        self,
        document_id: str,
        graph: ResolvedGraph,
        chunks: list[DocumentChunk],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """
        Attach embeddings to graph nodes and chunks.

        Raises:
            EmbeddingError: If any call failed after the limiter's retries
            PipelineCancelledError: If cancel_event stopped the phase early
        """
        targets: list[GraphNode | DocumentChunk] = []
        if self._embed_nodes:
            targets.extend(graph.nodes)
        if self._embed_chunks:
            targets.extend(chunks)

        logger.info(
            f"Embedding {len(targets)} items for {document_id} "
            f"(concurrency={self._concurrency})"
        )

        async def embed_one(target: GraphNode | DocumentChunk) -> list[float]:
            text = node_embedding_text(target) if isinstance(target, GraphNode) else target.content
            return await self._rate_limiter.run(lambda: self._llm.generate_embedding(text))

        try:
            vectors = await bounded_map(
                targets,
                embed_one,
                concurrency=self._concurrency,
                cancel_event=cancel_event,
            )
        except FanOutCancelled as e:
            raise PipelineCancelledError(
                f"Embedding cancelled: {e}", phase=PHASE, document_id=document_id
            ) from e
        except Exception as e:
            logger.error(f"Embedding failed for {document_id}: {e}")
            raise EmbeddingError(
                f"Embedding failed: {e}",
                phase=PHASE,
                document_id=document_id,
                original_error=e,
            ) from e

        for target, vector in zip(targets, vectors):
            target.embedding = vector
