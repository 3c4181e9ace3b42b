"""
Extraction Coordinator

Fans out one entity/relation extraction call per chunk.

Every call goes through the shared LLMRateLimiter (global concurrency, rate
and retry budget); ``concurrency`` additionally bounds how many calls this
document's phase keeps in flight. The tighter bound governs.

Example:
    >>> coordinator = ExtractionCoordinator(llm, limiter, concurrency=5)
    >>> extractions = await coordinator.extract("doc-1", chunks)
    >>> [e.chunk_index for e in extractions]
    [0, 1, 2]
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from graphen.errors import ExtractionError, PipelineCancelledError
from graphen.ingestion.fanout import FanOutCancelled, bounded_map
from graphen.types.extraction import ChunkExtraction, ExtractionSchema

if TYPE_CHECKING:
    from graphen.providers.base import LLMService
    from graphen.providers.rate_limiter import LLMRateLimiter
    from graphen.types.documents import DocumentChunk

logger = logging.getLogger(__name__)

PHASE = "extracting"


class ExtractionCoordinator:
    """
    Bounded, order-preserving extraction over a document's chunks.

    Args:
        llm: Service performing the extraction call
        rate_limiter: Shared limiter every call is submitted to
        concurrency: Max calls in flight for one document
        schema: Optional entity/relation type hints passed to every call
    """

    def __init__(
        self,
        llm: LLMService,
        rate_limiter: LLMRateLimiter,
        *,
        concurrency: int = 5,
        schema: ExtractionSchema | None = None,
    ) -> None:
        self._llm = llm
        self._rate_limiter = rate_limiter
        self._concurrency = max(1, concurrency)
        self._schema = schema

    async def extract(
        self,
        document_id: str,
        chunks: list[DocumentChunk],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[ChunkExtraction]:
        """
        Extract entities and relations from every chunk.

        Returns:
            One ChunkExtraction per chunk, in chunk order

        Raises:
            ExtractionError: If any chunk failed after the limiter's retries
            PipelineCancelledError: If cancel_event stopped the phase early
        """
        logger.info(
            f"Extracting {len(chunks)} chunks for {document_id} "
            f"(concurrency={self._concurrency})"
        )

        async def extract_one(chunk: DocumentChunk) -> ChunkExtraction:
            result = await self._rate_limiter.run(
                lambda: self._llm.extract_entities_and_relations(chunk.content, self._schema)
            )
            return ChunkExtraction(chunk_id=chunk.id, chunk_index=chunk.index, result=result)

        try:
            extractions = await bounded_map(
                chunks,
                extract_one,
                concurrency=self._concurrency,
                cancel_event=cancel_event,
            )
        except FanOutCancelled as e:
            raise PipelineCancelledError(
                f"Extraction cancelled: {e}", phase=PHASE, document_id=document_id
            ) from e
        except Exception as e:
            logger.error(f"Extraction failed for {document_id}: {e}")
            raise ExtractionError(
                f"Extraction failed: {e}",
                phase=PHASE,
                document_id=document_id,
                original_error=e,
            ) from e

        entity_count = sum(len(x.result.entities) for x in extractions)
        relation_count = sum(len(x.result.relations) for x in extractions)
        logger.info(
            f"Extracted {entity_count} entities and {relation_count} relations "
            f"from {len(chunks)} chunks"
        )
        return extractions
