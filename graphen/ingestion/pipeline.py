"""
Document Ingestion Pipeline

Orchestrates the phases that turn an uploaded document into a persisted
knowledge graph.

Phases (strictly ordered):
    parsing     Parser selected by file type -> plain text + counts
    chunking    Replay chunk cache, or chunk; enforce hard limits; write cache
    extracting  Replay extraction cache, or extract per chunk; write cache
    resolving   Merge chunk results into one graph
    embedding   Embed nodes and chunks
    saving      Persist nodes, edges, chunks, then the completed document
    completed

Resumability:
    The chunk cache is written right after chunking, and the extraction
    cache right after a fully successful extraction phase. Re-running a
    document whose extraction cache is valid makes no extraction calls.
    Hard limits are checked before the chunk cache is written, so an
    oversized document leaves no checkpoint behind.

Concurrency:
    One run per document id at a time per pipeline instance
    (PipelineBusyError otherwise). The on-disk cache itself takes no lock:
    callers sharing a cache directory across processes must not process
    the same document id concurrently.

Cancellation:
    Setting ``cancel_event`` stops new work between phases and before each
    new extraction/embedding call. Calls already sent are allowed to finish;
    the run then raises PipelineCancelledError.

Example:
    >>> pipeline = DocumentPipeline(store, llm, observer=print)
    >>> result = await pipeline.process(document, path.read_bytes())
    >>> len(result.graph.nodes)
    12
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from graphen.config import GraphenConfig
from graphen.errors import (
    EmbeddingError,
    ExtractionError,
    ParseError,
    PersistenceError,
    PipelineBusyError,
    PipelineCancelledError,
    PipelineError,
    ResolutionError,
    ValidationLimitExceeded,
)
from graphen.ingestion.assembly import PersistenceAdapter
from graphen.ingestion.cache import PipelineCache
from graphen.ingestion.chunking import chunk_document, estimate_total_tokens, validate_chunk_config
from graphen.ingestion.embedding import EmbeddingCoordinator
from graphen.ingestion.extraction import ExtractionCoordinator
from graphen.ingestion.resolution import GraphResolver
from graphen.parsers import DocumentParser, default_parsers
from graphen.providers.base import LLMService
from graphen.providers.rate_limiter import LLMRateLimiter
from graphen.storage.base import GraphStore
from graphen.types.documents import Document, DocumentChunk, ParsedDocument
from graphen.types.extraction import ChunkExtraction, ExtractionSchema
from graphen.types.results import (
    PHASE_PROGRESS,
    PipelinePhase,
    PipelineResult,
    PipelineStatusEvent,
)
from graphen.utils.cost_telemetry import UsageCollector, telemetry_collector, telemetry_stage

logger = logging.getLogger(__name__)

StatusObserver = Callable[[PipelineStatusEvent], None]

# Error class for unexpected exceptions raised inside a phase
_PHASE_ERRORS: dict[PipelinePhase, type[PipelineError]] = {
    PipelinePhase.PARSING: ParseError,
    PipelinePhase.EXTRACTING: ExtractionError,
    PipelinePhase.RESOLVING: ResolutionError,
    PipelinePhase.EMBEDDING: EmbeddingError,
    PipelinePhase.SAVING: PersistenceError,
}


class DocumentPipeline:
    """
    Phase state machine for document ingestion.

    Args:
        store: Graph store the result is persisted to
        llm: Service used for extraction and embedding calls
        config: Pipeline configuration (defaults + environment if omitted)
        rate_limiter: Shared limiter; one is built from config if omitted
        cache: Checkpoint cache; defaults to config.cache_dir
        parsers: Parser registry keyed by file type
        observer: Called synchronously with each phase transition
        schema: Entity/relation type hints for extraction
        collector: Also receives the TokenUsageRecords of every run
    """

    def __init__(
        self,
        store: GraphStore,
        llm: LLMService,
        *,
        config: GraphenConfig | None = None,
        rate_limiter: LLMRateLimiter | None = None,
        cache: PipelineCache | None = None,
        parsers: dict[str, DocumentParser] | None = None,
        observer: StatusObserver | None = None,
        schema: ExtractionSchema | None = None,
        collector: UsageCollector | None = None,
    ) -> None:
        self.config = (config or GraphenConfig()).validate()
        self._owns_rate_limiter = rate_limiter is None
        self.rate_limiter = rate_limiter or LLMRateLimiter.from_config(self.config)
        self.cache = cache or PipelineCache(self.config.cache_dir)
        self.collector = collector
        self._parsers = parsers if parsers is not None else default_parsers()
        self._observers: list[StatusObserver] = [observer] if observer else []
        self._resolver = GraphResolver()
        self._extractor = ExtractionCoordinator(
            llm,
            self.rate_limiter,
            concurrency=self.config.extraction_concurrency,
            schema=schema,
        )
        self._embedder = EmbeddingCoordinator(
            llm,
            self.rate_limiter,
            concurrency=self.config.embedding_concurrency,
            embed_nodes=self.config.embed_nodes,
            embed_chunks=self.config.embed_chunks,
        )
        self._persistence = PersistenceAdapter(store)
        self._active: set[str] = set()

    def on_status(self, observer: StatusObserver) -> None:
        """Register an additional status observer."""
        self._observers.append(observer)

    def is_processing(self, document_id: str) -> bool:
        return document_id in self._active

    async def close(self) -> None:
        """Close the rate limiter if this pipeline created it."""
        if self._owns_rate_limiter:
            self.rate_limiter.close()
            await self.rate_limiter.wait_closed()

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def process(
        self,
        document: Document,
        raw_bytes: bytes,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineResult:
        """
        Run every phase for one document.

        Args:
            document: Uploaded document record (file_type selects the parser)
            raw_bytes: File content
            cancel_event: Set to stop issuing new work

        Returns:
            PipelineResult with the saved document, chunks and graph

        Raises:
            PipelineBusyError: If this document is already being processed
            PipelineError: Subclass naming the failed phase
        """
        if document.id in self._active:
            raise PipelineBusyError(
                f"Document {document.id} is already being processed",
                phase=PipelinePhase.PARSING.value,
                document_id=document.id,
            )

        self._active.add(document.id)
        run_usage = UsageCollector(warn_threshold_usd=self.config.cost_warn_threshold_usd)
        try:
            with telemetry_collector(run_usage):
                result = await self._run(document, raw_bytes, cancel_event)
            result.usage = run_usage.summary()
            for warning in result.usage.warnings:
                logger.warning(f"[{document.id}] {warning}")
            return result
        finally:
            self._active.discard(document.id)
            if self.collector is not None:
                for record in run_usage.records:
                    self.collector.add(record)

    async def _run(
        self,
        document: Document,
        raw_bytes: bytes,
        cancel_event: asyncio.Event | None,
    ) -> PipelineResult:
        doc_id = document.id
        started = time.perf_counter()
        phase = PipelinePhase.PARSING

        try:
            # Parsing
            self._enter(phase, doc_id, f"Parsing {document.filename}")
            with telemetry_stage(phase.value, doc_id):
                parsed = await self._parse(document, raw_bytes)
            document = document.model_copy(
                update={"metadata": {**document.metadata, **parsed.counts()}}
            )

            # Chunking
            phase = self._advance(PipelinePhase.CHUNKING, doc_id, cancel_event)
            with telemetry_stage(phase.value, doc_id):
                chunks, chunk_cache_hit, estimated_tokens = await self._chunk(doc_id, parsed.text)

            # Extracting
            phase = self._advance(
                PipelinePhase.EXTRACTING, doc_id, cancel_event, f"{len(chunks)} chunks"
            )
            with telemetry_stage(phase.value, doc_id):
                extractions, extraction_cache_hit = await self._extract(
                    doc_id, chunks, chunk_cache_hit, cancel_event
                )

            # Resolving
            phase = self._advance(PipelinePhase.RESOLVING, doc_id, cancel_event)
            with telemetry_stage(phase.value, doc_id):
                graph = self._resolver.resolve(doc_id, extractions)

            # Embedding
            phase = self._advance(
                PipelinePhase.EMBEDDING,
                doc_id,
                cancel_event,
                f"{len(graph.nodes)} nodes, {len(graph.edges)} edges",
            )
            with telemetry_stage(phase.value, doc_id):
                await self._embedder.embed(doc_id, graph, chunks, cancel_event=cancel_event)

            # Saving
            phase = self._advance(PipelinePhase.SAVING, doc_id, cancel_event)
            with telemetry_stage(phase.value, doc_id):
                persisted = await self._persistence.persist(document, chunks, graph)

        except PipelineError as e:
            logger.error(f"Pipeline failed for {doc_id}: {e}")
            raise
        except Exception as e:
            error_cls = _PHASE_ERRORS.get(phase, PipelineError)
            logger.error(f"Pipeline failed for {doc_id} during {phase.value}: {e}")
            raise error_cls(
                f"{type(e).__name__}: {e}",
                phase=phase.value,
                document_id=doc_id,
                original_error=e,
            ) from e

        duration = time.perf_counter() - started
        self._enter(PipelinePhase.COMPLETED, doc_id, f"Completed in {duration:.2f}s")

        assert persisted.document is not None
        return PipelineResult(
            document=persisted.document,
            chunks=chunks,
            graph=graph,
            estimated_tokens=estimated_tokens,
            chunk_cache_hit=chunk_cache_hit,
            extraction_cache_hit=extraction_cache_hit,
            duration_seconds=duration,
        )

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _parse(self, document: Document, raw_bytes: bytes) -> ParsedDocument:
        parser = self._parsers.get(document.file_type)
        if parser is None:
            raise ParseError(
                f"Unsupported file type: {document.file_type}",
                phase=PipelinePhase.PARSING.value,
                document_id=document.id,
            )
        try:
            parsed = await parser.parse(raw_bytes)
        except Exception as e:
            raise ParseError(
                f"Could not parse {document.filename}: {e}",
                phase=PipelinePhase.PARSING.value,
                document_id=document.id,
                original_error=e,
            ) from e
        logger.debug(f"Parsed {document.filename}: {parsed.word_count} words")
        return parsed

    async def _chunk(
        self,
        doc_id: str,
        text: str,
    ) -> tuple[list[DocumentChunk], bool, int]:
        chunks = await self.cache.load_chunks(doc_id)
        cache_hit = chunks is not None
        if chunks is None:
            validate_chunk_config(self.config.chunk_size, self.config.chunk_overlap)
            chunks = chunk_document(
                doc_id,
                text,
                chunk_size=self.config.chunk_size,
                overlap=self.config.chunk_overlap,
            )

        estimated_tokens = estimate_total_tokens(chunks)
        self._check_limits(doc_id, len(chunks), estimated_tokens)

        if not cache_hit:
            await self.cache.save_chunks(doc_id, chunks)
        logger.info(
            f"Chunked {doc_id} into {len(chunks)} chunks (~{estimated_tokens} tokens"
            f"{', from cache' if cache_hit else ''})"
        )
        return chunks, cache_hit, estimated_tokens

    def _check_limits(self, doc_id: str, chunk_count: int, estimated_tokens: int) -> None:
        if chunk_count > self.config.max_chunks_per_document:
            raise ValidationLimitExceeded(
                f"Chunk count limit exceeded: {chunk_count} > "
                f"{self.config.max_chunks_per_document}. Split the document.",
                phase=PipelinePhase.CHUNKING.value,
                document_id=doc_id,
            )
        if estimated_tokens > self.config.max_estimated_tokens:
            raise ValidationLimitExceeded(
                f"Estimated tokens too high: {estimated_tokens} > "
                f"{self.config.max_estimated_tokens}. Split or trim the document.",
                phase=PipelinePhase.CHUNKING.value,
                document_id=doc_id,
            )

    async def _extract(
        self,
        doc_id: str,
        chunks: list[DocumentChunk],
        chunk_cache_hit: bool,
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[ChunkExtraction], bool]:
        # A fresh chunk list invalidated any earlier extraction cache
        if chunk_cache_hit:
            cached = await self.cache.load_extractions(doc_id, chunks)
            if cached is not None:
                logger.info(f"Replaying {len(cached)} cached extractions for {doc_id}")
                return cached, True

        extractions = await self._extractor.extract(doc_id, chunks, cancel_event=cancel_event)
        await self.cache.save_extractions(doc_id, extractions)
        return extractions, False

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _advance(
        self,
        phase: PipelinePhase,
        doc_id: str,
        cancel_event: asyncio.Event | None,
        message: str | None = None,
    ) -> PipelinePhase:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError(
                f"Cancelled before {phase.value}",
                phase=phase.value,
                document_id=doc_id,
            )
        self._enter(phase, doc_id, message)
        return phase

    def _enter(self, phase: PipelinePhase, doc_id: str, message: str | None = None) -> None:
        logger.info(f"[{doc_id}] {phase.value}" + (f": {message}" if message else ""))
        event = PipelineStatusEvent(
            phase=phase,
            document_id=doc_id,
            progress=PHASE_PROGRESS[phase],
            message=message,
        )
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.warning(f"Status observer failed on {phase.value} for {doc_id}: {e}")
