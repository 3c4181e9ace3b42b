"""
Result Types

Types for pipeline status, pipeline results and token-usage telemetry.

Pipeline Models:
    - PipelinePhase: The seven ordered phases
    - PipelineStatusEvent: Pushed to the status observer on each transition
    - PipelineResult: Return value of DocumentPipeline.process()
    - PersistenceResult: Counts written by the PersistenceAdapter

Telemetry Models:
    - TokenUsageRecord: One provider call (append-only, frozen)
    - PhaseUsage: Aggregate for one phase
    - UsageReport: Aggregate for one collector
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from graphen.types.documents import Document, DocumentChunk, utc_now
from graphen.types.graph import ResolvedGraph

# -----------------------------------------------------------------------------
# Pipeline Models
# -----------------------------------------------------------------------------


class PipelinePhase(str, Enum):
    """Pipeline phases in execution order."""

    PARSING = "parsing"
    CHUNKING = "chunking"
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    EMBEDDING = "embedding"
    SAVING = "saving"
    COMPLETED = "completed"


PHASE_ORDER: tuple[PipelinePhase, ...] = tuple(PipelinePhase)

PHASE_PROGRESS: dict[PipelinePhase, int] = {
    PipelinePhase.PARSING: 0,
    PipelinePhase.CHUNKING: 20,
    PipelinePhase.EXTRACTING: 30,
    PipelinePhase.RESOLVING: 70,
    PipelinePhase.EMBEDDING: 80,
    PipelinePhase.SAVING: 90,
    PipelinePhase.COMPLETED: 100,
}


class PipelineStatusEvent(BaseModel):
    """A phase transition for one document."""

    phase: PipelinePhase
    document_id: str
    progress: int = 0
    message: str | None = None

    model_config = ConfigDict(frozen=True)


class PersistenceResult(BaseModel):
    """Counts written to the graph store by one persist() call."""

    nodes_written: int = 0
    edges_written: int = 0
    chunks_written: int = 0
    document_written: bool = False
    document: Document | None = None


class PipelineResult(BaseModel):
    """
    Result of DocumentPipeline.process().

    Attributes:
        document: The saved document record (status "completed")
        chunks: Chunks actually produced (or replayed from cache), with embeddings
        graph: The persisted resolved graph
        estimated_tokens: Cheap token estimate summed over all chunks
        chunk_cache_hit: True if chunking was replayed from cache
        extraction_cache_hit: True if extraction was replayed from cache
        duration_seconds: Wall time of the run
        usage: Token usage recorded during the run
    """

    document: Document
    chunks: list[DocumentChunk]
    graph: ResolvedGraph
    estimated_tokens: int = 0
    chunk_cache_hit: bool = False
    extraction_cache_hit: bool = False
    duration_seconds: float = 0.0
    usage: "UsageReport | None" = None


# -----------------------------------------------------------------------------
# Telemetry Models
# -----------------------------------------------------------------------------


class TokenUsageRecord(BaseModel):
    """
    Usage of one language-model or embedding call.

    Records are append-only: they are frozen and collectors never remove them.
    """

    phase: str
    provider: str
    model: str
    operation: str
    document_id: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    latency_ms: int = 0
    estimated: bool = False
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class PhaseUsage(BaseModel):
    """Aggregated usage for one phase."""

    phase: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    total_latency_ms: int = 0


class UsageReport(BaseModel):
    """Aggregated usage for one collector."""

    pricing_version: str
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_estimated_cost_usd: float = 0.0
    by_phase: list[PhaseUsage] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


PipelineResult.model_rebuild()
