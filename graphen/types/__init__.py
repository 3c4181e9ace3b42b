"""
Type Definitions

Pydantic models for all data structures.

Storage Models (persisted to the graph store):
    - Document, DocumentChunk - Source document content
    - GraphNode, GraphEdge - Resolved graph

Extraction Models (used during ingestion pipeline):
    - ExtractedEntity, ExtractedRelation, ExtractionResult - Raw LLM output
    - ChunkExtraction - Extraction result tagged with its chunk
    - ResolvedGraph - Merged graph for one document

Pipeline / Telemetry Models:
    - PipelinePhase, PipelineStatusEvent, PipelineResult
    - TokenUsageRecord, UsageReport
"""

from graphen.types.documents import (
    Document,
    DocumentChunk,
    DocumentFileType,
    DocumentStatus,
    ParsedDocument,
)
from graphen.types.extraction import (
    ChunkExtraction,
    ExtractedEntity,
    ExtractedRelation,
    ExtractionResult,
    ExtractionSchema,
)
from graphen.types.graph import GraphEdge, GraphNode, ResolvedGraph
from graphen.types.results import (
    PHASE_ORDER,
    PersistenceResult,
    PhaseUsage,
    PipelinePhase,
    PipelineResult,
    PipelineStatusEvent,
    TokenUsageRecord,
    UsageReport,
)

__all__ = [
    # Storage Models
    "Document",
    "DocumentChunk",
    "DocumentFileType",
    "DocumentStatus",
    "ParsedDocument",
    "GraphNode",
    "GraphEdge",
    # Extraction Models
    "ExtractedEntity",
    "ExtractedRelation",
    "ExtractionResult",
    "ExtractionSchema",
    "ChunkExtraction",
    "ResolvedGraph",
    # Pipeline Models
    "PHASE_ORDER",
    "PipelinePhase",
    "PipelineStatusEvent",
    "PipelineResult",
    "PersistenceResult",
    # Telemetry Models
    "TokenUsageRecord",
    "PhaseUsage",
    "UsageReport",
]
