"""
Graphen - Document to Knowledge Graph Ingestion

Turns uploaded documents (PDF, Markdown, plain text) into a persisted
knowledge graph of entities, relations, chunks and embeddings.

Example:
    >>> from graphen import DocumentPipeline, ParquetGraphStore, OpenAILLMService
    >>> async with ParquetGraphStore("./data/graph") as store:
    ...     pipeline = DocumentPipeline(store, OpenAILLMService())
    ...     result = await pipeline.process(document, raw_bytes)
    >>> len(result.graph.nodes)

Main Classes:
    DocumentPipeline: Runs every ingestion phase for one document
    LLMRateLimiter: Shared concurrency/rate/retry gate for provider calls
    PipelineCache: Resumable per-document checkpoints
    GraphenConfig: Configuration management
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading optional dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "DocumentPipeline":
        from graphen.ingestion.pipeline import DocumentPipeline
        return DocumentPipeline

    if name == "PipelineCache":
        from graphen.ingestion.cache import PipelineCache
        return PipelineCache

    if name == "LLMRateLimiter":
        from graphen.providers.rate_limiter import LLMRateLimiter
        return LLMRateLimiter

    if name == "OpenAILLMService":
        from graphen.providers.llm.openai import OpenAILLMService
        return OpenAILLMService

    if name == "ParquetGraphStore":
        from graphen.storage.parquet import ParquetGraphStore
        return ParquetGraphStore

    if name == "GraphenConfig":
        from graphen.config.settings import GraphenConfig
        return GraphenConfig

    # Types
    if name in ("Document", "DocumentChunk", "ResolvedGraph", "PipelineResult", "PipelineStatusEvent"):
        from graphen import types
        return getattr(types, name)

    raise AttributeError(f"module 'graphen' has no attribute {name!r}")


__all__ = [
    # Main classes
    "DocumentPipeline",
    "PipelineCache",
    "LLMRateLimiter",
    "OpenAILLMService",
    "ParquetGraphStore",
    "GraphenConfig",

    # Types
    "Document",
    "DocumentChunk",
    "ResolvedGraph",
    "PipelineResult",
    "PipelineStatusEvent",

    # Version
    "__version__",
]
