"""
Ingestion Pipeline

Document -> parse -> chunk -> extract -> resolve -> embed -> persist.

Modules:
    - pipeline: DocumentPipeline phase state machine
    - cache: Per-document checkpoint cache (chunks, extractions)
    - chunking: Character-window chunking with overlap
    - extraction: Per-chunk entity/relation extraction
    - resolution: Merge chunk results into one graph
    - embedding: Node and chunk embeddings
    - assembly: Write the graph to the graph store
"""

from graphen.ingestion.cache import PipelineCache
from graphen.ingestion.pipeline import DocumentPipeline, StatusObserver

__all__ = ["DocumentPipeline", "PipelineCache", "StatusObserver"]
