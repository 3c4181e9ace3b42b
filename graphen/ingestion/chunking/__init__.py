"""
Chunking

Character-window chunking with overlap.
"""

from graphen.ingestion.chunking.chunker import (
    chunk_document,
    estimate_total_tokens,
    normalize_text,
    split_text,
    validate_chunk_config,
)
from graphen.utils.token_count import estimate_tokens

__all__ = [
    "chunk_document",
    "estimate_tokens",
    "estimate_total_tokens",
    "normalize_text",
    "split_text",
    "validate_chunk_config",
]
