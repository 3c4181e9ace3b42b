"""
Resolution

Merges chunk-level extraction results into one graph per document.
"""

from graphen.ingestion.resolution.resolver import (
    DEFAULT_SYNONYMS,
    GraphResolver,
    normalize_relation_type,
)

__all__ = ["DEFAULT_SYNONYMS", "GraphResolver", "normalize_relation_type"]
