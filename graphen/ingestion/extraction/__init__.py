"""
Extraction

Per-chunk entity/relation extraction through the shared rate limiter.
"""

from graphen.ingestion.extraction.coordinator import ExtractionCoordinator

__all__ = ["ExtractionCoordinator"]
