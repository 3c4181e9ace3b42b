"""
Abstract Provider Interfaces

The language-model service consumed by the ingestion pipeline.

Implementations must not rate-limit or retry on their own: the pipeline wraps
every call in the shared LLMRateLimiter. Transient failures should surface
as exceptions carrying an HTTP ``status_code``/``status`` or a network
``code`` so the limiter can classify them.
"""

from abc import ABC, abstractmethod

from graphen.types.extraction import ExtractionResult, ExtractionSchema


class LLMService(ABC):
    """Abstract interface for extraction and embedding calls."""

    @abstractmethod
    async def extract_entities_and_relations(
        self,
        text: str,
        schema: ExtractionSchema | None = None,
    ) -> ExtractionResult:
        """Extract entities and relations from one chunk of text."""
        ...

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """Embed one text."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Chat model used for extraction."""
        ...

    @property
    @abstractmethod
    def embedding_model_name(self) -> str:
        """Embedding model name."""
        ...
