"""
Error Hierarchy

Classified errors raised by the ingestion pipeline and its collaborators.

Every phase failure is a PipelineError carrying the phase it happened in and
whether re-invoking the pipeline can reasonably succeed. The pipeline never
retries a whole run on its own: callers re-invoke ``process`` and the
checkpoint cache makes that cheap.

Hierarchy:
    GraphenError
    ├── ConfigurationError
    ├── RateLimiterClosedError
    └── PipelineError
        ├── ParseError
        ├── ValidationLimitExceeded
        ├── ExtractionError
        ├── ResolutionError
        ├── EmbeddingError
        ├── PersistenceError
        ├── PipelineCancelledError
        └── PipelineBusyError
"""

from __future__ import annotations


class GraphenError(Exception):
    """Base exception for all graphen errors."""

    def __init__(self, message: str, original_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(GraphenError):
    """Raised when configuration is invalid."""


class RateLimiterClosedError(GraphenError):
    """Raised for tasks submitted to (or still queued in) a closed rate limiter."""


class PipelineError(GraphenError):
    """
    A failure of one pipeline phase.

    Attributes:
        phase: Phase name the failure happened in (e.g. "extracting")
        document_id: Document being processed, if known
        retryable: True if re-invoking the pipeline may succeed
        original_error: Underlying exception, if any
    """

    retryable_default = False

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        document_id: str | None = None,
        retryable: bool | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.phase = phase
        self.document_id = document_id
        self.retryable = self.retryable_default if retryable is None else retryable

    def __str__(self) -> str:
        return f"[{self.phase}] {super().__str__()}"


class ParseError(PipelineError):
    """Document bytes could not be turned into text."""


class ValidationLimitExceeded(PipelineError):
    """Chunk count or estimated token budget is over the configured cap."""


class ExtractionError(PipelineError):
    """Entity/relation extraction failed after the rate limiter gave up."""

    retryable_default = True


class ResolutionError(PipelineError):
    """Per-chunk results could not be merged into a graph."""


class EmbeddingError(PipelineError):
    """Embedding generation failed after the rate limiter gave up."""

    retryable_default = True


class PersistenceError(PipelineError):
    """Graph store write failed; the document was not marked complete."""


class PipelineCancelledError(PipelineError):
    """The caller cancelled the run; in-flight calls were allowed to finish."""

    retryable_default = True


class PipelineBusyError(PipelineError):
    """Another run for the same document id is already in progress."""

    retryable_default = True
