"""
Document and Chunk Types

Documents are uploaded files; chunks are the bounded text segments the
pipeline extracts from and embeds.

Storage Models:
    - Document: Uploaded document record and its lifecycle status
    - DocumentChunk: Persisted chunk with ordinal index and optional embedding

Parser Output:
    - ParsedDocument: Plain text plus counts reported by a DocumentParser
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

DocumentFileType = Literal["pdf", "md", "txt"]

DocumentStatus = Literal["uploading", "parsing", "extracting", "embedding", "completed", "error"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """
    An uploaded document.

    Created on upload; only the pipeline's saving phase changes its status
    (to "completed") and fills in parsed_at and the graph counts in metadata.

    Attributes:
        id: Unique identifier (also the cache directory name)
        filename: Original file name
        file_type: pdf, md or txt (selects the parser)
        file_size: Size in bytes
        status: Lifecycle tag
        uploaded_at: Upload time (UTC)
        parsed_at: Time the pipeline completed
        metadata: Free-form counts (word_count, chunk_count, entity_count, ...)
    """

    id: str
    filename: str
    file_type: DocumentFileType
    file_size: int = 0
    status: DocumentStatus = "uploading"
    uploaded_at: datetime = Field(default_factory=utc_now)
    parsed_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None


class DocumentChunk(BaseModel):
    """
    A text segment of a document.

    Immutable once created, except that the embedding phase attaches
    ``embedding`` in place.
    """

    id: str
    document_id: str
    content: str
    index: int = Field(..., ge=0, description="Ordinal position, dense 0..n-1 per document")
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ParsedDocument(BaseModel):
    """Output of a DocumentParser."""

    text: str
    word_count: int = 0
    line_count: int = 0
    page_count: int | None = None

    def counts(self) -> dict[str, int]:
        """Counts to merge into Document.metadata."""
        counts = {"word_count": self.word_count, "line_count": self.line_count}
        if self.page_count is not None:
            counts["page_count"] = self.page_count
        return counts
