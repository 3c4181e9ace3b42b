"""
Sliding-Window Chunker

Splits normalized document text into overlapping character windows.

Algorithm:
    1. Normalize line endings, trailing spaces and runs of blank lines
    2. Take a window of ``chunk_size`` characters from ``start``
    3. If more text follows, pull the window end back to the last whitespace
       past ``start + overlap`` (never splits a word when a break exists)
    4. Next window starts ``overlap`` characters before the previous end

Windows are measured in characters, the same unit as the token estimate
(``ceil(chars / 4)``), so the chunk and token limits stay comparable.
Output depends only on (text, chunk_size, overlap): cached chunk lists stay
valid across runs.
"""

import re

from graphen.types.documents import DocumentChunk
from graphen.utils.text import generate_chunk_id
from graphen.utils.token_count import estimate_tokens

# Regex patterns
_LAST_WHITESPACE = re.compile(r"\s\S*\Z")
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUN = re.compile(r"\n{3,}")


def validate_chunk_config(chunk_size: int, overlap: int) -> None:
    """
    Raises:
        ValueError: Unless chunk_size > 0 and 0 <= overlap < chunk_size
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(
            f"overlap must be in [0, chunk_size), got overlap={overlap}, chunk_size={chunk_size}"
        )


def normalize_text(text: str) -> str:
    """Unify line endings, drop trailing spaces, collapse 3+ newlines to 2."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_SPACE.sub("", text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def split_text(text: str, chunk_size: int, overlap: int) -> list[str]:
    """
    Split text into overlapping windows.

    Args:
        text: Text to split (normalize first for stable boundaries)
        chunk_size: Max characters per chunk
        overlap: Characters shared by consecutive windows

    Returns:
        Chunk texts in document order; empty for blank input

    Raises:
        ValueError: If the size/overlap configuration is invalid
    """
    validate_chunk_config(chunk_size, overlap)
    if not text.strip():
        return []

    chunks: list[str] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        if end < length:
            # Break on whitespace in (start + overlap, end] if there is one
            floor = start + overlap + 1
            match = _LAST_WHITESPACE.search(text, floor, end + 1)
            if match is not None:
                end = match.start()

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)

        if end >= length:
            break
        start = end - overlap

    return chunks


def chunk_document(
    document_id: str,
    text: str,
    *,
    chunk_size: int,
    overlap: int,
) -> list[DocumentChunk]:
    """
    Normalize and split a document into DocumentChunks.

    Chunks are indexed densely from 0 and get ids ``{document_id}_chunk_{index:04d}``.
    """
    pieces = split_text(normalize_text(text), chunk_size, overlap)
    return [
        DocumentChunk(
            id=generate_chunk_id(document_id, index),
            document_id=document_id,
            content=piece,
            index=index,
            metadata={"char_count": len(piece), "estimated_tokens": estimate_tokens(piece)},
        )
        for index, piece in enumerate(pieces)
    ]


def estimate_total_tokens(chunks: list[DocumentChunk]) -> int:
    """Sum of per-chunk token estimates."""
    return sum(estimate_tokens(chunk.content) for chunk in chunks)
