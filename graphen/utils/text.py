"""
Text Processing Utilities

Functions for text normalization and identifier generation.
"""

from __future__ import annotations

import re
import uuid

_WHITESPACE = re.compile(r"\s+")

# Namespace for deterministic node/edge ids
GRAPHEN_NAMESPACE = uuid.UUID("6f1c2f4e-3b7a-5d8e-9a41-2c0d7e5b8f13")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalize_name(name: str, synonyms: dict[str, str] | None = None) -> str:
    """
    Normalize an entity name for identity comparison.

    Trims, lowercases and collapses whitespace, then maps the whole name
    through ``synonyms`` (e.g. "llm" -> "large language model").

    Args:
        name: Surface name as extracted
        synonyms: Normalized-name replacements

    Returns:
        Normalized key
    """
    key = collapse_whitespace(name).lower()
    if synonyms:
        key = synonyms.get(key, key)
    return key


def generate_chunk_id(doc_id: str, sequence: int) -> str:
    """Generate chunk ID: {doc_id}_chunk_{sequence:04d}"""
    return f"{doc_id}_chunk_{sequence:04d}"


def stable_id(*parts: str) -> str:
    """Deterministic UUID string derived from the given parts."""
    return str(uuid.uuid5(GRAPHEN_NAMESPACE, "\x1f".join(parts)))
