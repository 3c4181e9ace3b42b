"""
Document Parser Interface

Parsers turn raw upload bytes into plain text plus counts. Parsing is the
pipeline's first phase; any exception raised here becomes a ParseError.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from graphen.types.documents import ParsedDocument

_LINE_SPLIT = re.compile(r"\r?\n")


def count_words(text: str) -> int:
    """Whitespace-delimited word count (0 for blank text)."""
    return len(text.split())


def count_lines(text: str) -> int:
    return len(_LINE_SPLIT.split(text)) if text else 0


def decode_utf8(data: bytes) -> str:
    """Strict UTF-8 decode, tolerating a leading BOM."""
    return data.decode("utf-8-sig")


class DocumentParser(ABC):
    """Abstract interface for file-type parsers."""

    @abstractmethod
    async def parse(self, data: bytes) -> ParsedDocument:
        """Parse raw bytes into text and counts."""
        ...
