"""PDF parser (pypdf)."""

from __future__ import annotations

import asyncio
import io

from graphen.parsers.base import DocumentParser, count_lines, count_words
from graphen.types.documents import ParsedDocument


def _extract_pdf_text(data: bytes) -> tuple[str, int]:
    import pypdf

    reader = pypdf.PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages), len(pages)


class PDFParser(DocumentParser):
    """Text layer of a PDF, pages joined by newlines."""

    async def parse(self, data: bytes) -> ParsedDocument:
        # pypdf is synchronous and CPU-bound, run in thread pool
        text, page_count = await asyncio.to_thread(_extract_pdf_text, data)
        return ParsedDocument(
            text=text,
            word_count=count_words(text),
            line_count=count_lines(text),
            page_count=page_count,
        )
