"""Plain-text parser."""

from graphen.parsers.base import DocumentParser, count_lines, count_words, decode_utf8
from graphen.types.documents import ParsedDocument


class TextParser(DocumentParser):
    """UTF-8 text, passed through unchanged."""

    async def parse(self, data: bytes) -> ParsedDocument:
        text = decode_utf8(data)
        return ParsedDocument(text=text, word_count=count_words(text), line_count=count_lines(text))
