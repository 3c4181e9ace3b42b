"""
Document Parsers

One parser per supported file type.

    txt -> TextParser
    md  -> MarkdownParser
    pdf -> PDFParser
"""

from graphen.parsers.base import DocumentParser, count_lines, count_words
from graphen.parsers.markdown import MarkdownParser, markdown_to_text
from graphen.parsers.pdf import PDFParser
from graphen.parsers.text import TextParser


def default_parsers() -> dict[str, DocumentParser]:
    """Fresh parser registry keyed by file type."""
    return {
        "txt": TextParser(),
        "md": MarkdownParser(),
        "pdf": PDFParser(),
    }


def get_parser(file_type: str) -> DocumentParser:
    """
    Parser for a file type.

    Raises:
        KeyError: If the file type is not supported
    """
    parsers = default_parsers()
    if file_type not in parsers:
        raise KeyError(f"No parser for file type '{file_type}'")
    return parsers[file_type]


__all__ = [
    "DocumentParser",
    "TextParser",
    "MarkdownParser",
    "PDFParser",
    "count_words",
    "count_lines",
    "markdown_to_text",
    "default_parsers",
    "get_parser",
]
