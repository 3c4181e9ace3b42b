"""Tests for document parsers."""

import io

import pytest

from graphen.parsers import (
    MarkdownParser,
    PDFParser,
    TextParser,
    count_lines,
    count_words,
    default_parsers,
    get_parser,
    markdown_to_text,
)


class TestCounts:
    """Word and line counting."""

    def test_count_words(self):
        """Whitespace-delimited words."""
        assert count_words("") == 0
        assert count_words("  one two\nthree\tfour  ") == 4

    def test_count_lines(self):
        """Lines split on LF or CRLF."""
        assert count_lines("") == 0
        assert count_lines("one") == 1
        assert count_lines("one\r\ntwo\nthree") == 3


class TestRegistry:
    """Parser lookup by file type."""

    def test_default_parsers(self):
        """txt, md and pdf are supported."""
        parsers = default_parsers()
        assert set(parsers) == {"txt", "md", "pdf"}
        assert isinstance(parsers["md"], MarkdownParser)

    def test_unknown_type(self):
        """Unsupported types raise KeyError."""
        with pytest.raises(KeyError):
            get_parser("docx")


class TestTextParser:
    """Plain text."""

    @pytest.mark.asyncio
    async def test_parse(self):
        """Text passes through with counts."""
        parsed = await TextParser().parse("Hello graph world\nsecond line".encode())
        assert parsed.text == "Hello graph world\nsecond line"
        assert parsed.word_count == 5
        assert parsed.line_count == 2
        assert parsed.page_count is None

    @pytest.mark.asyncio
    async def test_strips_bom(self):
        """A UTF-8 BOM is not part of the text."""
        parsed = await TextParser().parse(b"\xef\xbb\xbfhello")
        assert parsed.text == "hello"

    @pytest.mark.asyncio
    async def test_invalid_utf8(self):
        """Undecodable bytes raise."""
        with pytest.raises(UnicodeDecodeError):
            await TextParser().parse(b"\xff\xfe\xfa")


class TestMarkdownToText:
    """Markdown stripping."""

    def test_headers_and_emphasis(self):
        """Header markers and emphasis are removed."""
        text = markdown_to_text("# Title\n\nSome **bold** and *italic* and ~~old~~ text.")
        assert text == "Title\nSome bold and italic and old text."

    def test_links_and_images(self):
        """Link text and image alt text survive; URLs do not."""
        text = markdown_to_text("See [the docs](https://example.com) and ![a chart](c.png).")
        assert text == "See the docs and a chart."

    def test_lists_and_quotes(self):
        """List markers and quote prefixes are removed."""
        text = markdown_to_text("- first\n* second\n1. third\n> quoted\n- [x] done")
        assert text.split("\n") == ["first", "second", "third", "quoted", "done"]

    def test_code_blocks_kept_verbatim(self):
        """Fenced code keeps its content, including markdown-like characters."""
        source = "Intro\n\n```python\nx = a * b * c\n# not a header\n```\n\nOutro"
        text = markdown_to_text(source)
        assert "x = a * b * c\n# not a header" in text
        assert "```" not in text
        assert text.startswith("Intro")
        assert text.endswith("Outro")

    def test_snake_case_untouched(self):
        """Underscores inside identifiers are not emphasis."""
        assert markdown_to_text("call max_chunks_per_document now") == (
            "call max_chunks_per_document now"
        )

    def test_tables_and_rules(self):
        """Table cells become space-joined text; separators and rules vanish."""
        source = "| Name | Type |\n|------|:----:|\n| Neo4j | Database |\n\n---\n\nEnd"
        assert markdown_to_text(source).split("\n") == ["Name Type", "Neo4j Database", "End"]

    def test_html_and_inline_code(self):
        """Tags are stripped and inline code keeps its text."""
        assert markdown_to_text("Use <b>`graphen ingest`</b> here") == "Use graphen ingest here"


class TestMarkdownParser:
    """Markdown parser counts."""

    @pytest.mark.asyncio
    async def test_line_count_is_source_lines(self):
        """line_count counts lines of the markdown source."""
        source = "# Title\n\nBody text here\n"
        parsed = await MarkdownParser().parse(source.encode())
        assert parsed.text == "Title\nBody text here"
        assert parsed.line_count == 4
        assert parsed.word_count == 4


class TestPDFParser:
    """PDF text extraction."""

    @pytest.mark.asyncio
    async def test_blank_pdf(self):
        """A generated PDF parses with a page count."""
        pypdf = pytest.importorskip("pypdf")
        writer = pypdf.PdfWriter()
        writer.add_blank_page(width=200, height=200)
        writer.add_blank_page(width=200, height=200)
        buffer = io.BytesIO()
        writer.write(buffer)

        parsed = await PDFParser().parse(buffer.getvalue())

        assert parsed.page_count == 2
        assert parsed.word_count == 0

    @pytest.mark.asyncio
    async def test_not_a_pdf(self):
        """Garbage bytes raise."""
        pytest.importorskip("pypdf")
        with pytest.raises(Exception):
            await PDFParser().parse(b"definitely not a pdf")
