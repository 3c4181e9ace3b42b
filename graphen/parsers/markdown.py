"""
Markdown Parser

Reduces markdown to its readable text with regex passes.

Algorithm:
    1. Pull fenced code blocks out (their content is kept verbatim)
    2. Strip block syntax per line: headers, quotes, list markers, rules
    3. Strip inline syntax: images, links, emphasis, inline code, HTML tags
    4. Drop blank lines and re-insert the code blocks

``line_count`` reports lines of the markdown source, not of the output text.
"""

import re

from graphen.parsers.base import DocumentParser, count_lines, count_words, decode_utf8
from graphen.types.documents import ParsedDocument

# Regex patterns
_CODE_BLOCK_PATTERN = re.compile(r"^(```|~~~)[^\n]*\n(.*?)^\1[ \t]*$", re.DOTALL | re.MULTILINE)
_HEADER_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+(.*?)\s*#*\s*$")
_SETEXT_UNDERLINE = re.compile(r"^\s{0,3}(=+|-+)\s*$")
_RULE_PATTERN = re.compile(r"^\s{0,3}([-*_])(\s*\1){2,}\s*$")
_QUOTE_PATTERN = re.compile(r"^\s*(>\s?)+")
_LIST_PATTERN = re.compile(r"^\s*([-*+]|\d+[.)])\s+(\[[ xX]\]\s+)?")
_TABLE_SEPARATOR = re.compile(r"^\s*\|?(\s*:?-+:?\s*\|)+\s*:?-*:?\s*$")
_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_REF_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
_LINK_DEF_PATTERN = re.compile(r"^\s{0,3}\[[^\]]+\]:\s+\S+.*$")
_INLINE_CODE_PATTERN = re.compile(r"`([^`]+)`")
_EMPHASIS_PATTERN = re.compile(r"(\*\*|\*|~~)(?=\S)(.+?)(?<=\S)\1")
# Underscores only count at word boundaries (snake_case stays intact)
_UNDERSCORE_EMPHASIS_PATTERN = re.compile(r"(?<!\w)(__|_)(?=\S)(.+?)(?<=\S)\1(?!\w)")
_HTML_TAG_PATTERN = re.compile(r"<[^>\n]+>")

_PLACEHOLDER = "\x00CODE{}\x00"


def _strip_inline(line: str) -> str:
    line = _IMAGE_PATTERN.sub(r"\1", line)
    line = _LINK_PATTERN.sub(r"\1", line)
    line = _REF_LINK_PATTERN.sub(r"\1", line)
    line = _INLINE_CODE_PATTERN.sub(r"\1", line)
    line = _EMPHASIS_PATTERN.sub(r"\2", line)
    line = _UNDERSCORE_EMPHASIS_PATTERN.sub(r"\2", line)
    line = _HTML_TAG_PATTERN.sub("", line)
    return line


def _strip_line(line: str) -> str:
    if _RULE_PATTERN.match(line) or _SETEXT_UNDERLINE.match(line):
        return ""
    if _LINK_DEF_PATTERN.match(line) or _TABLE_SEPARATOR.match(line):
        return ""
    if match := _HEADER_PATTERN.match(line):
        line = match.group(1)
    line = _QUOTE_PATTERN.sub("", line)
    line = _LIST_PATTERN.sub("", line)
    if "|" in line:
        cells = [cell.strip() for cell in line.strip().strip("|").split("|")]
        line = " ".join(cell for cell in cells if cell)
    return _strip_inline(line).strip()


def markdown_to_text(source: str) -> str:
    """Plain text of a markdown document, one non-blank fragment per line."""
    code_blocks: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        code_blocks.append(match.group(2).strip("\n"))
        return _PLACEHOLDER.format(len(code_blocks) - 1)

    source = source.replace("\r\n", "\n")
    body = _CODE_BLOCK_PATTERN.sub(_stash, source)

    fragments: list[str] = []
    for line in body.split("\n"):
        stripped = line.strip()
        if stripped.startswith("\x00CODE") and stripped.endswith("\x00"):
            code = code_blocks[int(stripped[5:-1])]
            if code.strip():
                fragments.append(code)
            continue
        text = _strip_line(line)
        if text:
            fragments.append(text)

    return "\n".join(fragments)


class MarkdownParser(DocumentParser):
    """Markdown files (.md)."""

    async def parse(self, data: bytes) -> ParsedDocument:
        source = decode_utf8(data)
        text = markdown_to_text(source)
        return ParsedDocument(
            text=text,
            word_count=count_words(text),
            line_count=count_lines(source),
        )
