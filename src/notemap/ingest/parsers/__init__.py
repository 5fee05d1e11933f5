"""Note file parsers for the directory document source."""

from .markdown import MarkdownParser
from .text import TextParser
from .html import HtmlParser, html_to_text

PARSERS = {
    ".md": MarkdownParser,
    ".markdown": MarkdownParser,
    ".txt": TextParser,
    ".text": TextParser,
    ".html": HtmlParser,
    ".htm": HtmlParser,
}

__all__ = ["PARSERS", "MarkdownParser", "TextParser", "HtmlParser", "html_to_text"]
