"""HTML note parser."""

import re
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

# Elements that end a paragraph in the plain-text rendering.
_BLOCK_TAGS = ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr", "pre", "blockquote", "ul", "ol"]


def html_to_text(html: str) -> str:
    """Render an HTML note body as plain text.

    Block elements end a paragraph so the chunker can still split on paragraph
    boundaries; ``<br>`` becomes a line break.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")

    for tag in soup(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.append("\n\n")

    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in soup.get_text().splitlines()]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class HtmlParser:
    """Parse HTML notes using BeautifulSoup."""

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        soup = BeautifulSoup(text, "lxml")

        title = file_path.stem
        if soup.title and soup.title.string:
            title = soup.title.string.strip()
            soup.title.decompose()

        body = soup.body if soup.body is not None else soup
        content = html_to_text(str(body))

        return {
            "content": content,
            "metadata": {"source_type": "html"},
            "title": title,
        }
