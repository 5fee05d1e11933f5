"""Plain text note parser."""

from pathlib import Path
from typing import Any


class TextParser:
    """Parse plain text notes."""

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        title = file_path.stem
        content = text
        # First line is the title if short enough
        first_line, _, rest = text.partition("\n")
        first_line = first_line.strip()
        if first_line and len(first_line) < 120:
            title = first_line
            content = rest.lstrip("\n")

        return {
            "content": content,
            "metadata": {"source_type": "text"},
            "title": title,
        }
