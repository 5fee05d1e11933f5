"""Markdown note parser."""

import re
from pathlib import Path
from typing import Any

import yaml


class MarkdownParser:
    """Parse markdown notes, extracting frontmatter and content.

    Frontmatter keys ``title``, ``created`` and ``modified`` override the values
    the directory source would otherwise derive from the file.
    """

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        metadata: dict[str, Any] = {"source_type": "markdown"}

        # Extract YAML frontmatter
        fm_match = re.match(r"^---\s*\n(.*?)\n---\s*\n", text, re.DOTALL)
        if fm_match:
            try:
                fm = yaml.safe_load(fm_match.group(1)) or {}
                if isinstance(fm, dict):
                    metadata.update(fm)
            except yaml.YAMLError:
                pass
            content = text[fm_match.end():]
        else:
            content = text

        # Title from the first heading, which is then dropped from the body
        title_match = re.match(r"^\s*#\s+(.+)$", content, re.MULTILINE)
        if title_match and "title" not in metadata:
            metadata["title"] = title_match.group(1).strip()
            content = content[title_match.end():].lstrip("\n")
        elif "title" not in metadata:
            metadata["title"] = file_path.stem

        return {"content": content, "metadata": metadata, "title": str(metadata["title"])}
