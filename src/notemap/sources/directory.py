"""Notes stored as files in a local directory."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from ..errors import FetchError
from ..ingest.parsers import PARSERS
from ..models import Document, DocumentMeta, parse_timestamp
from .base import DocumentSource

logger = logging.getLogger(__name__)


def _file_times(stat: os.stat_result) -> tuple[datetime, datetime]:
    created = getattr(stat, "st_birthtime", None) or min(stat.st_ctime, stat.st_mtime)
    return (
        datetime.fromtimestamp(created, tz=timezone.utc),
        datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )


class DirectorySource(DocumentSource):
    """Every supported file under ``root`` is one note.

    Titles come from the parser (frontmatter, first heading, first line or
    ``<title>``). ``created``/``modified`` frontmatter keys win over file times.
    """

    def __init__(self, root: str | Path, batch_size: int = 50):
        self.root = Path(root)
        self.batch_size = batch_size

    def _files(self) -> list[Path]:
        if not self.root.exists():
            return []
        return [
            p for p in sorted(self.root.rglob("*"))
            if p.is_file() and not p.name.startswith(".") and p.suffix.lower() in PARSERS
        ]

    def _parse(self, path: Path) -> tuple[dict[str, Any], DocumentMeta]:
        parser = PARSERS[path.suffix.lower()]()
        result = parser.parse(path)
        metadata = result.get("metadata", {})
        created, modified = _file_times(path.stat())
        if "created" in metadata:
            created = parse_timestamp(metadata["created"])
        if "modified" in metadata:
            modified = parse_timestamp(metadata["modified"])
        meta = DocumentMeta(
            title=result.get("title") or path.stem,
            created=created,
            modified=modified,
            source=str(path),
        )
        return result, meta

    def list_documents(self, max_count: int | None = None) -> Iterator[list[DocumentMeta]]:
        files = self._files()
        if max_count is not None:
            files = files[:max_count]

        batch: list[DocumentMeta] = []
        for path in files:
            try:
                _, meta = self._parse(path)
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable note {path}: {e}")
                continue
            batch.append(meta)
            if len(batch) >= self.batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    def fetch(self, meta: DocumentMeta) -> Document:
        path = Path(meta.source)
        try:
            result, current = self._parse(path)
        except (OSError, ValueError, TypeError) as e:
            raise FetchError(f"Failed to read note '{meta.title}'", details={"path": str(path)}, cause=e) from e
        return Document(
            title=current.title,
            body=result["content"],
            created=current.created,
            modified=current.modified,
            source=str(path),
        )
