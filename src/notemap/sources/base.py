"""Abstract base class for document sources."""

from abc import ABC, abstractmethod
from typing import Iterator

from ..models import Document, DocumentMeta


class DocumentSource(ABC):
    """Common interface for anything that supplies notes to the indexer."""

    @abstractmethod
    def list_documents(self, max_count: int | None = None) -> Iterator[list[DocumentMeta]]:
        """Yield batches of document metadata, at most ``max_count`` documents in total."""

    @abstractmethod
    def fetch(self, meta: DocumentMeta) -> Document:
        """Fetch one document's full content. Raises FetchError on failure."""
