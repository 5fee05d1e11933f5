"""Abstract base class for vector stores and factory function."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

import numpy as np

from ..errors import ConfigurationError
from ..models import ChunkRecord
from .filters import Where

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VectorStoreBase(ABC):
    """Common interface for vector storage backends.

    Records follow the flat ChunkRecord schema; every filter is a Where.
    """

    @abstractmethod
    def add(self, records: list[ChunkRecord]) -> None:
        """Insert or overwrite records by id. Every record must carry a vector."""

    @abstractmethod
    def update(self, where: Where, values: dict[str, Any]) -> int:
        """Set metadata ``values`` on every matching record. Returns the number updated."""

    @abstractmethod
    def delete(self, where: Where) -> int:
        """Delete matching records. Returns the number deleted."""

    @abstractmethod
    def count(self, where: Where | None = None) -> int:
        """Count all records, or the matching ones."""

    @abstractmethod
    def query(
        self,
        vector: np.ndarray,
        n_results: int = 10,
        where: Where | None = None,
    ) -> list[tuple[ChunkRecord, float]]:
        """Nearest records to ``vector`` as (record, cosine distance), closest first."""

    @abstractmethod
    def search_text(self, text: str, n_results: int = 10) -> list[ChunkRecord]:
        """Records whose chunk text contains ``text``."""

    @abstractmethod
    def scan(self, where: Where | None = None, include_vectors: bool = False) -> list[ChunkRecord]:
        """All records, or the matching ones."""

    @abstractmethod
    def reset(self) -> None:
        """Remove every record."""


def retry_write(fn: Callable[[], T], retries: int, what: str, delay: float = 0.5) -> T:
    """Call ``fn`` up to ``retries`` + 1 times; re-raise the last error."""
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(f"{what} failed (attempt {attempt}/{retries + 1}), retrying: {e}")
            time.sleep(delay * attempt)


def get_vector_store(config: dict[str, Any]) -> VectorStoreBase:
    """Factory: return the right vector store based on config."""
    backend = config.get("storage_backend", "chromadb")

    if backend == "chromadb":
        from .chromadb import ChromaVectorStore
        return ChromaVectorStore(config["chroma_path"], collection=config.get("collection", "notes"))
    raise ConfigurationError(f"Unknown storage_backend: {backend}")
