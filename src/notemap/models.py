"""Data models used throughout notemap."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import numpy as np

# Reserved cluster label for documents that belong to no dense group.
OUTLIER = -1


def parse_timestamp(value: Any) -> datetime:
    """Coerce an ISO string, date or datetime into an aware UTC datetime.

    Naive values are taken to be UTC so that timestamps read back from the
    store or the cache compare equal to the ones that were written.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise TypeError(f"Cannot interpret {value!r} as a timestamp")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return parse_timestamp(value).isoformat()


@dataclass(frozen=True, order=True)
class DocumentKey:
    """Identity of a document: title alone is not unique, title + creation time is."""
    title: str
    created: datetime

    def __str__(self) -> str:
        return f"{self.title}|||{format_timestamp(self.created)}"


@dataclass(frozen=True)
class DocumentMeta:
    """Listing-level view of a document, cheap to obtain from a source."""
    title: str
    created: datetime
    modified: datetime
    source: str = ""

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.title, parse_timestamp(self.created))


@dataclass(frozen=True)
class Document:
    """A fully fetched document."""
    title: str
    body: str
    created: datetime
    modified: datetime
    source: str = ""

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.title, parse_timestamp(self.created))

    @property
    def meta(self) -> DocumentMeta:
        return DocumentMeta(self.title, self.created, self.modified, self.source)

    @property
    def full_text(self) -> str:
        """Text that gets chunked: the title followed by the body."""
        return f"{self.title}\n\n{self.body}"


@dataclass(frozen=True)
class Chunk:
    """A token-bounded slice of one document's full text."""
    document_id: DocumentKey
    index: int
    total: int
    text: str


@dataclass(frozen=True)
class ChunkVector:
    """Embedding of one chunk."""
    document_id: DocumentKey
    chunk_index: int
    vector: np.ndarray


@dataclass
class DocumentEmbedding:
    """Centroid of a document's chunk vectors."""
    document_id: DocumentKey
    vector: np.ndarray
    chunk_count: int


@dataclass
class Cluster:
    """A labelled group of documents."""
    id: int
    label: str
    summary: str
    member_document_ids: set[DocumentKey] = field(default_factory=set)

    @property
    def is_outlier(self) -> bool:
        return self.id == OUTLIER


@dataclass
class CacheEntry:
    created: datetime
    modified: datetime


@dataclass
class CacheSnapshot:
    """Document metadata as of the last successful sync.

    Entries are keyed by (title, creation time) so notes sharing a title each keep their own.
    """
    last_sync: datetime | None = None
    entries: dict[DocumentKey, CacheEntry] = field(default_factory=dict)


@dataclass
class ChangeSet:
    """Classification of the current documents against a cache snapshot.

    new, modified and unchanged partition the current listing. removed holds
    cached notes that the listing no longer contains. replaces maps a note that
    was recreated under the same title to the cached keys it supersedes.
    """
    new: list[DocumentMeta] = field(default_factory=list)
    modified: list[DocumentMeta] = field(default_factory=list)
    unchanged: list[DocumentMeta] = field(default_factory=list)
    removed: list[DocumentKey] = field(default_factory=list)
    replaces: dict[DocumentKey, list[DocumentKey]] = field(default_factory=dict)

    @property
    def to_process(self) -> list[DocumentMeta]:
        return self.new + self.modified


@dataclass
class IndexResult:
    """Tallies of one incremental indexing pass."""
    new: int = 0
    modified: int = 0
    unchanged: int = 0
    removed: int = 0
    processed: int = 0
    failed: int = 0
    chunks: int = 0
    chunk_failures: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def report(self) -> str:
        return "\n".join(f'Error processing note "{title}": {reason}' for title, reason in self.failures)


@dataclass
class ClusterRun:
    """Outcome of one clustering pass."""
    clusters: list[Cluster] = field(default_factory=list)
    total_documents: int = 0
    outliers: int = 0
    reassigned: int = 0
    records_updated: int = 0
    elapsed: float = 0.0

    @property
    def total_clusters(self) -> int:
        return sum(1 for c in self.clusters if not c.is_outlier)


@dataclass
class ChunkRecord:
    """One row of the vector store: a chunk, its vector and its document's cluster."""
    id: str
    title: str
    creation_date: datetime
    modification_date: datetime
    chunk_index: int
    total_chunks: int
    text: str
    vector: np.ndarray | None = None
    cluster_id: int | None = None
    cluster_label: str | None = None
    cluster_summary: str | None = None

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.title, parse_timestamp(self.creation_date))

    def metadata(self) -> dict[str, Any]:
        """Flat metadata dict; cluster fields only once a clustering pass set them."""
        meta: dict[str, Any] = {
            "title": self.title,
            "creation_date": format_timestamp(self.creation_date),
            "modification_date": format_timestamp(self.modification_date),
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
        }
        if self.cluster_id is not None:
            meta["cluster_id"] = self.cluster_id
            meta["cluster_label"] = self.cluster_label or ""
            meta["cluster_summary"] = self.cluster_summary or ""
        return meta

    @classmethod
    def from_metadata(
        cls,
        record_id: str,
        text: str | None,
        metadata: dict[str, Any],
        vector: Any = None,
    ) -> "ChunkRecord":
        cluster_id = metadata.get("cluster_id")
        return cls(
            id=record_id,
            title=metadata["title"],
            creation_date=parse_timestamp(metadata["creation_date"]),
            modification_date=parse_timestamp(metadata["modification_date"]),
            chunk_index=int(metadata.get("chunk_index", 0)),
            total_chunks=int(metadata.get("total_chunks", 1)),
            text=text or "",
            vector=None if vector is None else np.asarray(vector, dtype=np.float32),
            cluster_id=None if cluster_id is None else int(cluster_id),
            cluster_label=metadata.get("cluster_label"),
            cluster_summary=metadata.get("cluster_summary"),
        )
