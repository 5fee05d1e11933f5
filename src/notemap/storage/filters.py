"""Structured filter predicates for the vector store.

Values are carried as data all the way to the backend, so titles containing
quotes or operators need no escaping.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models import DocumentKey, format_timestamp

FIELDS = frozenset({
    "title",
    "creation_date",
    "modification_date",
    "chunk_index",
    "total_chunks",
    "cluster_id",
    "cluster_label",
    "cluster_summary",
})


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"Unsupported filter value {value!r} ({type(value).__name__})")


@dataclass(frozen=True)
class Where:
    """Conjunction of field == value conditions."""
    conditions: tuple[tuple[str, Any], ...]

    @classmethod
    def eq(cls, field: str, value: Any) -> "Where":
        if field not in FIELDS:
            raise ValueError(f"Unknown field '{field}'")
        return cls(((field, _normalize(value)),))

    def __and__(self, other: "Where") -> "Where":
        return Where(self.conditions + other.conditions)

    def to_chroma(self) -> dict[str, Any]:
        clauses = [{field: {"$eq": value}} for field, value in self.conditions]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    def matches(self, metadata: dict[str, Any]) -> bool:
        return all(metadata.get(field) == value for field, value in self.conditions)


def by_document(key: DocumentKey) -> Where:
    """All records of one document."""
    return Where.eq("title", key.title) & Where.eq("creation_date", key.created)


def by_cluster(cluster_id: int) -> Where:
    """All records currently labelled ``cluster_id``."""
    return Where.eq("cluster_id", int(cluster_id))
