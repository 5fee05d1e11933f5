"""Browse the clusters written by the last clustering pass."""

from dataclasses import dataclass
from typing import Any

from ..models import OUTLIER, DocumentKey, DocumentMeta
from ..storage import VectorStoreBase, by_cluster


@dataclass
class ClusterSummary:
    id: int
    label: str
    summary: str
    note_count: int


def list_clusters(store: VectorStoreBase) -> list[ClusterSummary]:
    """Clusters ordered by id, with the outlier group last."""
    groups: dict[int, tuple[str, str, set[DocumentKey]]] = {}
    for record in store.scan():
        if record.cluster_id is None:
            continue
        label, summary, keys = groups.setdefault(
            record.cluster_id,
            (record.cluster_label or "", record.cluster_summary or "", set()),
        )
        keys.add(record.key)

    return [
        ClusterSummary(cluster_id, label, summary, len(keys))
        for cluster_id, (label, summary, keys) in sorted(
            groups.items(), key=lambda item: (item[0] == OUTLIER, item[0])
        )
    ]


def documents_in_cluster(store: VectorStoreBase, cluster_id: int) -> list[DocumentMeta]:
    """One entry per note in the cluster, sorted by title."""
    notes: dict[DocumentKey, DocumentMeta] = {}
    for record in store.scan(by_cluster(cluster_id)):
        notes.setdefault(
            record.key,
            DocumentMeta(record.title, record.creation_date, record.modification_date),
        )
    return sorted(notes.values(), key=lambda m: (m.title, m.created))


def store_stats(store: VectorStoreBase) -> dict[str, Any]:
    records = store.scan()
    keys = {r.key for r in records}
    clustered = {r.key for r in records if r.cluster_id is not None}
    return {
        "chunks": len(records),
        "documents": len(keys),
        "clustered_documents": len(clustered),
        "unclustered_documents": len(keys - clustered),
        "clusters": len({r.cluster_id for r in records if r.cluster_id not in (None, OUTLIER)}),
    }
