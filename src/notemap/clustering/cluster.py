"""Cluster documents by their embeddings and write labels back to the store."""

import logging
import time
from collections import Counter

from ..errors import NoEmbeddingsError, StoreWriteError
from ..embeddings.aggregate import aggregate
from ..models import OUTLIER, ChunkVector, Cluster, ClusterRun, DocumentKey
from ..storage import VectorStoreBase, by_document, retry_write
from .density import DensityClusterer
from .naming import describe_cluster, describe_outliers
from .refine import DEFAULT_QUALITY_THRESHOLD, OutlierRefiner

logger = logging.getLogger(__name__)


def build_clusters(labels: dict[DocumentKey, int]) -> list[Cluster]:
    """Group labelled documents into named clusters, ordered by id with outliers last."""
    members: dict[int, set[DocumentKey]] = {}
    for key, label in labels.items():
        members.setdefault(label, set()).add(key)

    clusters = []
    for cluster_id in sorted(members, key=lambda c: (c == OUTLIER, c)):
        keys = members[cluster_id]
        if cluster_id == OUTLIER:
            label, summary = describe_outliers()
        else:
            label, summary = describe_cluster(k.title for k in sorted(keys))
        clusters.append(Cluster(cluster_id, label, summary, keys))
    return clusters


def run_clustering(
    store: VectorStoreBase,
    min_points: int = 2,
    epsilon: float = 0.6,
    quality_threshold: float = DEFAULT_QUALITY_THRESHOLD,
    write_retries: int = 3,
) -> ClusterRun:
    """Run one full clustering pass over every document in the store.

    Raises:
        NoEmbeddingsError: the store holds no vectors.
        StoreWriteError: cluster fields could not be written to every record.
    """
    start = time.time()
    clusterer = DensityClusterer(min_points=min_points, epsilon=epsilon)
    refiner = OutlierRefiner(threshold=quality_threshold)

    records = store.scan(include_vectors=True)
    record_counts = Counter(r.key for r in records)
    vectors = [
        ChunkVector(r.key, r.chunk_index, r.vector)
        for r in records
        if r.vector is not None
    ]
    points = aggregate(vectors)
    if not points:
        raise NoEmbeddingsError("No embeddings found in the store; index some notes first")
    logger.info(f"Clustering {len(points)} documents from {len(records)} records")

    labels = clusterer.cluster(points)
    initial_outliers = sum(1 for label in labels.values() if label == OUTLIER)
    labels = refiner.refine(labels, points)
    clusters = build_clusters(labels)

    updated = 0
    expected = sum(record_counts[p.document_id] for p in points)
    failed: list[DocumentKey] = []
    for cluster in clusters:
        values = {
            "cluster_id": cluster.id,
            "cluster_label": cluster.label,
            "cluster_summary": cluster.summary,
        }
        for key in sorted(cluster.member_document_ids):
            try:
                n = retry_write(
                    lambda: store.update(by_document(key), values),
                    write_retries,
                    f"Labelling '{key.title}'",
                )
            except Exception as e:
                raise StoreWriteError(
                    f"Failed to write cluster labels for '{key.title}'",
                    persisted=updated,
                    expected=expected,
                    failed_keys=[key],
                    cause=e,
                ) from e
            if n != record_counts[key]:
                failed.append(key)
            updated += n

    if failed or updated != expected:
        raise StoreWriteError(
            f"Cluster labels written to {updated} of {expected} records",
            persisted=updated,
            expected=expected,
            failed_keys=failed,
        )

    outliers = sum(1 for label in labels.values() if label == OUTLIER)
    run = ClusterRun(
        clusters=clusters,
        total_documents=len(points),
        outliers=outliers,
        reassigned=initial_outliers - outliers,
        records_updated=updated,
        elapsed=time.time() - start,
    )
    logger.info(
        f"Clustering done: {run.total_clusters} clusters, {outliers} outliers, "
        f"{run.reassigned} reassigned, {updated} records labelled in {run.elapsed:.1f}s"
    )
    return run
