"""Density-based clustering of document embeddings."""

import logging

import numpy as np

from ..models import DocumentEmbedding, DocumentKey

logger = logging.getLogger(__name__)


class DensityClusterer:
    """DBSCAN over document centroids with Euclidean distance.

    A point is a core point when at least ``min_points`` *other* points lie
    within ``epsilon`` of it. Cluster ids are dense from 0 in discovery order
    over the input ordering; noise gets -1.
    """

    def __init__(self, min_points: int = 2, epsilon: float = 0.6):
        if epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {epsilon}")
        if min_points < 0:
            raise ValueError(f"min_points must be >= 0, got {min_points}")
        self.min_points = min_points
        self.epsilon = epsilon

    def fit_predict(self, vectors: np.ndarray) -> np.ndarray:
        from sklearn.cluster import DBSCAN

        if len(vectors) == 0:
            return np.empty(0, dtype=int)
        # sklearn counts the point itself towards min_samples
        dbscan = DBSCAN(eps=self.epsilon, min_samples=self.min_points + 1, metric="euclidean")
        return dbscan.fit_predict(np.asarray(vectors, dtype=np.float64))

    def cluster(self, points: list[DocumentEmbedding]) -> dict[DocumentKey, int]:
        if not points:
            return {}
        labels = self.fit_predict(np.stack([p.vector for p in points]))
        n_clusters = len(set(labels.tolist()) - {-1})
        logger.info(
            f"DBSCAN (eps={self.epsilon}, min_points={self.min_points}): "
            f"{n_clusters} clusters, {int((labels == -1).sum())} outliers"
        )
        return {p.document_id: int(label) for p, label in zip(points, labels)}
