"""Reassign outliers to the nearest cluster when they are similar enough."""

import logging

import numpy as np

from ..models import OUTLIER, DocumentEmbedding, DocumentKey

logger = logging.getLogger(__name__)

DEFAULT_QUALITY_THRESHOLD = 0.65


def quality_score(vector: np.ndarray, centroid: np.ndarray) -> float:
    """Cosine similarity mapped from [-1, 1] to [0, 1]."""
    v = np.asarray(vector, dtype=np.float64)
    c = np.asarray(centroid, dtype=np.float64)
    cos = float(np.dot(v, c) / max(np.linalg.norm(v) * np.linalg.norm(c), 1e-8))
    return (cos + 1.0) / 2.0


def cluster_centroids(
    labels: dict[DocumentKey, int],
    vectors: dict[DocumentKey, np.ndarray],
) -> dict[int, np.ndarray]:
    """Mean vector of every non-outlier cluster."""
    members: dict[int, list[np.ndarray]] = {}
    for key, label in labels.items():
        if label != OUTLIER and key in vectors:
            members.setdefault(label, []).append(np.asarray(vectors[key], dtype=np.float64))
    return {label: np.mean(vecs, axis=0) for label, vecs in members.items()}


class OutlierRefiner:
    """Move outliers into their nearest cluster when the quality score clears a fixed threshold.

    Each pass holds centroids fixed and moves every qualifying outlier at once;
    passes repeat until nothing moves, so refining an already refined labelling
    changes nothing.
    """

    def __init__(self, threshold: float = DEFAULT_QUALITY_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        self.threshold = threshold

    def refine(
        self,
        labels: dict[DocumentKey, int],
        points: list[DocumentEmbedding],
    ) -> dict[DocumentKey, int]:
        vectors = {p.document_id: p.vector for p in points}
        result = dict(labels)

        while True:
            centroids = cluster_centroids(result, vectors)
            if not centroids:
                break
            ids = sorted(centroids)
            matrix = np.stack([centroids[i] for i in ids])

            moves: dict[DocumentKey, int] = {}
            for key in sorted(k for k, label in result.items() if label == OUTLIER and k in vectors):
                vector = np.asarray(vectors[key], dtype=np.float64)
                nearest = ids[int(np.argmin(np.linalg.norm(matrix - vector, axis=1)))]
                score = quality_score(vector, centroids[nearest])
                if score >= self.threshold:
                    moves[key] = nearest
                    logger.debug(f"Reassigning '{key.title}' to cluster {nearest} (score {score:.3f})")

            if not moves:
                break
            result.update(moves)

        moved = sum(1 for k, label in result.items() if labels.get(k) != label)
        if moved:
            logger.info(f"Reassigned {moved} outlier(s) at threshold {self.threshold}")
        return result
