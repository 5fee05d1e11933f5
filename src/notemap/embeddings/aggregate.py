"""Reduce chunk vectors to one embedding per document."""

import logging
from collections import defaultdict

import numpy as np

from ..models import ChunkVector, DocumentEmbedding, DocumentKey

logger = logging.getLogger(__name__)


def aggregate(vectors: list[ChunkVector]) -> list[DocumentEmbedding]:
    """Average chunk vectors per document.

    The i-th coordinate of a document embedding is the plain mean of the i-th
    coordinates of its chunk vectors. Each group is put in a canonical order and
    summed in float64 before a single division, so the result does not depend
    on the order of ``vectors``. Results are sorted by document key; documents
    without vectors do not appear.
    """
    groups: dict[DocumentKey, list[np.ndarray]] = defaultdict(list)
    indices: dict[DocumentKey, list[int]] = defaultdict(list)
    for cv in vectors:
        groups[cv.document_id].append(np.asarray(cv.vector, dtype=np.float64))
        indices[cv.document_id].append(cv.chunk_index)

    embeddings = []
    for key in sorted(groups):
        arrays = groups[key]
        if len({a.shape for a in arrays}) != 1 or arrays[0].ndim != 1:
            logger.warning(f"Skipping '{key.title}': chunk vectors have inconsistent shapes")
            continue
        order = sorted(range(len(arrays)), key=lambda i: (indices[key][i], arrays[i].tobytes()))
        stacked = np.stack([arrays[i] for i in order])
        mean = stacked.sum(axis=0) / len(arrays)
        embeddings.append(DocumentEmbedding(
            document_id=key,
            vector=mean.astype(np.float32),
            chunk_count=len(arrays),
        ))

    return embeddings
