"""Semantic search over indexed notes."""

import logging
from dataclasses import dataclass
from datetime import datetime

from ..embeddings.embedder import Embedder
from ..errors import EmbeddingError
from ..models import ChunkRecord, DocumentKey
from ..storage import VectorStoreBase

logger = logging.getLogger(__name__)

VECTOR_CANDIDATES = 50
TEXT_CANDIDATES = 30
TEXT_MATCH_SCORE = 70.0
PREVIEW_CHARS = 200


@dataclass
class SearchResult:
    """Best matching chunk of one note. ``score`` is on a 0-100 scale."""
    title: str
    created: datetime
    modified: datetime
    score: float
    source: str
    chunk_index: int
    total_chunks: int
    preview: str


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _result(record: ChunkRecord, score: float, source: str) -> SearchResult:
    return SearchResult(
        title=record.title,
        created=record.creation_date,
        modified=record.modification_date,
        score=score,
        source=source,
        chunk_index=record.chunk_index,
        total_chunks=record.total_chunks,
        preview=_preview(record.text),
    )


def search_notes(
    store: VectorStoreBase,
    embedder: Embedder,
    query: str,
    limit: int = 5,
    min_similarity: float = 0.05,
) -> list[SearchResult]:
    """Search chunks by meaning and by substring, keeping the best hit per note.

    Vector hits score ``100 * cosine similarity`` and must exceed
    ``min_similarity``. Substring hits score a flat 70 and only fill in notes
    the vector search did not find.
    """
    best: dict[DocumentKey, SearchResult] = {}

    try:
        vector = embedder.embed_query(query)
    except EmbeddingError as e:
        logger.warning(f"Vector search unavailable, using text search only: {e}")
        vector = None

    if vector is not None:
        for record, distance in store.query(vector, n_results=VECTOR_CANDIDATES):
            similarity = max(0.0, 1.0 - distance)
            if similarity <= min_similarity:
                continue
            key = record.key
            score = similarity * 100
            if key not in best or score > best[key].score:
                best[key] = _result(record, score, "vector")

    for record in store.search_text(query, n_results=TEXT_CANDIDATES):
        key = record.key
        if key not in best:
            best[key] = _result(record, TEXT_MATCH_SCORE, "text")

    results = sorted(best.values(), key=lambda r: (-r.score, r.title))
    logger.info(f"Search '{query}': {len(best)} matching note(s), returning {min(limit, len(results))}")
    return results[:limit]
