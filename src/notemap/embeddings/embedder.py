"""Text embedding using sentence-transformers."""

import logging
import re
from typing import Any

import numpy as np

from ..errors import EmbeddingError

logger = logging.getLogger(__name__)


def _clean_text(text: str) -> str:
    """Normalise case and whitespace and drop unusual symbols before encoding."""
    text = text.lower()
    text = re.sub(r"[^\w\s\-.,!?;:()\[\]{}'\"]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


class Embedder:
    """Embeds texts with a sentence-transformers model.

    The model is loaded on first use. Construct one Embedder per process and pass
    it to whatever needs embeddings.
    """

    def __init__(self, model_name: str = "BAAI/bge-small-en-v1.5", batch_size: int = 32, model: Any = None):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = model
        self._dimension: int | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "Embedder":
        return cls(config.get("embedding_model", "BAAI/bge-small-en-v1.5"))

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info(f"Loading embedding model {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = int(self.model.get_sentence_embedding_dimension())
        return self._dimension

    def _encode(self, texts: list[str]) -> np.ndarray:
        return self.model.encode(
            [_clean_text(t) for t in texts],
            batch_size=self.batch_size,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False,
        )

    def _validate(self, vector: Any) -> np.ndarray | None:
        if vector is None:
            return None
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1 or arr.size == 0 or not np.all(np.isfinite(arr)):
            return None
        if self._dimension is None:
            self._dimension = int(arr.size)
        elif arr.size != self._dimension:
            return None
        return arr

    def embed_many(self, texts: list[str]) -> list[np.ndarray | None]:
        """Embed ``texts``; a failed or malformed vector comes back as None.

        One batched call is tried first. If it fails every text is retried on its
        own so a single bad text does not cost its siblings their vectors.
        """
        if not texts:
            return []

        try:
            vectors = list(self._encode(texts))
            if len(vectors) != len(texts):
                raise EmbeddingError(f"Model returned {len(vectors)} vectors for {len(texts)} texts")
        except Exception as e:
            logger.warning(f"Batch embedding of {len(texts)} texts failed, retrying one by one: {e}")
            vectors = []
            for text in texts:
                try:
                    vectors.append(self._encode([text])[0])
                except Exception as inner:
                    logger.warning(f"Embedding failed for chunk ({len(text)} chars): {inner}")
                    vectors.append(None)

        results = [self._validate(v) for v in vectors]
        bad = sum(1 for v in results if v is None)
        if bad:
            logger.warning(f"{bad}/{len(texts)} chunk(s) have no usable embedding")
        return results

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a search query. Raises EmbeddingError if the model gives nothing usable."""
        try:
            vector = self._validate(self._encode([text])[0])
        except Exception as e:
            raise EmbeddingError("Failed to embed query", cause=e) from e
        if vector is None:
            raise EmbeddingError("Embedding model returned a malformed query vector")
        return vector
