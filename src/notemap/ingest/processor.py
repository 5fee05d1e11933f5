"""Turn fetched documents into chunk records."""

import hashlib

from ..models import Chunk, Document, DocumentKey
from .chunker import Chunker


def chunk_id(key: DocumentKey, index: int) -> str:
    """Stable record id for chunk ``index`` of the document ``key``."""
    return hashlib.sha256(f"{key}:{index}".encode("utf-8")).hexdigest()[:32]


def chunk_document(doc: Document, chunker: Chunker) -> list[Chunk]:
    """Chunk a document's full text (title + body).

    Returns at least one chunk; ``index`` is dense from 0 and ``total`` is the
    same on every chunk.
    """
    texts = list(chunker.chunk(doc.full_text))
    key = doc.key
    return [
        Chunk(document_id=key, index=i, total=len(texts), text=text)
        for i, text in enumerate(texts)
    ]
