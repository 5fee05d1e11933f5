"""ChromaDB vector store backend."""

import logging
from pathlib import Path
from typing import Any

import chromadb
import numpy as np

from ..models import ChunkRecord
from .base import VectorStoreBase
from .filters import Where

logger = logging.getLogger(__name__)


class ChromaVectorStore(VectorStoreBase):
    """ChromaDB-backed persistent vector store, one collection per instance.

    Pass ``client`` to use an existing client (e.g. ``chromadb.EphemeralClient()``).
    """

    def __init__(self, chroma_path: str | None = None, collection: str = "notes", client: Any = None):
        if client is None:
            if chroma_path is None:
                raise ValueError("chroma_path is required when no client is given")
            self.chroma_path = Path(chroma_path)
            self.chroma_path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=str(self.chroma_path))
        self.client = client
        self.collection_name = collection

    def get_or_create_collection(self) -> chromadb.Collection:
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add(self, records: list[ChunkRecord]) -> None:
        if not records:
            return
        missing = [r.id for r in records if r.vector is None]
        if missing:
            raise ValueError(f"{len(missing)} record(s) have no vector")
        collection = self.get_or_create_collection()
        collection.upsert(
            ids=[r.id for r in records],
            embeddings=[np.asarray(r.vector, dtype=np.float32).tolist() for r in records],
            documents=[r.text for r in records],
            metadatas=[r.metadata() for r in records],
        )

    def update(self, where: Where, values: dict[str, Any]) -> int:
        collection = self.get_or_create_collection()
        result = collection.get(where=where.to_chroma(), include=["metadatas"])
        ids = result["ids"]
        if not ids:
            return 0
        metadatas = [{**(meta or {}), **values} for meta in result["metadatas"]]
        collection.update(ids=ids, metadatas=metadatas)
        return len(ids)

    def delete(self, where: Where) -> int:
        collection = self.get_or_create_collection()
        ids = collection.get(where=where.to_chroma(), include=["metadatas"])["ids"]
        if ids:
            collection.delete(ids=ids)
        return len(ids)

    def count(self, where: Where | None = None) -> int:
        collection = self.get_or_create_collection()
        if where is None:
            return collection.count()
        return len(collection.get(where=where.to_chroma(), include=["metadatas"])["ids"])

    def query(
        self,
        vector: np.ndarray,
        n_results: int = 10,
        where: Where | None = None,
    ) -> list[tuple[ChunkRecord, float]]:
        collection = self.get_or_create_collection()
        n = min(n_results, collection.count())
        if n <= 0:
            return []
        kwargs: dict[str, Any] = {}
        if where is not None:
            kwargs["where"] = where.to_chroma()
        result = collection.query(
            query_embeddings=[np.asarray(vector, dtype=np.float32).tolist()],
            n_results=n,
            include=["documents", "metadatas", "distances"],
            **kwargs,
        )
        ids = result["ids"][0]
        documents = result["documents"][0]
        metadatas = result["metadatas"][0]
        distances = result["distances"][0]
        return [
            (ChunkRecord.from_metadata(ids[i], documents[i], metadatas[i]), float(distances[i]))
            for i in range(len(ids))
        ]

    def search_text(self, text: str, n_results: int = 10) -> list[ChunkRecord]:
        if not text:
            return []
        collection = self.get_or_create_collection()
        result = collection.get(
            where_document={"$contains": text},
            limit=n_results,
            include=["documents", "metadatas"],
        )
        return [
            ChunkRecord.from_metadata(rid, doc, meta)
            for rid, doc, meta in zip(result["ids"], result["documents"], result["metadatas"])
        ]

    def scan(self, where: Where | None = None, include_vectors: bool = False) -> list[ChunkRecord]:
        collection = self.get_or_create_collection()
        include = ["documents", "metadatas"]
        if include_vectors:
            include.append("embeddings")
        kwargs: dict[str, Any] = {"include": include}
        if where is not None:
            kwargs["where"] = where.to_chroma()
        result = collection.get(**kwargs)

        ids = result["ids"]
        documents = result["documents"]
        metadatas = result["metadatas"]
        embeddings = result.get("embeddings") if include_vectors else None
        records = []
        for i, rid in enumerate(ids):
            vector = None if embeddings is None else embeddings[i]
            records.append(ChunkRecord.from_metadata(rid, documents[i], metadatas[i], vector))
        return records

    def reset(self) -> None:
        collection = self.get_or_create_collection()
        ids = collection.get(include=["metadatas"])["ids"]
        if ids:
            collection.delete(ids=ids)
        logger.info(f"Cleared {len(ids)} records from collection '{self.collection_name}'")
