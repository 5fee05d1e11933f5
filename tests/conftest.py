"""Shared fakes: an in-memory vector store, a keyword embedding model and a scripted source."""

import dataclasses
import threading
import time
from datetime import datetime, timezone

import numpy as np
import pytest

from notemap.embeddings.embedder import Embedder
from notemap.errors import FetchError
from notemap.models import ChunkRecord, Document, parse_timestamp
from notemap.sources.base import DocumentSource
from notemap.storage.base import VectorStoreBase

VOCABULARY = ["budget", "spending", "finance", "soup", "recipe", "cooking", "japan", "trip", "travel"]


class KeywordModel:
    """Stand-in for a SentenceTransformer: one dimension per vocabulary word plus a catch-all."""

    def __init__(self):
        self.calls = 0

    def get_sentence_embedding_dimension(self):
        return len(VOCABULARY) + 1

    def encode(self, texts, **kwargs):
        self.calls += 1
        if any("explode" in t for t in texts):
            raise RuntimeError("model blew up")
        rows = []
        for text in texts:
            words = text.lower().split()
            row = np.array([sum(w.startswith(v) for w in words) for v in VOCABULARY] + [0.0], dtype=np.float32)
            if not row.any():
                row[-1] = 1.0
            rows.append(row / np.linalg.norm(row))
        return np.stack(rows)


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store that counts every write call."""

    def __init__(self):
        self.records: dict[str, ChunkRecord] = {}
        self.writes = 0
        self.fail_adds = 0

    def add(self, records):
        self.writes += 1
        if self.fail_adds:
            self.fail_adds -= 1
            raise RuntimeError("disk full")
        for r in records:
            if r.vector is None:
                raise ValueError("record without vector")
            self.records[r.id] = dataclasses.replace(r)

    def _matching(self, where):
        return [r for r in self.records.values() if where is None or where.matches(r.metadata())]

    def update(self, where, values):
        self.writes += 1
        matched = self._matching(where)
        for r in matched:
            for field, value in values.items():
                setattr(r, field, value)
        return len(matched)

    def delete(self, where):
        self.writes += 1
        matched = self._matching(where)
        for r in matched:
            del self.records[r.id]
        return len(matched)

    def count(self, where=None):
        return len(self._matching(where))

    def query(self, vector, n_results=10, where=None):
        scored = []
        for r in self._matching(where):
            cos = float(np.dot(vector, r.vector) / (np.linalg.norm(vector) * np.linalg.norm(r.vector)))
            scored.append((dataclasses.replace(r, vector=None), 1.0 - cos))
        scored.sort(key=lambda item: item[1])
        return scored[:n_results]

    def search_text(self, text, n_results=10):
        return [dataclasses.replace(r, vector=None) for r in self.records.values() if text in r.text][:n_results]

    def scan(self, where=None, include_vectors=False):
        return [
            dataclasses.replace(r, vector=r.vector if include_vectors else None)
            for r in self._matching(where)
        ]

    def reset(self):
        self.writes += 1
        self.records.clear()


class FakeSource(DocumentSource):
    """In-memory notes; titles can be made to fail or stall on fetch."""

    def __init__(self, docs=(), batch_size=2):
        self.docs = {d.key: d for d in docs}
        self.batch_size = batch_size
        self.failing: set[str] = set()
        self.slow: dict[str, float] = {}
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def doc(self, title):
        return next(d for d in self.docs.values() if d.title == title)

    def put(self, doc):
        """Replace every note titled like ``doc``."""
        self.remove(doc.title)
        self.docs[doc.key] = doc

    def add(self, doc):
        self.docs[doc.key] = doc

    def remove(self, title):
        for key in [k for k in self.docs if k.title == title]:
            del self.docs[key]

    def list_documents(self, max_count=None):
        metas = [d.meta for d in self.docs.values()]
        if max_count is not None:
            metas = metas[:max_count]
        for i in range(0, len(metas), self.batch_size):
            yield metas[i:i + self.batch_size]

    def fetch(self, meta):
        with self._lock:
            self.fetched.append(meta.title)
        if meta.title in self.failing:
            raise FetchError(f"Failed to read note '{meta.title}'")
        if meta.title in self.slow:
            time.sleep(self.slow[meta.title])
        return self.docs[meta.key]


def make_doc(title, body, created="2024-01-01T00:00:00", modified=None):
    created_at = parse_timestamp(created)
    modified_at = parse_timestamp(modified) if modified else created_at
    return Document(title=title, body=body, created=created_at, modified=modified_at)


def make_record(title, vector, chunk_index=0, total_chunks=1, created="2024-01-01T00:00:00", text=None):
    created_at = parse_timestamp(created)
    return ChunkRecord(
        id=f"{title}-{chunk_index}",
        title=title,
        creation_date=created_at,
        modification_date=created_at,
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        text=text if text is not None else title,
        vector=np.asarray(vector, dtype=np.float32),
    )


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def keyword_model():
    return KeywordModel()


@pytest.fixture
def embedder(keyword_model):
    return Embedder("keyword-test", model=keyword_model)
