"""Tests for the ChromaDB store and structured filters."""

import uuid

import chromadb
import numpy as np
import pytest

from notemap.models import OUTLIER, DocumentKey
from notemap.storage import Where, by_cluster, by_document
from notemap.storage.chromadb import ChromaVectorStore

from conftest import make_record, utc


@pytest.fixture
def chroma():
    return ChromaVectorStore(client=chromadb.EphemeralClient(), collection=f"test-{uuid.uuid4().hex[:8]}")


def test_where_single_clause():
    assert Where.eq("cluster_id", 3).to_chroma() == {"cluster_id": {"$eq": 3}}


def test_where_conjunction():
    where = by_document(DocumentKey("It's \"quoted\" OR 1=1", utc(2024, 1, 1)))
    assert where.to_chroma() == {"$and": [
        {"title": {"$eq": "It's \"quoted\" OR 1=1"}},
        {"creation_date": {"$eq": "2024-01-01T00:00:00+00:00"}},
    ]}


def test_where_rejects_unknown_fields_and_values():
    with pytest.raises(ValueError):
        Where.eq("content", "x")
    with pytest.raises(TypeError):
        Where.eq("title", ["x"])


def test_where_matches():
    record = make_record("A", [1.0, 0.0])
    assert by_document(record.key).matches(record.metadata())
    assert not by_cluster(OUTLIER).matches(record.metadata())


def test_add_scan_count(chroma):
    chroma.add([make_record("A", [1.0, 0.0], 0, 2), make_record("A", [0.9, 0.1], 1, 2), make_record("B", [0.0, 1.0])])
    assert chroma.count() == 3

    key_a = DocumentKey("A", utc(2024, 1, 1))
    records = chroma.scan(by_document(key_a), include_vectors=True)
    assert sorted(r.chunk_index for r in records) == [0, 1]
    assert all(r.vector is not None and r.vector.shape == (2,) for r in records)
    assert all(r.cluster_id is None for r in records)
    assert records[0].creation_date == utc(2024, 1, 1)


def test_add_is_upsert(chroma):
    chroma.add([make_record("A", [1.0, 0.0], text="old")])
    chroma.add([make_record("A", [1.0, 0.0], text="new")])
    assert chroma.count() == 1
    assert chroma.scan()[0].text == "new"


def test_add_requires_vectors(chroma):
    record = make_record("A", [1.0, 0.0])
    record.vector = None
    with pytest.raises(ValueError):
        chroma.add([record])


def test_update_and_filter_by_cluster(chroma):
    chroma.add([make_record("A", [1.0, 0.0]), make_record("B", [0.0, 1.0])])
    key_a = DocumentKey("A", utc(2024, 1, 1))
    updated = chroma.update(by_document(key_a), {"cluster_id": 0, "cluster_label": "Alpha", "cluster_summary": "1 note"})
    assert updated == 1

    (record,) = chroma.scan(by_cluster(0))
    assert record.title == "A"
    assert record.cluster_label == "Alpha"
    assert chroma.count(by_cluster(0)) == 1


def test_quoted_titles_are_safe(chroma):
    tricky = "Budget \"Q1\" ' OR title != ''"
    chroma.add([make_record(tricky, [1.0, 0.0]), make_record("Other", [0.0, 1.0])])
    assert chroma.delete(by_document(DocumentKey(tricky, utc(2024, 1, 1)))) == 1
    assert [r.title for r in chroma.scan()] == ["Other"]


def test_delete_nothing(chroma):
    assert chroma.delete(by_cluster(5)) == 0


def test_query_returns_cosine_distance(chroma):
    chroma.add([make_record("A", [1.0, 0.0]), make_record("B", [0.0, 1.0])])
    hits = chroma.query(np.array([1.0, 0.0], dtype=np.float32), n_results=5)
    assert [r.title for r, _ in hits] == ["A", "B"]
    assert hits[0][1] == pytest.approx(0.0, abs=1e-4)
    assert hits[1][1] == pytest.approx(1.0, abs=1e-4)


def test_query_empty_collection(chroma):
    assert chroma.query(np.array([1.0, 0.0], dtype=np.float32)) == []


def test_search_text(chroma):
    chroma.add([make_record("A", [1.0, 0.0], text="miso soup recipe"), make_record("B", [0.0, 1.0], text="budget")])
    assert [r.title for r in chroma.search_text("soup")] == ["A"]
    assert chroma.search_text("") == []


def test_reset(chroma):
    chroma.add([make_record("A", [1.0, 0.0])])
    chroma.reset()
    assert chroma.count() == 0
