"""Tests for the incremental sync cache."""

import json

from notemap.models import CacheEntry, CacheSnapshot, DocumentKey, DocumentMeta
from notemap.sync.cache import NotesCache, diff

from conftest import utc


def _meta(title, created, modified):
    return DocumentMeta(title=title, created=created, modified=modified)


def _snapshot(*metas):
    return CacheSnapshot(
        last_sync=utc(2024, 6, 1),
        entries={m.key: CacheEntry(m.created, m.modified) for m in metas},
    )


def test_diff_without_cache_marks_everything_new():
    current = [_meta("A", utc(2024, 1, 1), utc(2024, 1, 2))]
    changes = diff(current, None)
    assert changes.new == current
    assert changes.modified == changes.unchanged == changes.removed == []


def test_diff_classifies():
    a = _meta("A", utc(2024, 1, 1), utc(2024, 1, 2))
    b = _meta("B", utc(2024, 1, 1), utc(2024, 1, 2))
    gone = _meta("Gone", utc(2023, 5, 1), utc(2023, 5, 2))
    cached = _snapshot(a, b, gone)

    b_edited = _meta("B", utc(2024, 1, 1), utc(2024, 3, 1))
    c = _meta("C", utc(2024, 2, 1), utc(2024, 2, 1))
    changes = diff([a, b_edited, c], cached)

    assert changes.unchanged == [a]
    assert changes.modified == [b_edited]
    assert changes.new == [c]
    assert changes.removed == [DocumentKey("Gone", utc(2023, 5, 1))]
    assert changes.to_process == [c, b_edited]


def test_older_modification_counts_as_modified():
    cached = _snapshot(_meta("A", utc(2024, 1, 1), utc(2024, 5, 1)))
    changes = diff([_meta("A", utc(2024, 1, 1), utc(2024, 4, 1))], cached)
    assert len(changes.modified) == 1


def test_diff_tells_same_titled_notes_apart():
    jan = _meta("Meeting", utc(2024, 1, 1), utc(2024, 1, 1))
    feb = _meta("Meeting", utc(2024, 2, 1), utc(2024, 2, 1))
    changes = diff([jan, feb], _snapshot(jan, feb))
    assert changes.unchanged == [jan, feb]
    assert changes.to_process == []
    assert changes.removed == []
    assert changes.replaces == {}


def test_diff_recreated_note_replaces_unheld_key():
    old = _meta("Note", utc(2024, 1, 1), utc(2024, 1, 1))
    kept = _meta("Note", utc(2024, 1, 5), utc(2024, 1, 5))
    recreated = _meta("Note", utc(2024, 2, 1), utc(2024, 2, 1))
    changes = diff([kept, recreated], _snapshot(old, kept))

    assert changes.unchanged == [kept]
    assert changes.modified == [recreated]
    assert changes.replaces == {recreated.key: [old.key]}
    assert changes.removed == []


def test_save_and_load_same_titles(tmp_path):
    cache = NotesCache(tmp_path / "notes-cache.json")
    snapshot = _snapshot(
        _meta("Meeting", utc(2024, 2, 1), utc(2024, 2, 3)),
        _meta("Meeting", utc(2024, 1, 1), utc(2024, 1, 2)),
    )
    cache.save(snapshot)

    data = json.loads(cache.path.read_text())
    assert [n["creation_date"] for n in data["notes"]] == ["2024-01-01T00:00:00+00:00", "2024-02-01T00:00:00+00:00"]
    assert cache.load().entries == snapshot.entries


def test_save_and_load(tmp_path):
    cache = NotesCache(tmp_path / "sub" / "notes-cache.json")
    assert cache.load() is None

    snapshot = _snapshot(_meta("Budget \"Q1\"", utc(2024, 1, 1), utc(2024, 1, 2)))
    cache.save(snapshot)

    data = json.loads(cache.path.read_text())
    assert set(data) == {"last_sync", "notes"}
    assert data["notes"][0] == {
        "title": "Budget \"Q1\"",
        "creation_date": "2024-01-01T00:00:00+00:00",
        "modification_date": "2024-01-02T00:00:00+00:00",
    }

    loaded = cache.load()
    assert loaded.last_sync == snapshot.last_sync
    assert loaded.entries == snapshot.entries


def test_corrupt_cache_treated_as_missing(tmp_path):
    path = tmp_path / "notes-cache.json"
    path.write_text("{not json")
    assert NotesCache(path).load() is None


def test_clear(tmp_path):
    cache = NotesCache(tmp_path / "notes-cache.json")
    cache.save(CacheSnapshot())
    assert cache.path.exists()
    cache.clear()
    assert not cache.path.exists()
    cache.clear()
