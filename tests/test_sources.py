"""Tests for the directory document source and note parsers."""

from pathlib import Path

import pytest

from notemap.errors import FetchError
from notemap.ingest.parsers import html_to_text
from notemap.models import DocumentMeta
from notemap.sources import DirectorySource

from conftest import utc


def _write_notes(root: Path):
    (root / "budget.md").write_text(
        "---\ntitle: Budget Q1\ncreated: 2024-01-05T09:00:00\n---\n# Ignored heading\n\nSpending review.",
        encoding="utf-8",
    )
    (root / "soup.txt").write_text("Recipe: Soup\n\nBoil water.", encoding="utf-8")
    (root / "trip.html").write_text(
        "<html><head><title>Trip to Japan</title></head>"
        "<body><p>Day one</p><p>Day two<br>late</p><script>x()</script></body></html>",
        encoding="utf-8",
    )
    (root / "image.png").write_bytes(b"\x89PNG")
    (root / ".hidden.md").write_text("# Hidden", encoding="utf-8")


def _listing(source, **kwargs):
    return [meta for batch in source.list_documents(**kwargs) for meta in batch]


def test_lists_supported_files(tmp_path):
    _write_notes(tmp_path)
    metas = _listing(DirectorySource(tmp_path))
    assert sorted(m.title for m in metas) == ["Budget Q1", "Recipe: Soup", "Trip to Japan"]
    budget = next(m for m in metas if m.title == "Budget Q1")
    assert budget.created == utc(2024, 1, 5, 9)


def test_batches_and_max_count(tmp_path):
    _write_notes(tmp_path)
    source = DirectorySource(tmp_path, batch_size=2)
    assert [len(b) for b in source.list_documents()] == [2, 1]
    assert len(_listing(source, max_count=2)) == 2


def test_fetch_bodies(tmp_path):
    _write_notes(tmp_path)
    source = DirectorySource(tmp_path)
    docs = {m.title: source.fetch(m) for m in _listing(source)}

    assert docs["Budget Q1"].body.strip() == "# Ignored heading\n\nSpending review."
    assert docs["Recipe: Soup"].body == "Boil water."
    assert docs["Trip to Japan"].body == "Day one\n\nDay two\nlate"


def test_markdown_heading_becomes_title(tmp_path):
    (tmp_path / "note.md").write_text("# Weekly plan\n\nDo things.", encoding="utf-8")
    source = DirectorySource(tmp_path)
    (meta,) = _listing(source)
    assert meta.title == "Weekly plan"
    assert source.fetch(meta).body == "Do things."


def test_missing_directory_lists_nothing(tmp_path):
    assert _listing(DirectorySource(tmp_path / "nope")) == []


def test_fetch_missing_file_raises(tmp_path):
    source = DirectorySource(tmp_path)
    meta = DocumentMeta("Gone", utc(2024, 1, 1), utc(2024, 1, 1), source=str(tmp_path / "gone.md"))
    with pytest.raises(FetchError):
        source.fetch(meta)


def test_html_to_text():
    assert html_to_text("") == ""
    assert html_to_text("<div>Hello</div><p>World<br>again</p>") == "Hello\n\nWorld\nagain"
    assert html_to_text("<p>a&nbsp;&nbsp;b</p><style>p{}</style>") == "a b"
