"""Incremental sync cache: what the last run saw, and what changed since."""

import json
import logging
import os
import tempfile
from pathlib import Path

from ..models import (
    CacheEntry,
    CacheSnapshot,
    ChangeSet,
    DocumentKey,
    DocumentMeta,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def diff(current: list[DocumentMeta], cached: CacheSnapshot | None) -> ChangeSet:
    """Classify ``current`` against ``cached``.

    A title missing from the cache is new. A note whose (title, creation time)
    is cached is modified when its modification timestamp differs in either
    direction, unchanged otherwise. A note whose title is cached only under
    other creation times is modified and takes over the cached keys no current
    note holds, recorded in ``replaces``. ``removed`` lists the remaining cached
    keys that no current note holds.
    """
    changes = ChangeSet()
    entries = cached.entries if cached else {}

    by_title: dict[str, list[DocumentKey]] = {}
    for key in sorted(entries):
        by_title.setdefault(key.title, []).append(key)
    held = {meta.key for meta in current}
    claimed: set[DocumentKey] = set()

    for meta in current:
        key = meta.key
        entry = entries.get(key)
        if entry is not None:
            if parse_timestamp(entry.modified) != parse_timestamp(meta.modified):
                changes.modified.append(meta)
            else:
                changes.unchanged.append(meta)
        elif key.title not in by_title:
            changes.new.append(meta)
        else:
            changes.modified.append(meta)
            orphans = [k for k in by_title[key.title] if k not in held and k not in claimed]
            if orphans:
                changes.replaces[key] = orphans
                claimed.update(orphans)

    changes.removed = [key for key in sorted(entries) if key not in held and key not in claimed]
    return changes


class NotesCache:
    """JSON file holding the CacheSnapshot between runs.

    Format::

        {"last_sync": "...", "notes": [{"title": ..., "creation_date": ..., "modification_date": ...}]}
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> CacheSnapshot | None:
        """Read the snapshot; None when there is no cache yet."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            entries = {
                DocumentKey(note["title"], parse_timestamp(note["creation_date"])): CacheEntry(
                    created=parse_timestamp(note["creation_date"]),
                    modified=parse_timestamp(note["modification_date"]),
                )
                for note in data.get("notes", [])
            }
            last_sync = parse_timestamp(data["last_sync"]) if data.get("last_sync") else None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache {self.path}, every note will be treated as new: {e}")
            return None
        return CacheSnapshot(last_sync=last_sync, entries=entries)

    def save(self, snapshot: CacheSnapshot) -> None:
        """Replace the cache file with ``snapshot``."""
        data = {
            "last_sync": format_timestamp(snapshot.last_sync) if snapshot.last_sync else None,
            "notes": [
                {
                    "title": key.title,
                    "creation_date": format_timestamp(entry.created),
                    "modification_date": format_timestamp(entry.modified),
                }
                for key, entry in sorted(snapshot.entries.items())
            ],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".notes-cache-", suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
