"""Incremental indexing: sync a document source into the vector store."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from .embeddings.embedder import Embedder
from .errors import StoreWriteError
from .ingest.chunker import Chunker, build_chunker
from .ingest.processor import chunk_document, chunk_id
from .models import (
    CacheEntry,
    CacheSnapshot,
    Chunk,
    ChunkRecord,
    Document,
    DocumentKey,
    DocumentMeta,
    IndexResult,
    parse_timestamp,
)
from .sources.base import DocumentSource
from .storage import VectorStoreBase, by_document, get_vector_store, retry_write
from .sync.cache import NotesCache, diff
from .workers import run_bounded

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Indexer:
    """Brings the vector store in line with a document source.

    Only new and modified documents are fetched, chunked and embedded. Each
    processed document replaces all of its previous records, so re-running
    over the same input leaves the store unchanged.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        chunker: Chunker,
        cache: NotesCache,
        workers: int = 12,
        timeout: float | None = 45.0,
        write_batch_size: int = 100,
        write_retries: int = 3,
    ):
        if write_batch_size < 1:
            raise ValueError(f"write_batch_size must be >= 1, got {write_batch_size}")
        self.store = store
        self.embedder = embedder
        self.chunker = chunker
        self.cache = cache
        self.workers = workers
        self.timeout = timeout
        self.write_batch_size = write_batch_size
        self.write_retries = write_retries

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        store: VectorStoreBase | None = None,
        embedder: Embedder | None = None,
    ) -> "Indexer":
        idx = config.get("indexing", {})
        return cls(
            store=store or get_vector_store(config),
            embedder=embedder or Embedder.from_config(config),
            chunker=build_chunker(config),
            cache=NotesCache(config["cache_path"]),
            workers=idx.get("workers", 12),
            timeout=idx.get("timeout", 45.0),
            write_batch_size=idx.get("write_batch_size", 100),
            write_retries=idx.get("write_retries", 3),
        )

    def run(
        self,
        source: DocumentSource,
        max_count: int | None = None,
        fresh: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> IndexResult:
        """Index what changed in ``source`` since the last run.

        ``max_count`` limits the listing; a limited listing never prunes. ``fresh``
        empties the store and ignores the cache.

        Raises:
            StoreWriteError: a write failed after retries or did not verify.
        """
        start = time.time()
        if fresh:
            logger.info("Fresh run: clearing store and cache")
            self.store.reset()
            self.cache.clear()
            cached = None
        else:
            cached = self.cache.load()

        listing = [meta for batch in source.list_documents(max_count) for meta in batch]
        changes = diff(listing, cached)
        result = IndexResult(
            new=len(changes.new),
            modified=len(changes.modified),
            unchanged=len(changes.unchanged),
        )
        logger.info(
            f"{len(listing)} notes listed: {result.new} new, {result.modified} modified, "
            f"{result.unchanged} unchanged, {len(changes.removed)} removed"
        )

        partial = max_count is not None
        replaces = {} if partial else changes.replaces
        failed: set[DocumentKey] = set()
        todo = changes.to_process
        tasks = run_bounded(lambda meta: self._prepare(source, meta), todo, self.workers, self.timeout)

        for done, task in enumerate(tasks, 1):
            meta: DocumentMeta = task.item
            if not task.ok:
                self._fail(result, failed, meta, task.error)
            else:
                doc, chunks = task.value
                records, dropped = self._embed(doc, chunks)
                result.chunk_failures += dropped
                if not records:
                    self._fail(result, failed, meta, "no chunk could be embedded")
                else:
                    stale = {doc.key, meta.key, *replaces.get(meta.key, [])}
                    self._replace(doc.key, stale, records)
                    result.processed += 1
                    result.chunks += len(records)
            if on_progress:
                on_progress(done, len(todo))

        if not partial:
            for key in changes.removed:
                self._delete(key)
            result.removed = len(changes.removed)
        elif changes.removed:
            logger.info(f"Listing limited to {max_count}, not pruning {len(changes.removed)} unlisted note(s)")

        self.cache.save(self._next_snapshot(listing, cached, replaces, failed, partial))

        result.elapsed = time.time() - start
        logger.info(
            f"Indexed {result.processed} note(s), {result.chunks} chunk(s), "
            f"{result.failed} failure(s) in {result.elapsed:.1f}s"
        )
        return result

    def _prepare(self, source: DocumentSource, meta: DocumentMeta) -> tuple[Document, list[Chunk]]:
        doc = source.fetch(meta)
        return doc, chunk_document(doc, self.chunker)

    def _embed(self, doc: Document, chunks: list[Chunk]) -> tuple[list[ChunkRecord], int]:
        vectors = self.embedder.embed_many([c.text for c in chunks])
        records = [
            ChunkRecord(
                id=chunk_id(doc.key, chunk.index),
                title=doc.title,
                creation_date=parse_timestamp(doc.created),
                modification_date=parse_timestamp(doc.modified),
                chunk_index=chunk.index,
                total_chunks=chunk.total,
                text=chunk.text,
                vector=vector,
            )
            for chunk, vector in zip(chunks, vectors)
            if vector is not None
        ]
        return records, len(chunks) - len(records)

    def _fail(self, result: IndexResult, failed: set[DocumentKey], meta: DocumentMeta, reason: Any) -> None:
        logger.warning(f'Error processing note "{meta.title}": {reason}')
        failed.add(meta.key)
        result.failed += 1
        result.failures.append((meta.title, str(reason)))

    def _delete(self, key: DocumentKey) -> int:
        try:
            return retry_write(lambda: self.store.delete(by_document(key)), self.write_retries, f"Deleting '{key.title}'")
        except Exception as e:
            raise StoreWriteError(f"Failed to delete records of '{key.title}'", failed_keys=[key], cause=e) from e

    def _replace(self, key: DocumentKey, stale: set[DocumentKey], records: list[ChunkRecord]) -> None:
        for old in sorted(stale):
            self._delete(old)

        written = 0
        for i in range(0, len(records), self.write_batch_size):
            batch = records[i:i + self.write_batch_size]
            try:
                retry_write(lambda: self.store.add(batch), self.write_retries, f"Writing '{key.title}'")
            except Exception as e:
                raise StoreWriteError(
                    f"Failed to write records of '{key.title}'",
                    persisted=written,
                    expected=len(records),
                    failed_keys=[key],
                    cause=e,
                ) from e
            written += len(batch)

        stored = self.store.count(by_document(key))
        if stored != len(records):
            raise StoreWriteError(
                f"'{key.title}' has {stored} records in the store, expected {len(records)}",
                persisted=stored,
                expected=len(records),
                failed_keys=[key],
            )

    def _next_snapshot(
        self,
        listing: list[DocumentMeta],
        cached: CacheSnapshot | None,
        replaces: dict[DocumentKey, list[DocumentKey]],
        failed: set[DocumentKey],
        partial: bool,
    ) -> CacheSnapshot:
        """Cache contents after this run.

        Failed notes keep their previous entries (or none), so they are retried.
        A processed note drops the entries it replaced. A partial listing keeps
        the entries it did not see.
        """
        previous = cached.entries if cached else {}
        entries: dict[DocumentKey, CacheEntry] = dict(previous) if partial else {}
        for meta in listing:
            key = meta.key
            if key in failed:
                for old in [key, *replaces.get(key, [])]:
                    if old in previous:
                        entries[old] = previous[old]
                continue
            for old in replaces.get(key, []):
                entries.pop(old, None)
            entries[key] = CacheEntry(created=key.created, modified=parse_timestamp(meta.modified))
        return CacheSnapshot(last_sync=datetime.now(timezone.utc), entries=entries)
