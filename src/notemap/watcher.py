"""Watch the notes directory and re-index after changes settle."""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .ingest.parsers import PARSERS

console = Console()
logger = logging.getLogger(__name__)


class NotesChangeHandler(FileSystemEventHandler):
    """Collects note file events and fires ``callback`` once they go quiet for ``debounce`` seconds."""

    def __init__(self, callback: Callable[[list[str]], None], debounce: float = 5.0):
        super().__init__()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._debounce = debounce
        self._callback = callback

    def _is_note(self, path: str) -> bool:
        name = Path(path).name
        return not name.startswith(".") and Path(path).suffix.lower() in PARSERS

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for path in paths:
            if path and self._is_note(str(path)):
                self._add(str(path))

    def _add(self, path: str):
        with self._lock:
            self._pending.add(path)
            logger.debug(f"Detected change: {path}")
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self):
        with self._lock:
            paths = sorted(self._pending)
            self._pending.clear()
            self._timer = None
        if paths:
            self._callback(paths)


class NotesWatcher:
    """Runs an incremental index and a clustering pass whenever notes change."""

    def __init__(self, config: dict[str, Any], debounce: float = 5.0):
        self.config = config
        self.notes_path = Path(config["notes_path"])
        self.handler = NotesChangeHandler(self._process_batch, debounce=debounce)
        self.observer = Observer()
        self._indexer = None

    def _get_indexer(self):
        if self._indexer is None:
            from .indexer import Indexer
            self._indexer = Indexer.from_config(self.config)
        return self._indexer

    def _process_batch(self, paths: list[str]):
        from .clustering.cluster import run_clustering
        from .sources import DirectorySource

        console.print(f"\n[bold blue]{len(paths)} note file(s) changed, syncing...[/]")
        indexer = self._get_indexer()

        try:
            batch_size = self.config.get("indexing", {}).get("batch_size", 50)
            result = indexer.run(DirectorySource(self.notes_path, batch_size=batch_size))
        except Exception as e:
            logger.exception("Indexing failed")
            console.print(f"  [red]✗ Indexing failed: {e}[/]")
            return
        console.print(
            f"  [green]✓ Indexed {result.processed} note(s), removed {result.removed}, "
            f"{result.failed} failure(s)[/]"
        )
        if not (result.processed or result.removed):
            console.print("[dim]Nothing to re-cluster.[/]")
            return

        cluster_cfg = self.config.get("clustering", {})
        try:
            run = run_clustering(
                indexer.store,
                min_points=cluster_cfg.get("min_points", 2),
                epsilon=cluster_cfg.get("epsilon", 0.6),
                quality_threshold=cluster_cfg.get("quality_threshold", 0.65),
                write_retries=self.config.get("indexing", {}).get("write_retries", 3),
            )
        except Exception as e:
            logger.exception("Clustering failed")
            console.print(f"  [red]✗ Clustering failed: {e}[/]")
            return
        console.print(f"  [green]✓ {run.total_clusters} cluster(s), {run.outliers} outlier(s)[/]")
        console.print("[dim]Watching for more changes...[/]")

    def run(self):
        """Start watching (blocks until Ctrl+C)."""
        self.notes_path.mkdir(parents=True, exist_ok=True)
        self.observer.schedule(self.handler, str(self.notes_path), recursive=True)
        self.observer.start()

        console.print(f"[bold]Watching {self.notes_path} for note changes... (Ctrl+C to stop)[/]")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watcher...[/]")
            self.observer.stop()
        self.observer.join()
        console.print("[green]✓ Watcher stopped.[/]")
