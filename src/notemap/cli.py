"""CLI entry point for notemap."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config
from .errors import NotemapError

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx, config_path, verbose):
    """notemap - Index, cluster and search your notes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _get_config(ctx) -> dict:
    try:
        return load_config(ctx.obj.get("config_path"))
    except NotemapError as e:
        _fail(ctx, e)


def _fail(ctx, error: Exception):
    console.print(f"[red]✗ {error}[/]")
    ctx.exit(1)


def _get_store(config: dict):
    from .storage import get_vector_store
    return get_vector_store(config)


@cli.command()
@click.option("--path", default=None, help="Custom notemap home directory")
@click.pass_context
def init(ctx, path):
    """Create the notes directory and a starter configuration."""
    import yaml

    home = Path(path).expanduser().resolve() if path else Path("~/.notemap").expanduser()
    console.print(f"[bold green]Initializing notemap at {home}[/]")

    for d in ["notes", "chroma"]:
        (home / d).mkdir(parents=True, exist_ok=True)

    config_file = home / "config.yaml"
    if not config_file.exists():
        cfg = dict(DEFAULT_CONFIG)
        cfg["notes_path"] = str(home / "notes")
        cfg["chroma_path"] = str(home / "chroma")
        cfg["cache_path"] = str(home / "notes-cache.json")
        header = (
            "# Notes are .md, .txt or .html files under notes_path.\n"
            "# Markdown frontmatter may set title, created and modified.\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ notemap initialized![/]")
    console.print(f"  Put notes in: {home / 'notes'}")
    console.print("  Run: notemap pipeline")


@cli.command()
@click.option("--max", "max_count", type=int, default=None, help="Only look at the first N notes (no pruning)")
@click.option("--fresh", is_flag=True, help="Clear the index and cache and re-index everything")
@click.pass_context
def index(ctx, max_count, fresh):
    """Incrementally index new and modified notes."""
    from .indexer import Indexer
    from .sources import DirectorySource

    config = _get_config(ctx)
    notes_path = Path(config["notes_path"])
    if not notes_path.exists():
        console.print(f"[yellow]Notes directory not found: {notes_path}. Run 'notemap init' first.[/]")
        return

    source = DirectorySource(notes_path, batch_size=config["indexing"].get("batch_size", 50))
    console.print(f"[blue]Indexing notes from {notes_path}...[/]")
    try:
        indexer = Indexer.from_config(config)
        with Progress(console=console) as progress:
            task = progress.add_task("Indexing...", total=None)

            def on_progress(done, total):
                progress.update(task, completed=done, total=total)

            result = indexer.run(source, max_count=max_count, fresh=fresh, on_progress=on_progress)
    except NotemapError as e:
        _fail(ctx, e)

    console.print(
        f"[green]✓ {result.processed} note(s) indexed ({result.chunks} chunks) in {result.elapsed:.1f}s[/]"
    )
    console.print(
        f"  New: {result.new}  Modified: {result.modified}  "
        f"Unchanged: {result.unchanged}  Removed: {result.removed}"
    )
    if result.chunk_failures:
        console.print(f"  [yellow]{result.chunk_failures} chunk(s) could not be embedded[/]")
    if result.failures:
        console.print(f"  [red]{result.failed} note(s) failed:[/]")
        for line in result.report.splitlines():
            console.print(f"    {line}")


@cli.command()
@click.option("--min-points", type=int, default=None, help="Neighbours needed to form a cluster core")
@click.option("--epsilon", type=float, default=None, help="Neighbourhood radius")
@click.option("--threshold", type=float, default=None, help="Quality score needed to rescue an outlier")
@click.pass_context
def cluster(ctx, min_points, epsilon, threshold):
    """Cluster indexed notes and label the clusters."""
    from .clustering.cluster import run_clustering

    config = _get_config(ctx)
    cfg = config["clustering"]
    console.print("[blue]Running clustering...[/]")
    try:
        run = run_clustering(
            _get_store(config),
            min_points=cfg["min_points"] if min_points is None else min_points,
            epsilon=cfg["epsilon"] if epsilon is None else epsilon,
            quality_threshold=cfg["quality_threshold"] if threshold is None else threshold,
            write_retries=config["indexing"].get("write_retries", 3),
        )
    except (NotemapError, ValueError) as e:
        _fail(ctx, e)

    console.print(
        f"[green]✓ {run.total_clusters} cluster(s) over {run.total_documents} note(s), "
        f"{run.outliers} outlier(s), {run.reassigned} rescued[/]"
    )
    for c in run.clusters:
        console.print(f"  {c.id:>3}  {c.label} ({len(c.member_document_ids)} notes)")


@cli.command()
@click.pass_context
def clusters(ctx):
    """List clusters from the last clustering pass."""
    from .query.clusters import list_clusters

    config = _get_config(ctx)
    summaries = list_clusters(_get_store(config))
    if not summaries:
        console.print("[yellow]No clusters yet. Run 'notemap cluster' first.[/]")
        return

    table = Table(title="Clusters")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Label", style="cyan")
    table.add_column("Notes", justify="right", style="green")
    table.add_column("Summary", max_width=60)
    for s in summaries:
        table.add_row(str(s.id), s.label, str(s.note_count), s.summary)
    console.print(table)


@cli.command()
@click.argument("cluster_id", type=int)
@click.pass_context
def show(ctx, cluster_id):
    """List the notes in one cluster."""
    from .query.clusters import documents_in_cluster

    config = _get_config(ctx)
    notes = documents_in_cluster(_get_store(config), cluster_id)
    if not notes:
        console.print(f"[yellow]Cluster {cluster_id} has no notes.[/]")
        return

    table = Table(title=f"Cluster {cluster_id}")
    table.add_column("Title", style="cyan")
    table.add_column("Created", style="dim")
    table.add_column("Modified", style="dim")
    for n in notes:
        table.add_row(n.title, f"{n.created:%Y-%m-%d %H:%M}", f"{n.modified:%Y-%m-%d %H:%M}")
    console.print(table)


@cli.command()
@click.argument("query")
@click.option("--n", "-n", default=None, type=int, help="Number of results")
@click.pass_context
def search(ctx, query, n):
    """Semantic and keyword search over indexed notes."""
    from .embeddings.embedder import Embedder
    from .query.search import search_notes

    config = _get_config(ctx)
    cfg = config["search"]
    console.print(f"[blue]Searching for: '{query}'[/]\n")

    results = search_notes(
        _get_store(config),
        Embedder.from_config(config),
        query,
        limit=cfg["limit"] if n is None else n,
        min_similarity=cfg["min_similarity"],
    )
    if not results:
        console.print("[yellow]No results found. Have you run 'notemap index'?[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Chunk", justify="right", style="dim")
    table.add_column("Preview", max_width=60)
    for i, r in enumerate(results, 1):
        table.add_row(
            str(i),
            r.title,
            f"{r.score:.1f}",
            f"{r.chunk_index + 1}/{r.total_chunks}",
            r.preview[:80].replace("\n", " "),
        )
    console.print(table)


@cli.command()
@click.option("--clear", is_flag=True, help="Delete the cache so the next index treats every note as new")
@click.pass_context
def cache(ctx, clear):
    """Show or clear the incremental sync cache."""
    from .sync.cache import NotesCache

    config = _get_config(ctx)
    notes_cache = NotesCache(config["cache_path"])
    if clear:
        notes_cache.clear()
        console.print(f"[green]✓ Cleared {notes_cache.path}[/]")
        return

    snapshot = notes_cache.load()
    if snapshot is None:
        console.print(f"[yellow]No cache at {notes_cache.path}[/]")
        return
    last_sync = f"{snapshot.last_sync:%Y-%m-%d %H:%M:%S}" if snapshot.last_sync else "never"
    console.print(f"\n[bold]Sync cache[/] {notes_cache.path}")
    console.print(f"  Last sync: {last_sync}")
    console.print(f"  Notes: {len(snapshot.entries)}")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show index statistics."""
    from .query.clusters import store_stats

    config = _get_config(ctx)
    s = store_stats(_get_store(config))

    console.print("\n[bold]Index Statistics[/]")
    console.print(f"  Notes: {s['documents']}")
    console.print(f"  Chunks: {s['chunks']}")
    console.print(f"  Clusters: {s['clusters']}")
    console.print(f"  Clustered notes: {s['clustered_documents']}")
    if s["unclustered_documents"]:
        console.print(f"  [yellow]Not yet clustered: {s['unclustered_documents']}[/]")


@cli.command()
@click.pass_context
def pipeline(ctx):
    """Run the full pipeline: index → cluster."""
    console.print("[bold blue]Running full pipeline...[/]\n")
    ctx.invoke(index)
    console.print()
    ctx.invoke(cluster)
    console.print("\n[bold green]✓ Pipeline complete![/]")


@cli.command()
@click.option("--debounce", default=5.0, help="Seconds to wait after last change before processing")
@click.pass_context
def watch(ctx, debounce):
    """Watch the notes directory and re-index and re-cluster on change."""
    from .watcher import NotesWatcher

    config = _get_config(ctx)
    watcher = NotesWatcher(config, debounce=debounce)
    watcher.run()


if __name__ == "__main__":
    cli()
