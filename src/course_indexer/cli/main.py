"""
CLI Main - Typer command-line interface.
========================================

Commands:
- index: Rebuild the index from the content root and save a snapshot
- incremental: Index again, using the previous run's metadata
- stats: Show persisted index statistics, errors and recent runs
- clear: Delete persisted index files
- search: Search the persisted index
- help: Show usage and examples
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import ChunkType, IndexingProgress, IndexingStats

logger = get_logger(__name__)

app = typer.Typer(
    name="course-indexer",
    help="""🚀 Course Indexer - Semantic search over course content

Chunks every lesson under the content root (prose, code examples,
assignments and resources), embeds the chunks and saves a searchable
snapshot to .course-index/.

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

COMMANDS OVERVIEW:

  index        Index all courses (default)
  incremental  Index only new/modified content
  stats        Show indexing statistics
  clear        Clear the entire index
  search       Search the index
               -k, --top-k     Number of results
               -t, --type      Only chunks of this type
               -c, --course    Only chunks of this course
  help         Show this help message

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Requires GEMINI_API_KEY when the gemini embedding provider is configured.
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


class RichProgressObserver:
    """Renders indexing progress records as a Rich progress bar."""

    def __init__(self, output: Console):
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=30),
            TaskProgressColumn(),
            TextColumn("Courses: {task.completed:.0f}/{task.total:.0f} | Chunks: {task.fields[chunks]}"),
            console=output,
        )
        self._task = None

    def __enter__(self) -> "RichProgressObserver":
        self._progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._progress.stop()

    def on_progress(self, progress: IndexingProgress) -> None:
        if self._task is None:
            self._task = self._progress.add_task("Indexing", total=progress.total_courses, chunks=0)

        self._progress.update(
            self._task,
            description=escape(progress.current_course or "Indexing"),
            completed=progress.processed_courses,
            total=progress.total_courses,
            chunks=progress.processed_chunks,
        )


@contextmanager
def _command_errors() -> Iterator[None]:
    """Turn any exception escaping a command into a red message and exit code 1."""
    try:
        yield
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"\n[red]❌ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


def _load_provider():
    from course_indexer.indexing.embeddings_base import get_embedding_provider

    return get_embedding_provider()


def _print_results(stats: IndexingStats, chunks_by_type: dict[str, int]) -> None:
    from course_indexer.shared.utils import format_duration

    console.print("\n[bold green]✅ Indexing completed![/bold green]\n")

    console.print("[bold]Results:[/bold]")
    console.print(f"  • Courses indexed: {stats.total_courses}")
    console.print(f"  • Modules processed: {stats.total_modules}")
    console.print(f"  • Lessons processed: {stats.total_lessons}")
    console.print(f"  • Chunks created: {stats.total_chunks}")
    console.print(f"  • Code examples: {stats.total_code_examples}")
    console.print(f"  • Total time: {format_duration(stats.indexing_time)}")

    if chunks_by_type:
        breakdown = ", ".join(f"{name}: {count}" for name, count in chunks_by_type.items())
        console.print(f"  • Chunks by type: {breakdown}")

    if stats.errors:
        console.print(f"\n[yellow]⚠️  Warnings: {len(stats.errors)} errors occurred[/yellow]")
        console.print('Run "stats" command for details')

    console.print(f"\n  • Performance: {stats.chunks_per_second:.0f} chunks/second")


def _run_index(content_root: Optional[Path]) -> None:
    """Full index run: index every course, print the summary, save the snapshot."""
    from course_indexer.indexing.indexer import CourseIndexer
    from course_indexer.indexing.snapshot import SnapshotStore

    provider = _load_provider()
    store = SnapshotStore()

    console.print("📚 Starting course indexing...\n")

    with RichProgressObserver(console) as observer:
        indexer = CourseIndexer(provider, content_root=content_root, observer=observer)
        stats = indexer.index_all_courses()

    _print_results(stats, indexer.index.get_stats()["chunks_by_type"])

    # A run that indexed nothing must not replace the previous snapshot
    if stats.total_courses == 0 and stats.errors:
        store.append_run_log(stats)
        console.print("[red]❌ No course could be indexed, previous index kept[/red]")
        raise typer.Exit(1)

    console.print("\nSaving index to disk...")
    store.save_snapshot(indexer.index, stats)
    store.append_run_log(stats)
    console.print(f"[green]✅ Index saved to {escape(str(store.index_dir))}[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Global Options
# ─────────────────────────────────────────────────────────────────────────────


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show debug logging.",
    ),
):
    """
    Course Indexer: index, inspect and search course content.

    Runs 'index' when no command is given.
    """
    from course_indexer.indexing.embeddings_base import check_credentials
    from course_indexer.shared.config import get_settings
    from course_indexer.shared.logging import setup_logging

    settings = get_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.get_effective_log_level(),
        use_rich=settings.logging.rich_console,
        log_file=settings.logging.file or None,
        log_format=settings.logging.format,
    )

    console.print("[bold]🚀 Course Indexer[/bold]")
    console.rule()

    if ctx.invoked_subcommand != "help":
        with _command_errors():
            check_credentials(settings)

    if ctx.invoked_subcommand is None:
        with _command_errors():
            _run_index(None)


# ─────────────────────────────────────────────────────────────────────────────
# Index Commands
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def index(
    content_root: Optional[Path] = typer.Option(
        None,
        "--content-root", "-r",
        help="Directory of course units. Default: CONTENT_ROOT or config/settings.yaml.",
    ),
):
    """
    📚 Index all courses.

    Loads every course unit, chunks its lessons, embeds the chunks and
    saves the snapshot, metadata, stats and run log to the index directory.

    Examples:
        course-indexer index
        course-indexer index --content-root ./content
    """
    with _command_errors():
        _run_index(content_root)


@app.command()
def incremental(
    content_root: Optional[Path] = typer.Option(
        None,
        "--content-root", "-r",
        help="Directory of course units. Default: CONTENT_ROOT or config/settings.yaml.",
    ),
):
    """
    🔄 Index only new/modified content.

    Reads the previous run's metadata first. Incremental diffing is not
    supported, so this always falls back to a full index run.
    """
    from course_indexer.indexing.snapshot import SnapshotStore
    from course_indexer.shared.exceptions import SnapshotError

    with _command_errors():
        console.print("📚 Starting incremental indexing...\n")

        try:
            metadata = SnapshotStore().load_metadata()
        except SnapshotError as e:
            logger.warning(f"Ignoring unreadable index metadata: {e}")
            metadata = None

        if metadata is None:
            console.print("No previous index found. Running full indexing...")
        else:
            last_indexed = metadata.last_indexed.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            console.print(f"Last indexed: {last_indexed}")
            console.print(
                f"Previous stats: {metadata.total_courses} courses, "
                f"{metadata.total_chunks} chunks\n"
            )
            console.print(
                "[yellow]⚠️  Incremental diffing is not supported. Running full index...[/yellow]"
            )

        _run_index(content_root)


# ─────────────────────────────────────────────────────────────────────────────
# Stats Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def stats(
    runs: int = typer.Option(
        5,
        "--runs", "-n",
        help="Number of recent runs to show from the run log.",
    ),
):
    """
    📊 Show indexing statistics.

    Displays the persisted corpus counters, the last run's errors and the
    most recent entries of the run log.
    """
    from course_indexer.indexing.snapshot import SnapshotStore
    from course_indexer.shared.utils import format_duration

    with _command_errors():
        store = SnapshotStore()
        metadata = store.load_metadata()

        if metadata is None:
            console.print('No index found. Run "index" command first.')
            return

        run_stats = store.load_stats()
        last_indexed = metadata.last_indexed.astimezone().strftime("%Y-%m-%d %H:%M:%S")

        console.print("📊 Course Index Statistics\n")
        console.print("[bold]Summary:[/bold]")
        console.print(f"  • Last indexed: {last_indexed}")
        console.print(f"  • Total courses: {metadata.total_courses}")
        console.print(f"  • Total modules: {metadata.total_modules}")
        console.print(f"  • Total lessons: {metadata.total_lessons}")
        console.print(f"  • Total chunks: {metadata.total_chunks}")

        if run_stats:
            console.print(f"\n  • Code examples: {run_stats.total_code_examples}")
            console.print(f"  • Indexing time: {format_duration(run_stats.indexing_time)}")

            if run_stats.errors:
                console.print(f"\n  • Errors: {len(run_stats.errors)}")
                console.print("\n[bold]Error details:[/bold]")
                for i, error in enumerate(run_stats.errors, 1):
                    console.print(f"  {i}. {escape(error.course_id or 'General')}: {escape(error.error)}")

        recent = store.load_run_log(limit=runs)
        if recent:
            table = Table(title="Recent runs", show_header=True)
            table.add_column("Timestamp")
            table.add_column("Duration", justify="right")
            table.add_column("Courses", justify="right")
            table.add_column("Chunks", justify="right")
            table.add_column("Errors", justify="right")

            for entry in reversed(recent):
                table.add_row(
                    entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
                    entry.duration,
                    str(entry.courses),
                    str(entry.chunks),
                    str(entry.errors),
                )

            console.print()
            console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# Clear Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def clear():
    """
    🗑️ Clear the entire index.

    Deletes the index directory (snapshot, metadata, stats and run log).
    """
    from course_indexer.indexing.snapshot import SnapshotStore

    with _command_errors():
        console.print("Clearing index...")
        store = SnapshotStore()
        if not store.clear():
            console.print("[dim]No index files found.[/dim]")
        console.print("[green]✅ Index cleared successfully[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Search Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def search(
    query: Optional[list[str]] = typer.Argument(
        None,
        help="Search query (words are joined with spaces).",
    ),
    top_k: Optional[int] = typer.Option(
        None,
        "--top-k", "-k",
        help="Number of results. Default: TOP_K or config/settings.yaml.",
    ),
    chunk_type: Optional[ChunkType] = typer.Option(
        None,
        "--type", "-t",
        help="Only return chunks of this type.",
        case_sensitive=False,
    ),
    course: Optional[str] = typer.Option(
        None,
        "--course", "-c",
        help="Only return chunks of this course ID.",
    ),
):
    """
    🔍 Search the index.

    Loads the saved snapshot into a fresh index and prints the top
    results with their course, module, type, score and a preview.

    Examples:
        course-indexer search langchain memory
        course-indexer search "vector stores" -k 3 --type code
        course-indexer search embeddings --course rag-knowledge-base
    """
    from course_indexer.indexing.snapshot import SnapshotStore
    from course_indexer.indexing.vector_store import build_where_clause
    from course_indexer.shared.config import get_settings
    from course_indexer.shared.utils import preview_text

    text = " ".join(query or []).strip()
    if not text:
        console.print("Please provide a search query")
        return

    with _command_errors():
        settings = get_settings()
        k = top_k if top_k is not None else settings.get_effective_top_k()

        store = SnapshotStore()
        if not store.has_snapshot():
            console.print('No index found. Run "index" command first.')
            return

        loaded = store.load_snapshot(_load_provider())
        if loaded is None:
            console.print('No index found. Run "index" command first.')
            return
        vector_index, _ = loaded

        filters = build_where_clause(
            chunk_type=chunk_type.value if chunk_type else None,
            course_id=course,
        )

        console.print(f'🔍 Searching for: "{escape(text)}"\n')
        results = vector_index.query(text, k=k, filters=filters or None)

        if not results:
            console.print("No results found.")
            return

        console.print(f"Found {len(results)} results:\n")

        for i, result in enumerate(results, 1):
            metadata = result.metadata
            preview = preview_text(result.content, settings.retrieval.preview_length)

            console.print(f"[bold]{i}. {escape(metadata.lesson_title)}[/bold]")
            console.print(f"   Course: {escape(metadata.course_title)}")
            console.print(f"   Module: {escape(metadata.module_title)}")
            console.print(f"   Type: {metadata.chunk_type.value}")
            console.print(f"   Score: {result.score:.4f}")
            console.print(f"   Preview: {escape(preview)}")
            console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Help Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command("help")
def help_command(ctx: typer.Context):
    """
    ❓ Show this help message.
    """
    typer.echo(ctx.parent.get_help())

    console.print(Panel(
        "course-indexer\n"
        "course-indexer stats\n"
        'course-indexer search "langchain memory"\n'
        "course-indexer search embeddings --type code -k 3",
        title="Examples",
    ))


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
