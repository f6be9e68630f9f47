"""Command line interface for Scriptorium."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scriptorium.config import AppConfig
from scriptorium.errors import DocumentError
from scriptorium.host import DocumentHost
from scriptorium.models import describe
from scriptorium.sources.storage import SQLiteSource
from scriptorium.utils.files import iter_document_paths, relative_name

console = Console()
app = typer.Typer(help="Scriptorium - cached, concurrently built documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _make_host(root: Optional[Path], db: Optional[Path], prepare: bool = False) -> DocumentHost:
    config = AppConfig(
        documents_path=root if root is not None else AppConfig().documents_path,
        db_path=db,
        prepare=prepare,
    )
    if config.db_path is not None:
        _ensure_db_parent(config.resolve_db_path(Path.cwd()))
    return DocumentHost.from_config(config, Path.cwd())


def _print_error(error: DocumentError) -> None:
    console.print(f"[red]{error.kind.value}[/red]: {escape(error.message)}", highlight=False)
    for frame in error.stack:
        console.print(f"  at {frame}", markup=False, highlight=False)


@app.command()
def run(
    name: str = typer.Argument(..., help="Name of the document to run"),
    root: Path = typer.Option(None, "--root", help="Documents directory"),
    db: Path = typer.Option(None, "--db", help="SQLite document store"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a document and print its output."""
    _setup_logging(verbose)
    host = _make_host(root, db)
    try:
        context = host.execute(name)
    except DocumentError as error:
        _print_error(error)
        raise typer.Exit(code=1) from error
    typer.echo(context.output, nl=False)


@app.command("list")
def list_documents(
    root: Path = typer.Option(None, "--root", help="Documents directory"),
    db: Path = typer.Option(None, "--db", help="SQLite document store"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the documents known to the source."""
    _setup_logging(verbose)
    host = _make_host(root, db)
    names = host.list_names()
    if not names:
        console.print("[yellow]No documents found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Language")
    for name in names:
        try:
            tag = host.resolve(name).tag
        except DocumentError as error:
            tag = f"? ({error.kind.value})"
        table.add_row(name, tag)
    console.print(table)


@app.command()
def defrost(
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, help="Worker threads"),
    prepare: bool = typer.Option(False, "--prepare", help="Also compile code objects"),
    root: Path = typer.Option(None, "--root", help="Documents directory"),
    db: Path = typer.Option(None, "--db", help="SQLite document store"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Build every document ahead of time and report failures."""
    _setup_logging(verbose)
    host = _make_host(root, db, prepare=prepare)
    try:
        defroster = host.defrost(concurrency, blocking=True)
    except KeyboardInterrupt:
        console.print("[yellow]Defrost interrupted.[/yellow]")
        raise typer.Exit(code=130)

    result = defroster.result()
    console.print(
        f"Built: {len(result.built)}, failed: {len(result.failures)}, total: {result.total}"
    )
    if not result.failures:
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Kind")
    table.add_column("Error")
    for failure in sorted(result.failures, key=lambda item: item.name):
        error = failure.error
        kind = error.kind.value if isinstance(error, DocumentError) else type(error).__name__
        table.add_row(escape(failure.name), kind, escape(str(error)))
    console.print(table)
    raise typer.Exit(code=1)


@app.command()
def load(
    paths: List[Path] = typer.Argument(..., help="Directories to import", resolve_path=True),
    db: Path = typer.Option(..., "--db", help="SQLite document store"),
    prune: bool = typer.Option(False, "--prune", help="Remove stored documents missing from the paths"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Import document files into a SQLite document store."""
    _setup_logging(verbose)
    config = AppConfig(db_path=db)
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    store = SQLiteSource(resolved_db)
    try:
        totals = {"inserted": 0, "updated": 0, "skipped": 0, "failed": 0}
        seen: set[str] = set()
        for path in paths:
            if not path.is_dir():
                console.print(f"[yellow]Not a directory, skipping: {path}[/yellow]")
                continue
            console.print(f"Loading [bold]{path}[/bold] into [bold]{resolved_db}[/bold]...")
            counts = store.load_paths(path, config.ignore_postfixes)
            for status, count in counts.items():
                totals[status] += count
            seen.update(
                relative_name(document, path.resolve())
                for document in iter_document_paths(path, config.ignore_postfixes)
            )
        console.print(
            f"Inserted: {totals['inserted']}, updated: {totals['updated']}, "
            f"skipped: {totals['skipped']}, failed: {totals['failed']}"
        )
        if prune:
            removed = store.remove_missing(seen)
            console.print(f"Removed {removed} documents missing from the paths.")
    finally:
        store.close()


@app.command()
def show(
    name: str = typer.Argument(..., help="Name of the document"),
    root: Path = typer.Option(None, "--root", help="Documents directory"),
    db: Path = typer.Option(None, "--db", help="SQLite document store"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Build a document and show its language and dependencies."""
    _setup_logging(verbose)
    host = _make_host(root, db)
    try:
        descriptor, _ = host.resolve_and_build(name)
    except DocumentError as error:
        _print_error(error)
        raise typer.Exit(code=1) from error
    info = describe(descriptor)
    console.print(f"[bold]{info['name']}[/bold] ({info['tag']})")
    for dependency in info["dependencies"]:
        console.print(f"  includes {dependency}", markup=False, highlight=False)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    root: Path = typer.Option(None, "--root", help="Documents directory"),
    db: Path = typer.Option(None, "--db", help="SQLite document store"),
) -> None:
    """Serve documents over HTTP."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from scriptorium.web.app import create_app

    document_host = _make_host(root, db)
    console.print(f"Serving {document_host.source!r} on http://{host}:{port}")
    uvicorn.run(
        create_app(document_host),
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
