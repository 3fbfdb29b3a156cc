"""CLI interface for ctxkb.

Typer-based command-line interface with Rich output formatting.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ctxkb import __version__
from ctxkb.app import build_embedder, build_services
from ctxkb.exceptions import CtxkbError, ExtractionError
from ctxkb.ingest import guess_media_type
from ctxkb.manifest import load_manifest, save_manifest
from ctxkb.store import check_health
from ctxkb.types import DocumentTags, IngestionStatus
from ctxkb.workspace import Workspace

if TYPE_CHECKING:
    from ctxkb.config import KbConfig

__all__ = ["app"]

app = typer.Typer(
    name="ctxkb",
    help="Contextual knowledge base: ingest PDFs and images, query them semantically.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

_state = {"verbose": False}


def _setup_logging(level: str) -> None:
    """Route all ctxkb logging through Rich at the configured level."""
    effective = "DEBUG" if _state["verbose"] else level.upper()
    logging.basicConfig(
        level=effective,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _open_workspace() -> tuple[Workspace, KbConfig]:
    """Locate the workspace and load its config, or exit with a hint."""
    ws = Workspace(Workspace.find_root() or Path.cwd())
    if not ws.is_initialized:
        console.print(
            "[yellow]No knowledge base found.[/yellow] Run [bold]ctxkb init[/bold] first."
        )
        raise typer.Exit(code=1)
    try:
        config = ws.load_config()
    except CtxkbError as e:
        console.print(f"[red]Failed to load config:[/red] {e}")
        raise typer.Exit(code=1) from e
    _setup_logging(config.logging.level)
    return ws, config


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Contextual knowledge base."""
    _state["verbose"] = verbose


@app.command()
def version() -> None:
    """Show ctxkb version."""
    console.print(f"ctxkb {__version__}")


@app.command()
def init() -> None:
    """Initialize a knowledge base in the current directory."""
    ws = Workspace()
    try:
        kb_dir = ws.init()
    except (CtxkbError, OSError) as e:
        console.print(f"[red]Failed to initialize knowledge base:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Initialized knowledge base[/green] at {kb_dir}")

    console.print("\nCreated:")
    console.print(f"  {ws.config_path}")
    console.print(f"  {ws.manifest_path}")
    console.print(f"  {ws.index_path}")

    console.print("\nNext steps:")
    console.print("  ctxkb ingest <file> --document-id ... --user-id ... --project-id ...")
    console.print("  ctxkb query <text>     Search ingested documents")


@app.command()
def status() -> None:
    """Show knowledge base status: documents by ingestion status, chunks."""
    ws = Workspace(Workspace.find_root() or Path.cwd())
    try:
        st = ws.status()
    except CtxkbError as e:
        console.print(f"[red]Failed to read status:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not st.initialized:
        console.print(
            "[yellow]No knowledge base found.[/yellow] Run [bold]ctxkb init[/bold] first."
        )
        raise typer.Exit(code=1)

    console.print(f"[bold]ctxkb knowledge base:[/bold] {st.root.name}")
    if st.config:
        console.print(f"  Collection: {st.config.store.collection_name}")
        console.print(
            f"  Embedding: {st.config.embedding.provider}/{st.config.embedding.model}"
            f" ({st.config.embedding.dimension} dims)"
        )

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Documents", str(st.document_count))
    for ingestion_status in IngestionStatus:
        table.add_row(
            f"  {ingestion_status.value}", str(st.by_status.get(ingestion_status, 0))
        )
    table.add_row("Chunks", str(st.chunk_count))
    console.print(table)

    if st.document_count == 0:
        console.print(
            "\n[dim]No documents ingested yet. "
            "Run [bold]ctxkb ingest <file>[/bold] to start.[/dim]"
        )


@app.command()
def ingest(
    path: Annotated[Path, typer.Argument(help="Stored PDF or image file")],
    document_id: Annotated[str, typer.Option("--document-id", "-d", help="Document ID")],
    user_id: Annotated[str, typer.Option("--user-id", "-u", help="Owning user ID")],
    project_id: Annotated[str, typer.Option("--project-id", "-p", help="Project ID")],
    filename: Annotated[
        str,
        typer.Option("--filename", "-f", help="Original filename (default: file name)"),
    ] = "",
    mime_type: Annotated[
        str,
        typer.Option("--mime-type", "-m", help="Media type (default: guessed from suffix)"),
    ] = "",
) -> None:
    """Ingest one document into the knowledge base."""
    ws, config = _open_workspace()

    file_path = path.resolve()
    if not file_path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)

    effective_mime = mime_type or guess_media_type(file_path)
    if not effective_mime:
        console.print(
            f"[yellow]Unsupported format:[/yellow] {file_path.name}. "
            "Pass --mime-type or use a PDF, PNG or JPEG file."
        )
        raise typer.Exit(code=1)

    tags = DocumentTags(
        document_id=document_id,
        user_id=user_id,
        project_id=project_id,
        filename=filename or file_path.name,
    )

    try:
        manifest = load_manifest(ws.manifest_path)
        manifest.mark_pending(document_id, str(file_path), effective_mime)
        save_manifest(manifest, ws.manifest_path)

        services = build_services(config, persist_path=ws.persist_path(config))
    except CtxkbError as e:
        console.print(f"[red]Failed to initialize pipeline:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"Ingesting [bold]{file_path.name}[/bold] ...")
    try:
        report = services.pipeline.ingest(file_path, effective_mime, tags)
    except CtxkbError as e:
        console.print(f"  [red]Error ingesting {file_path.name}:[/red] {e}")
        if isinstance(e, ExtractionError) and e.retryable:
            console.print("  [dim]Transient failure; retry later.[/dim]")
        console.print(f"  [dim]Document {document_id} remains pending.[/dim]")
        raise typer.Exit(code=1) from e

    try:
        manifest.mark_ingested(document_id, report.chunk_count)
        save_manifest(manifest, ws.manifest_path)
    except CtxkbError as e:
        console.print(f"[red]Ingested, but failed to record status:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        f"  [green]Ingested {file_path.name}[/green] "
        f"({report.page_count} pages, {report.chunk_count} chunks)"
    )


@app.command()
def query(
    text: Annotated[str, typer.Argument(help="Search query")],
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only search this project ID"),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-k", help="Number of results (1-20)"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw response payload"),
    ] = False,
) -> None:
    """Search ingested documents."""
    ws, config = _open_workspace()

    try:
        services = build_services(config, persist_path=ws.persist_path(config), create=False)
    except CtxkbError as e:
        if as_json:
            console.print_json(data={"error": True, "message": str(e)})
        else:
            console.print(f"[red]Knowledge base unavailable:[/red] {e}")
        raise typer.Exit(code=1) from e

    if as_json:
        payload: dict[str, object] = {"query": text}
        if project is not None:
            payload["project_name"] = project
        if limit is not None:
            payload["limit"] = limit
        result = services.query.handle_request(payload)
        console.print_json(data=result)
        if result.get("error"):
            raise typer.Exit(code=1)
        return

    try:
        response = services.query.query(text, project_name=project, limit=limit)
    except CtxkbError as e:
        console.print(f"[red]Query failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not response.results:
        console.print("[dim]No results.[/dim]")
        return

    table = Table(title=f"{response.result_count} result(s) for {text!r}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Document")
    table.add_column("Project")
    table.add_column("Text")
    for i, r in enumerate(response.results, start=1):
        snippet = " ".join(r.text.split())
        if len(snippet) > 120:
            snippet = snippet[:117] + "..."
        table.add_row(
            str(i),
            f"{r.relevance_score:.3f}",
            f"{r.metadata['filename']} ({r.metadata['document_id']})",
            str(r.metadata["project_id"]),
            snippet,
        )
    console.print(table)


@app.command()
def remove(
    document_id: Annotated[str, typer.Argument(help="Document ID to remove")],
) -> None:
    """Remove a document's chunks from the index."""
    ws, config = _open_workspace()

    try:
        manifest = load_manifest(ws.manifest_path)
        services = build_services(config, persist_path=ws.persist_path(config))
        count = services.pipeline.remove(document_id)
        removed = manifest.remove_document(document_id)
        save_manifest(manifest, ws.manifest_path)
    except CtxkbError as e:
        console.print(f"[red]Failed to remove {document_id}:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not removed and count == 0:
        console.print(f"[yellow]Document {document_id} not found.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]Removed {document_id}[/green] ({count} chunks)")


@app.command()
def health() -> None:
    """Check that the vector store is reachable and the collection is usable."""
    ws, config = _open_workspace()

    try:
        embedder = build_embedder(config)
    except CtxkbError as e:
        console.print(f"[red]Embedding provider unavailable:[/red] {e}")
        raise typer.Exit(code=1) from e

    st = check_health(config, embedder, persist_path=ws.persist_path(config))

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("check", style="dim")
    table.add_column("result", style="bold")
    table.add_row("Store reachable", _yes_no(st.reachable))
    table.add_row("Collection exists", _yes_no(st.collection_exists))
    table.add_row("Contract matches", _yes_no(st.contract_ok))
    table.add_row("Chunks", str(st.chunk_count))
    console.print(table)

    if st.message:
        style = "green" if st.ok else "yellow"
        console.print(f"[{style}]{st.message}[/{style}]")
    if not st.ok:
        raise typer.Exit(code=1)


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"
