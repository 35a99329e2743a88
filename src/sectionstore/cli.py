"""Command line interface for SectionStore."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from sectionstore.config import AppConfig
from sectionstore.errors import SectionStoreError
from sectionstore.models import DocumentRecord, TaskStatus, TocNode
from sectionstore.sections.edit import EditOperation
from sectionstore.sections.tree import build_toc, require_heading, section_text
from sectionstore.services import Services, build_services
from sectionstore.web.app import app as web_app, get_services

T = TypeVar("T")

console = Console()
app = typer.Typer(help="SectionStore - addressable markdown sections and task lists")

_STATUS_STYLES = {
    TaskStatus.PENDING: "yellow",
    TaskStatus.IN_PROGRESS: "cyan",
    TaskStatus.COMPLETED: "green",
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _services(root: Optional[Path]) -> Services:
    config = AppConfig(docs_root=root)
    return build_services(config, base_dir=Path.cwd())


def _run(operation: Awaitable[T]) -> T:
    try:
        return asyncio.run(operation)
    except SectionStoreError as exc:
        console.print(f"[red]{exc.code}[/red]: {exc.message}")
        for key, value in exc.context.items():
            console.print(f"  {key}: {value}")
        raise typer.Exit(1) from exc


def _add_toc(parent: Tree, nodes: list[TocNode]) -> None:
    for node in nodes:
        branch = parent.add(f"{node.title} [dim]#{node.slug}[/dim]")
        _add_toc(branch, node.children)


@app.command("list")
def list_documents(
    prefix: str = typer.Argument("/", help="Only list documents under this path"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List documents under the docs root."""
    _setup_logging(verbose)
    services = _services(root)
    documents = _run(services.documents.list_documents(prefix))
    if not documents:
        console.print("[yellow]No documents found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path")
    table.add_column("Title")
    table.add_column("Headings", justify="right")
    table.add_column("Namespace")
    for summary in documents:
        table.add_row(summary.path, summary.title, str(summary.heading_count), summary.namespace)
    console.print(table)


@app.command()
def view(
    path: str = typer.Argument(..., help="Document path, optionally with #section"),
    toc: bool = typer.Option(False, "--toc", help="Show the heading tree only"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Print a document, a single section, or a document's table of contents."""
    services = _services(root)

    async def load() -> tuple[DocumentRecord, Optional[str]]:
        address = services.documents.resolver.resolve(path)
        record = await services.documents.require_document(address.document_path)
        if address.section_slug is None:
            return record, None
        heading = require_heading(record.headings, address.section_slug, record.path)
        return record, section_text(record.content, heading)

    record, section = _run(load())
    if section is not None:
        console.print(section, markup=False, highlight=False)
        return
    if toc:
        tree = Tree(f"[bold]{record.title}[/bold] ({record.path})")
        _add_toc(tree, build_toc(record.headings))
        console.print(tree)
        return
    console.print(record.content, markup=False, highlight=False)


@app.command()
def edit(
    document: str = typer.Argument(..., help="Document path"),
    section: str = typer.Argument(..., help="Section slug or slug path"),
    content: str = typer.Option("", "--content", "-c", help="New content; '-' reads stdin"),
    operation: EditOperation = typer.Option(EditOperation.REPLACE, "--op", help="Edit operation"),
    title: Optional[str] = typer.Option(None, "--title", help="Heading title for inserts"),
    depth: Optional[int] = typer.Option(None, "--depth", min=1, max=6, help="Heading depth override"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Edit one section of a document."""
    _setup_logging(verbose)
    if content == "-":
        content = typer.get_text_stream("stdin").read()
    services = _services(root)
    result = _run(services.documents.edit_section(document, section, operation, content, title, depth))
    console.print(f"{operation.value}: [bold]#{result.slug}[/bold] (depth {result.depth})")
    if result.removed is not None:
        console.print(result.removed, markup=False, highlight=False)


@app.command()
def create(
    path: str = typer.Argument(..., help="New document path"),
    title: str = typer.Argument(..., help="Document title"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Create a new document with a title heading."""
    services = _services(root)
    record = _run(services.documents.create_document(path, title))
    console.print(f"Created [bold]{record.path}[/bold]")


@app.command()
def tasks(
    document: str = typer.Argument(..., help="Document path"),
    status: Optional[TaskStatus] = typer.Option(None, "--status", help="Only show tasks with this status"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Show the tasks of a document."""
    services = _services(root)
    listing = _run(services.tasks.list_tasks(document, status))
    if not listing.tasks:
        console.print("[yellow]No tasks found.[/yellow]")
    else:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Task")
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Completed")
        for task in listing.tasks:
            style = _STATUS_STYLES[task.status]
            table.add_row(
                task.slug, task.title, f"[{style}]{task.status.value}[/{style}]", task.completed_date or ""
            )
        console.print(table)

    summary: dict[str, Any] = listing.summary
    console.print(
        f"Total: {summary['total']}, pending: {summary['pending']}, "
        f"in progress: {summary['in_progress']}, completed: {summary['completed']}"
    )
    if listing.next_task is not None:
        console.print(f"Next: [bold]{listing.next_task.slug}[/bold] {listing.next_task.title}")


@app.command()
def start(
    document: str = typer.Argument(..., help="Document path"),
    task: Optional[str] = typer.Option(None, "--task", "-t", help="Task slug; defaults to the next task"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Mark a task as in progress."""
    services = _services(root)
    record = _run(services.tasks.start_task(document, task))
    console.print(f"Started [bold]{record.slug}[/bold]")


@app.command()
def complete(
    document: str = typer.Argument(..., help="Document path"),
    note: str = typer.Option(..., "--note", "-n", help="Completion note"),
    task: Optional[str] = typer.Option(None, "--task", "-t", help="Task slug; defaults to the next task"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Complete a task and report what comes next."""
    _setup_logging(verbose)
    services = _services(root)
    result = _run(services.workflow.complete(document, note, task=task))
    console.print(f"Completed [bold]{result['completed_task']['slug']}[/bold]")
    if result.get("archived"):
        console.print(f"All tasks complete, archived to [bold]{result['archived_to']}[/bold]")
    elif result.get("next_task"):
        console.print(f"Next: [bold]{result['next_task']['slug']}[/bold] {result['next_task']['title']}")
    else:
        console.print("[green]No tasks left.[/green]")


@app.command()
def archive(
    path: str = typer.Argument(..., help="Document or folder path"),
    audit: bool = typer.Option(False, "--audit", help="Write an audit sidecar next to the archive"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Move a document or folder into the archive."""
    _setup_logging(verbose)
    services = _services(root)
    record = _run(services.archiver.archive(path, audit=audit or services.config.archive_audit))
    console.print(f"Archived {record.original_path} -> [bold]{record.archive_path}[/bold]")
    if record.audit_path:
        console.print(f"Audit: {record.audit_path}")


@app.command()
def recover(
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Finish or report archive moves that were interrupted."""
    services = _services(root)
    results = _run(services.archiver.recover())
    if not results:
        console.print("No interrupted archives found.")
        return
    for result in results:
        console.print(f"{result.action}: {result.original_path or result.marker} -> {result.archive_path}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    root: Path = typer.Option(None, "--root", help="Docs root directory"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    services = _services(root)
    web_app.dependency_overrides[get_services] = lambda: services
    console.print(f"Starting API on http://{host}:{port} (docs root: {services.root})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
