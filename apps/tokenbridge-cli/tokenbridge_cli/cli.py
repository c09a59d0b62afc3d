"""TokenBridge CLI commands."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from tokenbridge_core import (
    BatchExecutor,
    LocalFileSource,
    LocalSourceConfig,
    PreSyncValidator,
    ProcessingOptions,
    Settings,
    TokenFileInput,
    TokenProcessor,
    TokenResolver,
    default_registry,
    infer_collection_from_path,
    load_settings,
)
from tokenbridge_core.errors import TokenBridgeError
from tokenbridge_core.models import Token
from tokenbridge_core.yamlio import load_document
from tokenbridge_store import (
    DualRunValidator,
    FileKeyValueStore,
    InMemoryTargetSystem,
    StorageAdapter,
    import_documents_legacy,
    render_comparison,
    render_validation,
    sync_tokens,
)

app = typer.Typer(help="TokenBridge - ingest, store, and validate design tokens")
console = Console()

# Configure logging (default to WARNING, lowered with --debug)
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M",
)
logger = logging.getLogger(__name__)


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    level = logging.DEBUG if debug else logging.WARNING
    logging.getLogger().setLevel(level)
    logging.getLogger("tokenbridge_core").setLevel(level)
    logging.getLogger("tokenbridge_store").setLevel(level)


def _adapter(settings: Settings) -> StorageAdapter:
    store = FileKeyValueStore(settings.resolved_store_dir())
    return StorageAdapter(store, TokenProcessor(default_registry()))


def _fail(message: str, code: int = 2) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)


def _report_migration(adapter: StorageAdapter) -> None:
    m = adapter.last_migration
    if m is not None:
        console.print(
            f"[cyan]Migrated legacy record:[/cyan] {m.tokens_count} tokens from "
            f"{m.files_count} file(s), backup {m.backup_key}"
        )


async def _collect_inputs(path: Path, settings: Settings) -> list[TokenFileInput]:
    """Token documents from a single file or every document below a directory."""
    if path.is_file():
        return [TokenFileInput(document=load_document(path), file_path=path.name)]

    source = LocalFileSource(BatchExecutor(batch_size=settings.batch_size, delay=settings.batch_delay))
    config = LocalSourceConfig(root=path)
    listed = await source.fetch_file_list(config)
    if not listed.ok:
        raise TokenBridgeError(listed.message)
    paths = [e.path for e in listed.value or []]
    if not paths:
        raise TokenBridgeError(f"No token documents found under {path}")
    fetched = await source.fetch_multiple_files(config, paths)
    if not fetched.ok:
        raise TokenBridgeError(fetched.message)
    return [TokenFileInput(document=d.document, file_path=d.path) for d in fetched.value or []]


def _process(files: list[TokenFileInput], project: str, location: str) -> list[Token]:
    processor = TokenProcessor(default_registry())
    options = ProcessingOptions(project_id=project, source_type="local", source_location=location)
    result = processor.process_multiple_files(files, options)
    if not result.ok:
        raise TokenBridgeError(result.message)
    return result.value or []


@app.command()
def detect(
    path: Path = typer.Argument(..., help="Token document (JSON or YAML)"),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Score a document against every registered format."""
    try:
        document = load_document(path)
    except Exception as e:
        _fail(str(e))

    registry = default_registry()
    scores = registry.scores(document)
    strategy = registry.detect_format(document)
    detected = strategy.info.name if strategy else None

    if json_out:
        print(json.dumps({"detected": detected, "scores": scores}, indent=2))
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Format")
        table.add_column("Confidence", justify="right")
        for name, score in scores.items():
            style = "bold green" if name == detected else ""
            table.add_row(f"[{style}]{name}[/{style}]" if style else name, f"{score:.2f}")
        console.print(table)
        if detected:
            console.print(f"[green][OK][/green] Detected: [bold]{detected}[/bold]")
        else:
            console.print("[yellow]No format detected[/yellow]")

    if detected is None:
        raise typer.Exit(1)


@app.command()
def ingest(
    path: Path = typer.Argument(..., help="Token document or directory of documents"),
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Process without saving"),
):
    """Process token documents and merge them into the project's stored tokens."""
    settings = load_settings()
    try:
        files = asyncio.run(_collect_inputs(path, settings))
        tokens = _process(files, project, str(path))
    except Exception as e:
        _fail(str(e))

    counts: dict[str, int] = {}
    for t in tokens:
        counts[t.collection] = counts.get(t.collection, 0) + 1

    table = Table(show_header=True, header_style="bold")
    table.add_column("Collection")
    table.add_column("Tokens", justify="right")
    for name, n in counts.items():
        table.add_row(name, str(n))
    console.print(table)

    if dry_run:
        console.print(f"[cyan]Dry run:[/cyan] {len(tokens)} tokens from {len(files)} file(s), not saved")
        return

    adapter = _adapter(settings)
    merged = asyncio.run(adapter.ingest(project, tokens))
    if not merged.ok or merged.value is None:
        _fail(merged.message)
    _report_migration(adapter)
    stats = merged.value
    console.print(
        f"[green][OK][/green] Ingested {len(tokens)} tokens into [bold]{project}[/bold] "
        f"({stats.added} new, {stats.updated} updated, {stats.skipped} unchanged)"
    )


@app.command()
def show(
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON"),
    limit: int = typer.Option(50, "--limit", help="Maximum rows in table output"),
):
    """Show a project's stored tokens (migrating a legacy record if needed)."""
    settings = load_settings()
    adapter = _adapter(settings)
    loaded = asyncio.run(adapter.load(project))
    if not loaded.ok:
        _fail(loaded.message)
    tokens = loaded.value or []

    if not json_out:
        _report_migration(adapter)

    if json_out:
        print(json.dumps([t.to_record() for t in tokens], indent=2))
        return

    if not tokens:
        console.print("[yellow]No tokens stored[/yellow]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Collection")
    table.add_column("Value")
    for t in tokens[:limit]:
        value = f"-> {t.raw_value}" if t.is_alias else json.dumps(t.value, default=str)
        table.add_row(t.qualified_name, t.type.value, t.collection, value)
    console.print(table)
    if len(tokens) > limit:
        console.print(f"[dim]... and {len(tokens) - limit} more[/dim]")


@app.command()
def backups(
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
):
    """List migration backups for a project."""
    listed = asyncio.run(_adapter(load_settings()).list_backups(project))
    if not listed.ok:
        _fail(listed.message)
    stamps = listed.value or []
    if not stamps:
        console.print("[yellow]No backups[/yellow]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Timestamp")
    table.add_column("Created (UTC)")
    for ts in stamps:
        created = datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(str(ts), created)
    console.print(table)


@app.command()
def restore(
    timestamp: int = typer.Argument(..., help="Backup timestamp (epoch ms)"),
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
):
    """Copy a backup back into the live project record."""
    restored = asyncio.run(_adapter(load_settings()).restore_from_backup(project, timestamp))
    if not restored.ok:
        _fail(restored.message)
    console.print(f"[green][OK][/green] Restored {project} from backup {timestamp}")


@app.command()
def prune(
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
    days: int = typer.Option(14, "--days", help="Delete backups older than this many days"),
):
    """Delete old migration backups."""
    pruned = asyncio.run(_adapter(load_settings()).prune_backups(project, timedelta(days=days)))
    if not pruned.ok:
        _fail(pruned.message)
    console.print(f"[green][OK][/green] Removed {pruned.value} backup(s)")


@app.command()
def resolve(
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
    save: bool = typer.Option(False, "--save", help="Persist resolved values"),
):
    """Resolve alias chains and report cycles and dangling references."""
    settings = load_settings()
    adapter = _adapter(settings)
    loaded = asyncio.run(adapter.load(project))
    if not loaded.ok:
        _fail(loaded.message)
    tokens = loaded.value or []

    report = TokenResolver(tokens).resolve_all(project)
    console.print(f"Resolved aliases: [bold]{report.resolved}[/bold]")
    if report.dangling:
        console.print(f"[yellow]Dangling references:[/yellow] {len(report.dangling)}")
    if report.cross_project:
        console.print(f"[yellow]Cross-project references:[/yellow] {len(report.cross_project)}")
    by_id = {t.id: t for t in tokens}
    for cycle in report.cycles:
        names = " -> ".join(by_id[i].qualified_name if i in by_id else i for i in cycle)
        console.print(f"[red]Cycle:[/red] {names}")

    if save:
        saved = asyncio.run(adapter.save(project, tokens))
        if not saved.ok:
            _fail(saved.message)
        console.print(f"[green][OK][/green] Saved {len(tokens)} tokens")

    if not report.ok:
        raise typer.Exit(1)


@app.command()
def check(
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
):
    """Validate a project's tokens before syncing them to a target."""
    loaded = asyncio.run(_adapter(load_settings()).load(project))
    if not loaded.ok:
        _fail(loaded.message)
    tokens = loaded.value or []

    report = PreSyncValidator().validate(tokens, project)
    render_validation(report, console)
    if not report.valid:
        raise typer.Exit(1)


@app.command()
def compare(
    path: Path = typer.Argument(..., help="Token document or directory of documents"),
    project: str = typer.Option("default", "--project", "-p", help="Project id"),
    threshold: float | None = typer.Option(None, "--threshold", help="Override discrepancy threshold"),
):
    """Dual-run the legacy and current import pipelines and report differences."""
    settings = load_settings()
    flags = settings.flags
    if threshold is not None:
        flags = flags.model_copy(update={"discrepancy_threshold": threshold})

    async def legacy(target, files: list[TokenFileInput]):
        documents = [(infer_collection_from_path(f.file_path), f.document) for f in files]
        return await import_documents_legacy(target, documents)

    async def candidate(target, files: list[TokenFileInput]):
        return await sync_tokens(target, _process(files, project, str(path)))

    async def run():
        files = await _collect_inputs(path, settings)
        validator = DualRunValidator(InMemoryTargetSystem(), legacy, candidate, flags)
        return await validator.validate(files)

    try:
        result = asyncio.run(run())
    except Exception as e:
        _fail(str(e))
    if not result.ok or result.value is None:
        _fail(result.message)

    render_comparison(result.value, console)
    if result.value.exceeds_threshold:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
