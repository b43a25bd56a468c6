"""Typer-based CLI for TierFetch with Pydantic v2 configuration."""

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from TierFetch.cache.manager import FetchCacheManager
from TierFetch.config import (
    TierFetchConfig,
    export_config_schema,
    load_config,
    validate_config_file,
)
from TierFetch.fallback.integration import build_loader
from TierFetch.fallback.telemetry import InMemorySink
from TierFetch.fallback.types import LoaderResult
from TierFetch.logging_config import setup_logging

console = Console()
app = typer.Typer(help="TierFetch tiered capability acquisition")

# ============================================================================
# Setup
# ============================================================================


def _setup_logging(cfg: TierFetchConfig, verbose: bool) -> None:
    """Configure package logging from config; ``--verbose`` forces DEBUG."""
    setup_logging(
        "DEBUG" if verbose else cfg.logging.level,
        json_logs=cfg.logging.json_logs,
        log_file=cfg.logging.log_file,
    )


def _load(config: Optional[str], timeout_ms: Optional[int]) -> TierFetchConfig:
    cli_overrides: dict = {}
    if timeout_ms is not None:
        cli_overrides["per_source_timeout_ms"] = timeout_ms
    return load_config(path=config, cli_overrides=cli_overrides)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _attempts_table(sink: InMemorySink) -> Table:
    table = Table(title="Source Attempts")
    table.add_column("#", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("Outcome", style="yellow")
    table.add_column("Elapsed (ms)", justify="right")
    table.add_column("Detail", style="magenta")

    styles = {"success": "green", "failed": "red", "timeout": "yellow"}
    for event in sink.events:
        style = styles.get(event.outcome, "white")
        table.add_row(
            str(event.position + 1),
            event.source,
            f"[{style}]{event.outcome}[/{style}]",
            str(event.elapsed_ms),
            event.error or "",
        )
    return table


def _result_panel(result: LoaderResult) -> Panel:
    if result.success:
        status = "[bold green]✓ Acquired[/bold green]"
    else:
        status = "[bold yellow]⚠ Stub[/bold yellow]"
    return Panel(
        f"{status}\nSource used: {result.source_used}\nAttempts: {len(result.attempts)}",
        title="Acquisition",
    )


# ============================================================================
# Commands
# ============================================================================

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file",
    envvar="TIERFETCH_CONFIG",
)
TimeoutOption = typer.Option(None, "--timeout-ms", help="Override the per-source deadline")
VerboseOption = typer.Option(False, "-v", "--verbose", help="Verbose")


@app.command()
def plan(
    config: Optional[str] = ConfigOption,
    timeout_ms: Optional[int] = TimeoutOption,
) -> None:
    """Show the effective source order and budgets."""
    try:
        cfg = _load(config, timeout_ms)

        table = Table(title="Acquisition Plan")
        table.add_column("Order", style="cyan")
        table.add_column("Source", style="green")
        table.add_column("Kind", style="yellow")
        table.add_column("Location", style="magenta")
        table.add_column("Deadline (ms)", justify="right")

        for idx, source in enumerate(cfg.sources, 1):
            location = source.url if source.kind == "probe" else source.target
            if source.kind == "probe" and source.probe_path:
                location = f"{location} ({source.probe_path})"
            table.add_row(
                str(idx), source.id, source.kind, location or "", str(cfg.per_source_timeout_ms)
            )

        console.print(table)
        worst_case = cfg.per_source_timeout_ms * len(cfg.sources)
        console.print(
            f"\n[cyan]Sources: {len(cfg.sources)} | Worst case: {worst_case} ms | "
            f"Cache TTL: {cfg.cache.ttl_ms} ms | Config hash: {cfg.config_hash()[:8]}...[/cyan]"
        )
        if not cfg.sources:
            console.print("[yellow]No sources configured; acquisition will use the stub[/yellow]")

    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def acquire(
    config: Optional[str] = ConfigOption,
    timeout_ms: Optional[int] = TimeoutOption,
    verbose: bool = VerboseOption,
) -> None:
    """Run the source chain once and print every attempt."""
    try:
        cfg = _load(config, timeout_ms)
        _setup_logging(cfg, verbose)

        sink = InMemorySink()
        loader = build_loader(cfg, telemetry=sink)

        async def _run() -> LoaderResult:
            result = await loader.acquire()
            await result.capability.aclose()
            return result

        result = asyncio.run(_run())

        console.print(_attempts_table(sink))
        console.print(_result_panel(result))

    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        if verbose:
            raise
        raise typer.Exit(code=1)


@app.command()
def fetch(
    key: str = typer.Argument(..., help="Key or URL to fetch"),
    config: Optional[str] = ConfigOption,
    timeout_ms: Optional[int] = TimeoutOption,
    repeat: int = typer.Option(1, "--repeat", "-n", min=1, help="Fetch the key N times"),
    verbose: bool = VerboseOption,
) -> None:
    """Acquire a capability, fetch KEY through it and print the data."""
    try:
        cfg = _load(config, timeout_ms)
        _setup_logging(cfg, verbose)

        loader = build_loader(cfg)

        async def _run() -> tuple:
            result = await loader.acquire()
            try:
                data = None
                for _ in range(repeat):
                    data = await result.capability.fetch(key)
            finally:
                await result.capability.aclose()
            return result, data

        result, data = asyncio.run(_run())

        console.print(_result_panel(result))
        typer.echo(json.dumps(_to_jsonable(data), indent=2, default=str))

        capability = result.capability
        if isinstance(capability, FetchCacheManager):
            stats = ", ".join(f"{k}={v}" for k, v in capability.stats.as_dict().items())
            console.print(f"[cyan]Cache: {stats}[/cyan]")

    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        if verbose:
            raise
        raise typer.Exit(code=1)


@app.command()
def validate_config(
    config: str = typer.Argument(..., help="Path to config file"),
) -> None:
    """Validate a config file."""
    try:
        validate_config_file(config)
        console.print("[green]✓ Config valid[/green]")
    except Exception as e:
        console.print(f"[red]✗ Invalid: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def schema(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save schema to file"),
) -> None:
    """Export JSON Schema for TierFetchConfig."""
    try:
        schema_data = export_config_schema()

        if output:
            output.write_text(json.dumps(schema_data, indent=2))
            console.print(f"[green]✓ Schema written to {output}[/green]")
        else:
            typer.echo(json.dumps(schema_data, indent=2))

    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
