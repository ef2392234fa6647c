"""healthgate CLI entry point."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="healthgate",
    help="healthgate — service health aggregator and gateway",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_registry(path: Path | None):
    """Load config and registry, exiting with status 1 on any config error."""
    import yaml

    from healthgate.config.loader import load_config
    from healthgate.errors import RegistryConfigError
    from healthgate.registry.registry import ServiceRegistry

    try:
        config = load_config(path=path)
        registry = ServiceRegistry.from_config(config)
    except (FileNotFoundError, yaml.YAMLError, RegistryConfigError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)
    return config, registry


@app.command()
def status(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthgate.yaml"),
    timeout_ms: int | None = typer.Option(None, "--timeout-ms", help="Per-probe timeout override"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each probe"),
) -> None:
    """Probe all registered services once and print their availability."""
    from healthgate.registry.aggregator import Aggregator

    _setup_logging(verbose)
    config, registry = _load_registry(path)
    aggregator = Aggregator(
        timeout_ms=timeout_ms or config.probe.timeout_ms,
        cycle_overhead_ms=config.probe.cycle_overhead_ms,
    )
    snapshot = asyncio.run(aggregator.run(registry))

    table = Table(title="Service Availability")
    table.add_column("Service", style="bold", no_wrap=True)
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Latency")
    table.add_column("Error")

    for r in snapshot.results:
        style = "green" if r.available else "red"
        latency = f"{r.latency_ms:.0f}ms" if r.latency_ms else "—"
        table.add_row(r.name, r.service.base_url, f"[{style}]{r.status}[/{style}]", latency, r.error or "")

    console.print(table)
    console.print(f"{snapshot.available_count}/{snapshot.total_count} services available")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(4000, help="Bind port"),
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthgate.yaml"),
    log_level: str = typer.Option("info", help="Log level for the server"),
) -> None:
    """Start the gateway API server."""
    import uvicorn

    from healthgate.config.loader import CONFIG_PATH_ENV

    _, registry = _load_registry(path)
    if path is not None:
        os.environ[CONFIG_PATH_ENV] = str(path)

    console.print(f"[bold]healthgate[/bold] starting on http://{host}:{port} with {len(registry)} service(s)")
    uvicorn.run(
        "healthgate.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
        log_level=log_level,
    )


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthgate.yaml"),
) -> None:
    """Validate configuration file."""
    from urllib.parse import urlparse

    import yaml

    from healthgate.config.loader import load_config
    from healthgate.errors import RegistryConfigError
    from healthgate.events.emitter import EVENT_TYPES

    errors: list[str] = []
    try:
        config = load_config(path=path)
        console.print("[green]✓[/green] YAML parses correctly")
        console.print("[green]✓[/green] Schema validation passes")
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    except yaml.YAMLError as exc:
        console.print(f"[red]✗ YAML parsing failed: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    except RegistryConfigError as exc:
        console.print(f"[red]✗ Validation failed: {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    if not config.services:
        errors.append("No services configured: the registry must not be empty")
    for entry in config.services:
        console.print(f"[green]✓[/green] Service '{entry.name}' URL is valid")

    warnings: list[str] = []
    for i, wh in enumerate(config.webhooks):
        parsed = urlparse(wh.url)
        if not parsed.scheme or not parsed.netloc:
            errors.append(f"Webhook {i}: invalid URL '{wh.url}'")
        for evt in wh.events:
            if evt != "*" and evt not in EVENT_TYPES:
                warnings.append(f"Webhook {i}: unrecognized event type '{evt}'")

    if not errors:
        if config.webhooks:
            console.print(f"[green]✓[/green] {len(config.webhooks)} webhook(s) configured")
        for w in warnings:
            console.print(f"[yellow]! {w}[/yellow]")
        console.print("\n[green bold]Configuration is valid.[/green bold]")
    else:
        for err in errors:
            console.print(f"[red]✗ {err}[/red]")
        console.print(f"\n[red bold]{len(errors)} validation error(s) found.[/red bold]")
        raise typer.Exit(1)


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthgate.yaml"),
) -> None:
    """Print resolved configuration."""
    import yaml

    from healthgate.config.loader import load_config
    from healthgate.errors import RegistryConfigError

    try:
        config = load_config(path=path)
    except (FileNotFoundError, yaml.YAMLError, RegistryConfigError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{config.gateway.name}[/bold] v{config.gateway.version}\n")

    console.print("[bold]Probing:[/bold]")
    console.print(f"  Timeout: {config.probe.timeout_ms}ms")
    console.print(f"  Cycle overhead: {config.probe.cycle_overhead_ms}ms")
    interval = config.probe.reprobe_interval
    console.print(f"  Re-probe interval: {f'{interval}s' if interval else 'disabled'}")
    console.print(f"  Schema policy: {config.schema_policy}\n")

    console.print("[bold]Services:[/bold]")
    for entry in config.services:
        console.print(f"  {entry.name} @ {entry.url}{entry.health_endpoint}")
        if entry.description:
            console.print(f"    {entry.description}")


def main() -> None:
    app()
