"""
HyperAPI command line interface.

Commands:
- generate: Synthesize and write DTO/mapper/service/controller modules
- resources: List the resources a scan finds
- serve: Run the API with uvicorn
- logs: Show recent log entries
- version: Print the installed version
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from hyperapi._version import __version__
from hyperapi.config import HyperApiSettings, load_settings
from hyperapi.errors import HyperApiError

app = typer.Typer(
    help="Declarative CRUD APIs for record types",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to hyperapi.toml (default: ./hyperapi.toml)"),
]
PackagesOption = Annotated[
    list[str] | None,
    typer.Option("--package", "-p", help="Package to scan (repeatable; overrides settings)"),
]


def _settings(config: Path | None, packages: list[str] | None = None) -> HyperApiSettings:
    try:
        settings = load_settings(config)
    except HyperApiError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if packages:
        settings = settings.model_copy(update={"scan_packages": packages})
    return settings


# =============================================================================
# Commands
# =============================================================================


@app.command()
def generate(
    config: ConfigOption = None,
    packages: PackagesOption = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output directory (overrides settings)"),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Synthesize without writing files")
    ] = False,
) -> None:
    """
    Generate DTO, mapper, service and controller modules.

    Every declared resource in the scanned packages is synthesized. A failing
    type is reported and the rest are still generated; the command exits
    non-zero when any type failed.

    Examples:
        hyperapi generate -p myapp.models
        hyperapi generate -p myapp.models -o ./generated
        hyperapi generate --dry-run
    """
    from hyperapi.codegen import ArtifactSynthesizer, write_bundle
    from hyperapi.runtime.registry import discover

    settings = _settings(config, packages)
    if not settings.scan_packages:
        typer.echo("Error: no packages to scan (use --package or scan_packages)", err=True)
        raise typer.Exit(code=1)

    try:
        record_types = discover(settings.scan_packages, persistable_only=False)
    except ImportError as e:
        typer.echo(f"Error: cannot import package: {e}", err=True)
        raise typer.Exit(code=1)

    synthesizer = ArtifactSynthesizer(settings.resources)
    result = synthesizer.synthesize_all(record_types)

    out_dir = output or settings.get_output_path(Path.cwd())
    if not dry_run:
        for bundle in result.bundles.values():
            write_bundle(bundle, out_dir, result)

    for name in sorted(result.bundles):
        typer.echo(typer.style(f"✓ {name}", fg=typer.colors.GREEN))
    for warning in result.warnings:
        typer.echo(typer.style(f"! {warning}", fg=typer.colors.YELLOW))
    for name in result.skipped:
        typer.echo(f"- {name} (skipped)")
    for error in result.errors:
        typer.echo(typer.style(f"✗ {error}", fg=typer.colors.RED), err=True)

    if dry_run:
        typer.echo("No files were written (dry run mode)")
    else:
        typer.echo(f"Wrote {len(result.files_created)} file(s) to {out_dir}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def resources(
    config: ConfigOption = None,
    packages: PackagesOption = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List registered resources."""
    from hyperapi.runtime.registry import EntityRegistry, ResourceConfigCache

    settings = _settings(config, packages)
    try:
        registry = EntityRegistry.scan(
            settings.scan_packages, ResourceConfigCache(settings.resources)
        )
    except (HyperApiError, ImportError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    rows = [
        {
            "resource": entry.resource_name,
            "path": entry.spec.base_path,
            "dto": entry.spec.dto_name,
            "disabled": sorted(v.value for v in entry.spec.disabled_verbs),
            "limit": entry.spec.pagination.default_limit,
            "max_limit": entry.spec.pagination.max_limit,
            "roles": list(entry.spec.security.roles_allowed),
            "require_auth": entry.spec.security.require_auth,
        }
        for entry in registry.entries()
    ]
    if output_json:
        typer.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        console.print("[yellow]No resources found[/yellow]")
        return

    table = Table(title="Resources")
    table.add_column("Resource", style="cyan")
    table.add_column("Path")
    table.add_column("DTO")
    table.add_column("Disabled")
    table.add_column("Page (default/max)")
    table.add_column("Security")
    for row in rows:
        if row["roles"]:
            security = ", ".join(row["roles"])
        else:
            security = "auth" if row["require_auth"] else "anonymous"
        table.add_row(
            row["resource"],
            row["path"],
            row["dto"],
            ", ".join(row["disabled"]) or "-",
            f"{row['limit']}/{row['max_limit']}",
            security,
        )
    console.print(table)


@app.command()
def serve(
    config: ConfigOption = None,
    packages: PackagesOption = None,
    host: Annotated[str, typer.Option("--host", help="Host to bind to")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port to bind to")] = 8000,
    generated: Annotated[
        bool,
        typer.Option(
            "--generated/--generic",
            help="Serve materialized per-resource routers instead of /api/{entity}",
        ),
    ] = False,
) -> None:
    """Run the API server."""
    from hyperapi.logging import setup_logging
    from hyperapi.runtime.app_factory import run_app

    settings = _settings(config, packages)
    setup_logging(settings.log_dir, settings.log_level)
    run_app(settings, host=host, port=port, mode="generated" if generated else "generic")


@app.command()
def logs(
    config: ConfigOption = None,
    count: Annotated[int, typer.Option("--count", "-n", help="Number of entries")] = 20,
    level: Annotated[
        str | None, typer.Option("--level", "-l", help="Only entries at this level")
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output raw JSONL")] = False,
) -> None:
    """Show recent log entries."""
    from hyperapi.logging import get_recent_logs

    settings = _settings(config)
    entries = get_recent_logs(count, level, settings.log_dir)
    if not entries:
        typer.echo(f"No log entries in {settings.log_dir}")
        return
    for entry in entries:
        if output_json:
            typer.echo(json.dumps(entry))
            continue
        request_id = entry.get("request_id")
        suffix = f" ({request_id})" if request_id else ""
        typer.echo(
            f"{entry.get('timestamp', '')} {entry.get('level', ''):8} "
            f"[{entry.get('component', '')}] {entry.get('message', '')}{suffix}"
        )


@app.command()
def version() -> None:
    """Print the HyperAPI version."""
    typer.echo(f"hyperapi {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
