"""CLI entry point for pkgscan."""

import asyncio
import json
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.pipeline import ScanPipeline, parse_manifest
from pkgscan.config import ScanSettings
from pkgscan.exceptions import ConfigError, InvalidManifestError, ScanInternalError
from pkgscan.models.schemas import Manifest, ScanResult

logger = logging.getLogger(__name__)

app = typer.Typer(help="Static security scanner for package.json manifests.")

console = Console()

# Largest manifest accepted for scanning
MAX_MANIFEST_BYTES = 1024 * 1024

# Exit codes
EXIT_CLEAN = 0
EXIT_INVALID_INPUT = 1
EXIT_INTERNAL_ERROR = 2
EXIT_ISSUES_FOUND = 3


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def load_manifest(path: Path) -> dict:
    """Read and parse a manifest file.

    Args:
        path: Path to a package.json file.

    Returns:
        The parsed JSON object.

    Raises:
        InvalidManifestError: If the file is unreadable, too large, or not a JSON object.
    """
    try:
        size = path.stat().st_size
    except OSError as e:
        raise InvalidManifestError(f"Cannot read {path}: {e.strerror}") from e

    if size > MAX_MANIFEST_BYTES:
        raise InvalidManifestError(f"{path} is larger than the {MAX_MANIFEST_BYTES // 1024} KiB limit")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidManifestError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidManifestError(f"Invalid JSON format in {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidManifestError(f"{path} does not contain a JSON object")
    return data


def get_settings(**overrides) -> ScanSettings:
    """Build settings from the environment, exiting on invalid values."""
    try:
        return ScanSettings.from_env(**overrides)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INVALID_INPUT)


@app.command()
def scan(
    manifest: Path = typer.Argument(..., help="Path to package.json"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    refresh_directory: bool = typer.Option(
        False,
        "--refresh-directory/--no-refresh-directory",
        help="Load the Deno module directory before scanning (bounded by --deadline)",
    ),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", help="Max registry requests in flight"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Per-request timeout in seconds"),
    deadline: float | None = typer.Option(None, "--deadline", help="Overall deadline for live checks"),
    no_zero_version_check: bool = typer.Option(
        False, "--no-zero-version-check", help="Don't flag npm packages with no published versions"
    ),
) -> None:
    """Scan a package.json for suspicious scripts and untrustworthy dependencies."""
    settings = get_settings(
        max_concurrency=concurrency,
        request_timeout=timeout,
        scan_deadline=deadline,
        check_zero_versions=False if no_zero_version_check else None,
    )

    # Reject bad input before any network access
    try:
        parsed = parse_manifest(load_manifest(manifest))
    except InvalidManifestError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INVALID_INPUT)

    try:
        result = asyncio.run(_scan(parsed, settings, refresh_directory, show_progress=not as_json))
    except InvalidManifestError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INVALID_INPUT)
    except ScanInternalError as e:
        console.print(f"[red]Scan failed: {e}[/red]")
        raise typer.Exit(EXIT_INTERNAL_ERROR)

    if as_json:
        typer.echo(json.dumps(result.model_dump(), indent=2))
    else:
        _print_result(manifest, result)

    raise typer.Exit(EXIT_CLEAN if result.clean else EXIT_ISSUES_FOUND)


async def _scan(
    manifest: Manifest,
    settings: ScanSettings,
    refresh_directory: bool,
    show_progress: bool,
) -> ScanResult:
    """Async implementation of scan."""
    async with ScanPipeline(settings) as pipeline:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            disable=not show_progress,
            transient=True,
        ) as progress:
            if refresh_directory:
                task = progress.add_task("Loading Deno module directory...", total=None)
                await _warm_directory(pipeline.directory, settings.scan_deadline)
                progress.update(task, description="Checking dependencies...")
            else:
                progress.add_task("Checking dependencies...", total=None)

            return await pipeline.scan(manifest)


async def _warm_directory(directory: KnownModuleDirectory, deadline: float) -> None:
    """Refresh the directory once, giving up after ``deadline`` seconds."""
    try:
        await asyncio.wait_for(directory.refresh(), timeout=deadline)
    except asyncio.TimeoutError:
        logger.warning(f"Deno module directory not loaded within {deadline}s; scanning without it")


def _print_result(manifest: Path, result: ScanResult) -> None:
    """Render a scan result as a table."""
    console.print()
    if result.clean:
        console.print(f"[bold green]{manifest}[/bold green]: no issues found")
        return

    table = Table(title=f"Issues in {manifest}")
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Issue", style="yellow")

    for i, issue in enumerate(result.issues, 1):
        table.add_row(str(i), issue)

    console.print(table)
    console.print(f"\n[bold red]{len(result.issues)} issue(s) found[/bold red]")


@app.command()
def modules(
    name: str | None = typer.Argument(None, help="Module name to look up"),
) -> None:
    """Load the Deno module directory and report its size or a name's membership."""
    asyncio.run(_modules(name, get_settings()))


async def _modules(name: str | None, settings: ScanSettings) -> None:
    """Async implementation of modules."""
    async with ScanPipeline(settings) as pipeline:
        directory: KnownModuleDirectory = pipeline.directory
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Fetching Deno module listing...", total=None)
            refreshed = await directory.refresh()

    if not refreshed:
        console.print(f"[red]Could not load the Deno module listing: {directory.last_error}[/red]")
        raise typer.Exit(EXIT_INTERNAL_ERROR)

    if name is None:
        console.print(f"[bold]{len(directory):,}[/bold] known Deno modules")
    elif directory.contains(name):
        console.print(f"[green]{name}[/green] is a known Deno module")
    else:
        console.print(f"[dim]{name}[/dim] is not in the Deno module listing")


@app.command()
def patterns() -> None:
    """Show the detection rule set."""
    from pkgscan.analyzers.patterns import (
        DENO_BLOCKLIST,
        NPM_BLOCKLIST,
        PATTERN_LIBRARY_VERSION,
        SCRIPT_INDICATORS,
    )

    table = Table(title=f"Pattern library {PATTERN_LIBRARY_VERSION}", show_header=False, box=None)
    table.add_column("Rule set", style="bold")
    table.add_column("Entries", justify="right")

    table.add_row("Script indicators", str(len(SCRIPT_INDICATORS)))
    table.add_row("npm blocklist", str(len(NPM_BLOCKLIST)))
    table.add_row("Deno blocklist", str(len(DENO_BLOCKLIST)))

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from pkgscan import __version__

    console.print(f"pkgscan v{__version__}")


if __name__ == "__main__":
    app()
