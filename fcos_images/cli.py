"""Thin CLI wrapper for fcos_images.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from fcos_images import __version__
from fcos_images.config import Settings, get_settings, print_settings_json
from fcos_images.errors import ImageCacheError
from fcos_images.types import Stream

app = typer.Typer(
    name="fcos-images",
    help="Fedora CoreOS image cache - fetch, verify and cache CoreOS disk images",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"fcos-images version {__version__}")
        raise typer.Exit()


def _fail(message: str) -> typer.Exit:
    """Print a single error line and return the exit to raise."""
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    return typer.Exit(code=1)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        raise _fail(f"Invalid configuration: {e}") from None


def _print_json(data: Any) -> None:
    console.print(
        json.dumps(data, indent=2), soft_wrap=True, markup=False, highlight=False
    )


def _configure_output(settings: Settings) -> None:
    console.no_color = settings.no_color
    err_console.no_color = settings.no_color
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Fedora CoreOS image cache - fetch, verify and cache CoreOS disk images."""
    _configure_output(_load_settings())


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = _load_settings()
    if json_output:
        console.print(
            print_settings_json(settings), soft_wrap=True, markup=False, highlight=False
        )
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Cache directory:     {settings.cache_dir}")
        console.print()
        console.print("[bold]Remote:[/bold]")
        console.print(f"  Base URL:            {settings.base_url}")
        console.print(f"  Keyring URL:         {settings.keyring_url}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  No color:            {settings.no_color}")
        console.print(f"  Lock cache entries:  {settings.lock_entries}")
        console.print(f"  gpgv:                {settings.gpgv_path}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Download timeout:    {settings.download_timeout}")
        console.print(f"  Metadata timeout:    {settings.metadata_timeout}")


@app.command("list-available")
def list_available(
    stream: Annotated[
        Stream, typer.Argument(help="Release stream")
    ] = Stream.STABLE,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List architecture, image type and format combinations of a stream."""
    from fcos_images.cache.fetch import make_http_client
    from fcos_images.streams.catalog import Catalog
    from fcos_images.streams.metadata import MetadataClient

    settings = _load_settings()
    try:
        with make_http_client(settings.download_timeout) as client:
            catalog = Catalog(
                MetadataClient(client, settings.base_url, settings.metadata_timeout)
            )
            entries = catalog.list_available(stream)
    except ImageCacheError as e:
        raise _fail(str(e)) from None

    if json_output:
        _print_json(
            [
                {
                    "architecture": e.architecture,
                    "image_type": e.image_type,
                    "image_format": e.image_format,
                }
                for e in entries
            ]
        )
    else:
        for e in entries:
            console.print(
                f"{e.architecture} {e.image_type} {e.image_format}",
                markup=False,
                highlight=False,
            )


@app.command("check-latest")
def check_latest(
    stream: Annotated[
        Stream, typer.Argument(help="Release stream")
    ] = Stream.STABLE,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the current version of a stream."""
    from fcos_images.cache.fetch import make_http_client
    from fcos_images.streams.catalog import Catalog
    from fcos_images.streams.metadata import MetadataClient

    settings = _load_settings()
    try:
        with make_http_client(settings.download_timeout) as client:
            catalog = Catalog(
                MetadataClient(client, settings.base_url, settings.metadata_timeout)
            )
            version = catalog.check_latest(stream)
    except ImageCacheError as e:
        raise _fail(str(e)) from None

    if json_output:
        _print_json({"stream": stream.value, "version": version})
    else:
        console.print(version, markup=False, highlight=False)


@app.command()
def download(
    stream: Annotated[Stream, typer.Argument(help="Release stream")],
    version: Annotated[str, typer.Argument(help="Build version or 'latest'")],
    architecture: Annotated[
        str, typer.Argument(help="CPU architecture (e.g., x86_64)")
    ],
    image_type: Annotated[str, typer.Argument(help="Image type (e.g., qemu)")],
    image_format: Annotated[str, typer.Argument(help="Image format (e.g., qcow2.xz)")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Download, verify and cache a CoreOS image."""
    from fcos_images.cache.fetch import make_http_client
    from fcos_images.pipeline import DownloadPipeline

    settings = _load_settings()

    def report(message: str) -> None:
        if not json_output:
            console.print(f"[blue]{escape(message)}[/blue]")

    try:
        with make_http_client(settings.download_timeout) as client:
            pipeline = DownloadPipeline(settings, client, report=report)
            result = pipeline.run(
                stream, version, architecture, image_type, image_format
            )
    except ImageCacheError as e:
        raise _fail(str(e)) from None

    if json_output:
        _print_json(
            {
                "stream": result.identity.stream.value,
                "version": result.identity.version,
                "architecture": result.identity.architecture,
                "image_type": result.identity.image_type,
                "image_format": result.identity.image_format,
                "directory": str(result.directory),
                "artifact": str(result.artifact_path),
                "sha256": result.sha256,
                "fetched": result.fetched,
                "derived": result.derived,
            }
        )
    else:
        name = escape(result.artifact_path.name)
        console.print(f"[green]✓ Verified {name}[/green]")
        console.print(
            str(result.artifact_path), markup=False, highlight=False, soft_wrap=True
        )


@app.command("list-downloads")
def list_downloads(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List images already present in the cache."""
    from fcos_images.cache.layout import CacheLayout

    settings = _load_settings()
    entries = list(CacheLayout(settings.cache_dir).iter_entries())

    if json_output:
        _print_json(
            [
                {
                    "stream": e.stream,
                    "version": e.version,
                    "architecture": e.architecture,
                    "image_type": e.image_type,
                    "directory": str(e.directory),
                    "artifacts": e.artifacts,
                }
                for e in entries
            ]
        )
        return

    if not entries:
        console.print("[yellow]No downloads found[/yellow]")
        return

    console.print(f"[bold]Downloads in {escape(str(settings.cache_dir))}:[/bold]")
    for e in entries:
        for artifact in e.artifacts or ["(no artifact)"]:
            console.print(
                f"  {e.stream} {e.version} {e.architecture} {e.image_type} {artifact}",
                markup=False,
                highlight=False,
                soft_wrap=True,
            )


__all__ = ["app"]
