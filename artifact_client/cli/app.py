"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import contextlib
import logging
import signal
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from artifact_client import __version__
from artifact_client.core.orchestrator import TransferOrchestrator
from artifact_client.exceptions import (
    ArtifactClientError,
    ArtifactNotFound,
    TransferCancelled,
)
from artifact_client.models.artifact import TokenConstraints
from artifact_client.storage.config_manager import ConfigManager, get_config_dir

from .formatters import (
    format_error_with_suggestions,
    print_artifact,
    print_artifacts_table,
    print_config,
    print_download_result,
    print_storage_usage,
    print_token,
    print_upload_result,
)
from .interrupts import InterruptHandler
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("artifact_client")

app = typer.Typer(
    name="artifact-client",
    help=(
        "Upload and download files through the artifact service's presigned URLs."
        " Use 'artifact-client <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
token_app = typer.Typer(help="Issue tokens for someone else to transfer with.")
app.add_typer(token_app, name="token")

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

T = TypeVar("T")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-u", help="Artifact service URL (overrides the config)."
    ),
):
    """Artifact Service Client"""
    if version:
        console.print(
            f"[bold]artifact-client[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("artifact_client").setLevel(log_level)

    ctx.obj = {"base_url": base_url}

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]artifact-client init"
                "[/cyan] first."
            )
            raise typer.Exit(code=1)
        config = ConfigManager(CONFIG_FILE).load_config({"base_url": base_url})
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _build_constraints(
    max_uses: int,
    valid_from: Optional[datetime],
    valid_to: Optional[datetime],
    allowed_cidr: Optional[str],
) -> TokenConstraints:
    try:
        return TokenConstraints(
            max_uses=max_uses,
            valid_from=valid_from,
            valid_to=valid_to,
            allowed_cidr=allowed_cidr,
        )
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise typer.BadParameter(errors) from e


def _run(
    ctx: typer.Context,
    action: Callable[[TransferOrchestrator, InterruptHandler], Awaitable[T]],
) -> T:
    """
    Loads the configuration and runs one async action against the service.

    Ctrl-C aborts an in-flight transfer through its cancel token and cancels
    the command at any other point. Application errors are rendered as a panel
    and exit with code 1; interrupts exit with code 130.
    """

    async def _main() -> T:
        interrupt = InterruptHandler(asyncio.current_task())
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, interrupt)

        try:
            config = ConfigManager(CONFIG_FILE).load_config(
                {"base_url": (ctx.obj or {}).get("base_url")}
            )
            orchestrator = TransferOrchestrator.from_config(config)
            try:
                return await action(orchestrator, interrupt)
            finally:
                await orchestrator.close()
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)

    try:
        return asyncio.run(_main())
    except (asyncio.CancelledError, TransferCancelled) as e:
        console.print("[yellow]⚠️  Operation cancelled by user.[/yellow]")
        raise typer.Exit(code=130) from e
    except ArtifactClientError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def init(
    base_url: str = typer.Argument(..., help="Base URL of the artifact service."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Initialize configuration with the artifact service URL."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config({"base_url": base_url})
    except ArtifactClientError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print("Ready! Try: [cyan]artifact-client upload <FILE>[/cyan]")


@app.command()
def upload(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    max_uploads: int = typer.Option(
        1, "--max-uploads", min=1, help="Uploads allowed with the issued token."
    ),
    valid_from: Optional[datetime] = typer.Option(
        None, "--valid-from", help="When the token becomes valid."
    ),
    valid_to: Optional[datetime] = typer.Option(
        None, "--valid-to", help="When the token expires."
    ),
    allowed_cidr: Optional[str] = typer.Option(
        None, "--allowed-cidr", help="Restrict the token to a network, e.g. 10.0.0.0/8."
    ),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", "-t", help="Declared content type (guessed if omitted)."
    ),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="File name to record (defaults to the local name)."
    ),
):
    """Upload a file, issuing the upload token automatically."""
    constraints = _build_constraints(max_uploads, valid_from, valid_to, allowed_cidr)

    async def _upload(
        orchestrator: TransferOrchestrator, interrupt: InterruptHandler
    ):
        with ProgressManager(console, file.name) as progress:
            return await orchestrator.upload_file(
                file,
                constraints,
                filename=name,
                content_type=content_type,
                on_progress=progress.on_progress,
                cancel_token=interrupt.cancel_token,
                on_state=interrupt.track(progress.on_state),
            )

    print_upload_result(console, _run(ctx, _upload))


@app.command(name="upload-url")
def upload_url(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Upload URL issued by 'token upload'."),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    content_type: Optional[str] = typer.Option(None, "--content-type", "-t"),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
):
    """Upload a file using an upload URL someone else issued."""

    async def _upload(
        orchestrator: TransferOrchestrator, interrupt: InterruptHandler
    ):
        with ProgressManager(console, file.name) as progress:
            return await orchestrator.upload_with_token_url(
                url,
                file,
                filename=name,
                content_type=content_type,
                on_progress=progress.on_progress,
                cancel_token=interrupt.cancel_token,
                on_state=interrupt.track(progress.on_state),
            )

    print_upload_result(console, _run(ctx, _upload))


@app.command()
def download(
    ctx: typer.Context,
    artifact_uuid: str = typer.Argument(..., metavar="UUID"),
    destination: Path = typer.Argument(
        Path("."), help="Output file or directory (default: current directory)."
    ),
    max_downloads: int = typer.Option(
        1, "--max-downloads", min=1, help="Downloads allowed with the issued token."
    ),
    valid_from: Optional[datetime] = typer.Option(None, "--valid-from"),
    valid_to: Optional[datetime] = typer.Option(None, "--valid-to"),
    allowed_cidr: Optional[str] = typer.Option(None, "--allowed-cidr"),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="File name inside a directory destination."
    ),
):
    """Download an artifact, issuing the download token automatically."""
    constraints = _build_constraints(max_downloads, valid_from, valid_to, allowed_cidr)

    async def _download(
        orchestrator: TransferOrchestrator, interrupt: InterruptHandler
    ):
        filename = name
        if filename is None and destination.is_dir():
            try:
                artifact = await orchestrator.get_artifact_metadata(artifact_uuid)
                filename = artifact.filename or None
            except ArtifactClientError as e:
                # An unknown artifact fails the command; other lookup errors
                # only cost the recorded file name.
                if isinstance(e, ArtifactNotFound):
                    raise
                log.warning(f"[yellow]Could not look up the file name: {e}[/yellow]")

        with ProgressManager(console, filename or artifact_uuid) as progress:
            return await orchestrator.download_file(
                artifact_uuid,
                constraints,
                destination=destination,
                filename=filename,
                on_progress=progress.on_progress,
                cancel_token=interrupt.cancel_token,
                on_state=interrupt.track(progress.on_state),
            )

    print_download_result(console, _run(ctx, _download))


@app.command(name="download-url")
def download_url(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Download URL issued by 'token download'."),
    destination: Path = typer.Argument(Path(".")),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
):
    """Download using a presigned URL someone else issued."""

    async def _download(
        orchestrator: TransferOrchestrator, interrupt: InterruptHandler
    ):
        with ProgressManager(console, name or "download") as progress:
            return await orchestrator.download_with_token_url(
                url,
                destination=destination,
                filename=name,
                on_progress=progress.on_progress,
                cancel_token=interrupt.cancel_token,
                on_state=interrupt.track(progress.on_state),
            )

    print_download_result(console, _run(ctx, _download))


@token_app.command(name="upload")
def token_upload(
    ctx: typer.Context,
    max_uploads: int = typer.Option(1, "--max-uploads", min=1),
    valid_from: Optional[datetime] = typer.Option(None, "--valid-from"),
    valid_to: Optional[datetime] = typer.Option(None, "--valid-to"),
    allowed_cidr: Optional[str] = typer.Option(None, "--allowed-cidr"),
):
    """Issue an upload token and print the URL to hand out."""
    constraints = _build_constraints(max_uploads, valid_from, valid_to, allowed_cidr)

    async def _issue(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.create_upload_token(constraints)

    print_token(console, _run(ctx, _issue))


@token_app.command(name="download")
def token_download(
    ctx: typer.Context,
    artifact_uuid: str = typer.Argument(..., metavar="UUID"),
    max_downloads: int = typer.Option(1, "--max-downloads", min=1),
    valid_from: Optional[datetime] = typer.Option(None, "--valid-from"),
    valid_to: Optional[datetime] = typer.Option(None, "--valid-to"),
    allowed_cidr: Optional[str] = typer.Option(None, "--allowed-cidr"),
):
    """Issue a download token and print the URL to hand out."""
    constraints = _build_constraints(max_downloads, valid_from, valid_to, allowed_cidr)

    async def _issue(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.create_download_token(artifact_uuid, constraints)

    print_token(console, _run(ctx, _issue))


@app.command()
def info(ctx: typer.Context, artifact_uuid: str = typer.Argument(..., metavar="UUID")):
    """Show the metadata of one artifact."""

    async def _info(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.get_artifact_metadata(artifact_uuid)

    print_artifact(console, _run(ctx, _info))


@app.command(name="list")
def list_command(ctx: typer.Context):
    """List all artifacts."""

    async def _list(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.list_artifacts()

    print_artifacts_table(console, _run(ctx, _list))


@app.command()
def delete(
    ctx: typer.Context,
    artifact_uuid: str = typer.Argument(..., metavar="UUID"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete an artifact and its stored file."""
    if not force and not typer.confirm(
        f"Delete artifact {artifact_uuid}? This cannot be undone."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _delete(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.delete_artifact(artifact_uuid)

    _run(ctx, _delete)
    console.print(f"[green]✓ Artifact {artifact_uuid} deleted.[/green]")


@app.command()
def usage(ctx: typer.Context):
    """Show storage usage of the artifact service."""

    async def _usage(
        orchestrator: TransferOrchestrator, _interrupt: InterruptHandler
    ):
        return await orchestrator.storage_usage()

    print_storage_usage(console, _run(ctx, _usage))
