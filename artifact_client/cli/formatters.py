"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from artifact_client.models.artifact import Artifact, IssuedToken, StorageUsage
from artifact_client.models.transfer import DownloadResult, UploadResult
from artifact_client.utils.formatting import format_size, format_timestamp, mask_token


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "TokenIssuanceError": [
            "• The service refused to issue a token.",
            "• Check the --allowed-cidr range against your address.",
            "• Check that --valid-from / --valid-to form a valid window.",
        ],
        "PresignedURLError": [
            "• The upload URL may be expired or already used up.",
            "• Ask whoever issued it for a new one.",
        ],
        "TransferError": [
            "• The object store rejected or dropped the transfer.",
            "• The presigned URL may have expired; try again.",
            "• Check your internet connection.",
        ],
        "TransferCancelled": ["• The transfer was cancelled before it finished."],
        "ArtifactNotFound": [
            "• Check the artifact UUID.",
            "• Run `artifact-client list` to see available artifacts.",
        ],
        "MetadataFetchError": [
            "• The artifact service could not be reached.",
            "• Check the configured base URL with `artifact-client --show-config`.",
        ],
        "ConfigurationError": [
            "• Run `artifact-client init <base-url>` to create a configuration.",
            "• Or set ARTIFACT_SERVICE_URL / pass --base-url.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    step = getattr(error, "step", None)
    if step is not None:
        context = {**(context or {}), "failed step": step.value}

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim]empty[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_upload_result(console: Console, result: UploadResult) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()
    table.add_row("UUID:", f"[bold green]{result.uuid}[/bold green]")
    table.add_row("Filename:", result.filename)
    table.add_row("Size:", format_size(result.size))
    table.add_row("Content Type:", result.content_type)
    if result.token:
        table.add_row("Token:", f"[dim]{mask_token(result.token)}[/dim]")

    completion = result.completion
    if completion and completion.acknowledged:
        table.add_row("Completion:", "[green]✓ Acknowledged[/green]")
    else:
        table.add_row(
            "Completion:",
            "[yellow]⚠ Not acknowledged (the service will reconcile it)[/yellow]",
        )

    console.print(
        Panel(table, title="[bold green]✓ Upload Complete[/bold green]", expand=False)
    )


def print_download_result(console: Console, result: DownloadResult) -> None:
    where = f" to [cyan]{result.path}[/cyan]" if result.path else ""
    console.print(
        f"[green]✓ Downloaded {format_size(result.size)}{where}.[/green]"
    )


def print_token(console: Console, issued: IssuedToken) -> None:
    """Displays a token and the URL to hand to whoever performs the transfer."""
    label = "Upload URL" if issued.scope.value == "upload" else "Download URL"
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()
    table.add_row("Token:", issued.token)
    table.add_row(f"{label}:", f"[bold]{issued.url}[/bold]")
    console.print(
        Panel(
            table,
            title=f"[bold green]✓ {issued.scope.value.title()} Token[/bold green]",
            expand=False,
        )
    )


def print_artifact(console: Console, artifact: Artifact) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()
    table.add_row("UUID:", artifact.uuid)
    table.add_row("Filename:", artifact.filename)
    table.add_row("Size:", format_size(artifact.size))
    table.add_row("Content Type:", artifact.content_type)
    table.add_row("Status:", artifact.status or "-")
    table.add_row("Created:", format_timestamp(artifact.created_at))
    console.print(Panel(table, title="Artifact", border_style="cyan", expand=False))


def print_artifacts_table(console: Console, artifacts: list[Artifact]) -> None:
    if not artifacts:
        console.print("[dim]No artifacts stored yet.[/dim]")
        return

    table = Table(title=f"Artifacts ({len(artifacts)})")
    table.add_column("UUID", style="dim", no_wrap=True)
    table.add_column("Filename", style="cyan")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Type")
    table.add_column("Created", style="dim")
    for artifact in artifacts:
        table.add_row(
            artifact.uuid,
            artifact.filename,
            format_size(artifact.size),
            artifact.content_type,
            format_timestamp(artifact.created_at),
        )
    console.print(table)


def print_storage_usage(console: Console, usage: StorageUsage) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    color = "green"
    if usage.usage_percent >= 90:
        color = "red"
    elif usage.usage_percent >= 75:
        color = "yellow"

    table.add_row("Used:", f"[{color}]{format_size(usage.used_space)}[/{color}]")
    table.add_row("Remaining:", format_size(usage.remaining_space))
    table.add_row("Total:", format_size(usage.total_space))
    table.add_row("Usage:", f"[{color}]{usage.usage_percent:.1f}%[/{color}]")
    table.add_row("Files:", str(usage.file_count))
    console.print(
        Panel(table, title="Storage Usage", border_style="cyan", expand=False)
    )
