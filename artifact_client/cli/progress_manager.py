"""
Manages a Rich progress display for a single upload or download, fed by the
transfer's progress sink and state listener.
"""

import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from artifact_client.core.flow import TransferState

log = logging.getLogger("artifact_client")

STATE_LABELS = {
    TransferState.TOKEN_REQUESTED: "Requesting token",
    TransferState.TOKEN_ISSUED: "Token issued",
    TransferState.URL_EXCHANGE_REQUESTED: "Requesting presigned URL",
    TransferState.URL_ISSUED: "Presigned URL issued",
    TransferState.TRANSFERRING: "Transferring",
    TransferState.TRANSFERRED: "Transferred",
    TransferState.NOTIFYING_COMPLETION: "Notifying completion",
    TransferState.DONE: "Done",
    TransferState.FAILED: "Failed",
}


class ProgressManager:
    """
    Shows one progress bar for one transfer.

    ``on_progress`` and ``on_state`` are handed to the orchestrator as the
    progress sink and state listener.
    """

    def __init__(self, console: Console, label: str):
        self.console = console
        self.label = label
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None

    def _describe(self, state_label: str) -> str:
        return f"[bold]{self.label}[/bold] [dim]{state_label}[/dim]"

    def on_progress(self, percent: int) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=percent)

    def on_state(self, state: TransferState) -> None:
        label = STATE_LABELS.get(state, state.value)
        if self._task_id is not None:
            self.progress.update(self._task_id, description=self._describe(label))
        log.debug(f"{self.label}: {label}")

    def __enter__(self) -> "ProgressManager":
        self._task_id = self.progress.add_task(self._describe("Starting"), total=100)
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()
