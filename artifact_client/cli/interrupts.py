"""
Routes Ctrl-C to the running command.
"""

import asyncio
import logging
from typing import Optional

from artifact_client.core.flow import StateListener, TransferState
from artifact_client.transfer import CancelToken

log = logging.getLogger("artifact_client")

INTERRUPT_REASON = "Interrupted by user"


class InterruptHandler:
    """
    Decides what a Ctrl-C stops.

    While bytes are moving, the first interrupt fires the transfer's cancel
    token so the executor aborts the request and cleans up partial files. Any
    other interrupt, including a second one during a transfer, cancels the
    whole command task.
    """

    def __init__(self, task: asyncio.Task, cancel_token: Optional[CancelToken] = None):
        self.task = task
        self.cancel_token = cancel_token or CancelToken()
        self.transferring = False

    def track(self, listener: Optional[StateListener] = None) -> StateListener:
        """Wraps a state listener so the handler knows when a transfer is in flight."""

        def _on_state(state: TransferState) -> None:
            self.transferring = state is TransferState.TRANSFERRING
            if listener:
                listener(state)

        return _on_state

    def __call__(self) -> None:
        if self.transferring and not self.cancel_token.cancelled:
            log.debug("Interrupt received, cancelling the transfer.")
            self.cancel_token.cancel(INTERRUPT_REASON)
            return
        log.debug("Interrupt received, cancelling the command.")
        self.cancel_token.cancel(INTERRUPT_REASON)
        self.task.cancel()
