"""
The transfer protocol state machine.
"""

import logging
from enum import Enum
from typing import Callable, Optional

log = logging.getLogger(__name__)


class TransferState(str, Enum):
    """States of one upload or download call."""

    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    TOKEN_ISSUED = "token_issued"
    URL_EXCHANGE_REQUESTED = "url_exchange_requested"
    URL_ISSUED = "url_issued"
    TRANSFERRING = "transferring"
    TRANSFERRED = "transferred"
    NOTIFYING_COMPLETION = "notifying_completion"
    DONE = "done"
    FAILED = "failed"


class TransferDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


TERMINAL_STATES = frozenset({TransferState.DONE, TransferState.FAILED})

# FAILED is reachable from every non-terminal state and is handled separately.
_TRANSITIONS = {
    TransferState.IDLE: {
        TransferState.TOKEN_REQUESTED,
        TransferState.URL_EXCHANGE_REQUESTED,
    },
    TransferState.TOKEN_REQUESTED: {TransferState.TOKEN_ISSUED},
    TransferState.TOKEN_ISSUED: {TransferState.URL_EXCHANGE_REQUESTED},
    TransferState.URL_EXCHANGE_REQUESTED: {TransferState.URL_ISSUED},
    TransferState.URL_ISSUED: {TransferState.TRANSFERRING},
    TransferState.TRANSFERRING: {TransferState.TRANSFERRED},
    TransferState.TRANSFERRED: {
        TransferState.NOTIFYING_COMPLETION,
        TransferState.DONE,
    },
    TransferState.NOTIFYING_COMPLETION: {TransferState.DONE},
}

StateListener = Callable[[TransferState], None]


class InvalidTransition(RuntimeError):
    """Raised when the orchestrator tries to skip or reorder protocol steps."""


class TransferFlow:
    """
    Tracks one transfer call through the protocol.

    Build it with ``self_service()`` (the client issues its own token) or
    ``delegated()`` (the caller already holds a token URL). Both share every
    step after the URL exchange. Steps run strictly in order; any error moves
    the flow to FAILED and records where it happened.
    """

    def __init__(
        self,
        direction: TransferDirection,
        delegated: bool,
        listener: Optional[StateListener] = None,
    ):
        self.direction = direction
        self.delegated = delegated
        self.state = TransferState.IDLE
        self.history: list[TransferState] = [TransferState.IDLE]
        self.failed_at: Optional[TransferState] = None
        self.error: Optional[BaseException] = None
        self._listener = listener

    @classmethod
    def self_service(
        cls, direction: TransferDirection, listener: Optional[StateListener] = None
    ) -> "TransferFlow":
        flow = cls(direction, delegated=False, listener=listener)
        flow.advance(TransferState.TOKEN_REQUESTED)
        return flow

    @classmethod
    def delegated(
        cls, direction: TransferDirection, listener: Optional[StateListener] = None
    ) -> "TransferFlow":
        flow = cls(direction, delegated=True, listener=listener)
        flow.advance(TransferState.URL_EXCHANGE_REQUESTED)
        return flow

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _enter(self, state: TransferState) -> None:
        self.state = state
        self.history.append(state)
        log.debug(f"{self.direction.value} flow -> {state.value}")
        if self._listener:
            self._listener(state)

    def advance(self, state: TransferState) -> None:
        """Moves to the next protocol state."""
        allowed = _TRANSITIONS.get(self.state, set())
        if state not in allowed:
            raise InvalidTransition(
                f"Cannot move {self.direction.value} flow from "
                f"{self.state.value} to {state.value}"
            )
        if state is TransferState.NOTIFYING_COMPLETION and (
            self.direction is not TransferDirection.UPLOAD
        ):
            raise InvalidTransition("Only uploads notify completion.")
        if (
            self.state is TransferState.TRANSFERRED
            and state is TransferState.DONE
            and self.direction is TransferDirection.UPLOAD
        ):
            raise InvalidTransition("Uploads must notify completion before finishing.")
        self._enter(state)

    def fail(self, error: BaseException) -> None:
        """Moves to FAILED, remembering the state the error happened in."""
        if self.is_terminal:
            return
        self.failed_at = self.state
        self.error = error
        self._enter(TransferState.FAILED)
