"""
Core application engine for orchestrating transfers.

This package contains the primary logic. The `TransferOrchestrator` runs the
upload and download flows, stepping a `TransferFlow` state machine through
token issuance, URL exchange, byte transfer and completion notification.
"""

from .flow import TransferDirection, TransferFlow, TransferState
from .orchestrator import TransferOrchestrator

__all__ = ["TransferDirection", "TransferFlow", "TransferOrchestrator", "TransferState"]
