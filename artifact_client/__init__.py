"""
Client for the artifact service's token-gated upload and download protocol.
"""

__version__ = "0.1.0"

from artifact_client.core import TransferOrchestrator, TransferState
from artifact_client.models import ClientConfig, TokenConstraints
from artifact_client.transfer import CancelToken

__all__ = [
    "CancelToken",
    "ClientConfig",
    "TokenConstraints",
    "TransferOrchestrator",
    "TransferState",
    "__version__",
]
