"""
Artifact Service API Layer.

This package handles all communication with the artifact service's JSON API:
token issuance, presigned URL exchange, and artifact records.
"""

from .artifacts import ArtifactAdmin, CompletionNotifier, MetadataLookup
from .client import ArtifactAPIClient
from .presign import PresignedURLExchange
from .tokens import TokenService

__all__ = [
    "ArtifactAPIClient",
    "ArtifactAdmin",
    "CompletionNotifier",
    "MetadataLookup",
    "PresignedURLExchange",
    "TokenService",
]
