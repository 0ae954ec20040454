"""
Data Models Layer.

This package contains Pydantic models and dataclasses that define the core data
structures used throughout the application, such as configuration, artifacts and
transfer results.
"""

from .artifact import (
    Artifact,
    FileDescriptor,
    IssuedToken,
    PresignedUpload,
    StorageUsage,
    TokenConstraints,
    TokenScope,
)
from .config import ClientConfig
from .transfer import CompletionOutcome, DownloadResult, TransferRequest, UploadResult

__all__ = [
    "Artifact",
    "ClientConfig",
    "CompletionOutcome",
    "DownloadResult",
    "FileDescriptor",
    "IssuedToken",
    "PresignedUpload",
    "StorageUsage",
    "TokenConstraints",
    "TokenScope",
    "TransferRequest",
    "UploadResult",
]
