"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from artifact_client.core.flow import TransferFlow, TransferState


class ArtifactClientError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        status: HTTP status of the failing call, or None for transport failures.
        step: The transfer state in which the error happened (set by the orchestrator).
        flow: The transfer flow that failed (set by the orchestrator).
    """

    def __init__(self, message: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.step: Optional["TransferState"] = None
        self.flow: Optional["TransferFlow"] = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is not None:
            return f"{message} (HTTP {self.status})"
        return message


class TokenIssuanceError(ArtifactClientError):
    """Raised when the service refuses to issue an upload or download token."""


class PresignedURLError(ArtifactClientError):
    """Raised when an initiation URL cannot be exchanged for a presigned upload URL."""


class TransferError(ArtifactClientError):
    """Raised when the direct byte transfer against the object store fails."""


class TransferCancelled(ArtifactClientError):
    """Raised when the caller cancelled an in-flight transfer."""


class MetadataFetchError(ArtifactClientError):
    """Raised when the artifact collection cannot be retrieved."""


class ArtifactNotFound(ArtifactClientError):
    """Raised when no artifact matches the requested identifier."""

    def __init__(self, uuid: str, status: Optional[int] = None):
        super().__init__(f"Artifact not found: {uuid}", status=status)
        self.uuid = uuid


class ArtifactServiceError(ArtifactClientError):
    """Raised when a management call (delete, storage usage) fails."""


class ConfigurationError(ArtifactClientError):
    """Raised for issues related to configuration loading or validation."""


class CompletionNotificationWarning(ArtifactClientError):
    """
    Describes a failed upload completion notification.

    Never raised by the upload flows: the service reconciles pending artifacts
    on its own, so the failure is returned as part of the completion outcome.
    """

    def __init__(
        self, uuid: str, reason: Any, status: Optional[int] = None
    ) -> None:
        super().__init__(
            f"Completion notification for {uuid} failed: {reason}", status=status
        )
        self.uuid = uuid
