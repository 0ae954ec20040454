"""
Dataclasses for a single transfer call: its request and its results.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterable, Callable, Optional, Union

from artifact_client.exceptions import CompletionNotificationWarning

from .artifact import DEFAULT_CONTENT_TYPE

if TYPE_CHECKING:
    from artifact_client.transfer.cancellation import CancelToken

Payload = Union[bytes, bytearray, Path, AsyncIterable[bytes]]
ProgressSink = Callable[[int], None]


@dataclass
class TransferRequest:
    """Everything one executor upload needs. Owned by the caller for one call."""

    payload: Payload
    content_type: str = DEFAULT_CONTENT_TYPE
    size: Optional[int] = None
    on_progress: Optional[ProgressSink] = None
    cancel_token: Optional["CancelToken"] = None


@dataclass
class CompletionOutcome:
    """Result of a best-effort completion notification."""

    uuid: str
    acknowledged: bool
    body: Optional[dict] = None
    warning: Optional[CompletionNotificationWarning] = None


@dataclass
class UploadResult:
    """What a finished upload flow returns."""

    uuid: str
    filename: str
    size: Optional[int]
    content_type: str = DEFAULT_CONTENT_TYPE
    token: Optional[str] = field(default=None, repr=False)
    completion: Optional[CompletionOutcome] = None


@dataclass
class DownloadResult:
    """
    What a finished download flow returns.

    Exactly one of ``payload`` (in-memory download) or ``path`` (download
    written to disk) is set.
    """

    size: int
    content_type: Optional[str] = None
    payload: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None
