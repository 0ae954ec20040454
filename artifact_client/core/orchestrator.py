"""
The main orchestrator for uploading and downloading artifacts through the
token-gated presigned URL protocol.
"""

import asyncio
import logging
import mimetypes
from contextlib import contextmanager
from pathlib import Path
from typing import AsyncIterable, Iterator, List, Optional, Tuple, Union

from artifact_client.api import (
    ArtifactAdmin,
    ArtifactAPIClient,
    CompletionNotifier,
    MetadataLookup,
    PresignedURLExchange,
    TokenService,
)
from artifact_client.exceptions import ArtifactClientError
from artifact_client.models.artifact import (
    Artifact,
    FileDescriptor,
    IssuedToken,
    StorageUsage,
    TokenConstraints,
    TokenScope,
)
from artifact_client.models.config import ClientConfig
from artifact_client.models.transfer import (
    CompletionOutcome,
    DownloadResult,
    Payload,
    ProgressSink,
    TransferRequest,
    UploadResult,
)
from artifact_client.transfer import CancelToken, TransferExecutor
from artifact_client.transfer.sink import resolve_destination

from .flow import StateListener, TransferDirection, TransferFlow, TransferState

log = logging.getLogger(__name__)

UploadSource = Union[str, Path, bytes, bytearray, AsyncIterable[bytes]]
Destination = Union[str, Path]


class TransferOrchestrator:
    """
    Runs the upload and download flows of the artifact service.

    Self-service flows (``upload_file``, ``download_file``) issue their own
    token first. Delegated flows (``upload_with_token_url``,
    ``download_with_token_url``) start from a URL someone else minted with
    ``create_upload_token`` or ``create_download_token``. Each call builds its
    own ``TransferFlow``, so calls can run concurrently on one orchestrator.
    """

    def __init__(self, api_client: ArtifactAPIClient):
        self.api_client = api_client
        self.tokens = TokenService(api_client)
        self.presign = PresignedURLExchange(api_client)
        self.executor = TransferExecutor(api_client)
        self.notifier = CompletionNotifier(api_client)
        self.metadata = MetadataLookup(api_client)
        self.admin = ArtifactAdmin(api_client)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "TransferOrchestrator":
        return cls(ArtifactAPIClient(config))

    async def close(self) -> None:
        await self.api_client.close()

    async def __aenter__(self) -> "TransferOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @contextmanager
    def _tracking(self, flow: TransferFlow) -> Iterator[None]:
        """Fails the flow on any error and tags the error with the failed step."""
        try:
            yield
        except (Exception, asyncio.CancelledError) as e:
            flow.fail(e)
            if isinstance(e, ArtifactClientError):
                e.step = flow.failed_at
                e.flow = flow
            log.debug(
                f"{flow.direction.value} flow failed at "
                f"{flow.failed_at.value if flow.failed_at else '?'}: {e!r}"
            )
            raise

    @staticmethod
    async def _describe(
        source: UploadSource,
        filename: Optional[str],
        content_type: Optional[str],
        size: Optional[int],
    ) -> Tuple[FileDescriptor, Payload]:
        """Builds the file descriptor announced to the service for a source."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            is_file = await asyncio.to_thread(path.is_file)
            if not is_file:
                raise FileNotFoundError(f"No such file: '{path}'")
            if size is None:
                size = (await asyncio.to_thread(path.stat)).st_size
            filename = filename or path.name
            content_type = content_type or mimetypes.guess_type(path.name)[0]
            payload: Payload = path
        else:
            if not filename:
                raise ValueError("A filename is required when uploading raw data.")
            if isinstance(source, (bytes, bytearray)) and size is None:
                size = len(source)
            payload = source
        descriptor = FileDescriptor(
            filename=filename, content_type=content_type, size=size
        )
        return descriptor, payload

    # Upload flows
    async def upload_file(
        self,
        source: UploadSource,
        options: Optional[TokenConstraints] = None,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        size: Optional[int] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancelToken] = None,
        on_state: Optional[StateListener] = None,
    ) -> UploadResult:
        """
        Uploads a file, issuing the upload token itself.

        Args:
            source: A file path, raw bytes, or an async iterable of bytes.
            options: Constraints for the upload token.
            filename: Name to record; defaults to the file name of a path source.
            content_type: Declared type; guessed for paths, otherwise
                application/octet-stream.
            size: Declared size; required for progress on async-iterable sources.
            on_progress: Called with the percentage sent.
            cancel_token: Aborts the byte transfer when cancelled.
            on_state: Called with each state the flow enters.

        Returns:
            The artifact identifier and file details. A failed completion
            notification is reported in ``result.completion.warning``.
        """
        descriptor, payload = await self._describe(
            source, filename, content_type, size
        )
        flow = TransferFlow.self_service(TransferDirection.UPLOAD, on_state)
        with self._tracking(flow):
            issued = await self.tokens.request_token(TokenScope.UPLOAD, options)
            flow.advance(TransferState.TOKEN_ISSUED)
            flow.advance(TransferState.URL_EXCHANGE_REQUESTED)
            return await self._upload_from(
                flow,
                issued.url,
                descriptor,
                payload,
                on_progress,
                cancel_token,
                token=issued.token,
            )

    async def upload_with_token_url(
        self,
        upload_url: str,
        source: UploadSource,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        size: Optional[int] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancelToken] = None,
        on_state: Optional[StateListener] = None,
    ) -> UploadResult:
        """Uploads a file through an initiation URL issued to someone else."""
        descriptor, payload = await self._describe(
            source, filename, content_type, size
        )
        flow = TransferFlow.delegated(TransferDirection.UPLOAD, on_state)
        with self._tracking(flow):
            return await self._upload_from(
                flow, upload_url, descriptor, payload, on_progress, cancel_token
            )

    async def _upload_from(
        self,
        flow: TransferFlow,
        initiation_url: str,
        descriptor: FileDescriptor,
        payload: Payload,
        on_progress: Optional[ProgressSink],
        cancel_token: Optional[CancelToken],
        token: Optional[str] = None,
    ) -> UploadResult:
        presigned = await self.presign.exchange_for_upload(initiation_url, descriptor)
        flow.advance(TransferState.URL_ISSUED)

        flow.advance(TransferState.TRANSFERRING)
        await self.executor.upload(
            presigned.presigned_url,
            TransferRequest(
                payload=payload,
                content_type=descriptor.content_type,
                size=descriptor.size,
                on_progress=on_progress,
                cancel_token=cancel_token,
            ),
        )
        flow.advance(TransferState.TRANSFERRED)

        flow.advance(TransferState.NOTIFYING_COMPLETION)
        completion = await self.notifier.notify(presigned.uuid)
        flow.advance(TransferState.DONE)

        log.info(f"Uploaded '{descriptor.filename}' as artifact {presigned.uuid}")
        return UploadResult(
            uuid=presigned.uuid,
            filename=descriptor.filename,
            size=descriptor.size,
            content_type=descriptor.content_type,
            token=token,
            completion=completion,
        )

    # Download flows
    async def download_file(
        self,
        artifact_uuid: str,
        options: Optional[TokenConstraints] = None,
        *,
        destination: Optional[Destination] = None,
        filename: Optional[str] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancelToken] = None,
        on_state: Optional[StateListener] = None,
    ) -> DownloadResult:
        """
        Downloads an artifact, issuing the download token itself.

        Without a destination the bytes are returned in ``result.payload``.
        With a directory destination the file is named ``filename`` or, failing
        that, the artifact identifier.
        """
        flow = TransferFlow.self_service(TransferDirection.DOWNLOAD, on_state)
        with self._tracking(flow):
            issued = await self.tokens.request_token(
                TokenScope.DOWNLOAD, options, artifact_uuid=artifact_uuid
            )
            flow.advance(TransferState.TOKEN_ISSUED)
            # The download token already carries its presigned URL.
            flow.advance(TransferState.URL_EXCHANGE_REQUESTED)
            return await self._download_from(
                flow,
                issued.url,
                destination,
                filename or artifact_uuid,
                on_progress,
                cancel_token,
            )

    async def download_with_token_url(
        self,
        presigned_url: str,
        *,
        destination: Optional[Destination] = None,
        filename: Optional[str] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancelToken] = None,
        on_state: Optional[StateListener] = None,
    ) -> DownloadResult:
        """Downloads through a presigned URL issued to someone else."""
        flow = TransferFlow.delegated(TransferDirection.DOWNLOAD, on_state)
        with self._tracking(flow):
            return await self._download_from(
                flow, presigned_url, destination, filename, on_progress, cancel_token
            )

    async def _download_from(
        self,
        flow: TransferFlow,
        presigned_url: str,
        destination: Optional[Destination],
        suggested_name: Optional[str],
        on_progress: Optional[ProgressSink],
        cancel_token: Optional[CancelToken],
    ) -> DownloadResult:
        flow.advance(TransferState.URL_ISSUED)

        flow.advance(TransferState.TRANSFERRING)
        if destination is None:
            result = await self.executor.download(
                presigned_url, on_progress, cancel_token
            )
        else:
            path = await asyncio.to_thread(
                resolve_destination, Path(destination), suggested_name
            )
            result = await self.executor.download_to_file(
                presigned_url, path, on_progress, cancel_token
            )
        flow.advance(TransferState.TRANSFERRED)
        flow.advance(TransferState.DONE)

        log.info(
            f"Downloaded {result.size} bytes"
            + (f" to '{result.path}'" if result.path else "")
        )
        return result

    # Token issuance for delegated flows
    async def create_upload_token(
        self, options: Optional[TokenConstraints] = None
    ) -> IssuedToken:
        """Mints an upload token whose initiation URL can be handed to another party."""
        return await self.tokens.request_token(TokenScope.UPLOAD, options)

    async def create_download_token(
        self, artifact_uuid: str, options: Optional[TokenConstraints] = None
    ) -> IssuedToken:
        """Mints a download token whose presigned URL can be handed to another party."""
        return await self.tokens.request_token(
            TokenScope.DOWNLOAD, options, artifact_uuid=artifact_uuid
        )

    # Artifact records
    async def complete_upload(self, artifact_uuid: str) -> CompletionOutcome:
        return await self.notifier.notify(artifact_uuid)

    async def get_artifact_metadata(self, artifact_uuid: str) -> Artifact:
        return await self.metadata.get_artifact(artifact_uuid)

    async def list_artifacts(self) -> List[Artifact]:
        return await self.metadata.list_artifacts()

    async def delete_artifact(self, artifact_uuid: str) -> dict:
        return await self.admin.delete_artifact(artifact_uuid)

    async def storage_usage(self) -> StorageUsage:
        return await self.admin.storage_usage()
