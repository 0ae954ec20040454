"""
Performs the direct byte transfers against presigned object-store URLs,
with progress reporting and cancellation.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, Optional

import aiofiles
import aiohttp

from artifact_client.api.client import ArtifactAPIClient
from artifact_client.exceptions import TransferCancelled, TransferError
from artifact_client.models.transfer import (
    DownloadResult,
    Payload,
    ProgressSink,
    TransferRequest,
)

from .sink import FileSink

if TYPE_CHECKING:
    from .cancellation import CancelToken

log = logging.getLogger(__name__)


class ProgressTracker:
    """
    Turns byte counts into percentages for a progress sink.

    Reports only when the total is known, and only when the integer
    percentage grows, so a sink sees a non-decreasing sequence within [0, 100].
    """

    def __init__(self, total: Optional[int], sink: Optional[ProgressSink]):
        self.total = total
        self.sink = sink
        self.transferred = 0
        self._last_reported = -1

    @property
    def enabled(self) -> bool:
        return self.sink is not None and self.total is not None

    def _report(self, percent: int) -> None:
        if percent > self._last_reported:
            self._last_reported = percent
            self.sink(percent)

    def advance(self, nbytes: int) -> None:
        self.transferred += nbytes
        if self.enabled and self.total > 0:
            self._report(min(100, self.transferred * 100 // self.total))

    def finish(self) -> None:
        """Marks an empty transfer of known size as complete."""
        if self.enabled and self.total == 0:
            self._report(100)


async def payload_size(payload: Payload) -> Optional[int]:
    """Returns the payload's size when it can be known without consuming it."""
    if isinstance(payload, (bytes, bytearray)):
        return len(payload)
    if isinstance(payload, Path):
        stat = await asyncio.to_thread(payload.stat)
        return stat.st_size
    return None


class TransferExecutor:
    """
    Moves bytes to and from presigned URLs.

    Talks to the object store directly through the API client's connection
    pool. Holds no per-transfer state: the progress and cancellation wiring of
    each call lives in that call.
    """

    def __init__(self, api_client: ArtifactAPIClient):
        self._api_client = api_client
        self.chunk_size = api_client.config.chunk_size

    async def _iter_payload(
        self, payload: Payload, tracker: ProgressTracker
    ) -> AsyncIterator[bytes]:
        """Yields the payload in chunks, counting each chunk once it is consumed."""
        if isinstance(payload, (bytes, bytearray)):
            for offset in range(0, len(payload), self.chunk_size):
                chunk = bytes(payload[offset : offset + self.chunk_size])
                yield chunk
                tracker.advance(len(chunk))
        elif isinstance(payload, Path):
            async with aiofiles.open(payload, "rb") as f:
                while chunk := await f.read(self.chunk_size):
                    yield chunk
                    tracker.advance(len(chunk))
        else:
            async for chunk in payload:
                yield chunk
                tracker.advance(len(chunk))

    @staticmethod
    async def _run_cancellable(
        transfer_coro: Awaitable, cancel_token: Optional["CancelToken"]
    ):
        """
        Runs a transfer while watching its cancel token.

        Whichever finishes first wins. If the transfer completed, its result is
        returned even when the token fires in the same loop iteration.

        Raises:
            TransferCancelled: The token fired before the transfer completed.
        """
        if cancel_token is None:
            return await transfer_coro

        transfer = asyncio.ensure_future(transfer_coro)
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {transfer, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not transfer.done():
                transfer.cancel()

        if transfer in done:
            return transfer.result()

        # Let the aborted request unwind its connection before reporting.
        results = await asyncio.gather(transfer, return_exceptions=True)
        if not isinstance(results[0], asyncio.CancelledError):
            log.debug(f"Aborted transfer ended with: {results[0]!r}")
        raise TransferCancelled(cancel_token.reason or "Transfer cancelled")

    async def upload(self, presigned_url: str, request: TransferRequest) -> None:
        """
        Streams a payload to a presigned URL with ``PUT``.

        Raises:
            TransferCancelled: The request's cancel token fired first.
            TransferError: The store answered with a non-2xx status or the
                connection failed.
        """
        cancel_token = request.cancel_token
        if cancel_token is not None and cancel_token.cancelled:
            raise TransferCancelled(cancel_token.reason or "Transfer cancelled")

        size = request.size
        if size is None:
            size = await payload_size(request.payload)
        tracker = ProgressTracker(size, request.on_progress)

        headers = {"Content-Type": request.content_type}
        if size is not None:
            headers["Content-Length"] = str(size)

        await self._run_cancellable(
            self._put(presigned_url, request.payload, headers, tracker), cancel_token
        )
        tracker.finish()
        log.debug(f"Uploaded {tracker.transferred} bytes to storage")

    async def _put(
        self,
        url: str,
        payload: Payload,
        headers: dict,
        tracker: ProgressTracker,
    ) -> None:
        session = await self._api_client.get_session()
        try:
            async with session.put(
                url,
                data=self._iter_payload(payload, tracker),
                headers=headers,
                timeout=self._api_client.transfer_timeout,
            ) as r:
                if not 200 <= r.status < 300:
                    detail = await ArtifactAPIClient.error_detail(r)
                    raise TransferError(
                        f"Storage upload failed: {detail}", status=r.status
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransferError(
                f"Storage upload failed: {e or type(e).__name__}"
            ) from e

    async def download(
        self,
        presigned_url: str,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional["CancelToken"] = None,
    ) -> DownloadResult:
        """
        Fetches a presigned URL into memory, following redirects.

        Raises:
            TransferCancelled: The cancel token fired first.
            TransferError: Non-2xx final status or a connection failure.
        """
        buffer = bytearray()

        async def write(chunk: bytes) -> None:
            buffer.extend(chunk)

        size, content_type = await self._fetch(
            presigned_url, write, on_progress, cancel_token
        )
        return DownloadResult(
            size=size, content_type=content_type, payload=bytes(buffer)
        )

    async def download_to_file(
        self,
        presigned_url: str,
        path: Path,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional["CancelToken"] = None,
    ) -> DownloadResult:
        """Fetches a presigned URL straight to ``path``."""
        async with FileSink(path) as sink:
            size, content_type = await self._fetch(
                presigned_url, sink.write, on_progress, cancel_token
            )
        return DownloadResult(size=size, content_type=content_type, path=path)

    async def _fetch(
        self,
        url: str,
        write: Callable[[bytes], Awaitable[None]],
        on_progress: Optional[ProgressSink],
        cancel_token: Optional["CancelToken"],
    ) -> tuple[int, Optional[str]]:
        if cancel_token is not None and cancel_token.cancelled:
            raise TransferCancelled(cancel_token.reason or "Transfer cancelled")
        return await self._run_cancellable(
            self._get(url, write, on_progress), cancel_token
        )

    async def _get(
        self,
        url: str,
        write: Callable[[bytes], Awaitable[None]],
        on_progress: Optional[ProgressSink],
    ) -> tuple[int, Optional[str]]:
        session = await self._api_client.get_session()
        try:
            async with session.get(
                url, allow_redirects=True, timeout=self._api_client.transfer_timeout
            ) as r:
                if not 200 <= r.status < 300:
                    detail = await ArtifactAPIClient.error_detail(r)
                    raise TransferError(f"Download failed: {detail}", status=r.status)
                if r.history:
                    log.debug(f"Followed {len(r.history)} redirect(s) to storage")

                tracker = ProgressTracker(r.content_length, on_progress)
                async for chunk in r.content.iter_chunked(self.chunk_size):
                    await write(chunk)
                    tracker.advance(len(chunk))
                tracker.finish()
                return tracker.transferred, r.content_type
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransferError(f"Download failed: {e or type(e).__name__}") from e
