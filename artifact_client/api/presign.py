"""
Trades an upload initiation URL for a presigned object-store URL.
"""

import logging
from typing import TYPE_CHECKING

from artifact_client.exceptions import PresignedURLError
from artifact_client.models.artifact import FileDescriptor, PresignedUpload

if TYPE_CHECKING:
    from .client import ArtifactAPIClient

log = logging.getLogger(__name__)


class PresignedURLExchange:
    """
    Exchanges an initiation URL for a presigned upload URL.

    The initiation URL may come from our own TokenService or from another
    party that minted the token, so whoever holds it can upload without ever
    seeing the constraints it was issued with.
    """

    def __init__(self, api_client: "ArtifactAPIClient"):
        self._api_client = api_client

    async def exchange_for_upload(
        self, initiation_url: str, descriptor: FileDescriptor
    ) -> PresignedUpload:
        """
        Announces the file and obtains a URL scoped to exactly this upload.

        Returns:
            The presigned URL and the artifact identifier the service assigned.

        Raises:
            PresignedURLError: The service refused, could not be reached, or
                answered without a URL or identifier.
        """
        body = await self._api_client.request_json(
            "POST",
            initiation_url,
            PresignedURLError,
            action="get presigned URL",
            payload=descriptor.to_payload(),
        )

        if (
            not isinstance(body, dict)
            or not body.get("presigned_url")
            or not body.get("uuid")
        ):
            raise PresignedURLError(
                "Failed to get presigned URL: response is missing "
                "'presigned_url' or 'uuid'"
            )

        log.debug(f"Presigned upload URL issued for artifact {body['uuid']}")
        return PresignedUpload(presigned_url=body["presigned_url"], uuid=body["uuid"])
