"""
Requests scoped, constrained access tokens from the artifact service.
"""

import logging
from typing import TYPE_CHECKING, Optional

from artifact_client.exceptions import TokenIssuanceError
from artifact_client.models.artifact import IssuedToken, TokenConstraints, TokenScope

if TYPE_CHECKING:
    from .client import ArtifactAPIClient

log = logging.getLogger(__name__)


class TokenService:
    """
    Issues upload and download tokens through the artifact service.

    Tokens are opaque: they are forwarded, never inspected, and never cached.
    Every call asks the service for a fresh one.
    """

    UPLOAD_ENDPOINT = "/genUploadPresignedURL"
    DOWNLOAD_ENDPOINT = "/genDownloadPresignedURL"

    def __init__(self, api_client: "ArtifactAPIClient"):
        """
        Args:
            api_client: A reference to the main ArtifactAPIClient instance.
        """
        self._api_client = api_client

    async def request_token(
        self,
        scope: TokenScope,
        constraints: Optional[TokenConstraints] = None,
        artifact_uuid: Optional[str] = None,
    ) -> IssuedToken:
        """
        Requests a new token of the given scope.

        Args:
            scope: Whether the token authorizes an upload or a download.
            constraints: Usage limits; None means the documented defaults.
            artifact_uuid: The artifact to download. Required for download scope.

        Returns:
            The token with its follow-up URL (an upload initiation URL or a
            presigned download URL).

        Raises:
            ValueError: A download token was requested without an artifact id.
            TokenIssuanceError: The service refused or could not be reached.
        """
        constraints = constraints or TokenConstraints()
        payload = constraints.to_payload(scope)

        if scope is TokenScope.UPLOAD:
            endpoint, url_key = self.UPLOAD_ENDPOINT, "upload_url"
        else:
            if not artifact_uuid:
                raise ValueError("A download token requires an artifact UUID.")
            endpoint, url_key = self.DOWNLOAD_ENDPOINT, "presigned_url"
            payload["artifact_uuid"] = artifact_uuid

        log.debug(f"Requesting {scope.value} token (max uses: {constraints.max_uses})")
        body = await self._api_client.request_json(
            "POST",
            self._api_client.url_for(endpoint),
            TokenIssuanceError,
            action=f"generate {scope.value} token",
            payload=payload,
        )

        if not isinstance(body, dict) or not body.get("token") or not body.get(url_key):
            raise TokenIssuanceError(
                f"Failed to generate {scope.value} token: "
                f"response is missing 'token' or '{url_key}'"
            )

        log.debug(f"Issued {scope.value} token {body['token'][:8]}...")
        return IssuedToken(token=body["token"], scope=scope, url=body[url_key])
