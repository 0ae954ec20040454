"""
Artifact record endpoints: completion notification, metadata lookup and
management calls.
"""

import logging
from typing import TYPE_CHECKING, List

from pydantic import ValidationError

from artifact_client.exceptions import (
    ArtifactClientError,
    ArtifactNotFound,
    ArtifactServiceError,
    CompletionNotificationWarning,
    MetadataFetchError,
)
from artifact_client.models.artifact import Artifact, StorageUsage
from artifact_client.models.transfer import CompletionOutcome

if TYPE_CHECKING:
    from .client import ArtifactAPIClient

log = logging.getLogger(__name__)


class CompletionNotifier:
    """
    Tells the service that the bytes of an upload have landed.

    Best-effort: the service's background reconciliation marks pending
    artifacts complete on its own, so a failed notification is logged and
    reported in the outcome instead of being raised.
    """

    def __init__(self, api_client: "ArtifactAPIClient"):
        self._api_client = api_client

    async def notify(self, uuid: str) -> CompletionOutcome:
        url = self._api_client.url_for(
            f"{self._api_client.ARTIFACTS_PATH}{uuid}/complete"
        )
        try:
            body = await self._api_client.request_json(
                "POST", url, ArtifactServiceError, action="mark upload as complete"
            )
        except ArtifactClientError as e:
            reason = e.args[0] if e.args else type(e).__name__
            warning = CompletionNotificationWarning(uuid, reason, status=e.status)
            log.warning(
                f"[yellow]Upload completion notification failed for {uuid}; "
                f"the service will reconcile it: {e}[/yellow]"
            )
            return CompletionOutcome(uuid=uuid, acknowledged=False, warning=warning)

        log.debug(f"Completion of {uuid} acknowledged.")
        return CompletionOutcome(
            uuid=uuid,
            acknowledged=True,
            body=body if isinstance(body, dict) else None,
        )


class MetadataLookup:
    """Reads artifact records from the service."""

    def __init__(self, api_client: "ArtifactAPIClient"):
        self._api_client = api_client

    async def list_artifacts(self) -> List[Artifact]:
        """
        Fetches the whole artifact collection, in the order the service returns it.

        Raises:
            MetadataFetchError: On transport failure, a non-2xx status, or a body
                that is not a list of artifact records.
        """
        body = await self._api_client.request_json(
            "GET",
            self._api_client.url_for(self._api_client.ARTIFACTS_PATH),
            MetadataFetchError,
            action="fetch artifacts",
        )
        if body is None:
            return []
        if not isinstance(body, list):
            raise MetadataFetchError(
                "Failed to fetch artifacts: expected a list of artifact records"
            )
        try:
            return [Artifact.model_validate(item) for item in body]
        except ValidationError as e:
            raise MetadataFetchError(
                f"Failed to fetch artifacts: malformed artifact record: {e}"
            ) from e

    async def get_artifact(self, uuid: str) -> Artifact:
        """
        Resolves one artifact by identifier.

        The service has no single-record endpoint, so this scans the full
        collection.

        Raises:
            MetadataFetchError: The collection could not be fetched.
            ArtifactNotFound: No record carries this identifier.
        """
        artifacts = await self.list_artifacts()
        log.debug(f"Scanning {len(artifacts)} artifacts for {uuid}")
        for artifact in artifacts:
            if artifact.uuid == uuid:
                return artifact
        raise ArtifactNotFound(uuid)


class ArtifactAdmin:
    """Management endpoints of the service: deletion and storage usage."""

    def __init__(self, api_client: "ArtifactAPIClient"):
        self._api_client = api_client

    async def delete_artifact(self, uuid: str) -> dict:
        """
        Deletes an artifact's record and its stored bytes.

        Raises:
            ArtifactNotFound: The service has no such artifact.
            ArtifactServiceError: Any other failure.
        """
        url = self._api_client.url_for(f"{self._api_client.ARTIFACTS_PATH}{uuid}")
        try:
            body = await self._api_client.request_json(
                "DELETE", url, ArtifactServiceError, action=f"delete artifact {uuid}"
            )
        except ArtifactServiceError as e:
            if e.status == 404:
                raise ArtifactNotFound(uuid, status=404) from e
            raise
        log.info(f"Deleted artifact {uuid}")
        return body if isinstance(body, dict) else {}

    async def storage_usage(self) -> StorageUsage:
        body = await self._api_client.request_json(
            "GET",
            self._api_client.url_for(self._api_client.STORAGE_USAGE_PATH),
            ArtifactServiceError,
            action="fetch storage usage",
        )
        try:
            return StorageUsage.model_validate(body or {})
        except ValidationError as e:
            raise ArtifactServiceError(
                f"Failed to fetch storage usage: malformed response: {e}"
            ) from e
