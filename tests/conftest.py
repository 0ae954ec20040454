"""Pytest configuration and fixtures.

``artifact_service`` runs an in-process fake of the artifact service and its
object store on aiohttp's test server. It records every request so tests can
assert which protocol steps actually went over the wire.
"""

import asyncio
import uuid as uuid_lib
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from artifact_client.api.client import ArtifactAPIClient
from artifact_client.core.orchestrator import TransferOrchestrator
from artifact_client.models.config import ClientConfig

pytest_plugins = ("pytest_asyncio",)


@dataclass
class FakeArtifactService:
    """State and failure knobs of the fake service."""

    base_url: str = ""
    calls: list[tuple[str, str]] = field(default_factory=list)
    token_requests: list[dict[str, Any]] = field(default_factory=list)
    exchange_requests: list[dict[str, Any]] = field(default_factory=list)
    put_headers: list[dict[str, str]] = field(default_factory=list)
    artifacts: dict[str, dict[str, Any]] = field(default_factory=dict)
    blobs: dict[str, bytes] = field(default_factory=dict)
    upload_tokens: set[str] = field(default_factory=set)
    download_tokens: dict[str, str] = field(default_factory=dict)

    next_uuid: Optional[str] = None
    token_error: Optional[tuple[int, str]] = None
    exchange_error: Optional[tuple[int, str]] = None
    exchange_body: Optional[dict[str, Any]] = None
    put_status: int = 200
    storage_get_status: int = 200
    complete_status: int = 200
    list_status: int = 200

    def called(self, method: str, prefix: str) -> bool:
        return any(m == method and p.startswith(prefix) for m, p in self.calls)

    def seed_artifact(
        self,
        data: bytes,
        filename: str = "seed.bin",
        content_type: str = "application/octet-stream",
        artifact_uuid: Optional[str] = None,
    ) -> str:
        artifact_uuid = artifact_uuid or str(uuid_lib.uuid4())
        self.artifacts[artifact_uuid] = {
            "uuid": artifact_uuid,
            "filename": filename,
            "content_type": content_type,
            "size": len(data),
            "status": "complete",
            "created_at": "2026-01-15T10:30:00Z",
        }
        self.blobs[artifact_uuid] = data
        return artifact_uuid

    def seed_download_url(self, artifact_uuid: str) -> str:
        """Mints a download token out of band, as an admin would."""
        token = str(uuid_lib.uuid4())
        self.download_tokens[token] = artifact_uuid
        return f"{self.base_url}/artifacts/{token}"

    def seed_upload_url(self) -> str:
        token = str(uuid_lib.uuid4())
        self.upload_tokens.add(token)
        return f"{self.base_url}/artifacts/upload/{token}"


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def build_app(state: FakeArtifactService) -> web.Application:
    @web.middleware
    async def record_calls(request: web.Request, handler):
        state.calls.append((request.method, request.path))
        return await handler(request)

    async def gen_upload(request: web.Request) -> web.Response:
        body = await request.json()
        state.token_requests.append(body)
        if state.token_error:
            return _error(*state.token_error)
        token = str(uuid_lib.uuid4())
        state.upload_tokens.add(token)
        return web.json_response(
            {"token": token, "upload_url": f"{state.base_url}/artifacts/upload/{token}"}
        )

    async def gen_download(request: web.Request) -> web.Response:
        body = await request.json()
        state.token_requests.append(body)
        if state.token_error:
            return _error(*state.token_error)
        if body.get("artifact_uuid") not in state.artifacts:
            return _error(400, "Artifact not found")
        token = str(uuid_lib.uuid4())
        state.download_tokens[token] = body["artifact_uuid"]
        return web.json_response(
            {"token": token, "presigned_url": f"{state.base_url}/artifacts/{token}"}
        )

    async def exchange(request: web.Request) -> web.Response:
        body = await request.json()
        state.exchange_requests.append(body)
        if state.exchange_error:
            return _error(*state.exchange_error)
        if request.match_info["token"] not in state.upload_tokens:
            return _error(404, "Invalid or expired token")
        if state.exchange_body is not None:
            return web.json_response(state.exchange_body)
        artifact_uuid = state.next_uuid or str(uuid_lib.uuid4())
        state.artifacts[artifact_uuid] = {
            "uuid": artifact_uuid,
            "filename": body["filename"],
            "content_type": body["content_type"],
            "size": body.get("size", 0),
            "status": "pending",
        }
        return web.json_response(
            {
                "presigned_url": f"{state.base_url}/storage/{artifact_uuid}",
                "uuid": artifact_uuid,
            }
        )

    async def storage_put(request: web.Request) -> web.Response:
        state.put_headers.append(dict(request.headers))
        data = await request.read()
        if state.put_status != 200:
            return web.Response(status=state.put_status, text="AccessDenied")
        state.blobs[request.match_info["uuid"]] = data
        return web.Response(status=200)

    async def storage_get(request: web.Request) -> web.Response:
        artifact_uuid = request.match_info["uuid"]
        if state.storage_get_status != 200:
            return web.Response(status=state.storage_get_status, text="AccessDenied")
        if artifact_uuid not in state.blobs:
            return web.Response(status=404, text="NoSuchKey")
        content_type = state.artifacts.get(artifact_uuid, {}).get(
            "content_type", "application/octet-stream"
        )
        return web.Response(body=state.blobs[artifact_uuid], content_type=content_type)

    async def download_with_token(request: web.Request) -> web.Response:
        artifact_uuid = state.download_tokens.get(request.match_info["token"])
        if artifact_uuid is None:
            return _error(404, "Invalid or expired token")
        raise web.HTTPFound(f"{state.base_url}/storage/{artifact_uuid}")

    async def complete(request: web.Request) -> web.Response:
        artifact_uuid = request.match_info["uuid"]
        if state.complete_status != 200:
            return _error(state.complete_status, "Failed to update status")
        if artifact_uuid not in state.artifacts:
            return _error(404, "Artifact not found")
        state.artifacts[artifact_uuid]["status"] = "complete"
        return web.json_response({"uuid": artifact_uuid, "status": "complete"})

    async def list_artifacts(request: web.Request) -> web.Response:
        if state.list_status != 200:
            return _error(state.list_status, "Failed to retrieve artifacts")
        return web.json_response(list(state.artifacts.values()))

    async def delete_artifact(request: web.Request) -> web.Response:
        artifact_uuid = request.match_info["uuid"]
        if artifact_uuid not in state.artifacts:
            return _error(404, "Artifact not found")
        del state.artifacts[artifact_uuid]
        state.blobs.pop(artifact_uuid, None)
        return web.json_response(
            {"message": "Artifact deleted successfully", "uuid": artifact_uuid}
        )

    async def storage_usage(request: web.Request) -> web.Response:
        used = sum(a["size"] for a in state.artifacts.values())
        total = 10 * 1024 * 1024 * 1024
        return web.json_response(
            {
                "total_space": total,
                "used_space": used,
                "remaining_space": total - used,
                "usage_percent": used / total * 100,
                "file_count": len(state.artifacts),
            }
        )

    app = web.Application(middlewares=[record_calls])
    app.router.add_post("/genUploadPresignedURL", gen_upload)
    app.router.add_post("/genDownloadPresignedURL", gen_download)
    app.router.add_post("/artifacts/upload/{token}", exchange)
    app.router.add_get("/artifacts/{token}", download_with_token)
    app.router.add_put("/storage/{uuid}", storage_put)
    app.router.add_get("/storage/{uuid}", storage_get)
    app.router.add_get("/artifact-service/v1/artifacts/", list_artifacts)
    app.router.add_post("/artifact-service/v1/artifacts/{uuid}/complete", complete)
    app.router.add_delete("/artifact-service/v1/artifacts/{uuid}", delete_artifact)
    app.router.add_get("/artifact-service/v1/storage/usage", storage_usage)
    return app


@pytest_asyncio.fixture
async def artifact_service():
    state = FakeArtifactService()
    server = TestServer(build_app(state))
    await server.start_server()
    state.base_url = str(server.make_url("")).rstrip("/")
    try:
        yield state
    finally:
        await server.close()


@pytest.fixture
def client_config(artifact_service: FakeArtifactService) -> ClientConfig:
    return ClientConfig(base_url=artifact_service.base_url, chunk_size=1024)


@pytest_asyncio.fixture
async def api_client(client_config: ClientConfig):
    client = ArtifactAPIClient(client_config)
    try:
        yield client
    finally:
        await client.close()


@pytest_asyncio.fixture
async def orchestrator(api_client: ArtifactAPIClient):
    return TransferOrchestrator(api_client)


@pytest.fixture
def stalled_stream():
    """Builds a payload that yields one chunk and then never finishes."""

    async def _stream(first_chunk: bytes):
        yield first_chunk
        await asyncio.Event().wait()

    return _stream
