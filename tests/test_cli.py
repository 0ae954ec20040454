"""Tests for the command-line interface."""

import asyncio
import os
import signal
import time

import pytest
from typer.testing import CliRunner

from artifact_client import __version__
from artifact_client.cli import app as cli_app
from artifact_client.core.flow import TransferState
from artifact_client.exceptions import (
    ArtifactNotFound,
    MetadataFetchError,
    TokenIssuanceError,
    TransferCancelled,
)
from artifact_client.models.artifact import (
    Artifact,
    IssuedToken,
    StorageUsage,
    TokenScope,
)
from artifact_client.models.transfer import (
    CompletionOutcome,
    DownloadResult,
    UploadResult,
)
from artifact_client.storage.config_manager import BASE_URL_ENV, ConfigManager

runner = CliRunner()

needs_posix_signals = pytest.mark.skipif(
    os.name == "nt", reason="SIGINT handlers need a POSIX event loop"
)


def send_interrupt(delay: float = 0.1) -> None:
    asyncio.get_running_loop().call_later(delay, os.kill, os.getpid(), signal.SIGINT)


class StubOrchestrator:
    """Stands in for the orchestrator so commands run without a server."""

    def __init__(self):
        self.calls = []
        self.closed = False
        self.upload_error = None
        self.metadata_error = None
        self.interrupt_during = None

    async def close(self):
        self.closed = True

    async def _maybe_stall(self, step):
        if self.interrupt_during == step:
            send_interrupt()
            await asyncio.sleep(5)

    async def _transfer(self, kwargs):
        """Walks the transfer states the way the real flows report them."""
        on_state = kwargs["on_state"]
        on_state(TransferState.URL_ISSUED)
        on_state(TransferState.TRANSFERRING)
        if self.interrupt_during == "transfer":
            send_interrupt()
            await kwargs["cancel_token"].wait()
            self.calls.append(("transfer-cancelled", kwargs["cancel_token"].reason))
            raise TransferCancelled(kwargs["cancel_token"].reason)
        kwargs["on_progress"](100)
        on_state(TransferState.TRANSFERRED)

    async def list_artifacts(self):
        self.calls.append(("list",))
        await self._maybe_stall("list")
        return [Artifact(uuid="U1", filename="report.csv", size=2048)]

    async def get_artifact_metadata(self, artifact_uuid):
        self.calls.append(("info", artifact_uuid))
        if self.metadata_error:
            raise self.metadata_error
        return Artifact(uuid=artifact_uuid, filename="report.csv", status="complete")

    async def upload_file(self, source, options=None, **kwargs):
        self.calls.append(("upload", source.name, options.max_uses))
        if self.upload_error:
            raise self.upload_error
        await self._transfer(kwargs)
        return UploadResult(
            uuid="U1",
            filename=source.name,
            size=5,
            token="tok-123456789",
            completion=CompletionOutcome(uuid="U1", acknowledged=True),
        )

    async def upload_with_token_url(self, upload_url, source, **kwargs):
        self.calls.append(("upload-url", upload_url, source.name, kwargs["filename"]))
        await self._transfer(kwargs)
        return UploadResult(
            uuid="U2",
            filename=kwargs["filename"] or source.name,
            size=5,
            completion=CompletionOutcome(uuid="U2", acknowledged=False),
        )

    async def download_file(self, artifact_uuid, options=None, **kwargs):
        self.calls.append(
            ("download", artifact_uuid, kwargs["filename"], options.max_uses)
        )
        await self._transfer(kwargs)
        return DownloadResult(
            size=7, path=kwargs["destination"] / (kwargs["filename"] or artifact_uuid)
        )

    async def download_with_token_url(self, presigned_url, **kwargs):
        self.calls.append(("download-url", presigned_url, kwargs["filename"]))
        await self._transfer(kwargs)
        return DownloadResult(
            size=7,
            path=kwargs["destination"] / (kwargs["filename"] or "downloaded-file"),
        )

    async def create_upload_token(self, options=None):
        self.calls.append(("token-upload", options.max_uses))
        await self._maybe_stall("token")
        return IssuedToken(
            token="tok-1",
            scope=TokenScope.UPLOAD,
            url="http://svc/artifacts/upload/tok-1",
        )

    async def create_download_token(self, artifact_uuid, options=None):
        self.calls.append(("token-download", artifact_uuid, options.max_uses))
        return IssuedToken(
            token="tok-2",
            scope=TokenScope.DOWNLOAD,
            url="http://svc/artifacts/tok-2",
        )

    async def delete_artifact(self, artifact_uuid):
        self.calls.append(("delete", artifact_uuid))
        return {"uuid": artifact_uuid}

    async def storage_usage(self):
        return StorageUsage(
            total_space=100, used_space=80, remaining_space=20,
            usage_percent=80.0, file_count=3,
        )


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    monkeypatch.delenv(BASE_URL_ENV, raising=False)
    return path


@pytest.fixture
def stub(config_file, monkeypatch):
    ConfigManager(config_file).save_new_config({"base_url": "http://svc.example.com"})
    orchestrator = StubOrchestrator()
    monkeypatch.setattr(
        cli_app.TransferOrchestrator, "from_config", lambda config: orchestrator
    )
    return orchestrator


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_init_writes_config(config_file):
    result = runner.invoke(cli_app.app, ["init", "http://svc.example.com/"])

    assert result.exit_code == 0
    assert "base_url = http://svc.example.com" in config_file.read_text()


def test_commands_fail_without_config(config_file):
    result = runner.invoke(cli_app.app, ["list"])

    assert result.exit_code == 1
    assert "ConfigurationError" in result.stdout


def test_list(stub):
    result = runner.invoke(cli_app.app, ["list"])

    assert result.exit_code == 0
    assert "report.csv" in result.stdout
    assert stub.closed


def test_info(stub):
    result = runner.invoke(cli_app.app, ["info", "U7"])

    assert result.exit_code == 0
    assert ("info", "U7") in stub.calls
    assert "complete" in result.stdout


def test_upload(stub, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("hello")

    result = runner.invoke(cli_app.app, ["upload", str(source), "--max-uploads", "2"])

    assert result.exit_code == 0, result.stdout
    assert ("upload", "notes.txt", 2) in stub.calls
    assert "Upload Complete" in result.stdout


def test_upload_error_is_rendered(stub, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("hello")
    stub.upload_error = TokenIssuanceError("Failed to generate upload token", 403)

    result = runner.invoke(cli_app.app, ["upload", str(source)])

    assert result.exit_code == 1
    assert "TokenIssuanceError" in result.stdout
    assert stub.closed


def test_token_upload(stub):
    result = runner.invoke(cli_app.app, ["token", "upload", "--max-uploads", "3"])

    assert result.exit_code == 0
    assert ("token-upload", 3) in stub.calls
    assert "http://svc/artifacts/upload/tok-1" in result.stdout


def test_bad_cidr_is_a_usage_error(stub):
    result = runner.invoke(cli_app.app, ["token", "upload", "--allowed-cidr", "nope"])

    assert result.exit_code == 2
    assert stub.calls == []


def test_delete_with_force(stub):
    result = runner.invoke(cli_app.app, ["delete", "U1", "--force"])

    assert result.exit_code == 0
    assert ("delete", "U1") in stub.calls


def test_delete_declined(stub):
    result = runner.invoke(cli_app.app, ["delete", "U1"], input="n\n")

    assert result.exit_code == 1
    assert stub.calls == []


def test_usage(stub):
    result = runner.invoke(cli_app.app, ["usage"])

    assert result.exit_code == 0
    assert "80.0%" in result.stdout


def test_upload_url(stub, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("hello")

    result = runner.invoke(
        cli_app.app,
        ["upload-url", "http://svc/artifacts/upload/tok-1", str(source), "-n", "n.txt"],
    )

    assert result.exit_code == 0, result.stdout
    assert stub.calls == [
        ("upload-url", "http://svc/artifacts/upload/tok-1", "notes.txt", "n.txt")
    ]
    assert "Not acknowledged" in result.stdout


def test_download_into_directory_uses_recorded_name(stub, tmp_path):
    result = runner.invoke(cli_app.app, ["download", "U7", str(tmp_path)])

    assert result.exit_code == 0, result.stdout
    assert stub.calls == [("info", "U7"), ("download", "U7", "report.csv", 1)]


def test_download_with_explicit_name_skips_lookup(stub, tmp_path):
    result = runner.invoke(
        cli_app.app,
        ["download", "U7", str(tmp_path), "--name", "mine.bin", "--max-downloads", "2"],
    )

    assert result.exit_code == 0, result.stdout
    assert stub.calls == [("download", "U7", "mine.bin", 2)]


def test_download_continues_when_lookup_fails(stub, tmp_path, caplog):
    stub.metadata_error = MetadataFetchError("Failed to fetch artifacts", 500)

    result = runner.invoke(cli_app.app, ["download", "U7", str(tmp_path)])

    assert result.exit_code == 0, result.stdout
    assert ("download", "U7", None, 1) in stub.calls
    assert "Could not look up the file name" in caplog.text


def test_download_of_unknown_artifact_fails(stub, tmp_path):
    stub.metadata_error = ArtifactNotFound("U7")

    result = runner.invoke(cli_app.app, ["download", "U7", str(tmp_path)])

    assert result.exit_code == 1
    assert "ArtifactNotFound" in result.stdout
    assert not any(call[0] == "download" for call in stub.calls)


def test_download_url(stub, tmp_path):
    result = runner.invoke(
        cli_app.app, ["download-url", "http://svc/artifacts/tok-2", str(tmp_path)]
    )

    assert result.exit_code == 0, result.stdout
    assert stub.calls == [("download-url", "http://svc/artifacts/tok-2", None)]


def test_token_download(stub):
    result = runner.invoke(
        cli_app.app, ["token", "download", "U7", "--max-downloads", "4"]
    )

    assert result.exit_code == 0, result.stdout
    assert ("token-download", "U7", 4) in stub.calls
    assert "http://svc/artifacts/tok-2" in result.stdout


@needs_posix_signals
@pytest.mark.parametrize(
    "command, step",
    [(["list"], "list"), (["token", "upload"], "token")],
)
def test_interrupt_cancels_command_outside_transfer(stub, command, step):
    stub.interrupt_during = step
    started = time.monotonic()

    result = runner.invoke(cli_app.app, command)

    assert result.exit_code == 130
    assert time.monotonic() - started < 4
    assert "cancelled by user" in result.stdout
    assert stub.closed


@needs_posix_signals
def test_interrupt_during_transfer_fires_cancel_token(stub, tmp_path):
    stub.interrupt_during = "transfer"

    result = runner.invoke(
        cli_app.app, ["download-url", "http://svc/artifacts/tok-2", str(tmp_path)]
    )

    assert result.exit_code == 130
    assert ("transfer-cancelled", "Interrupted by user") in stub.calls
    assert stub.closed
