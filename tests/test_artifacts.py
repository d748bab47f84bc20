"""Tests for the GitHub artifact transport.

Covers runtime-token parsing, the zip helpers, locating the newest live
artifact for download, and the CreateArtifact / PUT / FinalizeArtifact
upload sequence. httpx.AsyncClient is patched throughout.
"""

import base64
import hashlib
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from doc_mirror.artifacts import (
    ArtifactError,
    GitHubArtifactClient,
    backend_ids_from_token,
    read_zip_member,
    zip_single_file,
)

RESULTS_URL = "https://results-receiver.actions.githubusercontent.com/"


def _make_token(claims: dict) -> str:
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"eyJhbGciOiJSUzI1NiJ9.{payload}.signature"


RUNTIME_TOKEN = _make_token({"scp": "Actions.GenericRead:abc Actions.Results:run-1:job-2"})


def _response(status_code: int, method: str = "GET", **kwargs) -> httpx.Response:
    return httpx.Response(
        status_code, request=httpx.Request(method, "https://example.test"), **kwargs
    )


def _artifact_client(**overrides) -> GitHubArtifactClient:
    values = {
        "api_url": "https://api.github.com",
        "repository": "octo/docs",
        "token": "ghs_token",
        "results_url": RESULTS_URL,
        "runtime_token": RUNTIME_TOKEN,
    }
    values.update(overrides)
    return GitHubArtifactClient(**values)


def _mock_async_client(mock_client_cls) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


# ---------------------------------------------------------------------------
# Tests: helpers
# ---------------------------------------------------------------------------


class TestBackendIds:
    def test_reads_run_and_job_from_results_scope(self):
        assert backend_ids_from_token(RUNTIME_TOKEN) == ("run-1", "job-2")

    def test_rejects_token_without_results_scope(self):
        token = _make_token({"scp": "Actions.GenericRead:abc"})

        with pytest.raises(ArtifactError, match="no Actions.Results scope"):
            backend_ids_from_token(token)

    def test_rejects_malformed_token(self):
        with pytest.raises(ArtifactError, match="not a valid JWT"):
            backend_ids_from_token("not-a-jwt")


class TestZipHelpers:
    def test_reads_back_written_member(self):
        archive = zip_single_file("messageIDs.txt", "1\n2")

        assert read_zip_member(archive, "messageIDs.txt") == "1\n2"

    def test_missing_member_raises(self):
        archive = zip_single_file("other.txt", "x")

        with pytest.raises(ArtifactError, match="does not contain messageIDs.txt"):
            read_zip_member(archive, "messageIDs.txt")


# ---------------------------------------------------------------------------
# Tests: download
# ---------------------------------------------------------------------------


class TestDownloadFile:
    @pytest.mark.asyncio
    async def test_downloads_newest_live_artifact(self):
        listing = {
            "artifacts": [
                {
                    "id": 1,
                    "expired": False,
                    "created_at": "2026-01-01T00:00:00Z",
                    "archive_download_url": "https://api.github.com/zip/1",
                },
                {
                    "id": 3,
                    "expired": True,
                    "created_at": "2026-03-01T00:00:00Z",
                    "archive_download_url": "https://api.github.com/zip/3",
                },
                {
                    "id": 2,
                    "expired": False,
                    "created_at": "2026-02-01T00:00:00Z",
                    "archive_download_url": "https://api.github.com/zip/2",
                },
            ]
        }
        archive = zip_single_file("messageIDs.txt", "10\n20")

        with patch("doc_mirror.artifacts.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_client.get = AsyncMock(
                side_effect=[_response(200, json=listing), _response(200, content=archive)]
            )

            content = await _artifact_client().download_file("message-ids", "messageIDs.txt")

        assert content == "10\n20"
        assert mock_client.get.await_args_list[0].args == ("/repos/octo/docs/actions/artifacts",)
        assert mock_client.get.await_args_list[0].kwargs["params"]["name"] == "message-ids"
        assert mock_client.get.await_args_list[1].args == ("https://api.github.com/zip/2",)

    @pytest.mark.asyncio
    async def test_returns_none_when_no_artifact(self):
        with patch("doc_mirror.artifacts.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_client.get = AsyncMock(return_value=_response(200, json={"artifacts": []}))

            content = await _artifact_client().download_file("message-ids", "messageIDs.txt")

        assert content is None

    @pytest.mark.asyncio
    async def test_requires_repository_and_token(self):
        with pytest.raises(ArtifactError, match="GITHUB_TOKEN"):
            await _artifact_client(token="").download_file("message-ids", "messageIDs.txt")


# ---------------------------------------------------------------------------
# Tests: upload
# ---------------------------------------------------------------------------


class TestUploadFile:
    @pytest.mark.asyncio
    async def test_create_put_finalize_sequence(self):
        signed_url = "https://blob.example/upload?sig=abc"

        with patch("doc_mirror.artifacts.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_client.post = AsyncMock(
                side_effect=[
                    _response(200, "POST", json={"ok": True, "signed_upload_url": signed_url}),
                    _response(200, "POST", json={"ok": True, "artifact_id": "77"}),
                ]
            )
            mock_client.put = AsyncMock(return_value=_response(201, "PUT"))

            artifact_id = await _artifact_client().upload_file(
                "message-ids", "messageIDs.txt", "1\n2", retention_days=7
            )

        assert artifact_id == "77"

        create_call, finalize_call = mock_client.post.await_args_list
        assert create_call.args[0] == (
            "https://results-receiver.actions.githubusercontent.com"
            "/twirp/github.actions.results.api.v1.ArtifactService/CreateArtifact"
        )
        create_payload = create_call.kwargs["json"]
        assert create_payload["workflow_run_backend_id"] == "run-1"
        assert create_payload["workflow_job_run_backend_id"] == "job-2"
        assert create_payload["name"] == "message-ids"
        assert create_payload["version"] == 4
        assert create_payload["expires_at"].endswith("Z")
        assert create_call.kwargs["headers"]["Authorization"] == f"Bearer {RUNTIME_TOKEN}"

        put_call = mock_client.put.await_args
        uploaded = put_call.kwargs["content"]
        assert put_call.args[0] == signed_url
        assert put_call.kwargs["headers"]["x-ms-blob-type"] == "BlockBlob"
        assert read_zip_member(uploaded, "messageIDs.txt") == "1\n2"

        finalize_payload = finalize_call.kwargs["json"]
        assert finalize_call.args[0].endswith("/FinalizeArtifact")
        assert finalize_payload["size"] == str(len(uploaded))
        assert finalize_payload["hash"] == f"sha256:{hashlib.sha256(uploaded).hexdigest()}"

    @pytest.mark.asyncio
    async def test_rejected_create_raises(self):
        with patch("doc_mirror.artifacts.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_async_client(mock_client_cls)
            mock_client.post = AsyncMock(return_value=_response(200, "POST", json={"ok": False}))

            with pytest.raises(ArtifactError, match="CreateArtifact was rejected"):
                await _artifact_client().upload_file("message-ids", "messageIDs.txt", "1", 7)

        mock_client.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_runtime_token(self):
        with pytest.raises(ArtifactError, match="ACTIONS_RUNTIME_TOKEN"):
            await _artifact_client(runtime_token="").upload_file(
                "message-ids", "messageIDs.txt", "1", 7
            )
