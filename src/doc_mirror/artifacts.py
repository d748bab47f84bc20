"""GitHub Actions artifact transport for the artifact ID store.

Downloads go through the public REST API so an artifact uploaded by an
earlier workflow run can be found by name. Uploads use the runner's results
service (artifact protocol v4):

    CreateArtifact  -> signed blob URL
    PUT zip archive -> blob storage
    FinalizeArtifact with size and sha256

The run and job backend IDs the results service wants are carried in the
``Actions.Results:<run>:<job>`` scope of ``ACTIONS_RUNTIME_TOKEN``.
"""

import base64
import hashlib
import io
import json
import logging
import zipfile
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_TWIRP_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
_RESULTS_SCOPE = "Actions.Results"
_ARTIFACT_VERSION = 4


class ArtifactError(Exception):
    """The artifact could not be located, read or written."""


def backend_ids_from_token(runtime_token: str) -> tuple[str, str]:
    """Extract ``(workflow_run_backend_id, workflow_job_run_backend_id)``."""
    try:
        payload = runtime_token.split(".")[1]
        padded = payload + "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (IndexError, ValueError) as exc:
        raise ArtifactError("Runtime token is not a valid JWT") from exc

    for scope in str(claims.get("scp", "")).split():
        parts = scope.split(":")
        if len(parts) == 3 and parts[0] == _RESULTS_SCOPE:
            return parts[1], parts[2]
    raise ArtifactError("Runtime token carries no Actions.Results scope")


def zip_single_file(file_name: str, content: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(file_name, content)
    return buffer.getvalue()


def read_zip_member(archive_bytes: bytes, file_name: str) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
            return archive.read(file_name).decode("utf-8")
    except (KeyError, zipfile.BadZipFile) as exc:
        raise ArtifactError(f"Artifact does not contain {file_name}: {exc}") from exc


class GitHubArtifactClient:
    """Stores a single text file as a named workflow artifact."""

    def __init__(
        self,
        *,
        api_url: str,
        repository: str,
        token: str,
        results_url: str,
        runtime_token: str,
        timeout: float = 60.0,
    ):
        self._api_url = api_url.rstrip("/")
        self._repository = repository
        self._token = token
        self._results_url = results_url.rstrip("/")
        self._runtime_token = runtime_token
        self._timeout = timeout

    async def download_file(self, artifact_name: str, file_name: str) -> str | None:
        """Return ``file_name`` from the newest live artifact, or None if none exists."""
        if not self._repository or not self._token:
            raise ArtifactError("GITHUB_REPOSITORY and GITHUB_TOKEN are required")

        async with httpx.AsyncClient(
            base_url=self._api_url,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            response = await client.get(
                f"/repos/{self._repository}/actions/artifacts",
                params={"name": artifact_name, "per_page": 100},
            )
            response.raise_for_status()
            artifacts = [
                artifact
                for artifact in response.json().get("artifacts", [])
                if not artifact.get("expired")
            ]
            if not artifacts:
                return None

            latest = max(artifacts, key=lambda artifact: artifact.get("created_at") or "")
            logger.debug("Downloading artifact %s (id %s)", artifact_name, latest.get("id"))
            archive = await client.get(latest["archive_download_url"])
            archive.raise_for_status()

        return read_zip_member(archive.content, file_name)

    async def _call_results_service(
        self, client: httpx.AsyncClient, method: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        response = await client.post(
            f"{self._results_url}/{_TWIRP_SERVICE}/{method}",
            json=payload,
            headers={"Authorization": f"Bearer {self._runtime_token}"},
        )
        response.raise_for_status()
        body = response.json()
        if not body.get("ok"):
            raise ArtifactError(f"{method} was rejected: {body}")
        return body

    async def upload_file(
        self, artifact_name: str, file_name: str, content: str, retention_days: int
    ) -> str:
        """Upload ``content`` as ``file_name`` inside a new artifact; returns its ID."""
        if not self._results_url or not self._runtime_token:
            raise ArtifactError(
                "ACTIONS_RESULTS_URL and ACTIONS_RUNTIME_TOKEN are required to upload"
            )

        run_id, job_id = backend_ids_from_token(self._runtime_token)
        backend_ids = {
            "workflow_run_backend_id": run_id,
            "workflow_job_run_backend_id": job_id,
        }
        archive = zip_single_file(file_name, content)
        expires_at = datetime.now(UTC) + timedelta(days=retention_days)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            created = await self._call_results_service(
                client,
                "CreateArtifact",
                {
                    **backend_ids,
                    "name": artifact_name,
                    "version": _ARTIFACT_VERSION,
                    "expires_at": expires_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
                },
            )

            upload = await client.put(
                created["signed_upload_url"],
                content=archive,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
            )
            upload.raise_for_status()

            finalized = await self._call_results_service(
                client,
                "FinalizeArtifact",
                {
                    **backend_ids,
                    "name": artifact_name,
                    "size": str(len(archive)),
                    "hash": f"sha256:{hashlib.sha256(archive).hexdigest()}",
                },
            )

        artifact_id = str(finalized.get("artifact_id", ""))
        logger.info("Uploaded artifact %s (id %s)", artifact_name, artifact_id)
        return artifact_id
