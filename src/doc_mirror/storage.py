"""Persistence of the published message IDs between runs.

Four interchangeable stores, selected by ``storage_method``:

    none      nothing is remembered; every run starts from scratch
    git       one ID per line in a tracked file, committed and pushed
    message   ", "-joined IDs in a dedicated message on the same channel
    artifact  one ID per line in a file inside a workflow artifact

``load()`` never fails: a missing or unreadable source is logged and treated
as "nothing published yet". ``save()`` raises, because losing the IDs means
the next run cannot retire stale messages.
"""

import logging
from enum import StrEnum
from pathlib import Path
from typing import Protocol

import httpx

from doc_mirror.artifacts import GitHubArtifactClient
from doc_mirror.config import Settings
from doc_mirror.git_repo import GitRepository
from doc_mirror.webhook_client import WebhookMessage

logger = logging.getLogger(__name__)

_LINE_SEPARATOR = "\n"
_MESSAGE_SEPARATOR = ", "


class StorageMethod(StrEnum):
    NONE = "none"
    GIT = "git"
    MESSAGE = "message"
    ARTIFACT = "artifact"


class UnknownStorageMethodError(Exception):
    """The configured storage method is not one of ``StorageMethod``."""

    def __init__(self, method: str):
        super().__init__(f"Storage method is unknown: {method}")
        self.method = method


class IdentifierStore(Protocol):
    async def load(self) -> list[str]: ...

    async def save(self, message_ids: list[str]) -> bool: ...


class TrackingChannel(Protocol):
    async def fetch_message(self, message_id: str) -> WebhookMessage: ...

    async def send_message(self, content: str) -> WebhookMessage: ...

    async def edit_message(self, message_id: str, content: str) -> WebhookMessage: ...


class ArtifactTransport(Protocol):
    async def download_file(self, artifact_name: str, file_name: str) -> str | None: ...

    async def upload_file(
        self, artifact_name: str, file_name: str, content: str, retention_days: int
    ) -> str: ...


def _split_ids(raw: str, separator: str) -> list[str]:
    return [item.strip() for item in raw.strip().split(separator) if item.strip()]


class NoStore:
    """Remembers nothing."""

    async def load(self) -> list[str]:
        return []

    async def save(self, message_ids: list[str]) -> bool:
        return False


class GitFileStore:
    """IDs live in a file of the working copy, one per line."""

    def __init__(self, path: Path, repository: GitRepository, commit_message: str):
        self._path = path
        self._repository = repository
        self._commit_message = commit_message

    async def load(self) -> list[str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Couldn't read message IDs from %s: %s", self._path, exc)
            logger.warning("Continuing anyway")
            return []
        return _split_ids(raw, _LINE_SEPARATOR)

    async def save(self, message_ids: list[str]) -> bool:
        self._path.write_text(_LINE_SEPARATOR.join(message_ids), encoding="utf-8")
        await self._repository.commit_and_push(self._path, self._commit_message)
        return True


class TrackingMessageStore:
    """IDs live in a dedicated message on the mirrored channel."""

    def __init__(self, channel: TrackingChannel, tracking_message_id: str):
        self._channel = channel
        self._tracking_message_id = tracking_message_id

    async def load(self) -> list[str]:
        if not self._tracking_message_id:
            logger.warning("No tracking message ID configured, continuing anyway")
            return []
        try:
            message = await self._channel.fetch_message(self._tracking_message_id)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Couldn't fetch tracking message %s: %s", self._tracking_message_id, exc
            )
            logger.warning("Continuing anyway")
            return []
        return _split_ids(message.content, _MESSAGE_SEPARATOR)

    async def save(self, message_ids: list[str]) -> bool:
        content = _MESSAGE_SEPARATOR.join(message_ids)
        if self._tracking_message_id:
            try:
                await self._channel.edit_message(self._tracking_message_id, content)
                return True
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning(
                    "Couldn't edit tracking message %s: %s", self._tracking_message_id, exc
                )

        message = await self._channel.send_message(content)
        # The new ID is not written anywhere; it must be configured by hand.
        logger.warning(
            "Posted a new tracking message %s. Set DOC_MIRROR_TRACKING_MESSAGE_ID=%s "
            "or the next run will not find the published messages",
            message.id,
            message.id,
        )
        return True


class ArtifactStore:
    """IDs live in a file inside a named workflow artifact, one per line."""

    def __init__(
        self,
        transport: ArtifactTransport,
        artifact_name: str,
        file_name: str,
        retention_days: int,
    ):
        self._transport = transport
        self._artifact_name = artifact_name
        self._file_name = file_name
        self._retention_days = retention_days

    async def load(self) -> list[str]:
        try:
            raw = await self._transport.download_file(self._artifact_name, self._file_name)
        except Exception as exc:
            logger.warning("Couldn't download artifact %s: %s", self._artifact_name, exc)
            logger.warning("Continuing anyway")
            return []
        if raw is None:
            logger.info("No artifact named %s yet", self._artifact_name)
            return []
        return _split_ids(raw, _LINE_SEPARATOR)

    async def save(self, message_ids: list[str]) -> bool:
        await self._transport.upload_file(
            self._artifact_name,
            self._file_name,
            _LINE_SEPARATOR.join(message_ids),
            self._retention_days,
        )
        return True


def build_identifier_store(settings: Settings, channel: TrackingChannel) -> IdentifierStore:
    """Create the store named by ``settings.storage_method``.

    Raises:
        UnknownStorageMethodError: for any name outside ``StorageMethod``.
    """
    try:
        method = StorageMethod(settings.storage_method.strip().lower())
    except ValueError:
        raise UnknownStorageMethodError(settings.storage_method) from None

    if method is StorageMethod.NONE:
        return NoStore()

    if method is StorageMethod.GIT:
        repository = GitRepository(
            work_tree=Path.cwd(),
            user_name=settings.git_user_name,
            user_email=settings.git_user_email,
        )
        return GitFileStore(settings.tracked_file, repository, settings.git_commit_message)

    if method is StorageMethod.MESSAGE:
        return TrackingMessageStore(channel, settings.tracking_message_id)

    transport = GitHubArtifactClient(
        api_url=settings.github_api_url,
        repository=settings.github_repository,
        token=settings.github_token,
        results_url=settings.actions_results_url,
        runtime_token=settings.actions_runtime_token,
    )
    return ArtifactStore(
        transport,
        settings.artifact_name,
        settings.artifact_file_name,
        settings.artifact_retention_days,
    )
