"""Replace the mirrored messages with a new run of blocks, all or nothing.

A publish goes through these steps:
  1. Fetch every previously tracked message (concurrently).
  2. Stop if the fetched contents already match the blocks.
  3. Send the blocks one at a time, in order, collecting the new IDs.
  4. If a send fails, delete whatever this run already sent and report
     failure. The old messages are left alone.
  5. Otherwise delete the old messages and report the new IDs.

Deletions in steps 4 and 5 are best effort. Persisting the new IDs is the
caller's job and must only happen on ``Published``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from doc_mirror.chunker import Block
from doc_mirror.detector import should_republish
from doc_mirror.webhook_client import WebhookMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MessageChannel(Protocol):
    """Message operations the publisher needs from the channel."""

    async def fetch_message(self, message_id: str) -> WebhookMessage: ...

    async def send_message(self, content: str) -> WebhookMessage: ...

    async def delete_message(self, message_id: str) -> None: ...


@dataclass(frozen=True)
class Unchanged:
    """The channel already shows the current document."""


@dataclass(frozen=True)
class Published:
    """Every block was sent; ``message_ids`` is in block order."""

    message_ids: list[str]


@dataclass(frozen=True)
class Failed:
    """A send failed and this run's messages were rolled back."""

    reason: str


PublishResult = Unchanged | Published | Failed


class MessageFetchError(Exception):
    """A previously tracked message could not be fetched."""

    def __init__(self, message_id: str):
        super().__init__(f"Could not fetch tracked message {message_id}")
        self.message_id = message_id


class Publisher:
    """Runs one publish against a message channel."""

    def __init__(self, channel: MessageChannel, max_concurrency: int = 5):
        self._channel = channel
        self._max_concurrency = max_concurrency

    async def _bounded_gather(
        self, func: Callable[[str], Awaitable[T]], message_ids: Sequence[str]
    ) -> list[T | BaseException]:
        """Run ``func`` for every ID with at most ``max_concurrency`` in flight.

        Results come back in input order; exceptions are returned, not raised.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _call(message_id: str) -> T:
            async with semaphore:
                return await func(message_id)

        return await asyncio.gather(
            *(_call(message_id) for message_id in message_ids),
            return_exceptions=True,
        )

    async def _fetch_contents(self, message_ids: Sequence[str]) -> list[str]:
        results = await self._bounded_gather(self._channel.fetch_message, message_ids)
        contents: list[str] = []
        for message_id, result in zip(message_ids, results):
            if isinstance(result, BaseException):
                raise MessageFetchError(message_id) from result
            contents.append(result.content)
        return contents

    async def _delete_messages(self, message_ids: Sequence[str]) -> None:
        """Delete every message, logging failures instead of raising them."""
        results = await self._bounded_gather(self._channel.delete_message, message_ids)
        for message_id, result in zip(message_ids, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to delete message %s: %s", message_id, result)

    async def _send_blocks(self, blocks: Sequence[Block]) -> tuple[list[str], Exception | None]:
        """Send blocks in order, stopping at the first failure.

        Returns the IDs sent so far and the error that stopped the run, if any.
        """
        sent_ids: list[str] = []
        for block in blocks:
            try:
                logger.info("Sending message #%d", block.index)
                message = await self._channel.send_message(block.text)
            except Exception as exc:
                logger.error("Something went wrong when sending block #%d: %s", block.index, exc)
                return sent_ids, exc
            sent_ids.append(message.id)
        return sent_ids, None

    async def publish(
        self, blocks: Sequence[Block], prior_message_ids: Sequence[str]
    ) -> PublishResult:
        """Bring the channel in line with ``blocks``.

        Raises:
            MessageFetchError: if a tracked message cannot be read back.
        """
        existing = await self._fetch_contents(prior_message_ids)

        if not should_republish(existing, blocks):
            logger.info("Nothing to send, messages are equal")
            return Unchanged()

        sent_ids, error = await self._send_blocks(blocks)

        if error is not None:
            logger.info("Trying to delete %d sent message(s)", len(sent_ids))
            await self._delete_messages(sent_ids)
            return Failed(reason=f"Sending block #{len(sent_ids)} failed: {error}")

        logger.info("Messages sent! IDs:\n%s", "\n".join(sent_ids))
        await self._delete_messages(prior_message_ids)
        return Published(message_ids=sent_ids)
