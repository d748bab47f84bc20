"""Async HTTP client for a Discord webhook.

Covers the four message operations the mirror needs: fetch, send, edit and
delete. Every request suppresses mention parsing so mirrored text can never
ping anyone. Non-2xx responses raise ``httpx.HTTPStatusError``.
"""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Discord asks clients to wait and resend on 429; give up after this many waits.
_MAX_RATE_LIMIT_RETRIES = 5

_NO_MENTIONS = {"parse": []}


class WebhookMessage(BaseModel):
    """The subset of a Discord message object the mirror reads."""

    id: str
    content: str = ""

    model_config = ConfigDict(extra="ignore")


def _retry_after_seconds(response: httpx.Response) -> float:
    """Read the rate-limit back-off from the body, falling back to the header."""
    try:
        return float(response.json()["retry_after"])
    except (ValueError, KeyError, TypeError):
        pass
    try:
        return float(response.headers.get("Retry-After", 1.0))
    except ValueError:
        # HTTP-date form
        return 1.0


class WebhookClient:
    """Wraps the webhook message endpoints with typed method calls."""

    def __init__(self, webhook_url: str, timeout: float = 30.0):
        self._webhook_url = webhook_url.rstrip("/")
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        async with self._client() as client:
            for attempt in range(1, _MAX_RATE_LIMIT_RETRIES + 1):
                response = await client.request(method, url, params=params, json=json)
                if response.status_code != 429 or attempt == _MAX_RATE_LIMIT_RETRIES:
                    break
                delay = _retry_after_seconds(response)
                logger.info("Rate limited on %s %s, waiting %.2fs", method, url, delay)
                await asyncio.sleep(delay)
            response.raise_for_status()
            return response

    def _message_url(self, message_id: str) -> str:
        return f"{self._webhook_url}/messages/{message_id}"

    async def fetch_message(self, message_id: str) -> WebhookMessage:
        response = await self._request("GET", self._message_url(message_id))
        return WebhookMessage.model_validate(response.json())

    async def send_message(self, content: str) -> WebhookMessage:
        """Post a new message; ``wait=true`` makes Discord return it."""
        response = await self._request(
            "POST",
            self._webhook_url,
            params={"wait": "true"},
            json={"content": content, "allowed_mentions": _NO_MENTIONS},
        )
        return WebhookMessage.model_validate(response.json())

    async def edit_message(self, message_id: str, content: str) -> WebhookMessage:
        response = await self._request(
            "PATCH",
            self._message_url(message_id),
            json={"content": content, "allowed_mentions": _NO_MENTIONS},
        )
        return WebhookMessage.model_validate(response.json())

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", self._message_url(message_id))
