"""Forward lifecycle events to an HTTP endpoint.

Events are buffered and POSTed in batches as ``{"events": [...]}``, each
entry produced by ``AssistEvent.to_dict()``. A batch that still fails after
``MAX_RETRIES`` retries bans the endpoint for ``BAN_TIME`` seconds; while
banned, new events are discarded on arrival.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from tx_assist.notifications.events import AssistEvent

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100
MAX_RETRIES = 2
RETRY_DELAY = 1.0
BAN_TIME = 3600
QUEUE_SIZE = 100
HTTP_TIMEOUT = 10.0


@dataclass
class WebhookConfig:
    """Where to deliver, and how to authenticate."""

    url: str
    token_header: str = "Authorization"
    token_value: str = ""
    banned_until: float = 0.0

    def headers(self) -> dict[str, str]:
        """Return the auth headers for a delivery."""
        if self.token_header and self.token_value:
            return {self.token_header: self.token_value}
        return {}


class WebhookNotifier:
    """Batches events for one endpoint; ``enqueue`` is a notification sink."""

    def __init__(
        self, config: WebhookConfig, *, client: httpx.AsyncClient | None = None
    ) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._queue: asyncio.Queue[AssistEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._worker: asyncio.Task[None] | None = None

    @property
    def url(self) -> str:
        """Return the webhook URL."""
        return self._config.url

    @property
    def is_banned(self) -> bool:
        """Whether the webhook is currently banned."""
        return self._config.banned_until > time.time()

    @property
    def is_running(self) -> bool:
        """Whether the delivery task is running."""
        return self._worker is not None

    async def start(self) -> None:
        """Start the delivery task."""
        if self._worker is not None:
            return
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        self._worker = asyncio.create_task(self._run(), name=f"webhook:{self.url}")

    async def stop(self) -> None:
        """Stop delivery and close an owned HTTP client."""
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def enqueue(self, event: AssistEvent) -> None:
        """Queue an event for delivery without blocking."""
        if self.is_banned:
            logger.debug("Webhook %s banned, discarding %s", self.url, event.event_code)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Webhook %s backlog full, discarding %s", self.url, event.event_code)

    async def _run(self) -> None:
        while True:
            batch = await self._next_batch()
            try:
                await self.send(batch)
            except Exception:
                logger.exception("Webhook %s delivery crashed", self.url)

    async def _next_batch(self) -> list[dict[str, Any]]:
        """Wait for one event, then take whatever else is already queued."""
        first = await self._queue.get()
        batch = [first.to_dict()]
        while len(batch) < MAX_BATCH_SIZE and not self._queue.empty():
            batch.append(self._queue.get_nowait().to_dict())
        return batch

    async def _post(self, client: httpx.AsyncClient, events: list[dict[str, Any]]) -> bool:
        try:
            response = await client.post(
                self.url, json={"events": events}, headers=self._config.headers()
            )
        except httpx.HTTPError as exc:
            logger.warning("Webhook %s unreachable: %s", self.url, exc)
            return False
        if response.is_error:
            logger.warning("Webhook %s answered HTTP %d", self.url, response.status_code)
            return False
        return True

    async def send(self, events: list[dict[str, Any]]) -> bool:
        """POST one batch, retrying on failure. True once delivered."""
        client = self._client
        if client is None:
            return False

        attempts = MAX_RETRIES + 1
        for attempt in range(1, attempts + 1):
            if await self._post(client, events):
                return True
            if attempt < attempts:
                await asyncio.sleep(RETRY_DELAY)

        self._config.banned_until = time.time() + BAN_TIME
        logger.error(
            "Webhook %s failed %d attempts; banned for %ds", self.url, attempts, BAN_TIME
        )
        return False
