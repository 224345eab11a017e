from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from .models import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    """Raised when a delivery channel rejects an intent."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


class LoggingNotificationSender:
    """Sender used when no delivery channel is configured."""

    async def send(self, intent: NotificationIntent) -> None:
        logger.info(
            "Notification %s for %s -> %s: %s",
            intent.event.value,
            intent.related_entity_id,
            intent.recipient,
            intent.subject,
        )


@dataclass(slots=True)
class WebhookNotificationSender:
    """POST intents as JSON to an external delivery service."""

    url: str
    timeout: float = 10.0
    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, intent: NotificationIntent) -> None:
        client = self._ensure_client()
        try:
            response = await client.post(self.url, json=intent.to_payload())
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"Webhook request failed: {exc}") from exc
        if response.status_code >= 400:
            raise NotificationDeliveryError(
                response.text or "Webhook rejected the notification", status_code=response.status_code
            )
        logger.debug("Delivered %s intent for %s", intent.event.value, intent.related_entity_id)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
