"""
Webhook notifications for the ShowStart monitor.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from .exceptions import NotificationError
from .models import Notification, NotificationConfig

logger = logging.getLogger(__name__)


def text_payload(message: str) -> dict:
    return {"msg_type": "text", "content": {"text": message}}


def structured_payload(event_type: str, artist: str, title: str, show_time: str, site_name: str, url: str) -> dict:
    """Payload with named template variables (``type`` is "new" or "timed")."""
    return {
        "type": event_type,
        "artist": artist,
        "title": title,
        "showTime": show_time,
        "siteName": site_name,
        "url": url,
    }


class WebhookService:
    """Delivers notifications to one webhook endpoint, with retries."""

    def __init__(self, url: str, config: NotificationConfig):
        self.url = url
        self.config = config
        self.retry_attempts = max(1, config.retry_attempts)
        self.retry_delay = config.retry_delay

    async def send(self, notification: Notification) -> None:
        """Send a notification with retry logic.

        Raises:
            NotificationError: if every attempt failed.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                await self._send_impl(notification)
                return
            except (httpx.HTTPError, NotificationError) as e:
                if attempt == self.retry_attempts:
                    raise NotificationError(f"{self.url}: {e}") from e

                delay = self.retry_delay * attempt
                logger.warning(
                    f"Attempt {attempt}/{self.retry_attempts} to {self.url} failed. Retrying in {delay}s... Error: {e}"
                )
                await asyncio.sleep(delay)

    async def _send_impl(self, notification: Notification) -> None:
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            response = await client.post(self.url, json=notification.payload)
        if response.status_code >= 300:
            raise NotificationError(f"webhook returned status {response.status_code}")


class Notifier:
    """Fans notifications out to every configured webhook.

    A failing endpoint does not stop delivery to the others; once all
    endpoints have been tried the last failure is raised.
    """

    def __init__(self, config: NotificationConfig):
        self.config = config
        self.webhooks: List[WebhookService] = [WebhookService(url, config) for url in config.webhook_urls]
        self.alerts: List[WebhookService] = [WebhookService(url, config) for url in config.alert_urls]

    async def send(self, message: str) -> None:
        """Send a plain text message to the notification webhooks."""
        if not self.webhooks:
            raise NotificationError("no webhook_url configured")
        await self._dispatch(self.webhooks, Notification(payload=text_payload(message), description="text"))

    async def send_structured(
        self,
        event_type: str,
        artist: str,
        title: str,
        show_time: str,
        site_name: str,
        url: str,
    ) -> None:
        """Send a structured event notification to the notification webhooks."""
        if not self.webhooks:
            raise NotificationError("no webhook_url configured")
        payload = structured_payload(event_type, artist, title, show_time, site_name, url)
        await self._dispatch(self.webhooks, Notification(payload=payload, description=event_type))

    async def send_alert(self, message: str) -> None:
        """Send an operator alert. Does nothing when no alert webhook is configured."""
        if not self.alerts:
            return
        await self._dispatch(self.alerts, Notification(payload=text_payload(message), description="alert"))

    async def _dispatch(self, services: Sequence[WebhookService], notification: Notification) -> None:
        results = await asyncio.gather(
            *(service.send(notification) for service in services),
            return_exceptions=True
        )

        last_error: Optional[BaseException] = None
        for service, result in zip(services, results):
            if isinstance(result, BaseException):
                logger.error(f"Error sending {notification.description} notification via {service.url}: {result}")
                last_error = result

        if last_error is not None:
            if isinstance(last_error, NotificationError):
                raise last_error
            raise NotificationError(str(last_error)) from last_error


def create_notifier(config: NotificationConfig) -> Notifier:
    """Create a notifier with the given config."""
    return Notifier(config)
