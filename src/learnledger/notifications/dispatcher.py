"""NotificationDispatcher - best-effort delivery to the notification service."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

import httpx

from learnledger.notifications.exceptions import NotificationError

logger = logging.getLogger("learnledger.notifications")


@dataclass
class Notification:
    """A notification request for the delivery service."""

    to: str
    subject: str
    body: str


class Notifier(Protocol):
    """Interface the core depends on."""

    def notify(self, notification: Notification) -> bool:
        """Deliver a notification. Never raises."""
        ...


class NotificationDispatcher:
    """Posts notification requests to an HTTP webhook.

    Delivery is fire-and-forget: failures are logged and swallowed so that a state
    change that already committed is never reported as failed because of email.
    """

    def __init__(
        self,
        url: str | None,
        timeout: float = 10.0,
        token: str | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            url: Webhook URL of the notification service. None disables delivery.
            timeout: Request timeout in seconds.
            token: Optional bearer token for the service.
        """
        self.url = url
        self.timeout = timeout
        self.token = token
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.Client(headers=headers, timeout=self.timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _post(self, url: str, payload: dict[str, Any]) -> None:
        response = self.client.post(url, json=payload)
        if response.status_code >= 400:
            raise NotificationError(
                f"Notification request failed: {response.status_code} - {response.text}"
            )

    def notify(self, notification: Notification) -> bool:
        """Send a notification.

        Args:
            notification: The message to deliver.

        Returns:
            True if the service accepted it, False if delivery was skipped or failed.
        """
        if not self.url:
            logger.debug("Notification to %s skipped (no service configured)", notification.to)
            return False
        if not notification.to:
            logger.warning("Notification '%s' has no recipient", notification.subject)
            return False

        try:
            self._post(self.url, asdict(notification))
        except (NotificationError, httpx.HTTPError) as e:
            logger.warning(
                "Notification '%s' to %s not delivered: %s",
                notification.subject,
                notification.to,
                e,
            )
            return False

        logger.info("Notification '%s' sent to %s", notification.subject, notification.to)
        return True


class NullNotifier:
    """Notifier that drops everything; used when no service is configured."""

    def notify(self, notification: Notification) -> bool:
        return False
