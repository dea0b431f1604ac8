"""
Webhook delivery for finished recordings.

Uploads the artifact as multipart/form-data (audio file + requester label)
to an operator-configured URL, typically an n8n workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from meeting_recorder.config.settings import DeliverySettings
from meeting_recorder.core.exceptions import DeliveryFailedError
from meeting_recorder.core.logging import get_logger
from meeting_recorder.domain.models import Artifact

logger = get_logger("delivery")

UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True)
class DeliveryReceipt:
    """Downstream response to a delivered artifact."""
    status_code: int
    body: str


class WebhookDelivery:
    """Posts artifacts to a webhook. Disabled when no URL is configured."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 120.0,
        audio_field: str = "audio",
        label_field: str = "customer_name",
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        """
        Initialize webhook delivery.

        Args:
            webhook_url: Target URL; empty or None disables delivery
            timeout_seconds: Upload timeout
            audio_field: Multipart field name for the audio file
            label_field: Multipart field name for the requester label
            client_factory: Builds the httpx client (tests inject a mock transport)
        """
        self.webhook_url = (webhook_url or "").strip()
        self.timeout_seconds = timeout_seconds
        self.audio_field = audio_field
        self.label_field = label_field
        self._client_factory = client_factory or self._default_client

        if not self.webhook_url:
            logger.warning("Webhook URL not configured. Delivery will be skipped.")

    @classmethod
    def from_settings(cls, delivery: DeliverySettings) -> "WebhookDelivery":
        return cls(
            webhook_url=delivery.webhook_url,
            timeout_seconds=delivery.timeout_seconds,
            audio_field=delivery.audio_field,
            label_field=delivery.label_field,
        )

    def is_enabled(self) -> bool:
        """Check if a webhook URL is configured."""
        return bool(self.webhook_url)

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds)

    async def deliver(self, artifact: Artifact) -> DeliveryReceipt:
        """
        Upload the artifact.

        Args:
            artifact: Final audio and its attribution

        Returns:
            Receipt with the downstream status and body

        Raises:
            DeliveryFailedError: when delivery is disabled, the file is
                unreadable, the transport fails or the endpoint answers non-2xx
        """
        if not self.is_enabled():
            raise DeliveryFailedError("Webhook delivery is not configured")

        label = artifact.requester_label or UNKNOWN_LABEL
        logger.info(f"Uploading {artifact.filename} ({artifact.size_bytes} bytes) for '{label}'...")

        try:
            with open(artifact.path, "rb") as audio:
                files = {self.audio_field: (artifact.filename, audio, artifact.content_type)}
                data = {self.label_field: label}
                async with self._client_factory() as client:
                    response = await client.post(self.webhook_url, files=files, data=data)
        except OSError as exc:
            raise DeliveryFailedError(f"Cannot read artifact {artifact.path}: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeliveryFailedError(f"Webhook upload failed: {exc}") from exc

        body = response.text
        logger.info(f"Webhook response: {response.status_code} {body[:500]}")

        if not response.is_success:
            raise DeliveryFailedError(
                f"Webhook answered {response.status_code}",
                status_code=response.status_code,
                details={"body": body[:2000]},
            )

        return DeliveryReceipt(status_code=response.status_code, body=body)
