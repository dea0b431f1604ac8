from __future__ import annotations

from datetime import datetime

import httpx
import pytest

from meeting_recorder.config.settings import DeliverySettings
from meeting_recorder.core.exceptions import DeliveryFailedError
from meeting_recorder.delivery.webhook import WebhookDelivery
from meeting_recorder.domain.models import Artifact

WEBHOOK_URL = "https://n8n.example.com/webhook/recording"


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "meeting-1.mp3"
    path.write_bytes(b"ID3-audio")
    return Artifact(
        path=path,
        requester_label="Acme",
        meeting_target="meet/123",
        size_bytes=9,
        created_at=datetime.now(),
    )


def _delivery(handler, **kwargs) -> WebhookDelivery:
    return WebhookDelivery(
        webhook_url=WEBHOOK_URL,
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_deliver_posts_multipart_audio_and_label(artifact):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    receipt = await _delivery(handler).deliver(artifact)

    assert receipt.status_code == 200
    assert receipt.body == "ok"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == WEBHOOK_URL
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="audio"; filename="meeting-1.mp3"' in body
    assert b"ID3-audio" in body
    assert b'name="customer_name"' in body
    assert b"Acme" in body


@pytest.mark.asyncio
async def test_empty_label_is_sent_as_unknown(artifact):
    seen = []

    def handler(request):
        seen.append(request.content)
        return httpx.Response(204)

    anonymous = Artifact(
        path=artifact.path,
        requester_label="",
        meeting_target=artifact.meeting_target,
        size_bytes=artifact.size_bytes,
        created_at=artifact.created_at,
    )
    await _delivery(handler).deliver(anonymous)
    assert b"Unknown" in seen[0]


@pytest.mark.asyncio
async def test_custom_field_names(artifact):
    seen = []

    def handler(request):
        seen.append(request.content)
        return httpx.Response(200)

    await _delivery(handler, audio_field="file", label_field="client").deliver(artifact)
    assert b'name="file"; filename=' in seen[0]
    assert b'name="client"' in seen[0]


@pytest.mark.asyncio
async def test_non_success_status_raises(artifact):
    delivery = _delivery(lambda request: httpx.Response(500, text="workflow error"))

    with pytest.raises(DeliveryFailedError) as excinfo:
        await delivery.deliver(artifact)
    assert excinfo.value.status_code == 500
    assert excinfo.value.details["body"] == "workflow error"


@pytest.mark.asyncio
async def test_transport_error_raises(artifact):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DeliveryFailedError):
        await _delivery(handler).deliver(artifact)


@pytest.mark.asyncio
async def test_malformed_url_raises(artifact):
    delivery = WebhookDelivery(webhook_url="http://[::1")

    assert delivery.is_enabled()
    with pytest.raises(DeliveryFailedError, match="Webhook upload failed"):
        await delivery.deliver(artifact)


@pytest.mark.asyncio
async def test_unreadable_artifact_raises(artifact):
    artifact.path.unlink()
    delivery = _delivery(lambda request: httpx.Response(200))

    with pytest.raises(DeliveryFailedError):
        await delivery.deliver(artifact)


@pytest.mark.asyncio
async def test_unconfigured_delivery_is_disabled(artifact):
    delivery = WebhookDelivery(webhook_url="  ")
    assert delivery.is_enabled() is False

    with pytest.raises(DeliveryFailedError):
        await delivery.deliver(artifact)


def test_from_settings():
    delivery = WebhookDelivery.from_settings(
        DeliverySettings(webhook_url=WEBHOOK_URL, timeout_seconds=5, label_field="client")
    )
    assert delivery.is_enabled()
    assert delivery.timeout_seconds == 5
    assert delivery.label_field == "client"
