from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from meeting_recorder.config.settings import settings
from meeting_recorder.main import create_app
from meeting_recorder.session.orchestrator import SessionOrchestrator


@pytest.fixture
def client(monkeypatch, tmp_path, driver_factory, transcoder, delivery):
    monkeypatch.setattr(settings, "log_to_file", False)

    def factory(_settings):
        return SessionOrchestrator(
            driver_factory,
            transcoder,
            delivery,
            work_dir=tmp_path / "work",
            output_dir=tmp_path / "out",
            drain_seconds=0,
        )

    with TestClient(create_app(factory)) as test_client:
        yield test_client


def _wait_for(client: TestClient, predicate, timeout: float = 2.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get("/api/v1/session/status").json()
        if predicate(status):
            return status
        if time.monotonic() > deadline:
            raise AssertionError(f"status never matched: {status}")
        time.sleep(0.01)


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["version"] == settings.version


def test_root_redirects_to_docs(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/api/docs"


def test_status_when_idle(client):
    body = client.get("/api/v1/session/status").json()
    assert body["phase"] == "idle"
    assert body["last_outcome"] is None


def test_join_record_stop_deliver(client, driver_factory, transcoder, delivery):
    response = client.post(
        "/api/v1/session/join",
        json={"meeting_url": "https://zoom.us/j/123", "passcode": "42", "customer_name": "Acme"},
    )
    assert response.status_code == 202
    assert response.json()["accepted"] is True

    status = _wait_for(client, lambda s: s["phase"] == "recording")
    assert status["requester_label"] == "Acme"
    assert driver_factory.last.joined == [("https://zoom.us/j/123", "42")]

    driver_factory.last.send(b"a" * 1024)
    driver_factory.last.send(b"b" * 1024)

    response = client.post("/api/v1/session/stop")
    assert response.status_code == 202
    assert response.json() == {"accepted": True, "result": "accepted"}

    status = _wait_for(client, lambda s: s["phase"] == "idle")
    outcome = status["last_outcome"]
    assert outcome["succeeded"] is True
    assert outcome["delivered"] is True
    assert outcome["stop_trigger"] == "manual"
    assert transcoder.inputs == [b"a" * 1024 + b"b" * 1024]
    assert delivery.delivered[0].requester_label == "Acme"


def test_second_join_is_conflict(client):
    assert client.post("/api/v1/session/join", json={"meeting_url": "meet/123"}).status_code == 202
    _wait_for(client, lambda s: s["phase"] == "recording")

    response = client.post("/api/v1/session/join", json={"meeting_url": "meet/789"})
    assert response.status_code == 409


@pytest.mark.parametrize("payload", [{}, {"meeting_url": ""}, {"meeting_url": "   "}])
def test_join_without_meeting_url_is_bad_request(client, payload):
    response = client.post("/api/v1/session/join", json=payload)
    assert response.status_code == 400


def test_stop_without_session_is_bad_request(client):
    response = client.post("/api/v1/session/stop")
    assert response.status_code == 400
    assert response.json()["detail"] == "No active recording"


def test_repeated_stop_is_accepted_without_effect(client, driver_factory, transcoder):
    client.post("/api/v1/session/join", json={"meetingUrl": "meet/123"})
    _wait_for(client, lambda s: s["phase"] == "recording")
    driver_factory.last.send(b"x")

    assert client.post("/api/v1/session/stop").json()["result"] == "accepted"
    second = client.post("/api/v1/session/stop")
    if second.status_code == 202:
        assert second.json() == {"accepted": False, "result": "already_stopping"}
    else:
        # The first stop may already have finished and freed the slot
        assert second.status_code == 400

    _wait_for(client, lambda s: s["phase"] == "idle")
    assert transcoder.calls == 1


def test_join_failure_is_visible_in_status(client, driver_factory):
    driver_factory.fail = True
    client.post("/api/v1/session/join", json={"meeting_url": "meet/456"})

    status = _wait_for(client, lambda s: s["phase"] == "idle" and s["last_outcome"])
    assert status["last_outcome"]["error_kind"] == "join_failed"
    assert status["last_outcome"]["succeeded"] is False
