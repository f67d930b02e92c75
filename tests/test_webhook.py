from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import app.api.webhook as webhook
from app.core.config import settings
from app.main import app
from app.services.flow_service import FlowStore, PresentationFlow

URL = f"{settings.API_PREFIX}/telegram/webhook"

UPDATE = {
    "update_id": 7,
    "message": {
        "message_id": 42,
        "from": {"id": 1001, "first_name": "Dilnoza"},
        "chat": {"id": 1001},
        "text": "/start",
    },
}


@pytest.fixture
def dispatch(monkeypatch):
    mock = AsyncMock(return_value={"status": "success"})
    monkeypatch.setattr(webhook, "dispatch_update", mock)
    monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", "s3cret")
    app.state.flow = PresentationFlow(FlowStore())
    return mock


@pytest.fixture
def client():
    return TestClient(app)


def test_rejects_missing_secret(client, dispatch):
    response = client.post(URL, json=UPDATE)

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"
    dispatch.assert_not_called()


def test_rejects_wrong_secret(client, dispatch):
    response = client.post(URL, json=UPDATE, headers={webhook.SECRET_HEADER: "nope"})

    assert response.status_code == 401
    dispatch.assert_not_called()


def test_accepts_update_and_dispatches(client, dispatch):
    response = client.post(URL, json=UPDATE, headers={webhook.SECRET_HEADER: "s3cret"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    dispatch.assert_awaited_once()
    message, flow = dispatch.await_args.args
    assert message.kind == "text"
    assert message.text == "/start"
    assert flow is app.state.flow


def test_ignores_unsupported_updates(client, dispatch):
    response = client.post(
        URL,
        json={"update_id": 8, "edited_message": {"message_id": 1}},
        headers={webhook.SECRET_HEADER: "s3cret"},
    )

    assert response.status_code == 200
    dispatch.assert_not_called()


def test_rejects_non_json_body(client, dispatch):
    response = client.post(
        URL,
        content=b"not json",
        headers={webhook.SECRET_HEADER: "s3cret", "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "HTTP_ERROR"


def test_secret_optional_when_not_configured(client, dispatch, monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", None)

    response = client.post(URL, json=UPDATE)

    assert response.status_code == 200
