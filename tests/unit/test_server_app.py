from __future__ import annotations

from fastapi.testclient import TestClient

from hookrunner.dispatch import MAX_BODY_BYTES, WebhookDispatcher
from hookrunner.server.app import create_app


def _client(config, spawner) -> TestClient:
    return TestClient(create_app(config, WebhookDispatcher.from_config(config, spawn=spawner)))


def test_healthz(config, spawner) -> None:
    resp = _client(config, spawner).get("/healthz")

    assert resp.status_code == 200
    assert resp.text == "ok\n"


def test_webhook_rejects_get(config, spawner) -> None:
    resp = _client(config, spawner).get("/webhook")

    assert resp.status_code == 405
    assert resp.text == "method not allowed\n"


def test_webhook_dispatches_signed_comment(config, spawner, payloads) -> None:
    body = payloads.encode(payloads.comment())

    resp = _client(config, spawner).post(
        "/webhook", content=body, headers=payloads.headers(body, "issue_comment")
    )

    assert resp.status_code == 202
    assert resp.text == "workflow dispatched\n"
    assert spawner.names == ["review"]


def test_webhook_invalid_signature(config, spawner, payloads) -> None:
    body = payloads.encode(payloads.comment())

    resp = _client(config, spawner).post(
        "/webhook",
        content=body,
        headers=payloads.headers(body, "issue_comment", secret="nope"),
    )

    assert resp.status_code == 403
    assert resp.text == "invalid signature\n"
    assert spawner.calls == []


def test_webhook_ignores_unknown_event(config, spawner, payloads) -> None:
    body = b'{"zen": "Keep it logically awesome."}'

    resp = _client(config, spawner).post(
        "/webhook", content=body, headers=payloads.headers(body, "ping")
    )

    assert resp.status_code == 200
    assert resp.text == "event ignored\n"


def test_webhook_rejects_oversized_body(config, spawner, payloads) -> None:
    body = b"x" * (MAX_BODY_BYTES + 1)

    resp = _client(config, spawner).post(
        "/webhook", content=body, headers=payloads.headers(body, "issue_comment")
    )

    assert resp.status_code == 413
    assert resp.text == "request too large\n"
    assert spawner.calls == []


def test_create_app_builds_dispatcher_from_config(config) -> None:
    app = create_app(config)

    assert [rule.name for rule in app.state.dispatcher.rules] == ["review"]
