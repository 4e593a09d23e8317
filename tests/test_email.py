import json

import httpx

from app.services.notification.email_service import EmailService


def _resend(status_code=200):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(status_code, json={"id": "email_1"})

    return httpx.Client(transport=httpx.MockTransport(handler)), sent


def test_disabled_without_api_key():
    client, sent = _resend()
    service = EmailService(api_key="", client=client)
    assert service.enabled is False
    assert service.send_email("ana@sailmatch.io", "Hi", "<p>Hi</p>") is False
    assert sent == []


def test_template_escapes_user_content():
    client, sent = _resend()
    service = EmailService(api_key="re_test", sender="SailMatch <no-reply@sailmatch.io>", client=client)

    assert service.send_registration_denied("ana@sailmatch.io", "<b>Loop</b>", "Skipper", "Crew is full") is True
    payload = sent[0]
    assert payload["to"] == ["ana@sailmatch.io"]
    assert "&lt;b&gt;Loop&lt;/b&gt;" in payload["html"]
    assert "Crew is full" in payload["html"]


def test_delivery_failure_returns_false():
    client, _ = _resend(status_code=422)
    assert EmailService(api_key="re_test", client=client).send_email("ana@sailmatch.io", "Hi", "<p>Hi</p>") is False
