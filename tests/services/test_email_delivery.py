import json

import httpx
import pytest

from src.services.email_delivery import RESEND_API_URL, EmailDeliveryClient, EmailDeliveryError


def make_client(handler, api_key: str = "re_test_key") -> EmailDeliveryClient:
    return EmailDeliveryClient(
        api_key=api_key,
        sender="Assessment <noreply@example.com>",
        transport=httpx.MockTransport(handler),
    )


async def test_send_posts_message_and_returns_id():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_123"})

    message_id = await make_client(handler).send(["info@example.com", "jan@acme.nl"], "Subject", "<p>Hi</p>")

    assert message_id == "msg_123"
    assert captured["url"] == RESEND_API_URL
    assert captured["auth"] == "Bearer re_test_key"
    assert captured["body"] == {
        "from": "Assessment <noreply@example.com>",
        "to": ["info@example.com", "jan@acme.nl"],
        "subject": "Subject",
        "html": "<p>Hi</p>",
    }


async def test_send_without_id_in_response():
    client = make_client(lambda request: httpx.Response(200, text="ok"))
    assert await client.send(["a@example.com"], "s", "h") == ""


async def test_send_rejected_by_api():
    client = make_client(lambda request: httpx.Response(422, json={"message": "invalid from"}))
    with pytest.raises(EmailDeliveryError, match="status 422"):
        await client.send(["a@example.com"], "s", "h")


async def test_send_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmailDeliveryError, match="Could not reach email API"):
        await make_client(handler).send(["a@example.com"], "s", "h")


async def test_send_without_api_key_makes_no_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"id": "x"})

    with pytest.raises(EmailDeliveryError, match="not configured"):
        await make_client(handler, api_key="").send(["a@example.com"], "s", "h")
    assert calls == []
