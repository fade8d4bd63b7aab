import json

import httpx
import pytest

from push_scheduler.push.fcm import FcmTransport


def make_transport(handler, project_id="demo-project"):
    transport = FcmTransport(
        sa_b64="",
        project_id=project_id,
        http_transport=httpx.MockTransport(handler),
    )

    async def fake_token():
        return "test-token"

    transport._get_access_token = fake_token
    return transport


async def test_send_topic_message():
    captured = {}

    def handler(request: httpx.Request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"name": "projects/demo-project/messages/123"})

    transport = make_transport(handler)
    message_id = await transport.send("Hello", "World", "news", "https://example.com/i.png")

    assert message_id == "projects/demo-project/messages/123"
    assert captured["url"] == "https://fcm.googleapis.com/v1/projects/demo-project/messages:send"
    assert captured["auth"] == "Bearer test-token"
    message = captured["payload"]["message"]
    assert message["topic"] == "news"
    assert message["notification"] == {
        "title": "Hello",
        "body": "World",
        "image": "https://example.com/i.png",
    }


def test_payload_without_image():
    payload = FcmTransport.build_payload("T", "B", "all")
    assert payload["message"]["notification"] == {"title": "T", "body": "B"}
    assert payload["message"]["topic"] == "all"


async def test_provider_error_raises():
    def handler(request: httpx.Request):
        return httpx.Response(404, text="Requested entity was not found.")

    transport = make_transport(handler)
    with pytest.raises(RuntimeError, match="FCM error 404"):
        await transport.send("T", "B", "all")


async def test_missing_credentials_raise():
    transport = FcmTransport(sa_b64="", project_id="")
    with pytest.raises(RuntimeError, match="FIREBASE_SA_B64"):
        await transport.send("T", "B", "all")
