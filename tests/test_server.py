from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import server
from config import RelayConfig
from relay import CompletionRelay, ProviderFailure


class FakeRelay:
    model = "test-model"

    def __init__(self, reply="You have a 2pm meeting.", error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    async def complete(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_relay(monkeypatch):
    relay = FakeRelay()
    monkeypatch.setattr(server, "relay", relay)
    return relay


@pytest.fixture
def client(fake_relay):
    return TestClient(server.app)


CONVERSATION = [
    {"role": "system", "content": "You are Uni-GPT."},
    {"role": "user", "content": "What's on my calendar today?"},
]


def test_chat_returns_reply(client, fake_relay):
    resp = client.post("/api/chat", json={"messages": CONVERSATION})
    assert resp.status_code == 200
    assert resp.json() == {"message": "You have a 2pm meeting."}
    assert fake_relay.requests[0].messages == CONVERSATION
    assert fake_relay.requests[0].temperature == 0.7


def test_chat_forwards_caller_temperature(client, fake_relay):
    client.post("/api/chat", json={"messages": CONVERSATION, "temperature": 0.2})
    assert fake_relay.requests[0].temperature == 0.2


@pytest.mark.parametrize("body", [
    {},
    {"temperature": 0.7},
    {"messages": "What's on my calendar today?"},
    {"messages": {"role": "user", "content": "hi"}},
    {"messages": None},
    ["not", "an", "object"],
])
def test_chat_rejects_missing_or_non_list_messages(client, fake_relay, body):
    resp = client.post("/api/chat", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Messages array is required"}
    assert fake_relay.requests == []


def test_chat_forwards_empty_message_list(client, fake_relay):
    resp = client.post("/api/chat", json={"messages": []})
    assert resp.status_code == 200
    assert fake_relay.requests[0].messages == []


def test_chat_empty_message_list_rejected_by_provider_is_500(client, fake_relay):
    fake_relay.error = ProviderFailure("messages: at least one message is required")
    resp = client.post("/api/chat", json={"messages": []})
    assert resp.status_code == 500
    assert resp.json() == {"error": "messages: at least one message is required"}


def test_chat_rejects_body_that_is_not_json(client, fake_relay):
    resp = client.post(
        "/api/chat",
        content=b"messages=hello",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Messages array is required"}


def test_chat_reports_provider_failure(client, fake_relay):
    fake_relay.error = ProviderFailure("Rate limit reached")
    resp = client.post("/api/chat", json={"messages": CONVERSATION})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Rate limit reached"}


def test_chat_end_to_end_through_completion_relay(monkeypatch):
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Sunny, 34°C."))])

    fake_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    relay = CompletionRelay(RelayConfig(model="llama-test", api_key="test-key-123"), client=fake_client)
    monkeypatch.setattr(server, "relay", relay)

    resp = TestClient(server.app).post("/api/chat", json={"messages": CONVERSATION, "temperature": 0.5})

    assert resp.status_code == 200
    assert resp.json() == {"message": "Sunny, 34°C."}
    assert calls[0]["model"] == "llama-test"
    assert calls[0]["temperature"] == 0.5
    assert calls[0]["max_tokens"] == 500


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "model": "test-model"}
