import pytest
from fastapi.testclient import TestClient

from resolver.answerer import FALLBACK_RESPONSE
from webapp.server import create_app

from conftest import APP_RECORDS, EchoBackend


@pytest.fixture
def client(make_pipeline):
    pipeline = make_pipeline(EchoBackend("Modellantwort"))
    return TestClient(create_app(pipeline=pipeline))


def test_chat_returns_knowledge_answer(client):
    resp = client.post("/api/chat", json={"message": "Was ist die App?"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["response"] == APP_RECORDS[0]["answer"]
    assert body["navigationIntent"] is None
    assert body["fromCache"] is False

    again = client.post("/api/chat", json={"message": "Was ist die App?"}).json()
    assert again["fromCache"] is True


def test_chat_reports_navigation_intent(client):
    body = client.post("/api/chat", json={"message": "PIN ändern"}).json()
    assert body["navigationIntent"] == "pin"


def test_chat_requires_message(client):
    assert client.post("/api/chat", json={"message": "  "}).status_code == 400


def test_chat_delegates_unknown_queries(client):
    body = client.post("/api/chat", json={"message": "xyz", "modelName": "llama3:8b"}).json()
    assert body["response"] == "Modellantwort"
    assert body["response"] != FALLBACK_RESPONSE


def test_admin_endpoints(client):
    client.post("/api/chat", json={"message": "Was ist die App?"})
    assert client.post("/api/cache/clear").json() == {"cleared": 1}
    assert client.post("/api/knowledge/refresh", json={"force": True}).json() == {"count": len(APP_RECORDS)}

    resp = client.post("/api/knowledge/entries", json={"question": "Neue Frage?", "answer": "Neue Antwort."})
    assert resp.json() == {"count": len(APP_RECORDS) + 1}

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["entries"] == len(APP_RECORDS) + 1
    assert health["backendModels"] is None


def test_websocket_chat(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text('{"message": "Hallo"}')
        assert ws.receive_json()["response"].startswith("Hallo!")
        ws.send_text("Referenzkonto ändern")
        assert ws.receive_json()["navigationIntent"] == "reference-account"


class ListingBackend(EchoBackend):
    def __init__(self) -> None:
        super().__init__("Modellantwort")
        self.listings = 0

    def list_models(self):
        self.listings += 1
        return ["llama3:8b"]


def test_health_reuses_startup_model_listing(make_pipeline):
    backend = ListingBackend()
    client = TestClient(create_app(pipeline=make_pipeline(backend)))
    assert backend.listings == 1

    for _ in range(3):
        assert client.get("/health").json()["backendModels"] == ["llama3:8b"]
    assert backend.listings == 1

    assert client.get("/health", params={"recheck": "true"}).json()["backendModels"] == ["llama3:8b"]
    assert backend.listings == 2
