"""
API Tests
=========

Routes are exercised with FastAPI's TestClient. The lifespan handler is not
run; the module-level agent is swapped for one wired to the in-memory cluster.
"""

import pytest
from fastapi.testclient import TestClient

from querygenie import main
from querygenie.agents.mongodb_agent import QueryGenieAgent
from querygenie.services.translator import GREETING_MESSAGE, QueryTranslator


@pytest.fixture
def client(agent: QueryGenieAgent, monkeypatch) -> TestClient:
    monkeypatch.setattr(main, "agent", agent)
    return TestClient(main.app)


class TestQueryRoute:
    def test_greeting(self, client: TestClient) -> None:
        response = client.post("/api/query", json={"query": "hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["conversationId"]
        assert body["message"]["role"] == "assistant"
        assert body["message"]["content"] == GREETING_MESSAGE
        assert body["result"] == {"query": "", "result": None, "executionTime": None, "error": None}

    def test_query(self, client: TestClient, fake_llm) -> None:
        fake_llm.responses.append({"query": "db.orders.countDocuments({})", "explanation": "3 orders"})

        response = client.post("/api/query", json={"query": "count orders", "conversationId": "c1"})

        body = response.json()
        assert response.status_code == 200
        assert body["conversationId"] == "c1"
        assert body["message"]["content"] == "3 orders"
        assert body["message"]["queryResult"]["result"] == 3
        assert body["result"]["executionTime"] is not None

    def test_rejected_query_is_still_200(self, client: TestClient, fake_llm) -> None:
        fake_llm.responses.append({"query": "db.dropDatabase()"})

        response = client.post("/api/query", json={"query": "wipe everything"})

        assert response.status_code == 200
        assert response.json()["result"]["error"].startswith("Dangerous operation detected")

    @pytest.mark.parametrize("payload", [
        {"query": ""},
        {"query": "x" * 1001},
        {"query": "   "},
        {},
    ])
    def test_invalid_question(self, client: TestClient, payload: dict) -> None:
        response = client.post("/api/query", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["statusCode"] == 400
        assert response.json()["error"]["message"]

    def test_no_model_configured(self, client: TestClient, agent: QueryGenieAgent) -> None:
        agent.translator = QueryTranslator()

        response = client.post("/api/query", json={"query": "show users"})

        assert response.status_code == 503
        assert response.json()["error"]["statusCode"] == 503

    def test_agent_not_initialized(self, monkeypatch) -> None:
        monkeypatch.setattr(main, "agent", None)
        response = TestClient(main.app).post("/api/query", json={"query": "show users"})
        assert response.status_code == 503


class TestSchemaRoutes:
    def test_get_schema(self, client: TestClient) -> None:
        response = client.get("/api/schema")

        assert response.status_code == 200
        names = [db["name"] for db in response.json()["databases"]]
        assert names == ["shop", "analytics"]

    def test_refresh(self, client: TestClient, fake_client) -> None:
        client.get("/api/schema")
        fake_client["shop"]["products"].insert_one({"sku": "A1"})

        cached = client.get("/api/schema").json()
        assert "shop.products" not in [c["name"] for c in cached["collections"]]

        refreshed = client.post("/api/schema/refresh").json()
        assert refreshed["message"] == "Schema refreshed successfully"
        assert "shop.products" in [c["name"] for c in refreshed["schema"]["collections"]]

    def test_refresh_query_flag(self, client: TestClient, fake_client) -> None:
        client.get("/api/schema")
        fake_client["shop"]["products"].insert_one({"sku": "A1"})

        refreshed = client.get("/api/schema", params={"refresh": "true"}).json()
        assert "shop.products" in [c["name"] for c in refreshed["collections"]]


class TestConversationRoutes:
    def test_history_round_trip(self, client: TestClient, fake_llm) -> None:
        fake_llm.responses.append({"query": "db.orders.countDocuments({})"})
        conversation_id = client.post("/api/query", json={"query": "count orders"}).json()["conversationId"]

        turns = client.get(f"/api/conversations/{conversation_id}").json()
        assert len(turns) == 1
        assert turns[0]["content"] == "count orders"
        assert turns[0]["queryResult"]["query"] == "db.orders.countDocuments({})"

        deleted = client.delete(f"/api/conversations/{conversation_id}")
        assert deleted.json() == {"message": "Conversation deleted successfully"}
        assert client.get(f"/api/conversations/{conversation_id}").json() == []


class TestHealthRoutes:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert "timestamp" in body

    def test_status(self, client: TestClient) -> None:
        body = client.get("/api/status").json()
        assert body["database"] == {"connected": True, "name": "shop"}
        assert body["llm"]["available"] is True
        assert body["llm"]["provider"] == "fake"
